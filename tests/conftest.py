import json

import pytest

from wherenow.app import create_app
from wherenow.config import Config
from wherenow.store import LocationLog
from wherenow.validator import LocationValidator

TOKEN = "s3cret-token"
SAMPLE_ID = "123e4567-e89b-42d3-a456-426614174000"


@pytest.fixture
def log_path(tmp_path):
    return tmp_path / "locations.jsonl"


@pytest.fixture
def write_lines(log_path):
    """Write raw records (dicts) or strings to the log, one per line."""

    def _write(*items):
        with open(log_path, "a", encoding="utf-8") as f:
            for item in items:
                line = item if isinstance(item, str) else json.dumps(item)
                f.write(line + "\n")

    return _write


@pytest.fixture
def config(log_path):
    return Config(
        environ={},
        overrides={
            "auth": {"token": TOKEN},
            "storage": {"log_file": str(log_path)},
        },
    )


@pytest.fixture
def store(log_path):
    return LocationLog(str(log_path), chunk_size=64)


@pytest.fixture
def validator():
    return LocationValidator()


@pytest.fixture
def app(config):
    """Create a Flask test app."""
    application = create_app(config)
    application.config["TESTING"] = True
    return application


@pytest.fixture
def client(app):
    """Create a Flask test client."""
    return app.test_client()


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {TOKEN}"}


@pytest.fixture
def sample_location():
    return {"lat": 37.5, "lon": -122.3, "id": SAMPLE_ID}
