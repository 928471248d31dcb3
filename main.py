"""wherenow — location log service entry point (Flask development server)."""

import logging
import sys

from wherenow.app import create_app
from wherenow.config import load_config


def main():
    config = load_config()
    logging.basicConfig(
        level=config["logging"]["level"],
        format="%(asctime)s [wherenow] %(levelname)s %(message)s",
        stream=sys.stderr,
    )
    logger = logging.getLogger(__name__)

    server = config["server"]
    logger.info(
        "Starting location log service: log_file=%s, host=%s, port=%d",
        config["storage"]["log_file"], server["host"], server["port"],
    )

    app = create_app(config)
    app.run(host=server["host"], port=server["port"], debug=server["debug"])


if __name__ == "__main__":
    main()
