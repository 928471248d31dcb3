"""Configuration — YAML file merged over defaults, then environment overrides."""

import copy
import logging
import os

import yaml

logger = logging.getLogger(__name__)

# env var -> (section, key, cast)
ENV_OVERRIDES = {
    "WHERENOW_TOKEN": ("auth", "token", str),
    "WHERENOW_LOG_FILE": ("storage", "log_file", str),
    "WHERENOW_HOST": ("server", "host", str),
    "WHERENOW_PORT": ("server", "port", int),
    "WHERENOW_LOG_LEVEL": ("logging", "level", str.upper),
}


class Config:
    """Configuration manager that loads from YAML and merges with defaults."""

    DEFAULTS = {
        "server": {
            "host": "0.0.0.0",
            "port": 8080,
            "debug": False,
        },
        "auth": {
            "token": "",
        },
        "storage": {
            "log_file": "./data/locations.jsonl",
            "chunk_size": 4096,
        },
        "limits": {
            "max_body_bytes": 65536,
            "default_limit": 200,
            "max_limit": 200,
        },
        "logging": {
            "level": "INFO",
        },
    }

    def __init__(self, config_path=None, overrides=None, environ=None):
        self._config = copy.deepcopy(self.DEFAULTS)

        if config_path is not None:
            try:
                with open(config_path, "r") as f:
                    user_config = yaml.safe_load(f)

                if user_config and isinstance(user_config, dict):
                    self._config = self._deep_merge(self._config, user_config)
            except FileNotFoundError:
                pass
            except yaml.YAMLError:
                logger.warning("Invalid YAML in %s, using defaults", config_path)

        self._apply_env(os.environ if environ is None else environ)

        if overrides:
            self._config = self._deep_merge(self._config, overrides)

        level = self._config["logging"].get("level", "INFO")
        self._config["logging"]["level"] = str(level).upper()

    def _apply_env(self, environ):
        for var, (section, key, cast) in ENV_OVERRIDES.items():
            raw = environ.get(var)
            if raw is None:
                continue
            try:
                self._config[section][key] = cast(raw)
            except ValueError:
                logger.warning("Ignoring %s=%r: not a valid value", var, raw)

    @staticmethod
    def _deep_merge(base, override):
        """Recursively merge override dict into base dict."""
        result = copy.deepcopy(base)
        for key, value in override.items():
            if (
                key in result
                and isinstance(result[key], dict)
                and isinstance(value, dict)
            ):
                result[key] = Config._deep_merge(result[key], value)
            else:
                result[key] = copy.deepcopy(value)
        return result

    def get(self, key, default=None):
        """Get a top-level config key."""
        return self._config.get(key, default)

    def __getitem__(self, key):
        return self._config[key]

    def __contains__(self, key):
        return key in self._config


def load_config() -> Config:
    """Build Config from the YAML file named by CONFIG_PATH (default ``config.yaml``)."""
    return Config(os.environ.get("CONFIG_PATH", "config.yaml"))
