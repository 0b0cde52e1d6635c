import copy
import logging
import os

import yaml

logger = logging.getLogger(__name__)


class Config:
    """Configuration manager that loads from YAML and merges with defaults."""

    DEFAULTS = {
        "server": {
            "host": "0.0.0.0",
            "port": 5000,
            "debug": False,
        },
        "logger": {
            "max_logs": 1000,
            "storage_key": "app_logs",
            "development": False,
        },
        "storage": {
            "path": "data/app_logs.json",
        },
        "navigation": {
            "login_path": "/volunteer/login",
            "redirect_delay_seconds": 2,
        },
        "notifications": {
            "max_items": 50,
        },
    }

    def __init__(self, config_path=None):
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

        # APP_ENV can only turn the development flag on, never off
        if os.environ.get("APP_ENV", "").strip().lower() == "development":
            self._config["logger"]["development"] = True

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

    @property
    def development(self) -> bool:
        return bool(self._config["logger"]["development"])

    def get(self, key, default=None):
        """Get a top-level config key."""
        return self._config.get(key, default)

    def __getitem__(self, key):
        return self._config[key]

    def __contains__(self, key):
        return key in self._config
