import os
import yaml

from settings_schema import AppConfigSchema, validate_settings

APP_VERSION = "1.0.0"


class YamlConfig:
    """Load and save application configuration to a YAML file."""

    ENV_OVERRIDES = {
        "TRACKER_DB_PATH": "db_path",
        "TRACKER_LOG_LEVEL": "log_level",
    }

    def __init__(self, path: str = "tracker.yaml") -> None:
        self.path = path

    def load(self) -> dict:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        return data

    def save(self, data: dict) -> None:
        validate_settings(data)
        with open(self.path, "w", encoding="utf-8") as f:
            yaml.safe_dump(dict(data), f)


def load_config(path: str = "tracker.yaml") -> AppConfigSchema:
    """Return validated configuration with environment overrides applied."""
    data = YamlConfig(path).load()
    for env, key in YamlConfig.ENV_OVERRIDES.items():
        value = os.environ.get(env)
        if value:
            data[key] = value
    validate_settings(data)
    return AppConfigSchema(**data)
