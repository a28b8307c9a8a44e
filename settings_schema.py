import os
from typing import Literal

from pydantic import BaseModel, ValidationError

from config import YamlConfig


class SettingsSchema(BaseModel):
    platform: Literal["auto", "native", "web"] = "auto"
    db_path: str = "liftlog.db"
    preferences_path: str = "preferences.yaml"


_ENV_OVERRIDES = {
    "db_path": "LIFTLOG_DB_PATH",
    "preferences_path": "LIFTLOG_PREFERENCES_PATH",
}


def validate_settings(data: dict) -> SettingsSchema:
    try:
        return SettingsSchema(**data)
    except ValidationError as e:
        raise ValueError(str(e))


def load_settings(path: str = "settings.yaml") -> SettingsSchema:
    """Read ``path`` and apply environment overrides."""
    data = YamlConfig(path).load()
    for key, env_name in _ENV_OVERRIDES.items():
        value = os.environ.get(env_name)
        if value:
            data[key] = value
    return validate_settings(data)
