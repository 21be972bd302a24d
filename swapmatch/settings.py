import json
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import get_args

CONFIG_ENV_VAR = "SWAPMATCH_CONFIG"
ENV_PREFIX = "SWAPMATCH_"


@dataclass
class Settings:
    cache_ttl_seconds: float = 5 * 60
    min_request_interval_seconds: float = 2.0
    fetch_timeout_seconds: float | None = 10.0
    notification_webhook_url: str | None = None
    notification_timeout_seconds: float = 5.0
    log_level: str = "INFO"
    fixture_path: str | None = None


def _coerce(raw: str, field_type):
    """Convert an environment string to the field's declared type."""
    types = get_args(field_type) or (field_type,)
    if raw == "" and type(None) in types:
        return None
    if bool in types:
        return raw.lower() in ("1", "true", "yes")
    if float in types:
        return float(raw)
    if int in types:
        return int(raw)
    return raw


def load_settings(path: str | Path | None = None) -> Settings:
    """
    Build settings from defaults, then an optional JSON file (argument or
    SWAPMATCH_CONFIG), then SWAPMATCH_* environment variables.
    """
    settings = Settings()
    declared = {f.name: f.type for f in fields(Settings)}

    path = path or os.environ.get(CONFIG_ENV_VAR)
    if path:
        with open(path, "r") as f:
            raw = json.load(f)
        for key, value in raw.get("settings", raw).items():
            if key in declared:
                setattr(settings, key, value)

    for name, field_type in declared.items():
        env_value = os.environ.get(f"{ENV_PREFIX}{name.upper()}")
        if env_value is not None:
            setattr(settings, name, _coerce(env_value, field_type))

    return settings
