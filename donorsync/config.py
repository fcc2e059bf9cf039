import logging
import os
from dataclasses import dataclass, fields
from datetime import timedelta
from typing import Optional

from dotenv import load_dotenv


class ConfigError(ValueError):
    pass


@dataclass
class Settings:
    db_path: str = "donorsync.db"
    refresh_seconds: int = 60
    alert_cooldown_minutes: Optional[int] = None
    escalation_step_minutes: int = 30
    log_level: str = "INFO"
    actor: str = "system"

    @property
    def alert_cooldown(self) -> Optional[timedelta]:
        if self.alert_cooldown_minutes is None:
            return None
        return timedelta(minutes=self.alert_cooldown_minutes)


_ENV = {
    "db_path": "DONORSYNC_DB",
    "refresh_seconds": "DONORSYNC_REFRESH_SECONDS",
    "alert_cooldown_minutes": "DONORSYNC_ALERT_COOLDOWN_MINUTES",
    "escalation_step_minutes": "DONORSYNC_ESCALATION_STEP_MINUTES",
    "log_level": "DONORSYNC_LOG_LEVEL",
    "actor": "DONORSYNC_ACTOR",
}
_INT_FIELDS = {"refresh_seconds", "alert_cooldown_minutes", "escalation_step_minutes"}


def _to_int(name: str, raw: str) -> int:
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be an integer, got {raw!r}")
    if value <= 0:
        raise ConfigError(f"{name} must be positive, got {value}")
    return value


def load_settings(env_file: Optional[str] = None, **overrides) -> Settings:
    """Defaults < .env < environment < explicit overrides (None means "not given")."""
    load_dotenv(env_file)
    values = {}
    for f in fields(Settings):
        raw = os.getenv(_ENV[f.name])
        if raw is None or raw == "":
            continue
        values[f.name] = _to_int(_ENV[f.name], raw) if f.name in _INT_FIELDS else raw
    for key, value in overrides.items():
        if value is None:
            continue
        if key not in _ENV:
            raise ConfigError(f"Unknown setting: {key}")
        values[key] = _to_int(key, value) if key in _INT_FIELDS else value
    return Settings(**values)


def configure_logging(level: str = "INFO"):
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
