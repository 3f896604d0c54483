"""
Runtime settings for the badge access system.

Every value can be overridden with a ``BADGE_ACCESS_`` environment
variable; anything unset falls back to the defaults below.
"""

import os
from dataclasses import dataclass, field

ENV_PREFIX = "BADGE_ACCESS_"

# Default database file sits next to the packages, like the schema's SQL shell did
DEFAULT_DB_PATH = os.path.join(os.path.dirname(os.path.dirname(__file__)), 'badge_access.db')


def _env(name: str, default: str) -> str:
    raw = os.getenv(ENV_PREFIX + name)
    if raw is None or not raw.strip():
        return default
    return raw.strip()


def _env_int(name: str, default: int) -> int:
    raw = _env(name, str(default))
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{ENV_PREFIX}{name} must be an integer, got {raw!r}")


def _env_bool(name: str, default: bool) -> bool:
    return _env(name, "1" if default else "0").lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    database_url: str = field(default_factory=lambda: _env("DATABASE_URL", f"sqlite:///{DEFAULT_DB_PATH}"))
    sequence_start: int = field(default_factory=lambda: _env_int("SEQUENCE_START", 100001))
    max_code_attempts: int = field(default_factory=lambda: _env_int("MAX_CODE_ATTEMPTS", 5))
    log_level: str = field(default_factory=lambda: _env("LOG_LEVEL", "WARNING").upper())
    sql_echo: bool = field(default_factory=lambda: _env_bool("SQL_ECHO", False))

    def __post_init__(self):
        if not 0 <= self.sequence_start <= 999999:
            raise ValueError(f"sequence_start must fit in six digits, got {self.sequence_start}")
        if self.max_code_attempts < 1:
            raise ValueError("max_code_attempts must be at least 1")


settings = Settings()
