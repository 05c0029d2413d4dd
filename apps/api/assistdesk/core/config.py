from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_DATABASE_URL = "sqlite:///./data/app.db"


@dataclass(frozen=True)
class Settings:
    database_url: str = DEFAULT_DATABASE_URL
    app_version: str = "0.1.0"
    log_level: str = "INFO"

    # How many times a write that lost a race (locked store, stale version)
    # is re-attempted before surfacing TransientConflictError.
    admission_retry_attempts: int = 3

    # sqlite busy timeout for a single store call
    db_busy_timeout_seconds: float = 5.0

    # one open (pending|confirmed) booking per requester per assistance type
    reject_duplicate_requests: bool = True


def _flag(name: str, default: str) -> bool:
    raw = os.getenv(name, default).strip().lower()
    return raw not in {"0", "false", "no", "off", ""}


def get_settings() -> Settings:
    # Read on every call so a changed environment (tests, reloads) is honoured.
    attempts = int(os.getenv("ADMISSION_RETRY_ATTEMPTS", "3"))
    if attempts < 1:
        raise RuntimeError("ADMISSION_RETRY_ATTEMPTS must be >= 1")

    busy_timeout = float(os.getenv("DB_BUSY_TIMEOUT_SECONDS", "5"))
    if busy_timeout <= 0:
        raise RuntimeError("DB_BUSY_TIMEOUT_SECONDS must be > 0")

    return Settings(
        database_url=os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL),
        app_version=os.getenv("APP_VERSION", "0.1.0"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        admission_retry_attempts=attempts,
        db_busy_timeout_seconds=busy_timeout,
        reject_duplicate_requests=_flag("REJECT_DUPLICATE_REQUESTS", "1"),
    )
