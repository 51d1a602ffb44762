# src/digiteam/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

- One Settings object for the whole app.
- No secrets required at import time; the Firebase keys are only checked when
  the firebase backend is selected.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "DIGITEAM"

BACKENDS = ("memory", "sqlite", "firebase")


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _load_dotenv() -> None:
    # Real environment wins over .env.
    load_dotenv(override=False)


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_optional(name: str) -> str | None:
    v = os.getenv(name)
    if v is None or v.strip() == "":
        return None
    return v.strip()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Backend selection ----
    backend: str
    poll_interval_seconds: float

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    store_db_path: Path

    # ---- Firebase ----
    firebase_api_key: str | None
    firebase_project_id: str | None
    http_timeout_seconds: float

    # ---- Board tuning ----
    due_soon_limit: int
    upcoming_events_limit: int

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "digiteam") or "digiteam"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        backend = _env(_k("BACKEND"), "sqlite").strip().lower()
        if backend not in BACKENDS:
            raise ValueError(f"{_k('BACKEND')} must be one of {', '.join(BACKENDS)}, got {backend!r}")

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/digiteam"))
        store_db_path = _env_path(_k("STORE_DB_PATH"), data_dir / "portal.sqlite3")

        return Settings(
            app_name=app_name,
            log_level=log_level,
            backend=backend,
            poll_interval_seconds=max(0.1, _env_float(_k("POLL_INTERVAL_SECONDS"), 2.0)),
            data_dir=data_dir,
            store_db_path=store_db_path,
            firebase_api_key=_env_optional(_k("FIREBASE_API_KEY")),
            firebase_project_id=_env_optional(_k("FIREBASE_PROJECT_ID")),
            http_timeout_seconds=_env_float(_k("HTTP_TIMEOUT_SECONDS"), 15.0),
            due_soon_limit=max(1, _env_int(_k("DUE_SOON_LIMIT"), 5)),
            upcoming_events_limit=max(1, _env_int(_k("UPCOMING_EVENTS_LIMIT"), 5)),
        )


_SETTINGS: Settings | None = None


def get_settings() -> Settings:
    """Load settings once (after .env) and reuse the same object."""
    global _SETTINGS
    if _SETTINGS is None:
        _load_dotenv()
        _SETTINGS = Settings.from_env()
    return _SETTINGS
