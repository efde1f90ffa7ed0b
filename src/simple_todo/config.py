# src/simple_todo/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- Every value has a local default; nothing is required at import time.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "SIMPLE_TODO"

DEFAULT_SHARE_BASE_URL = "https://simple-todo.local/"
DEFAULT_SHARE_MAX_BYTES = 200 * 1024


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


load_dotenv(override=False)


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


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

    # ---- Front-end / background switches ----
    console_enabled: bool
    sync_enabled: bool
    sync_interval_seconds: float

    # ---- Sharing ----
    share_base_url: str
    share_max_bytes: int

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    store_path: Path

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "simple-todo") or "simple-todo"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        console_enabled = _env_bool(_k("CONSOLE_ENABLED"), True)
        sync_enabled = _env_bool(_k("SYNC_ENABLED"), True)
        sync_interval_seconds = max(0.05, _env_float(_k("SYNC_INTERVAL_SECONDS"), 1.0))

        share_base_url = _env(_k("SHARE_BASE_URL"), DEFAULT_SHARE_BASE_URL).strip() or DEFAULT_SHARE_BASE_URL
        share_max_bytes = _env_int(_k("SHARE_MAX_BYTES"), DEFAULT_SHARE_MAX_BYTES)
        if share_max_bytes <= 0:
            share_max_bytes = DEFAULT_SHARE_MAX_BYTES

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/simple_todo"))
        store_path = _env_path(_k("STORE_PATH"), data_dir / "store.sqlite3")

        return Settings(
            app_name=app_name,
            log_level=log_level,
            console_enabled=console_enabled,
            sync_enabled=sync_enabled,
            sync_interval_seconds=sync_interval_seconds,
            share_base_url=share_base_url,
            share_max_bytes=share_max_bytes,
            data_dir=data_dir,
            store_path=store_path,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
