# src/tact/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app.
- Components take settings as an argument; nothing reads the environment
  after startup.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "TACT"

WIP_LIMIT_MIN = 1
WIP_LIMIT_MAX = 5
DEFAULT_WIP_LIMIT = 2
DEFAULT_ROLLOVER_THRESHOLD = 3

STORAGE_BACKENDS = ("auto", "json", "memory")
SYNC_CHANNELS = ("file", "local", "off")

load_dotenv(override=False)


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


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


def _env_choice(name: str, default: str, choices: tuple[str, ...]) -> str:
    raw = _env(name, default).strip().lower()
    return raw if raw in choices else default


def clamp_wip_limit(value: int) -> int:
    return max(WIP_LIMIT_MIN, min(WIP_LIMIT_MAX, int(value)))


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Local data paths ----
    data_dir: Path
    db_path: Path
    fallback_path: Path

    # ---- Storage / sync ----
    storage_backend: str
    sync_enabled: bool
    sync_channel: str
    sync_dir: Path

    # ---- Lifecycle / day close ----
    wip_limit: int
    rollover_threshold: int
    available_hours: float

    # ---- Summary rendering ----
    summary_markdown: bool
    summary_with_times: bool

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "tact").strip() or "tact"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/tact"))
        db_path = _env_path(_k("DB_PATH"), data_dir / "tact.sqlite3")
        fallback_path = _env_path(_k("FALLBACK_PATH"), data_dir / "tact.json")

        storage_backend = _env_choice(_k("STORAGE_BACKEND"), "auto", STORAGE_BACKENDS)
        sync_enabled = _env_bool(_k("SYNC_ENABLED"), True)
        sync_channel = _env_choice(_k("SYNC_CHANNEL"), "file", SYNC_CHANNELS)
        sync_dir = _env_path(_k("SYNC_DIR"), data_dir / "sync")

        wip_limit = clamp_wip_limit(_env_int(_k("WIP_LIMIT"), DEFAULT_WIP_LIMIT))
        rollover_threshold = max(1, _env_int(_k("ROLLOVER_THRESHOLD"), DEFAULT_ROLLOVER_THRESHOLD))
        available_hours = max(0.0, _env_float(_k("AVAILABLE_HOURS"), 6.0))

        summary_markdown = _env_bool(_k("SUMMARY_MARKDOWN"), True)
        summary_with_times = _env_bool(_k("SUMMARY_WITH_TIMES"), True)

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            db_path=db_path,
            fallback_path=fallback_path,
            storage_backend=storage_backend,
            sync_enabled=sync_enabled,
            sync_channel=sync_channel,
            sync_dir=sync_dir,
            wip_limit=wip_limit,
            rollover_threshold=rollover_threshold,
            available_hours=available_hours,
            summary_markdown=summary_markdown,
            summary_with_times=summary_with_times,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
