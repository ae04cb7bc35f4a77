# src/meeting_taskbot/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app.
- No secrets required at import time.
- Every variable is documented in config.example.py.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

ENV_PREFIX = "TASKBOT"

_WEEKDAY_NAMES = {
    "mon": 0,
    "tue": 1,
    "wed": 2,
    "thu": 3,
    "fri": 4,
    "sat": 5,
    "sun": 6,
}


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _load_dotenv_if_available() -> None:
    """Load .env locally if python-dotenv is installed. Safe no-op otherwise."""
    try:
        from dotenv import load_dotenv  # type: ignore
    except Exception:
        return
    load_dotenv(override=False)


_load_dotenv_if_available()


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


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


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    parts = [p.strip() for p in raw.replace(",", " ").split() if p.strip()]
    return parts


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


def parse_weekdays(parts: List[str]) -> tuple[int, ...]:
    """
    Parse weekday tokens into datetime.weekday() numbers.

    Accepts "mon".."sun", numbers 0..6 and ranges like "mon-fri" or "0-4".
    Unknown tokens are ignored.
    """

    def _one(token: str) -> int | None:
        t = token.strip().lower()[:3]
        if t in _WEEKDAY_NAMES:
            return _WEEKDAY_NAMES[t]
        if t.isdigit() and 0 <= int(t) <= 6:
            return int(t)
        return None

    days: set[int] = set()
    for part in parts:
        if "-" in part:
            lo_raw, _, hi_raw = part.partition("-")
            lo, hi = _one(lo_raw), _one(hi_raw)
            if lo is None or hi is None or lo > hi:
                continue
            days.update(range(lo, hi + 1))
            continue
        d = _one(part)
        if d is not None:
            days.add(d)
    return tuple(sorted(days))


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Connector flags ----
    console_enabled: bool
    matrix_enabled: bool

    # ---- LLM (OpenAI-compatible) ----
    openai_api_key: Optional[str]
    openai_base_url: str
    llm_models: List[str]
    llm_connect_timeout_seconds: float
    llm_read_timeout_seconds: float
    extraction_timeout_seconds: float

    # ---- Matrix ----
    matrix_homeserver: str
    matrix_user_id: str
    matrix_password: str
    matrix_rooms: List[str]

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    matrix_store_path: Path
    tasks_db_path: Path
    permissions_db_path: Path

    # ---- Overdue reminders ----
    overdue_sweep_hour: int
    overdue_sweep_weekdays: tuple[int, ...]
    overdue_poll_seconds: float

    # ---- Behaviour switches ----
    explicit_start_denial: bool

    # ---- Console identity ----
    console_user_id: str
    console_user_name: str

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "taskbot") or "taskbot"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        console_enabled = _env_bool(_k("CONSOLE_ENABLED"), True)
        matrix_enabled = _env_bool(_k("MATRIX_ENABLED"), False)

        openai_api_key = _first_env(_k("OPENAI_API_KEY"), "OPENAI_API_KEY", default=None)
        openai_base_url = _env(_k("OPENAI_BASE_URL"), "https://api.openai.com/v1")
        llm_models = _env_list(_k("LLM_MODELS"), ["gpt-4o", "gpt-4o-mini"])

        llm_connect_timeout_seconds = _env_float(_k("LLM_CONNECT_TIMEOUT_SECONDS"), 5.0)
        llm_read_timeout_seconds = _env_float(_k("LLM_READ_TIMEOUT_SECONDS"), 45.0)
        extraction_timeout_seconds = _env_float(_k("EXTRACTION_TIMEOUT_SECONDS"), 60.0)

        matrix_homeserver = (_first_env(_k("MATRIX_HOMESERVER"), "MATRIX_HOMESERVER", default="") or "").strip()
        matrix_user_id = (_first_env(_k("MATRIX_USER_ID"), "MATRIX_USER_ID", default="") or "").strip()
        matrix_password = (_first_env(_k("MATRIX_PASSWORD"), "MATRIX_PASSWORD", default="") or "").strip()
        matrix_rooms = _env_list(_k("MATRIX_ROOMS"), [])

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/taskbot"))
        matrix_store_path = _env_path(_k("MATRIX_STORE_PATH"), data_dir / "matrix_store")
        tasks_db_path = _env_path(_k("TASKS_DB_PATH"), data_dir / "tasks.sqlite3")
        permissions_db_path = _env_path(_k("PERMISSIONS_DB_PATH"), data_dir / "permissions.sqlite3")

        overdue_sweep_hour = max(0, min(23, _env_int(_k("OVERDUE_SWEEP_HOUR"), 9)))
        overdue_sweep_weekdays = parse_weekdays(_env_list(_k("OVERDUE_SWEEP_WEEKDAYS"), ["mon-fri"]))
        overdue_poll_seconds = _env_float(_k("OVERDUE_POLL_SECONDS"), 60.0)

        explicit_start_denial = _env_bool(_k("EXPLICIT_START_DENIAL"), False)

        console_user_id = _env(_k("CONSOLE_USER_ID"), "console")
        console_user_name = _env(_k("CONSOLE_USER_NAME"), "Console")

        return Settings(
            app_name=app_name,
            log_level=log_level,
            console_enabled=console_enabled,
            matrix_enabled=matrix_enabled,
            openai_api_key=openai_api_key,
            openai_base_url=openai_base_url,
            llm_models=llm_models,
            llm_connect_timeout_seconds=llm_connect_timeout_seconds,
            llm_read_timeout_seconds=llm_read_timeout_seconds,
            extraction_timeout_seconds=extraction_timeout_seconds,
            matrix_homeserver=matrix_homeserver,
            matrix_user_id=matrix_user_id,
            matrix_password=matrix_password,
            matrix_rooms=matrix_rooms,
            data_dir=data_dir,
            matrix_store_path=matrix_store_path,
            tasks_db_path=tasks_db_path,
            permissions_db_path=permissions_db_path,
            overdue_sweep_hour=overdue_sweep_hour,
            overdue_sweep_weekdays=overdue_sweep_weekdays,
            overdue_poll_seconds=overdue_poll_seconds,
            explicit_start_denial=explicit_start_denial,
            console_user_id=console_user_id,
            console_user_name=console_user_name,
        )


_SETTINGS: Settings | None = None


def get_settings() -> Settings:
    """Return the process-wide settings (built lazily on first use)."""
    global _SETTINGS
    if _SETTINGS is None:
        _SETTINGS = Settings.from_env()
    return _SETTINGS
