# src/gymadmin_core/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app.
- No secrets required at import time.
- Durations are seconds (floats), not milliseconds.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

ENV_PREFIX = "GYMADMIN"


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
    data_dir: Path

    # ---- Connector flags ----
    console_enabled: bool

    # ---- Admin backend ----
    api_base_url: str
    api_token: Optional[str]
    http_timeout_seconds: float

    # ---- Poll scheduler ----
    poll_interval_seconds: float
    poll_max_retries: int
    poll_backoff_multiplier: float
    poll_max_interval_seconds: float

    # ---- Push transport ----
    push_url: Optional[str]
    push_max_reconnects: int

    # ---- Deferred charts ----
    chart_threshold: float
    chart_root_margin: float
    chart_fallback_delay_seconds: float

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "gymadmin") or "gymadmin"
        log_level = _env(_k("LOG_LEVEL"), "INFO")
        data_dir = _env_path(_k("DATA_DIR"), Path(".local/gymadmin"))

        console_enabled = _env_bool(_k("CONSOLE_ENABLED"), True)

        api_base_url = _env(_k("API_BASE_URL"), "http://localhost:5000").rstrip("/")
        api_token = _env(_k("API_TOKEN"), "").strip() or None
        http_timeout_seconds = _env_float(_k("HTTP_TIMEOUT_SECONDS"), 10.0)

        # Cash validation dialog polled every 10s in the admin panel.
        poll_interval_seconds = _env_float(_k("POLL_INTERVAL_SECONDS"), 10.0)
        poll_max_retries = _env_int(_k("POLL_MAX_RETRIES"), 3)
        poll_backoff_multiplier = _env_float(_k("POLL_BACKOFF_MULTIPLIER"), 1.5)
        poll_max_interval_seconds = _env_float(_k("POLL_MAX_INTERVAL_SECONDS"), 300.0)

        push_url = _env(_k("PUSH_URL"), "").strip() or None
        push_max_reconnects = _env_int(_k("PUSH_MAX_RECONNECTS"), 5)

        chart_threshold = _env_float(_k("CHART_THRESHOLD"), 0.1)
        chart_root_margin = _env_float(_k("CHART_ROOT_MARGIN"), 50.0)
        chart_fallback_delay_seconds = _env_float(_k("CHART_FALLBACK_DELAY_SECONDS"), 0.1)

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            console_enabled=console_enabled,
            api_base_url=api_base_url,
            api_token=api_token,
            http_timeout_seconds=http_timeout_seconds,
            poll_interval_seconds=poll_interval_seconds,
            poll_max_retries=poll_max_retries,
            poll_backoff_multiplier=poll_backoff_multiplier,
            poll_max_interval_seconds=poll_max_interval_seconds,
            push_url=push_url,
            push_max_reconnects=push_max_reconnects,
            chart_threshold=chart_threshold,
            chart_root_margin=chart_root_margin,
            chart_fallback_delay_seconds=chart_fallback_delay_seconds,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
