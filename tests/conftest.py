# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from gymadmin_core.core.signals import EnvironmentSignals
from gymadmin_core.polling.poll_scheduler import PollScheduler


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with the bootstrap and dashboard modules.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="gymadmin-test",
        log_level="DEBUG",
        data_dir=tmp_path / "data",
        console_enabled=False,
        api_base_url="http://backend.test",
        api_token="secret-token",
        http_timeout_seconds=1.0,
        poll_interval_seconds=10.0,
        poll_max_retries=3,
        poll_backoff_multiplier=1.5,
        poll_max_interval_seconds=60.0,
        push_url=None,
        push_max_reconnects=2,
        chart_threshold=0.1,
        chart_root_margin=50.0,
        chart_fallback_delay_seconds=0.01,
    )


@pytest.fixture()
def signals() -> EnvironmentSignals:
    return EnvironmentSignals(tab_visible=True, window_focused=True)


@pytest.fixture()
def scheduler(signals: EnvironmentSignals):
    sched = PollScheduler(signals)
    yield sched
    sched.destroy()
