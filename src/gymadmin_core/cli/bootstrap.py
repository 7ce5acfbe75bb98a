# src/gymadmin_core/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures the local (gitignored) data dir exists,
- wires signals, the poll scheduler, the backend pollers and (given a widget
  host) the deferred chart gate into DashboardState,
- tears everything down again on exit.

Must run inside the event loop: the scheduler arms its timers on registration.
"""

from __future__ import annotations

import contextlib
import logging
from typing import Any

from ..charts.loaders import ModuleDependencyLoader
from ..charts.render_gate import DeferredRenderGate
from ..config import get_settings
from ..core.ports import ChartRenderer, DependencyLoader, WidgetHost
from ..core.signals import EnvironmentSignals
from ..core.state import DashboardState
from ..dashboard.cash_validation import CashValidationWatcher, create_http_client
from ..polling.poll_scheduler import PollScheduler

logger = logging.getLogger(__name__)

CASH_VALIDATION_TASK = "cash-validations"
PUSH_TASK = "dashboard-push"


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)


def create_dashboard_state(
        *,
        settings=None,
        widget_host: WidgetHost | None = None,
        chart_renderer: ChartRenderer | None = None,
        chart_loader: DependencyLoader | None = None,
) -> DashboardState:
    """
    Create DashboardState from the provided settings.

    The chart gate needs a surface to draw on: it is built only when both
    widget_host and chart_renderer are given. chart_loader defaults to
    ModuleDependencyLoader.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    signals = EnvironmentSignals()
    scheduler = PollScheduler(
        signals,
        default_max_interval=settings.poll_max_interval_seconds,
    )
    state = DashboardState(settings=settings, signals=signals, scheduler=scheduler)

    state.http = create_http_client(settings)
    state.watcher = CashValidationWatcher(state.http, on_new=state.pending_validations.append)
    scheduler.register(
        CASH_VALIDATION_TASK,
        state.watcher.check,
        interval=settings.poll_interval_seconds,
        max_retries=settings.poll_max_retries,
        backoff_multiplier=settings.poll_backoff_multiplier,
    )

    if settings.push_url:
        state.push = scheduler.register_push(
            PUSH_TASK,
            settings.push_url,
            lambda data: _on_push_message(state, data),
            max_reconnects=settings.push_max_reconnects,
        )

    if widget_host is not None and chart_renderer is not None:
        state.gate = DeferredRenderGate(
            widget_host,
            chart_loader or ModuleDependencyLoader(),
            chart_renderer,
            threshold=settings.chart_threshold,
            root_margin=settings.chart_root_margin,
            fallback_delay=settings.chart_fallback_delay_seconds,
        )

    return state


def _on_push_message(state: DashboardState, data: Any) -> None:
    # The backend pushes the same validation objects the poller fetches.
    if isinstance(data, dict) and data.get("validationCode") and state.watcher is not None:
        code = str(data["validationCode"])
        if code not in state.watcher.seen_codes:
            state.watcher.mark_processed(code)
            state.pending_validations.append(data)
            logger.info("Pushed cash validation %s", code)
        return
    logger.debug("Ignoring push message: %r", data)


async def shutdown_dashboard_state(state: DashboardState) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    if state.gate is not None:
        try:
            state.gate.destroy()
        except Exception:
            logger.exception("Failed to destroy chart gate.")

    try:
        state.scheduler.destroy()
    except Exception:
        logger.exception("Failed to stop poll scheduler.")

    if state.push is not None:
        with contextlib.suppress(Exception):
            await state.push.wait_closed()

    try:
        await state.scheduler.wait_idle()
    except Exception:
        logger.debug("Waiting for in-flight polls failed.", exc_info=True)

    if state.http is not None:
        try:
            await state.http.aclose()
        except Exception:
            logger.debug("HTTP client close failed.", exc_info=True)
