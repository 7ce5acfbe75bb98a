# src/gymadmin_core/core/state.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ..polling.poll_scheduler import PollScheduler
from .signals import EnvironmentSignals

if TYPE_CHECKING:
    import httpx

    from ..charts.render_gate import DeferredRenderGate
    from ..dashboard.cash_validation import CashValidationWatcher
    from ..polling.push_poller import PushPoller


@dataclass
class DashboardState:
    # Store Settings on the state for easy access in other modules later.
    settings: Any

    signals: EnvironmentSignals
    scheduler: PollScheduler

    http: httpx.AsyncClient | None = None
    watcher: CashValidationWatcher | None = None
    push: PushPoller | None = None
    # Only built when a widget host and chart renderer are supplied.
    gate: DeferredRenderGate | None = None

    # Validations reported by the watcher and not yet handled by the operator.
    pending_validations: list[dict[str, Any]] = field(default_factory=list)
