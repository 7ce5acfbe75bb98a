# src/gymadmin_core/charts/widget_models.py

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from ..core.ports import ChartHandle, ElementRef, Observation


class WidgetStatus(StrEnum):
    """
    Deferred widget lifecycle.

    pending -> loading -> active happens at most once; loading -> error is the
    failure path and error -> loading only through an explicit retry.
    """

    PENDING = "pending"
    LOADING = "loading"
    ACTIVE = "active"
    ERROR = "error"


@dataclass(slots=True)
class DeferredWidget:
    container_id: str
    element: ElementRef
    render_config: Any
    dependencies: tuple[str, ...]
    registered_at: float

    status: WidgetStatus = WidgetStatus.PENDING
    chart: ChartHandle | None = None
    observation: Observation | None = None
    fallback_timer: asyncio.TimerHandle | None = None
    last_error: Exception | None = None
    loaded_at: float | None = None

    def stop_observing(self) -> None:
        if self.observation is not None:
            self.observation.disconnect()
            self.observation = None
        if self.fallback_timer is not None:
            self.fallback_timer.cancel()
            self.fallback_timer = None


@dataclass(slots=True, frozen=True)
class GateMetrics:
    widgets_deferred: int
    widgets_loaded: int
    widgets_failed: int
    loading_time_saved: float
    pending: int
    active: int
    average_time_saved: float
