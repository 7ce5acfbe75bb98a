# src/gymadmin_core/polling/poll_models.py

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from ..core.ports import ElementRef

# Zero-arg work: returns a value or an awaitable.
PollWork = Callable[[], Any]

DEFAULT_INTERVAL_SECONDS = 5.0
DEFAULT_MAX_INTERVAL_SECONDS = 300.0


class PollPriority(StrEnum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"  # ignores visibility/focus/element gating


class PollStatus(StrEnum):
    """
    Poll task lifecycle status.

    Notes:
    - "inactive" is the registration state of a task that was not eligible yet.
    - "stopped" is terminal: the task is out of the registry and never runs again.
    """

    INACTIVE = "inactive"
    ACTIVE = "active"
    PAUSED = "paused"
    STOPPED = "stopped"


@dataclass(slots=True)
class PollOptions:
    interval: float = DEFAULT_INTERVAL_SECONDS
    pause_when_hidden: bool = True
    pause_when_blurred: bool = False
    max_retries: int = 3
    backoff_multiplier: float = 1.5
    priority: PollPriority = PollPriority.NORMAL
    element: ElementRef | None = None
    # Ceiling for the backed-off interval; None means max(DEFAULT_MAX_INTERVAL_SECONDS, interval).
    max_interval: float | None = None

    def __post_init__(self) -> None:
        self.priority = PollPriority(self.priority)
        if self.interval <= 0:
            raise ValueError(f"interval must be positive, got {self.interval!r}")
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries!r}")
        if self.backoff_multiplier <= 1.0:
            raise ValueError(f"backoff_multiplier must be > 1.0, got {self.backoff_multiplier!r}")
        if self.max_interval is None:
            self.max_interval = max(DEFAULT_MAX_INTERVAL_SECONDS, float(self.interval))
        if self.max_interval < self.interval:
            raise ValueError(
                f"max_interval ({self.max_interval!r}) must be >= interval ({self.interval!r})"
            )


@dataclass(slots=True)
class PollTask:
    name: str
    work: PollWork
    options: PollOptions

    status: PollStatus = PollStatus.INACTIVE
    current_interval: float = 0.0
    failures: int = 0
    runs: int = 0
    last_run_at: float | None = None
    last_error: Exception | None = None

    timer: asyncio.TimerHandle | None = None
    in_flight: bool = False

    def __post_init__(self) -> None:
        if not self.current_interval:
            self.current_interval = self.options.interval

    @property
    def is_high_priority(self) -> bool:
        return self.options.priority == PollPriority.HIGH

    def cancel_timer(self) -> None:
        if self.timer is not None:
            self.timer.cancel()
            self.timer = None


@dataclass(slots=True, frozen=True)
class PollMetrics:
    tasks_created: int
    polls_executed: int
    polls_skipped: int
    polls_failed: int
    tasks_exhausted: int
    background_pauses: int
    resources_saved: int
    push_messages: int
    registered_tasks: int
    active_tasks: int
    push_connections: int
    average_interval: float
    tab_visible: bool
    window_focused: bool


@dataclass(slots=True)
class PollCounters:
    tasks_created: int = 0
    polls_executed: int = 0
    polls_skipped: int = 0
    polls_failed: int = 0
    tasks_exhausted: int = 0
    background_pauses: int = 0
    resources_saved: int = 0
    push_messages: int = 0
