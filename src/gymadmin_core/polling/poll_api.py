# src/gymadmin_core/polling/poll_api.py

from __future__ import annotations

import itertools
import logging
import time
from typing import Any

from .poll_models import PollWork
from .poll_scheduler import PollHandle, PollScheduler

logger = logging.getLogger(__name__)

_seq = itertools.count(1)


def smart_interval(
    scheduler: PollScheduler,
    callback: PollWork,
    interval: float,
    *,
    name: str | None = None,
    **options: Any,
) -> PollHandle:
    """
    Drop-in replacement for a plain "call every N seconds" loop.
    Generates a unique task name when none is given.
    """
    if name is None:
        name = f"interval_{int(time.time() * 1000)}_{next(_seq)}"
    return scheduler.register(name, callback, interval=interval, **options)


def describe_tasks(scheduler: PollScheduler) -> list[str]:
    """One human-readable line per registered task and push connection (console /tasks)."""
    lines: list[str] = []
    for name in scheduler.names():
        handle = scheduler.get(name)
        if handle is None:
            continue
        lines.append(
            f"{name}: {handle.status.value} every {handle.current_interval:.1f}s "
            f"(runs={handle.runs} failures={handle.failures})"
        )
    for name in scheduler.push_names():
        poller = scheduler.get_push(name)
        if poller is None:
            continue
        lines.append(
            f"{name}: push {poller.status.value} "
            f"(messages={poller.messages_received} reconnects={poller.reconnect_attempts})"
        )
    return lines
