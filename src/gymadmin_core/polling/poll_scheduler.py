# src/gymadmin_core/polling/poll_scheduler.py

from __future__ import annotations

"""
Visibility-aware poll scheduler.

Owns a registry of named recurring tasks and drives each one with its own
event-loop timer:
- a task runs only while it is eligible (tab visible / window focused /
  bound element on screen, unless its policy or high priority says otherwise),
- failures back off the interval exponentially (capped by max_interval),
- too many consecutive failures stop the task for good,
- tab/focus changes pause and resume tasks in bulk.

Per task, executions are strictly serialized: the next timer is armed only
after the previous `work` call completed. pause()/stop() cancel a pending
timer but never interrupt an in-flight call. There is no timeout on `work`;
a hung call simply holds that task's next run back.
"""

import asyncio
import dataclasses
import inspect
import logging
import time
from typing import Any

from ..core.errors import DuplicateTaskError, TaskExecutionError, TaskExhaustedError
from ..core.ports import StaticViewport, Viewport, is_element_visible
from ..core.signals import EnvironmentSignals, SignalChange
from .backoff import backoff_delay
from .poll_models import (
    DEFAULT_INTERVAL_SECONDS,
    DEFAULT_MAX_INTERVAL_SECONDS,
    PollCounters,
    PollMetrics,
    PollOptions,
    PollStatus,
    PollTask,
    PollWork,
)
from .push_poller import MessageHandler, PushPoller

logger = logging.getLogger(__name__)


class PollHandle:
    """
    Caller-side handle for a registered task.

    Bound to the task object, not just the name: once the task is stopped the
    handle goes inert even if the name is registered again later.
    """

    __slots__ = ("_scheduler", "_task")

    def __init__(self, scheduler: PollScheduler, task: PollTask) -> None:
        self._scheduler = scheduler
        self._task = task

    @property
    def name(self) -> str:
        return self._task.name

    @property
    def status(self) -> PollStatus:
        return self._task.status

    @property
    def failures(self) -> int:
        return self._task.failures

    @property
    def runs(self) -> int:
        return self._task.runs

    @property
    def current_interval(self) -> float:
        return self._task.current_interval

    @property
    def last_run_at(self) -> float | None:
        return self._task.last_run_at

    @property
    def last_error(self) -> Exception | None:
        return self._task.last_error

    def pause(self) -> None:
        self._scheduler._pause_task(self._task)

    def resume(self) -> None:
        self._scheduler._resume_task(self._task)

    def stop(self) -> None:
        self._scheduler._stop_task(self._task)

    def update_interval(self, seconds: float) -> None:
        self._scheduler._update_interval(self._task, seconds)

    def __repr__(self) -> str:
        return f"PollHandle(name={self.name!r}, status={self.status.value!r})"


class PollScheduler:
    """Registry + timers for visibility-aware recurring tasks."""

    def __init__(
            self,
            signals: EnvironmentSignals,
            *,
            viewport: Viewport | None = None,
            default_max_interval: float = DEFAULT_MAX_INTERVAL_SECONDS,
    ) -> None:
        self._signals = signals
        self._viewport: Viewport = viewport or StaticViewport()
        self._default_max_interval = float(default_max_interval)

        self._tasks: dict[str, PollTask] = {}
        self._push: dict[str, PushPoller] = {}
        # Strong refs to running executions (asyncio only keeps weak ones).
        self._running: set[asyncio.Task[None]] = set()
        self._counters = PollCounters()

        self._unsubscribe = signals.subscribe(self._on_signal)

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(
            self,
            name: str,
            work: PollWork,
            options: PollOptions | None = None,
            **overrides: Any,
    ) -> PollHandle:
        """
        Register a recurring task and start it right away if it is eligible.

        Options come either as a PollOptions instance or as keyword overrides
        (interval=..., priority=..., ...). Registering a name that is already
        in use raises DuplicateTaskError; stop() the old task first.
        """
        if name in self._tasks or name in self._push:
            raise DuplicateTaskError(name)

        if options is None:
            # Keyword registrations pick up the scheduler-wide backoff ceiling.
            if "max_interval" not in overrides:
                interval = float(overrides.get("interval", DEFAULT_INTERVAL_SECONDS))
                overrides["max_interval"] = max(self._default_max_interval, interval)
            options = PollOptions(**overrides)
        else:
            # Each task owns its options; never alias the caller's instance.
            options = dataclasses.replace(options, **overrides)

        task = PollTask(name=name, work=work, options=options)
        self._tasks[name] = task
        self._counters.tasks_created += 1
        logger.info(
            "Registered poll task %s (interval=%.2fs priority=%s)",
            name,
            options.interval,
            options.priority.value,
        )

        if self._is_eligible(task):
            self._activate(task)
        else:
            logger.debug("Poll task %s not eligible yet; left inactive", name)

        return PollHandle(self, task)

    def register_push(
            self,
            name: str,
            url: str,
            handler: MessageHandler,
            *,
            max_reconnects: int = 5,
            **connect_kwargs: Any,
    ) -> PushPoller:
        """
        Register a WebSocket-backed task: the server pushes updates instead of
        us polling for them. Shares the task namespace with register().
        """
        if name in self._tasks or name in self._push:
            raise DuplicateTaskError(name)

        poller = PushPoller(
            name,
            url,
            handler,
            max_reconnects=max_reconnects,
            on_message=self._count_push_message,
            on_give_up=self._forget_push,
            **connect_kwargs,
        )
        self._push[name] = poller
        self._counters.tasks_created += 1
        poller.start()
        return poller

    # ------------------------------------------------------------------
    # Name-based control
    # ------------------------------------------------------------------

    def get(self, name: str) -> PollHandle | None:
        task = self._tasks.get(name)
        return PollHandle(self, task) if task is not None else None

    def names(self) -> list[str]:
        return list(self._tasks)

    def get_push(self, name: str) -> PushPoller | None:
        return self._push.get(name)

    def push_names(self) -> list[str]:
        return list(self._push)

    def pause(self, name: str) -> None:
        task = self._tasks.get(name)
        if task is not None:
            self._pause_task(task)

    def resume(self, name: str) -> None:
        task = self._tasks.get(name)
        if task is not None:
            self._resume_task(task)

    def stop(self, name: str) -> None:
        task = self._tasks.get(name)
        if task is not None:
            self._stop_task(task)
            return

        poller = self._push.pop(name, None)
        if poller is not None:
            poller.close()

    def update_interval(self, name: str, seconds: float) -> None:
        task = self._tasks.get(name)
        if task is not None:
            self._update_interval(task, seconds)

    def refresh(self) -> int:
        """
        Re-evaluate paused/inactive tasks (e.g. after a scroll or layout change
        moved a bound element on screen). Returns how many were resumed.
        """
        return self._resume_eligible()

    # ------------------------------------------------------------------
    # Observability / teardown
    # ------------------------------------------------------------------

    def metrics(self) -> PollMetrics:
        c = self._counters
        tasks = list(self._tasks.values())
        avg = sum(t.options.interval for t in tasks) / len(tasks) if tasks else 0.0

        return PollMetrics(
            tasks_created=c.tasks_created,
            polls_executed=c.polls_executed,
            polls_skipped=c.polls_skipped,
            polls_failed=c.polls_failed,
            tasks_exhausted=c.tasks_exhausted,
            background_pauses=c.background_pauses,
            resources_saved=c.resources_saved,
            push_messages=c.push_messages,
            registered_tasks=len(tasks),
            active_tasks=sum(1 for t in tasks if t.status == PollStatus.ACTIVE),
            push_connections=len(self._push),
            average_interval=avg,
            tab_visible=self._signals.tab_visible,
            window_focused=self._signals.window_focused,
        )

    def destroy(self) -> None:
        """Stop every task, close push connections, detach from signals."""
        for task in list(self._tasks.values()):
            self._stop_task(task)

        for poller in list(self._push.values()):
            poller.close()
        self._push.clear()

        self._unsubscribe()
        logger.info("Poll scheduler destroyed")

    async def wait_idle(self) -> None:
        """Wait for in-flight executions to finish (tests / graceful shutdown)."""
        while self._running:
            await asyncio.gather(*list(self._running), return_exceptions=True)

    # ------------------------------------------------------------------
    # Eligibility
    # ------------------------------------------------------------------

    def _is_eligible(self, task: PollTask) -> bool:
        if task.is_high_priority:
            return True

        opts = task.options
        if opts.pause_when_hidden and not self._signals.tab_visible:
            return False
        if opts.pause_when_blurred and not self._signals.window_focused:
            return False
        if opts.element is not None and not is_element_visible(opts.element, self._viewport):
            return False

        return True

    # ------------------------------------------------------------------
    # Task state machine
    # ------------------------------------------------------------------

    def _is_registered(self, task: PollTask) -> bool:
        return self._tasks.get(task.name) is task

    def _activate(self, task: PollTask, delay: float = 0.0) -> None:
        task.status = PollStatus.ACTIVE
        if task.in_flight:
            # The running execution arms the next timer when it completes.
            return
        self._arm(task, delay)

    def _arm(self, task: PollTask, delay: float) -> None:
        task.cancel_timer()
        loop = asyncio.get_running_loop()
        task.timer = loop.call_later(max(0.0, delay), self._fire, task)

    def _fire(self, task: PollTask) -> None:
        task.timer = None

        if task.status != PollStatus.ACTIVE or not self._is_registered(task) or task.in_flight:
            return

        if not self._is_eligible(task):
            self._counters.polls_skipped += 1
            self._pause_task(task)
            return

        task.in_flight = True
        runner = asyncio.get_running_loop().create_task(
            self._execute(task), name=f"poll:{task.name}"
        )
        self._running.add(runner)
        runner.add_done_callback(self._running.discard)

    async def _execute(self, task: PollTask) -> None:
        try:
            try:
                result = task.work()
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                self._on_failure(task, e)
            else:
                self._on_success(task)
        finally:
            task.in_flight = False

        if task.status == PollStatus.ACTIVE and self._is_registered(task) and task.timer is None:
            self._arm(task, task.current_interval)

    def _on_success(self, task: PollTask) -> None:
        task.failures = 0
        task.current_interval = task.options.interval
        task.last_run_at = time.time()
        task.last_error = None
        task.runs += 1
        self._counters.polls_executed += 1

    def _on_failure(self, task: PollTask, exc: Exception) -> None:
        if not self._is_registered(task):
            # Stopped while in flight: the outcome no longer belongs to any task.
            logger.debug("Ignoring failure of stopped poll task %s: %r", task.name, exc)
            return

        opts = task.options
        task.failures += 1
        self._counters.polls_failed += 1

        err = TaskExecutionError(task.name, exc)
        task.last_error = err
        logger.warning("%s (failure %d/%d)", err, task.failures, opts.max_retries)

        if task.failures >= opts.max_retries:
            task.last_error = TaskExhaustedError(task.name, task.failures)
            self._counters.tasks_exhausted += 1
            logger.error("Poll task %s exceeded max retries, stopping", task.name)
            self._stop_task(task)
            return

        task.current_interval = backoff_delay(
            opts.interval, opts.backoff_multiplier, task.failures, opts.max_interval
        )
        logger.info("Poll task %s backing off to %.2fs", task.name, task.current_interval)

    def _pause_task(self, task: PollTask) -> bool:
        if task.status in (PollStatus.PAUSED, PollStatus.STOPPED):
            return False

        task.cancel_timer()
        task.status = PollStatus.PAUSED
        logger.info("Paused poll task %s", task.name)
        return True

    def _resume_task(self, task: PollTask) -> bool:
        if task.status not in (PollStatus.PAUSED, PollStatus.INACTIVE):
            return False
        if not self._is_eligible(task):
            return False

        self._activate(task, 0.0)
        logger.info("Resumed poll task %s", task.name)
        return True

    def _stop_task(self, task: PollTask) -> None:
        if task.status == PollStatus.STOPPED:
            return

        task.cancel_timer()
        task.status = PollStatus.STOPPED
        if self._is_registered(task):
            del self._tasks[task.name]
        logger.info("Stopped poll task %s", task.name)

    def _update_interval(self, task: PollTask, seconds: float) -> None:
        seconds = float(seconds)
        if seconds <= 0:
            raise ValueError(f"interval must be positive, got {seconds!r}")
        if task.status == PollStatus.STOPPED:
            return

        opts = task.options
        task.options = dataclasses.replace(
            opts, interval=seconds, max_interval=max(opts.max_interval, seconds)
        )
        task.current_interval = seconds

        if task.status == PollStatus.ACTIVE:
            self._pause_task(task)
            self._resume_task(task)

    # ------------------------------------------------------------------
    # Environment reaction
    # ------------------------------------------------------------------

    def _on_signal(self, change: SignalChange) -> None:
        if change.value:
            self._resume_eligible()
        else:
            self._pause_background()

    def _pause_background(self) -> int:
        tab_hidden = not self._signals.tab_visible
        blurred = not self._signals.window_focused

        paused = 0
        for task in list(self._tasks.values()):
            if task.status != PollStatus.ACTIVE or task.is_high_priority:
                continue
            opts = task.options
            if (opts.pause_when_hidden and tab_hidden) or (opts.pause_when_blurred and blurred):
                if self._pause_task(task):
                    paused += 1

        if paused:
            self._counters.background_pauses += 1
            self._counters.resources_saved += paused
            logger.info("Paused %d poll tasks for background efficiency", paused)
        return paused

    def _resume_eligible(self) -> int:
        resumed = 0
        for task in list(self._tasks.values()):
            if self._resume_task(task):
                resumed += 1

        if resumed:
            logger.info("Resumed %d poll tasks after visibility change", resumed)
        return resumed

    def _count_push_message(self) -> None:
        self._counters.push_messages += 1

    def _forget_push(self, poller: PushPoller) -> None:
        # Frees the name of a poller that exhausted its reconnects.
        if self._push.get(poller.name) is poller:
            del self._push[poller.name]
            logger.info("Dropped push poller %s after it gave up", poller.name)
