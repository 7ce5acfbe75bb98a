# src/gymadmin_core/cli/commands.py

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable
from typing import cast

from ..core.state import DashboardState
from ..polling.poll_api import describe_tasks

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[DashboardState, list[str]], str]
CommandHandler3 = Callable[[DashboardState, list[str], CommandEmitter | None], str]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console (/help, /tasks, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(
        self,
        state: DashboardState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except Exception:
            nparams = 3

        if nparams >= 3:
            h3 = cast(CommandHandler3, handler)
            return h3(state, args, emit)

        h2 = cast(CommandHandler2, handler)
        return h2(state, args)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def cmd_help(state: DashboardState, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(state: DashboardState, args: list[str]) -> str:
    m = state.scheduler.metrics()
    return (
        "Status:\n"
        f"  Tab visible: {'yes' if m.tab_visible else 'no'}  Window focused: {'yes' if m.window_focused else 'no'}\n"
        f"  Tasks: {m.active_tasks} active / {m.registered_tasks} registered "
        f"(avg interval {m.average_interval:.1f}s)\n"
        f"  Push connections: {m.push_connections}\n"
        f"  Polls: executed={m.polls_executed} skipped={m.polls_skipped} failed={m.polls_failed} "
        f"exhausted={m.tasks_exhausted}\n"
        f"  Background pauses: {m.background_pauses} (tasks paused: {m.resources_saved})\n"
        f"  Push messages: {m.push_messages}\n"
        f"  Pending cash validations: {len(state.pending_validations)}"
    )


def cmd_tasks(state: DashboardState, args: list[str]) -> str:
    lines = describe_tasks(state.scheduler)
    if not lines:
        return "No poll tasks registered."
    return "Poll tasks:\n" + "\n".join(f"  {line}" for line in lines)


def _timer_task_error(state: DashboardState, name: str) -> str | None:
    if state.scheduler.get(name) is not None:
        return None
    if state.scheduler.get_push(name) is not None:
        return f"{name} is a push connection; it can only be stopped (/stop {name})."
    return f"No such task: {name}"


def cmd_pause(state: DashboardState, args: list[str]) -> str:
    if not args:
        return "Usage: /pause <task>"
    error = _timer_task_error(state, args[0])
    if error:
        return error
    state.scheduler.pause(args[0])
    return f"{args[0]}: {state.scheduler.get(args[0]).status.value}"


def cmd_resume(state: DashboardState, args: list[str]) -> str:
    if not args:
        return "Usage: /resume <task>"
    error = _timer_task_error(state, args[0])
    if error:
        return error
    state.scheduler.resume(args[0])
    return f"{args[0]}: {state.scheduler.get(args[0]).status.value}"


def cmd_stop(state: DashboardState, args: list[str]) -> str:
    if not args:
        return "Usage: /stop <task>"
    name = args[0]
    if state.scheduler.get(name) is None and state.scheduler.get_push(name) is None:
        return f"No such task: {name}"
    state.scheduler.stop(name)
    return f"{name}: stopped"


def cmd_interval(state: DashboardState, args: list[str]) -> str:
    """
    /interval <task> <seconds>
    """
    if len(args) < 2:
        return "Usage: /interval <task> <seconds>"
    name = args[0]
    try:
        seconds = float(args[1])
    except ValueError:
        return f"Not a number: {args[1]}"
    if seconds <= 0:
        return "Interval must be positive."
    error = _timer_task_error(state, name)
    if error:
        return error

    state.scheduler.update_interval(name, seconds)
    return f"{name}: interval set to {seconds:g}s"


def cmd_hide(state: DashboardState, args: list[str]) -> str:
    state.signals.set_tab_visible(False)
    return "Tab is now hidden."


def cmd_show(state: DashboardState, args: list[str]) -> str:
    state.signals.set_tab_visible(True)
    return "Tab is now visible."


def cmd_blur(state: DashboardState, args: list[str]) -> str:
    state.signals.set_window_focused(False)
    return "Window lost focus."


def cmd_focus(state: DashboardState, args: list[str]) -> str:
    state.signals.set_window_focused(True)
    return "Window focused."


# Strong refs to /pending refresh checks still running.
_refreshes: set[asyncio.Task] = set()


def _start_refresh(state: DashboardState, emit: CommandEmitter | None) -> str:
    if state.watcher is None:
        return "Cash validation watcher is not configured."

    task = asyncio.get_running_loop().create_task(state.watcher.check(), name="pending-refresh")
    _refreshes.add(task)

    def _done(t: asyncio.Task) -> None:
        _refreshes.discard(t)
        if t.cancelled():
            return
        exc = t.exception()
        if exc is not None:
            logger.warning("Manual cash validation check failed: %r", exc)
            msg = f"Refresh failed: {exc}"
        else:
            msg = f"Refresh done: {len(t.result())} new validations."
        if emit is not None:
            emit(msg)

    task.add_done_callback(_done)
    return "Checking for new cash validations..."


def cmd_pending(state: DashboardState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /pending          -> list validations reported so far
    /pending clear    -> forget them
    /pending refresh  -> check the backend now; the result arrives via emit()
    """
    if args and args[0].lower() == "clear":
        n = len(state.pending_validations)
        state.pending_validations.clear()
        return f"Cleared {n} pending validations."

    if args and args[0].lower() == "refresh":
        return _start_refresh(state, emit)

    if not state.pending_validations:
        return "No pending cash validations."

    lines = ["Pending cash validations:"]
    for i, v in enumerate(state.pending_validations, start=1):
        who = v.get("memberName") or v.get("userName") or "?"
        lines.append(f"{i}. {v.get('validationCode')} - {who} ({v.get('amount', '?')})")
    return "\n".join(lines)


def cmd_charts(state: DashboardState, args: list[str]) -> str:
    if state.gate is None:
        return "Chart gate is not configured (no widget host)."
    m = state.gate.metrics()
    return (
        "Charts:\n"
        f"  Deferred: {m.widgets_deferred}  Pending: {m.pending}  Active: {m.active}\n"
        f"  Loaded: {m.widgets_loaded}  Failed: {m.widgets_failed}\n"
        f"  Avg time deferred: {m.average_time_saved:.2f}s"
    )


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Scheduler metrics and environment flags.")
registry.register("tasks", cmd_tasks, help_text="List poll tasks and push connections.")
registry.register("pause", cmd_pause, help_text="Pause a task: /pause <task>.")
registry.register("resume", cmd_resume, help_text="Resume a task: /resume <task>.")
registry.register("stop", cmd_stop, help_text="Stop a task or push connection: /stop <task>.")
registry.register("interval", cmd_interval, help_text="Change a task interval: /interval <task> <seconds>.")
registry.register("hide", cmd_hide, help_text="Simulate the tab becoming hidden.")
registry.register("show", cmd_show, help_text="Simulate the tab becoming visible.")
registry.register("blur", cmd_blur, help_text="Simulate the window losing focus.")
registry.register("focus", cmd_focus, help_text="Simulate the window gaining focus.")
registry.register(
    "pending",
    cmd_pending,
    help_text="Pending cash validations: /pending | /pending clear | /pending refresh.",
)
registry.register("charts", cmd_charts, help_text="Deferred chart gate metrics.")
