# tests/test_commands.py

from __future__ import annotations

from unittest.mock import patch

import httpx
import pytest

from gymadmin_core.cli.commands import CommandRegistry, registry
from gymadmin_core.core.state import DashboardState
from gymadmin_core.dashboard.cash_validation import CashValidationWatcher
from gymadmin_core.polling.poll_models import PollStatus

from .fakes import CountingWork, FakeWebSocket, wait_for


@pytest.fixture()
def dashboard(settings, signals, scheduler) -> DashboardState:
    return DashboardState(settings=settings, signals=signals, scheduler=scheduler)


def test_command_registry_routes_2_and_3_params(dashboard) -> None:
    reg = CommandRegistry()
    called = {"h2": 0, "h3": 0}

    def h2(state, args):
        called["h2"] += 1
        return "h2"

    def h3(state, args, emit):
        called["h3"] += 1
        if emit is not None:
            emit("note")
        return "h3"

    reg.register("a", h2, "a")
    reg.register("b", h3, "b", aliases=["bee"])

    assert reg.handle(dashboard, "/a x") == "h2"
    assert reg.handle(dashboard, "/bee y", emit=lambda _: None) == "h3"
    assert called == {"h2": 1, "h3": 1}


def test_command_registry_unknown_and_non_command(dashboard) -> None:
    reg = CommandRegistry()
    assert reg.handle(dashboard, "hello") is None
    assert "Unknown command" in (reg.handle(dashboard, "/nope") or "")
    assert "Empty command" in (reg.handle(dashboard, "/") or "")


@pytest.mark.asyncio
async def test_task_control_commands(dashboard) -> None:
    dashboard.scheduler.register("cash-validations", CountingWork(), interval=10.0)

    assert "cash-validations: active" in registry.handle(dashboard, "/tasks")
    assert registry.handle(dashboard, "/pause cash-validations") == "cash-validations: paused"
    assert registry.handle(dashboard, "/resume cash-validations") == "cash-validations: active"
    assert "interval set to 2s" in registry.handle(dashboard, "/interval cash-validations 2")
    assert dashboard.scheduler.get("cash-validations").current_interval == 2.0

    assert registry.handle(dashboard, "/interval cash-validations soon") == "Not a number: soon"
    assert registry.handle(dashboard, "/pause nope") == "No such task: nope"
    assert registry.handle(dashboard, "/pause").startswith("Usage")

    handle = dashboard.scheduler.get("cash-validations")
    assert registry.handle(dashboard, "/stop cash-validations") == "cash-validations: stopped"
    assert handle.status == PollStatus.STOPPED
    assert registry.handle(dashboard, "/tasks") == "No poll tasks registered."


@pytest.mark.asyncio
async def test_environment_commands_drive_the_scheduler(dashboard) -> None:
    handle = dashboard.scheduler.register("notifications", CountingWork(), interval=10.0)

    registry.handle(dashboard, "/hide")
    assert handle.status == PollStatus.PAUSED
    assert "Tab visible: no" in registry.handle(dashboard, "/status")

    registry.handle(dashboard, "/show")
    assert handle.status == PollStatus.ACTIVE

    registry.handle(dashboard, "/blur")
    assert dashboard.signals.window_focused is False
    registry.handle(dashboard, "/focus")
    assert dashboard.signals.window_focused is True


def test_pending_command(dashboard) -> None:
    assert registry.handle(dashboard, "/pending") == "No pending cash validations."

    dashboard.pending_validations.append({"validationCode": "CV-7", "memberName": "Asha", "amount": 500})
    out = registry.handle(dashboard, "/pending")
    assert "CV-7 - Asha (500)" in out

    assert registry.handle(dashboard, "/pending clear") == "Cleared 1 pending validations."
    assert dashboard.pending_validations == []
    assert "/pending" in registry.handle(dashboard, "/help")


@pytest.mark.asyncio
async def test_push_connections_are_listed_and_stoppable(dashboard) -> None:
    ws = FakeWebSocket(hold=True)
    with patch("gymadmin_core.polling.push_poller.websockets.connect", return_value=ws):
        poller = dashboard.scheduler.register_push("dashboard-push", "ws://backend.test/admin", lambda _: None)
        await wait_for(lambda: poller.connected)

        assert "dashboard-push: push open" in registry.handle(dashboard, "/tasks")
        assert "can only be stopped" in registry.handle(dashboard, "/pause dashboard-push")
        assert "can only be stopped" in registry.handle(dashboard, "/interval dashboard-push 5")
        assert registry.handle(dashboard, "/stop dashboard-push") == "dashboard-push: stopped"
        await poller.wait_closed()

    assert dashboard.scheduler.push_names() == []
    assert registry.handle(dashboard, "/stop dashboard-push") == "No such task: dashboard-push"


@pytest.mark.asyncio
async def test_pending_refresh_reports_through_emit(dashboard) -> None:
    statuses = [200, 503]

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(statuses.pop(0), json=[{"validationCode": "CV-3", "amount": 250}])

    emitted: list[str] = []
    async with httpx.AsyncClient(base_url="http://backend.test", transport=httpx.MockTransport(handler)) as client:
        dashboard.watcher = CashValidationWatcher(client, on_new=dashboard.pending_validations.append)

        reply = registry.handle(dashboard, "/pending refresh", emit=emitted.append)
        assert reply == "Checking for new cash validations..."
        await wait_for(lambda: len(emitted) == 1)
        assert emitted == ["Refresh done: 1 new validations."]
        assert dashboard.pending_validations[0]["validationCode"] == "CV-3"

        registry.handle(dashboard, "/pending refresh", emit=emitted.append)
        await wait_for(lambda: len(emitted) == 2)
        assert emitted[1].startswith("Refresh failed:")


def test_pending_refresh_without_watcher(dashboard) -> None:
    assert registry.handle(dashboard, "/pending refresh") == "Cash validation watcher is not configured."


def test_charts_command_without_gate(dashboard) -> None:
    assert registry.handle(dashboard, "/charts") == "Chart gate is not configured (no widget host)."
