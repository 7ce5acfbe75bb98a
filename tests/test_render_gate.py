# tests/test_render_gate.py

from __future__ import annotations

import asyncio

import pytest

from gymadmin_core.charts.loaders import ModuleDependencyLoader
from gymadmin_core.charts.render_gate import DeferredRenderGate
from gymadmin_core.charts.widget_models import WidgetStatus
from gymadmin_core.core.errors import DependencyLoadError, DuplicateWidgetError, RenderError

from .fakes import FakeLoader, FakeRenderer, FakeWidgetHost

REVENUE_CONFIG = {"type": "bar", "data": {"labels": ["Jan", "Feb"], "datasets": []}}


def _gate(host: FakeWidgetHost, loader=None, renderer: FakeRenderer | None = None):
    return DeferredRenderGate(
        host,
        loader or FakeLoader(),
        renderer or FakeRenderer(),
        fallback_delay=0.01,
    )


def test_missing_container_has_no_side_effects() -> None:
    host = FakeWidgetHost(["revenueChart"])
    gate = _gate(host)

    assert gate.register_widget("missing-id", REVENUE_CONFIG, ["chart.js"]) is None
    assert host.placeholders == set()
    assert host.observers == {}
    assert gate.metrics().widgets_deferred == 0
    assert gate.status("missing-id") is None


@pytest.mark.asyncio
async def test_widget_renders_once_on_first_intersection() -> None:
    host = FakeWidgetHost(["revenueChart"])
    loader = FakeLoader()
    renderer = FakeRenderer()
    gate = _gate(host, loader, renderer)

    token = gate.register_widget("revenueChart", REVENUE_CONFIG, ["chart.js", "chartjs-plugin-labels"])
    assert token == "revenueChart"
    assert gate.status(token) == WidgetStatus.PENDING
    assert "revenueChart" in host.placeholders
    assert host.observe_args["revenueChart"] == {"threshold": 0.1, "root_margin": 50.0}

    host.intersect("revenueChart", False)
    await asyncio.sleep(0.01)
    assert gate.status(token) == WidgetStatus.PENDING
    assert loader.calls == []

    host.intersect("revenueChart", True)
    assert gate.status(token) == WidgetStatus.LOADING
    assert host.observations["revenueChart"].disconnected

    await gate.wait_idle()
    assert gate.status(token) == WidgetStatus.ACTIVE
    assert sorted(loader.calls) == ["chart.js", "chartjs-plugin-labels"]
    assert "revenueChart" not in host.placeholders
    assert len(renderer.charts) == 1
    assert renderer.charts[0].config is REVENUE_CONFIG
    assert renderer.charts[0].mount == {"parent": "revenueChart"}

    # A late intersection event does not render again.
    host.observers["revenueChart"](True)
    await gate.wait_idle()
    assert len(renderer.charts) == 1

    m = gate.metrics()
    assert m.widgets_deferred == 1
    assert m.widgets_loaded == 1
    assert m.active == 1
    assert m.pending == 0


@pytest.mark.asyncio
async def test_dependency_failure_then_retry() -> None:
    host = FakeWidgetHost(["membersChart"])
    loader = FakeLoader(fail={"chart.js"})
    renderer = FakeRenderer()
    gate = _gate(host, loader, renderer)

    gate.register_widget("membersChart", {"type": "line"}, ["chart.js"])
    host.intersect("membersChart")
    await gate.wait_idle()

    widget = gate.get("membersChart")
    assert widget.status == WidgetStatus.ERROR
    assert isinstance(widget.last_error, DependencyLoadError)
    assert widget.last_error.locator == "chart.js"
    assert "membersChart" in host.errors
    assert renderer.charts == []
    assert gate.metrics().widgets_failed == 1

    loader.fail.clear()
    retry_task = host.errors["membersChart"]()
    assert retry_task is not None
    await retry_task

    assert gate.status("membersChart") == WidgetStatus.ACTIVE
    assert loader.calls == ["chart.js", "chart.js"]
    assert len(renderer.charts) == 1

    # retry outside of `error` is a no-op.
    assert gate.retry("membersChart") is None
    assert gate.retry("unknown") is None


@pytest.mark.asyncio
async def test_render_failure_goes_to_error() -> None:
    host = FakeWidgetHost(["attendanceChart"])
    gate = _gate(host, renderer=FakeRenderer(fail=True))

    gate.register_widget("attendanceChart", {"type": "doughnut"})
    host.intersect("attendanceChart")
    await gate.wait_idle()

    widget = gate.get("attendanceChart")
    assert widget.status == WidgetStatus.ERROR
    assert isinstance(widget.last_error, RenderError)
    assert isinstance(widget.last_error.cause, ValueError)


@pytest.mark.asyncio
async def test_shared_dependency_is_loaded_once() -> None:
    host = FakeWidgetHost(["a", "b"])
    loader = FakeLoader(delay=0.01)
    gate = _gate(host, loader)

    gate.register_widget("a", {}, ["chart.js"])
    gate.register_widget("b", {}, ["chart.js", "moment.js"])
    host.intersect("a")
    host.intersect("b")
    await gate.wait_idle()

    assert gate.status("a") == WidgetStatus.ACTIVE
    assert gate.status("b") == WidgetStatus.ACTIVE
    assert loader.calls.count("chart.js") == 1
    assert loader.calls.count("moment.js") == 1


@pytest.mark.asyncio
async def test_falls_back_to_delay_without_intersection_support() -> None:
    host = FakeWidgetHost(["revenueChart"], supports_intersection=False)
    renderer = FakeRenderer()
    gate = _gate(host, renderer=renderer)

    gate.register_widget("revenueChart", REVENUE_CONFIG)
    assert gate.status("revenueChart") == WidgetStatus.PENDING

    await asyncio.sleep(0.05)
    await gate.wait_idle()
    assert gate.status("revenueChart") == WidgetStatus.ACTIVE
    assert len(renderer.charts) == 1


@pytest.mark.asyncio
async def test_synchronous_intersection_during_registration() -> None:
    host = FakeWidgetHost(["topChart"], fire_immediately=True)
    gate = _gate(host)

    gate.register_widget("topChart", {})
    assert host.observations["topChart"].disconnected
    await gate.wait_idle()
    assert gate.status("topChart") == WidgetStatus.ACTIVE


@pytest.mark.asyncio
async def test_load_all_and_destroy() -> None:
    host = FakeWidgetHost(["a", "b", "c"])
    renderer = FakeRenderer()
    gate = _gate(host, renderer=renderer)

    for cid in ("a", "b"):
        gate.register_widget(cid, {"id": cid})
    tasks = gate.load_all()
    assert len(tasks) == 2
    await asyncio.gather(*tasks)

    gate.register_widget("c", {"id": "c"})
    with pytest.raises(DuplicateWidgetError):
        gate.register_widget("c", {})

    gate.destroy()
    assert all(chart.destroyed for chart in renderer.charts)
    assert host.observations["c"].disconnected
    assert gate.get("a") is None
    assert gate.metrics().active == 0


@pytest.mark.asyncio
async def test_module_loader_imports_and_fails_like_a_missing_script() -> None:
    loader = ModuleDependencyLoader()
    await loader.load("json")

    host = FakeWidgetHost(["revenueChart"])
    gate = _gate(host, loader)
    gate.register_widget("revenueChart", REVENUE_CONFIG, ["gymadmin_missing_chart_lib"])
    host.intersect("revenueChart")
    await gate.wait_idle()

    widget = gate.get("revenueChart")
    assert widget.status == WidgetStatus.ERROR
    assert isinstance(widget.last_error, DependencyLoadError)
    assert isinstance(widget.last_error.cause, ModuleNotFoundError)
