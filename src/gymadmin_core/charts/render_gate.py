# src/gymadmin_core/charts/render_gate.py

from __future__ import annotations

"""
Deferred-render gate for dashboard charts.

Expensive chart initialization waits until the container is (nearly) on
screen:
- registration shows a placeholder and subscribes to intersection changes,
- the first intersection loads the widget's dependencies (concurrently, each
  locator at most once per gate) and renders into a fresh mount,
- failures leave the widget in `error` with a retry affordance from the host.

Hosts without intersection support get a short fixed delay instead.
"""

import asyncio
import logging
import time
from collections.abc import Iterable
from typing import Any

from ..core.errors import DependencyLoadError, DuplicateWidgetError, ElementNotFoundError, RenderError
from ..core.ports import ChartRenderer, DependencyLoader, WidgetHost
from .widget_models import DeferredWidget, GateMetrics, WidgetStatus

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 0.1  # fraction of the container that must be visible
DEFAULT_ROOT_MARGIN = 50.0  # start loading this many px before it is visible
DEFAULT_FALLBACK_DELAY = 0.1


class DeferredRenderGate:
    def __init__(
            self,
            host: WidgetHost,
            loader: DependencyLoader,
            renderer: ChartRenderer,
            *,
            threshold: float = DEFAULT_THRESHOLD,
            root_margin: float = DEFAULT_ROOT_MARGIN,
            fallback_delay: float = DEFAULT_FALLBACK_DELAY,
    ) -> None:
        self._host = host
        self._loader = loader
        self._renderer = renderer
        self._threshold = float(threshold)
        self._root_margin = float(root_margin)
        self._fallback_delay = max(0.0, float(fallback_delay))

        self._widgets: dict[str, DeferredWidget] = {}
        self._loaded_deps: set[str] = set()
        self._loading_deps: dict[str, asyncio.Task[None]] = {}
        self._running: set[asyncio.Task[None]] = set()

        self._widgets_deferred = 0
        self._widgets_loaded = 0
        self._widgets_failed = 0
        self._loading_time_saved = 0.0

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def register_widget(
            self,
            container_id: str,
            render_config: Any,
            dependencies: Iterable[str] = (),
    ) -> str | None:
        """
        Defer a chart until its container intersects the viewport.

        Returns container_id as a token, or None (no side effects) when the
        container cannot be found.
        """
        if container_id in self._widgets:
            raise DuplicateWidgetError(container_id)

        element = self._host.get_element(container_id)
        if element is None:
            logger.warning("%s", ElementNotFoundError(container_id))
            return None

        widget = DeferredWidget(
            container_id=container_id,
            element=element,
            render_config=render_config,
            dependencies=tuple(dict.fromkeys(dependencies)),
            registered_at=time.monotonic(),
        )
        self._widgets[container_id] = widget
        self._widgets_deferred += 1

        self._host.show_placeholder(element)

        observation = self._host.observe_intersection(
            element,
            lambda is_intersecting: self._on_intersection(container_id, is_intersecting),
            threshold=self._threshold,
            root_margin=self._root_margin,
        )
        if observation is None:
            logger.debug("Intersection unsupported; loading %s after %.2fs", container_id, self._fallback_delay)
            loop = asyncio.get_running_loop()
            widget.fallback_timer = loop.call_later(self._fallback_delay, self._on_fallback, widget)
        elif widget.status != WidgetStatus.PENDING:
            # Host fired the callback synchronously and loading already started.
            observation.disconnect()
        else:
            widget.observation = observation

        return container_id

    def retry(self, container_id: str) -> asyncio.Task[None] | None:
        """Re-run load-and-render for a widget in `error`; no-op otherwise."""
        widget = self._widgets.get(container_id)
        if widget is None or widget.status != WidgetStatus.ERROR:
            return None

        logger.info("Retrying chart %s", container_id)
        self._host.show_placeholder(widget.element)
        return self._start_load(widget)

    def load_all(self) -> list[asyncio.Task[None]]:
        """Force-load every pending widget, ignoring visibility."""
        pending = [w for w in self._widgets.values() if w.status == WidgetStatus.PENDING]
        if pending:
            logger.info("Force loading %d pending charts", len(pending))
        return [self._start_load(w) for w in pending]

    def status(self, container_id: str) -> WidgetStatus | None:
        widget = self._widgets.get(container_id)
        return widget.status if widget is not None else None

    def get(self, container_id: str) -> DeferredWidget | None:
        return self._widgets.get(container_id)

    def metrics(self) -> GateMetrics:
        statuses = [w.status for w in self._widgets.values()]
        avg = self._loading_time_saved / self._widgets_deferred if self._widgets_deferred else 0.0
        return GateMetrics(
            widgets_deferred=self._widgets_deferred,
            widgets_loaded=self._widgets_loaded,
            widgets_failed=self._widgets_failed,
            loading_time_saved=self._loading_time_saved,
            pending=statuses.count(WidgetStatus.PENDING),
            active=statuses.count(WidgetStatus.ACTIVE),
            average_time_saved=avg,
        )

    async def wait_idle(self) -> None:
        while self._running:
            await asyncio.gather(*list(self._running), return_exceptions=True)

    def destroy(self) -> None:
        """Dispose active charts, stop all observation and forget every widget."""
        for widget in self._widgets.values():
            widget.stop_observing()
            if widget.chart is not None:
                try:
                    widget.chart.destroy()
                except Exception:
                    logger.exception("Failed to dispose chart %s", widget.container_id)
                widget.chart = None

        self._widgets.clear()
        logger.info("Render gate destroyed")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _on_intersection(self, container_id: str, is_intersecting: bool) -> None:
        if not is_intersecting:
            return
        widget = self._widgets.get(container_id)
        if widget is None or widget.status != WidgetStatus.PENDING:
            return
        self._start_load(widget)

    def _on_fallback(self, widget: DeferredWidget) -> None:
        widget.fallback_timer = None
        if self._widgets.get(widget.container_id) is widget and widget.status == WidgetStatus.PENDING:
            self._start_load(widget)

    def _start_load(self, widget: DeferredWidget) -> asyncio.Task[None]:
        widget.status = WidgetStatus.LOADING
        widget.stop_observing()

        runner = asyncio.get_running_loop().create_task(
            self._load_and_render(widget), name=f"chart:{widget.container_id}"
        )
        self._running.add(runner)
        runner.add_done_callback(self._running.discard)
        return runner

    async def _load_and_render(self, widget: DeferredWidget) -> None:
        started = time.monotonic()
        cid = widget.container_id

        try:
            await self._load_dependencies(widget.dependencies)

            self._host.clear_placeholder(widget.element)
            try:
                mount = self._host.create_mount(widget.element)
                chart = self._renderer.render(mount, widget.render_config)
            except Exception as e:
                raise RenderError(cid, e) from e
        except (DependencyLoadError, RenderError) as e:
            if self._widgets.get(cid) is not widget:
                return
            widget.status = WidgetStatus.ERROR
            widget.last_error = e
            self._widgets_failed += 1
            logger.error("Failed to load chart %s: %s", cid, e)
            self._host.show_error(widget.element, lambda: self.retry(cid))
            return

        if self._widgets.get(cid) is not widget:
            # Gate was destroyed while we were loading.
            chart.destroy()
            return

        now = time.monotonic()
        widget.chart = chart
        widget.status = WidgetStatus.ACTIVE
        widget.last_error = None
        widget.loaded_at = now
        self._widgets_loaded += 1
        self._loading_time_saved += now - widget.registered_at
        logger.info("Chart %s loaded in %.2fms", cid, (now - started) * 1000.0)

    async def _load_dependencies(self, dependencies: tuple[str, ...]) -> None:
        if not dependencies:
            return
        await asyncio.gather(*(self._ensure_loaded(dep) for dep in dependencies))

    async def _ensure_loaded(self, locator: str) -> None:
        if locator in self._loaded_deps:
            return

        pending = self._loading_deps.get(locator)
        if pending is None:
            pending = asyncio.get_running_loop().create_task(self._load_one(locator))
            self._loading_deps[locator] = pending
        await pending

    async def _load_one(self, locator: str) -> None:
        try:
            await self._loader.load(locator)
        except Exception as e:
            raise DependencyLoadError(locator, e) from e
        else:
            self._loaded_deps.add(locator)
        finally:
            self._loading_deps.pop(locator, None)
