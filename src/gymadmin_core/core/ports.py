# src/gymadmin_core/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) onto the hosting environment.

The scheduler and the render gate depend on Protocols instead of a real
document/window. This keeps the core testable without a browser and lets a
host (console shell, GUI, test fakes) plug in its own implementation.
"""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Protocol


@dataclass(slots=True, frozen=True)
class Rect:
    """Bounding box in viewport coordinates (like getBoundingClientRect)."""

    top: float
    left: float
    bottom: float
    right: float


class ElementRef(Protocol):
    """Anything the scheduler can gate a task on (a bound UI element)."""

    id: str

    def bounding_rect(self) -> Rect: ...

    # Computed CSS display / visibility values ("none", "hidden", ...).
    def computed_style(self) -> dict[str, str]: ...


class Viewport(Protocol):
    @property
    def width(self) -> float: ...

    @property
    def height(self) -> float: ...


@dataclass(slots=True, frozen=True)
class StaticViewport:
    width: float = 1280.0
    height: float = 800.0


class Observation(Protocol):
    """Handle returned by an intersection subscription."""

    def disconnect(self) -> None: ...


IntersectionCallback = Callable[[bool], None]


class WidgetHost(Protocol):
    """
    Container-side port used by the render gate.

    observe_intersection may return None when the host cannot observe
    intersections; the gate falls back to a short fixed delay.
    """

    def get_element(self, container_id: str) -> ElementRef | None: ...

    def show_placeholder(self, element: ElementRef) -> None: ...

    def clear_placeholder(self, element: ElementRef) -> None: ...

    def create_mount(self, element: ElementRef) -> Any: ...

    def show_error(self, element: ElementRef, retry: Callable[[], Any]) -> None: ...

    def observe_intersection(
            self,
            element: ElementRef,
            callback: IntersectionCallback,
            *,
            threshold: float,
            root_margin: float,
    ) -> Observation | None: ...


class DependencyLoader(Protocol):
    """Ensures an external resource (script, module, font, ...) is loaded."""

    def load(self, locator: str) -> Awaitable[None]: ...


class ChartHandle(Protocol):
    def destroy(self) -> None: ...


class ChartRenderer(Protocol):
    """Renders an opaque chart config into a mount created by the host."""

    def render(self, mount: Any, config: Any) -> ChartHandle: ...


def is_element_visible(element: ElementRef | None, viewport: Viewport) -> bool:
    """
    True iff the element intersects the viewport and is not hidden by CSS.
    A missing element is treated as not visible.
    """
    if element is None:
        return False

    rect = element.bounding_rect()
    in_viewport = (
        rect.top < viewport.height
        and rect.bottom > 0
        and rect.left < viewport.width
        and rect.right > 0
    )

    style = element.computed_style() or {}
    shown = style.get("display") != "none" and style.get("visibility") != "hidden"

    return in_viewport and shown
