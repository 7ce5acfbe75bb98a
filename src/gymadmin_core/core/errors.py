# src/gymadmin_core/core/errors.py

from __future__ import annotations

"""
Error types for the dashboard runtime.

None of these should escape a timer callback or an intersection handler:
execution/load failures are caught where they happen, logged, and turned into
state (backoff, stopped task, widget in error). Only registration misuse
(duplicate names) is raised to the caller.
"""


class GymAdminError(Exception):
    """Base class for all gymadmin_core errors."""


class DuplicateTaskError(GymAdminError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Poll task already registered: {name!r}")
        self.name = name


class DuplicateWidgetError(GymAdminError):
    def __init__(self, container_id: str) -> None:
        super().__init__(f"Widget already registered for container: {container_id!r}")
        self.container_id = container_id


class TaskExecutionError(GymAdminError):
    """A single `work` call failed; recovered through backoff."""

    def __init__(self, name: str, cause: BaseException) -> None:
        super().__init__(f"Poll task {name!r} failed: {cause!r}")
        self.name = name
        self.cause = cause


class TaskExhaustedError(GymAdminError):
    """Retries exhausted; the task was stopped for good."""

    def __init__(self, name: str, failures: int) -> None:
        super().__init__(f"Poll task {name!r} stopped after {failures} consecutive failures")
        self.name = name
        self.failures = failures


class ElementNotFoundError(GymAdminError):
    def __init__(self, container_id: str) -> None:
        super().__init__(f"Chart container not found: {container_id!r}")
        self.container_id = container_id


class DependencyLoadError(GymAdminError):
    def __init__(self, locator: str, cause: BaseException | None = None) -> None:
        super().__init__(f"Failed to load dependency {locator!r}: {cause!r}")
        self.locator = locator
        self.cause = cause


class RenderError(GymAdminError):
    def __init__(self, container_id: str, cause: BaseException | None = None) -> None:
        super().__init__(f"Failed to render chart {container_id!r}: {cause!r}")
        self.container_id = container_id
        self.cause = cause
