# src/gymadmin_core/core/signals.py

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum

logger = logging.getLogger(__name__)


class SignalKind(StrEnum):
    TAB_VISIBLE = "tab_visible"
    WINDOW_FOCUSED = "window_focused"


@dataclass(slots=True, frozen=True)
class SignalChange:
    kind: SignalKind
    value: bool


SignalListener = Callable[[SignalChange], None]


class EnvironmentSignals:
    """
    Tab visibility / window focus flags pushed by the hosting environment.

    Readers (scheduler, gate) only look at the current values and subscribe
    to changes. The host is the only writer (set_tab_visible / set_window_focused).
    Writing the value it already has is not a change and notifies nobody.
    """

    def __init__(self, *, tab_visible: bool = True, window_focused: bool = True) -> None:
        self._tab_visible = bool(tab_visible)
        self._window_focused = bool(window_focused)
        self._listeners: list[SignalListener] = []

    @property
    def tab_visible(self) -> bool:
        return self._tab_visible

    @property
    def window_focused(self) -> bool:
        return self._window_focused

    def subscribe(self, listener: SignalListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

        return _unsubscribe

    def set_tab_visible(self, visible: bool) -> None:
        visible = bool(visible)
        if visible == self._tab_visible:
            return
        self._tab_visible = visible
        self._emit(SignalChange(SignalKind.TAB_VISIBLE, visible))

    def set_window_focused(self, focused: bool) -> None:
        focused = bool(focused)
        if focused == self._window_focused:
            return
        self._window_focused = focused
        self._emit(SignalChange(SignalKind.WINDOW_FOCUSED, focused))

    def _emit(self, change: SignalChange) -> None:
        logger.debug("Environment signal %s=%s", change.kind.value, change.value)
        # Copy: a listener may unsubscribe while we iterate.
        for listener in list(self._listeners):
            try:
                listener(change)
            except Exception:
                logger.exception("Signal listener failed for %s", change.kind.value)
