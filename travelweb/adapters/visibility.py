"""
In-process page visibility signal.

Host code (a UI shell, a test) calls set_state("hidden" / "visible"); every
registered listener is called synchronously with the new state. Repeated
states are not re-broadcast.
"""

from __future__ import annotations

import logging

from travelweb.components.tracker.ports import VisibilityListener

logger = logging.getLogger(__name__)


class VisibilitySignal:
    """VisibilityPort implementation for in-process hosts."""

    def __init__(self, initial_state: str = "visible") -> None:
        self._state = initial_state
        self._listeners: list[VisibilityListener] = []

    @property
    def state(self) -> str:
        return self._state

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def add_listener(self, listener: VisibilityListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: VisibilityListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def set_state(self, state: str) -> None:
        if state == self._state:
            return
        self._state = state
        logger.debug("Visibility changed to %s (%d listener(s))", state, len(self._listeners))
        for listener in list(self._listeners):
            listener(state)
