"""Observable UI state for the session manager."""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from azure_chat.models.sessions import ChatSession, SessionIndexEntry

logger = logging.getLogger(__name__)

StateListener = Callable[["ChatState"], None]


class ChatState:
    """Session list, current session, loading flag and last error.

    ``update()`` applies a batch of changes and notifies every subscriber
    once, so a listener never sees half of a transition.
    """

    FIELDS = ("sessions", "current_session", "is_loading", "error")

    def __init__(self) -> None:
        self.sessions: list[SessionIndexEntry] = []
        self.current_session: Optional[ChatSession] = None
        self.is_loading: bool = False
        self.error: Optional[str] = None
        self._listeners: list[StateListener] = []

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register ``listener``; returns a callable that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def update(self, **changes: Any) -> None:
        unknown = [name for name in changes if name not in self.FIELDS]
        if unknown:
            raise AttributeError(f"ChatState has no field(s) {unknown!r}")
        for name, value in changes.items():
            setattr(self, name, value)
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.exception("State listener %r failed", listener)
