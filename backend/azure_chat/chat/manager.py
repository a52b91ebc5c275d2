"""Session manager: owns the current session and drives each send.

A send moves through ``Idle -> Sending -> AwaitingReply -> Succeeded |
Failed -> Idle``. The user's turn is persisted before the completion call,
so a failed call never loses input; the failure is reported in
``state.error`` and the user retries by sending again.

Each in-flight send is tagged with the id of the session it targets. The
reply is always written to that session's stored record, and only shown in
``state.current_session`` if the user is still looking at that session.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol, Sequence

from azure_chat.chat.state import ChatState
from azure_chat.errors import (
    InvalidInput,
    NoActiveSession,
    Offline,
    QuotaExceededError,
    StorageFull,
)
from azure_chat.models.catalog import get_model
from azure_chat.models.completion import CompletionRequest, CompletionResponse
from azure_chat.models.messages import ChatMessage, MessageRole
from azure_chat.models.sessions import ChatSession, SessionIndexEntry
from azure_chat.network.monitor import ConnectivityMonitor
from azure_chat.storage.store import ChatStorage

logger = logging.getLogger(__name__)


class CompletionBackend(Protocol):
    async def complete(self, request: CompletionRequest) -> CompletionResponse: ...


class SessionManager:
    """Coordinates storage, the completion client and connectivity."""

    def __init__(
        self,
        storage: ChatStorage,
        completion: CompletionBackend,
        monitor: ConnectivityMonitor,
        state: Optional[ChatState] = None,
    ) -> None:
        self._storage = storage
        self._completion = completion
        self._monitor = monitor
        self.state = state if state is not None else ChatState()
        self._in_flight = 0

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    def restore(self) -> None:
        """Load the session list and reopen the last active session."""
        current = None
        current_id = self._storage.get_current_session_id()
        if current_id:
            current = self._storage.get_session(current_id)
            if current is None:
                logger.info("Last active session %s no longer exists", current_id)
        self.state.update(sessions=self._session_list(), current_session=current)

    def create_session(self, model: str) -> str:
        """Start an empty session, make it current and return its id."""
        session = ChatSession(model=model)
        try:
            self._storage.save_session(session)
        except StorageFull as exc:
            logger.warning("New session %s not persisted: %s", session.id, exc)
        self._set_pointer(session.id)
        self.state.update(
            current_session=session,
            sessions=self._session_list(include=session),
        )
        logger.info("Created session %s (model=%s)", session.id, model)
        return session.id

    def load_session(self, session_id: str) -> Optional[ChatSession]:
        """Make a stored session current; unknown ids leave state unchanged."""
        session = self._storage.get_session(session_id)
        if session is None:
            logger.info("load_session: %s not found", session_id)
            return None
        self._set_pointer(session_id)
        self.state.update(current_session=session)
        return session

    def delete_session(self, session_id: str) -> None:
        self._storage.delete_session(session_id)
        changes: dict = {
            "sessions": [entry for entry in self.state.sessions if entry.id != session_id]
        }
        current = self.state.current_session
        if current is not None and current.id == session_id:
            changes["current_session"] = None
            self._storage.clear_current_session_id()
        self.state.update(**changes)

    def update_session_model(self, model: str) -> None:
        """Switch the current session's model; no network call."""
        get_model(model)
        current = self.state.current_session
        if current is None:
            raise NoActiveSession()
        updated = current.model_copy(deep=True)
        updated.model = model
        updated.touch()
        try:
            self._storage.save_session(updated)
        except StorageFull as exc:
            logger.warning("Model change for %s not persisted: %s", updated.id, exc)
        self.state.update(current_session=updated, sessions=self._session_list(include=updated))

    def clear_error(self) -> None:
        self.state.update(error=None)

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------

    async def send_message(
        self, content: str, images: Optional[Sequence[str]] = None
    ) -> Optional[ChatMessage]:
        """Append a user turn, ask for a reply and append it.

        Raises ``NoActiveSession`` or ``Offline`` (with ``state.error`` set)
        before anything is appended. Completion failures do not raise: the
        user turn stays persisted, ``state.error`` describes the failure
        and ``None`` is returned. On success the assistant message is
        returned.
        """
        session = self.state.current_session
        if session is None:
            return self._reject(NoActiveSession())
        if not self._monitor.is_online:
            return self._reject(Offline())
        if not content.strip() and not images:
            raise InvalidInput("Message content is empty")

        updated = session.model_copy(deep=True)
        updated.append(
            ChatMessage(
                role=MessageRole.USER,
                content=content,
                images=list(images) if images else None,
            )
        )
        try:
            self._storage.save_session(updated)
        except StorageFull as exc:
            self.state.update(error=str(exc))
            raise

        target_id = updated.id
        self._in_flight += 1
        self.state.update(
            current_session=updated,
            sessions=self._session_list(include=updated),
            is_loading=True,
            error=None,
        )

        request = CompletionRequest(
            model=updated.model,
            messages=[message.to_turn() for message in updated.messages],
        )
        error: Optional[str] = None
        try:
            reply = await self._completion.complete(request)
            assistant = ChatMessage(
                role=MessageRole.ASSISTANT,
                content=reply.content,
                model=request.model,
            )
            self._commit_reply(target_id, updated, assistant)
            return assistant
        except StorageFull as exc:
            logger.error("Reply for session %s not persisted: %s", target_id, exc)
            error = str(exc)
            return None
        except Exception as exc:
            logger.exception("Error sending message in session %s", target_id)
            error = str(exc) or "Failed to send message"
            return None
        finally:
            self._finish(error=error)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _reject(self, exc: Exception) -> None:
        self.state.update(error=str(exc))
        raise exc

    def _finish(self, error: Optional[str] = None) -> None:
        self._in_flight -= 1
        changes: dict = {"is_loading": self._in_flight > 0}
        if error is not None:
            changes["error"] = error
        self.state.update(**changes)

    def _commit_reply(
        self, target_id: str, snapshot: ChatSession, assistant: ChatMessage
    ) -> None:
        stored = self._storage.get_session(target_id)
        if stored is None:
            if all(entry.id != target_id for entry in self._storage.list_sessions()):
                logger.warning("Session %s was deleted before its reply arrived", target_id)
                return
            stored = snapshot
        stored.append(assistant)
        self._storage.save_session(stored)

        changes: dict = {"sessions": self._session_list(include=stored)}
        current = self.state.current_session
        if current is not None and current.id == target_id:
            changes["current_session"] = stored
        else:
            logger.info("Reply for %s stored; current session has changed", target_id)
        self.state.update(**changes)

    def _set_pointer(self, session_id: str) -> None:
        try:
            self._storage.set_current_session_id(session_id)
        except QuotaExceededError as exc:
            logger.warning("Could not record active session %s: %s", session_id, exc)

    def _session_list(self, include: Optional[ChatSession] = None) -> list[SessionIndexEntry]:
        entries = self._storage.list_sessions()
        if include is not None and all(entry.id != include.id for entry in entries):
            entries.append(include.summary())
        return sorted(entries, key=lambda entry: entry.updated_at, reverse=True)
