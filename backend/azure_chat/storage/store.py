"""Local chat session store: one record per session plus a session index.

Key layout (all under ``azure-chat-pwa:``)::

    azure-chat-pwa:sessions            -> [{id, title, createdAt, updatedAt, model}, ...]
    azure-chat-pwa:session:{id}        -> {id, title, messages: [...], createdAt, updatedAt, model}
    azure-chat-pwa:current-session     -> "{id}"

The index exists so listing sessions never has to parse message bodies.
After every successful write the index and the full records agree: each
indexed id has a record and each record is indexed.

Retention runs after every save: sessions beyond ``max_sessions`` are
evicted oldest-first by ``updatedAt``, then the oldest remaining sessions
are evicted while the store occupies more than ``max_storage_bytes``
(characters × 2) and more than one session is left.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

from pydantic import TypeAdapter, ValidationError

from azure_chat.errors import InvalidFormat, QuotaExceededError, StorageFull
from azure_chat.models.sessions import ChatSession, SessionIndexEntry
from azure_chat.storage.backends import JsonFileStorage, KeyValueStorage, MemoryStorage

if TYPE_CHECKING:
    from azure_chat.config import Settings

logger = logging.getLogger(__name__)

STORAGE_KEY_PREFIX = "azure-chat-pwa"
SESSIONS_KEY = f"{STORAGE_KEY_PREFIX}:sessions"
CURRENT_SESSION_KEY = f"{STORAGE_KEY_PREFIX}:current-session"
SESSION_KEY_PREFIX = f"{STORAGE_KEY_PREFIX}:session:"

MAX_SESSIONS = 50
MAX_MESSAGES_PER_SESSION = 100
MAX_STORAGE_BYTES = 5 * 1024 * 1024

_INDEX = TypeAdapter(list[SessionIndexEntry])


def _session_key(session_id: str) -> str:
    return f"{SESSION_KEY_PREFIX}{session_id}"


def _owned(key: str) -> bool:
    return key.startswith(f"{STORAGE_KEY_PREFIX}:")


class ChatStorage:
    """Size-bounded store of chat sessions over a string key/value backend.

    Constructed once at startup and handed to whoever needs it::

        storage = ChatStorage(JsonFileStorage("~/.azure-chat/store.json"))
        manager = SessionManager(storage, completion_client, monitor)
    """

    def __init__(
        self,
        backend: KeyValueStorage | None = None,
        *,
        max_sessions: int = MAX_SESSIONS,
        max_messages_per_session: int = MAX_MESSAGES_PER_SESSION,
        max_storage_bytes: int = MAX_STORAGE_BYTES,
    ) -> None:
        self.backend = backend if backend is not None else MemoryStorage()
        self.max_sessions = max_sessions
        self.max_messages_per_session = max_messages_per_session
        self.max_storage_bytes = max_storage_bytes

    @classmethod
    def from_settings(cls, settings: "Settings") -> "ChatStorage":
        if settings.storage_path:
            backend: KeyValueStorage = JsonFileStorage(
                settings.storage_path, quota_bytes=settings.storage_quota_bytes
            )
        else:
            backend = MemoryStorage(quota_bytes=settings.storage_quota_bytes)
        return cls(
            backend,
            max_sessions=settings.max_sessions,
            max_messages_per_session=settings.max_messages_per_session,
            max_storage_bytes=settings.max_storage_bytes,
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_sessions(self) -> list[SessionIndexEntry]:
        """Return the session index in stored order (callers sort)."""
        index = self._read_index()
        return index if index is not None else []

    def get_session(self, session_id: str) -> ChatSession | None:
        """Return the full session, or ``None`` if missing or unreadable."""
        raw = self.backend.get_item(_session_key(session_id))
        if raw is None:
            return None
        try:
            return ChatSession.model_validate_json(raw)
        except ValidationError as exc:
            logger.warning("Session %s is corrupt, treating as absent: %s", session_id, exc)
            return None

    def storage_size(self) -> int:
        """Approximate bytes held by this store (UTF-16 code units)."""
        size = 0
        for key in self.backend.keys():
            if _owned(key):
                size += len(self.backend.get_item(key) or "")
        return size * 2

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def save_session(self, session: ChatSession) -> None:
        """Persist ``session`` and its index entry, then enforce retention.

        ``session.messages`` is truncated in place to the most recent
        ``max_messages_per_session`` entries. A capacity rejection from the
        backend triggers one eviction pass and one retry; a second
        rejection raises ``StorageFull``.
        """
        if len(session.messages) > self.max_messages_per_session:
            session.messages = session.messages[-self.max_messages_per_session :]

        try:
            self._write(session)
        except QuotaExceededError as exc:
            logger.warning("Storage full saving session %s (%s); evicting", session.id, exc)
            self._make_room(session)
            try:
                self._write(session)
            except QuotaExceededError as retry_exc:
                logger.error("Failed to save session %s after cleanup", session.id)
                raise StorageFull(f"Storage full: could not save session {session.id}") from retry_exc

        self.enforce_retention()

    def delete_session(self, session_id: str) -> None:
        """Remove a session and its index entry. Deleting twice is a no-op."""
        self.backend.remove_item(_session_key(session_id))
        index = self._read_index()
        if index is None:
            return
        remaining = [entry for entry in index if entry.id != session_id]
        if len(remaining) != len(index):
            self._write_index(remaining)

    def get_current_session_id(self) -> str | None:
        return self.backend.get_item(CURRENT_SESSION_KEY)

    def set_current_session_id(self, session_id: str) -> None:
        self.backend.set_item(CURRENT_SESSION_KEY, session_id)

    def clear_current_session_id(self) -> None:
        self.backend.remove_item(CURRENT_SESSION_KEY)

    def clear_all(self) -> None:
        """Remove every key owned by this store; other keys are untouched."""
        for key in [k for k in self.backend.keys() if _owned(k)]:
            self.backend.remove_item(key)
        logger.info("Cleared all chat data")

    # ------------------------------------------------------------------
    # Export / import
    # ------------------------------------------------------------------

    def export_all(self) -> str:
        """Serialize every full session record as pretty-printed JSON."""
        sessions = []
        for entry in self.list_sessions():
            session = self.get_session(entry.id)
            if session is not None:
                sessions.append(session.model_dump(mode="json", by_alias=True))
        return json.dumps(sessions, indent=2, ensure_ascii=False)

    def import_all(self, data: str) -> int:
        """Import sessions from ``export_all`` output.

        Unparseable input raises ``InvalidFormat`` before anything is
        written. Individual malformed records are skipped. Returns the
        number of sessions imported.
        """
        try:
            payload = json.loads(data)
        except (TypeError, ValueError) as exc:
            raise InvalidFormat("Invalid session data format") from exc
        if not isinstance(payload, list):
            raise InvalidFormat("Invalid session data format: expected a list of sessions")

        imported = 0
        for position, item in enumerate(payload):
            if not isinstance(item, dict) or not item.get("id") or not isinstance(item.get("messages"), list):
                logger.warning("Skipping import record %d: missing id or messages", position)
                continue
            try:
                session = ChatSession.model_validate(item)
            except ValidationError as exc:
                logger.warning("Skipping import record %d: %s", position, exc)
                continue
            self.save_session(session)
            imported += 1

        logger.info("Imported %d of %d sessions", imported, len(payload))
        return imported

    # ------------------------------------------------------------------
    # Retention
    # ------------------------------------------------------------------

    def enforce_retention(self, byte_budget: int | None = None, keep: str | None = None) -> list[str]:
        """Evict least-recently-updated sessions; returns the evicted ids.

        ``keep`` names a session that must survive this pass (the one a
        retry is making room for).
        """
        budget = self.max_storage_bytes if byte_budget is None else byte_budget
        index = sorted(self.list_sessions(), key=lambda entry: entry.updated_at)
        candidates = [entry for entry in index if entry.id != keep]
        remaining = len(index)
        evicted: list[str] = []

        excess = max(remaining - self.max_sessions, 0)
        for entry in candidates[:excess]:
            self.delete_session(entry.id)
            evicted.append(entry.id)
            remaining -= 1

        for entry in candidates[excess:]:
            if remaining <= 1 or self.storage_size() <= budget:
                break
            self.delete_session(entry.id)
            evicted.append(entry.id)
            remaining -= 1

        if evicted:
            logger.info("Retention evicted %d session(s): %s", len(evicted), ", ".join(evicted))
        return evicted

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _read_index(self) -> list[SessionIndexEntry] | None:
        """Return the index, ``[]`` when absent, ``None`` when corrupt."""
        raw = self.backend.get_item(SESSIONS_KEY)
        if raw is None:
            return []
        try:
            return _INDEX.validate_json(raw)
        except ValidationError as exc:
            logger.error("Session index is corrupt: %s", exc)
            return None

    def _write_index(self, index: list[SessionIndexEntry]) -> None:
        self.backend.set_item(SESSIONS_KEY, _INDEX.dump_json(index, by_alias=True).decode())

    def _rebuild_index(self) -> list[SessionIndexEntry]:
        """Recreate the index from the full records, dropping unreadable ones."""
        index = []
        for key in [k for k in self.backend.keys() if k.startswith(SESSION_KEY_PREFIX)]:
            session = self.get_session(key[len(SESSION_KEY_PREFIX) :])
            if session is None:
                self.backend.remove_item(key)
                continue
            index.append(session.summary())
        logger.warning("Rebuilt session index from %d stored session(s)", len(index))
        return index

    def _write(self, session: ChatSession) -> None:
        key = _session_key(session.id)
        previous = self.backend.get_item(key)
        self.backend.set_item(key, session.model_dump_json(by_alias=True))

        index = self._read_index()
        if index is None:
            index = self._rebuild_index()
        entry = session.summary()
        for position, existing in enumerate(index):
            if existing.id == session.id:
                index[position] = entry
                break
        else:
            index.append(entry)

        try:
            self._write_index(index)
        except QuotaExceededError:
            # keep record and index consistent when the index write is refused
            if previous is None:
                self.backend.remove_item(key)
            else:
                self.backend.set_item(key, previous)
            raise

    def _make_room(self, session: ChatSession) -> None:
        budget = self.max_storage_bytes
        quota = self.backend.quota_bytes
        if quota:
            needed = len(session.model_dump_json(by_alias=True)) * 2
            budget = min(budget, max(quota - needed, 0))
        self.enforce_retention(byte_budget=budget, keep=session.id)
