"""Session models for conversation management."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from azure_chat.models.messages import ChatMessage, new_id, now_ms

DEFAULT_TITLE = "New Chat"
TITLE_MAX_CHARS = 50


def derive_title(content: str) -> str:
    """Title for a session whose first message is ``content``."""
    if not content.strip():
        return DEFAULT_TITLE
    if len(content) > TITLE_MAX_CHARS:
        return content[:TITLE_MAX_CHARS] + "..."
    return content


class ChatSession(BaseModel):
    """A conversation with its full message history."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(default_factory=lambda: new_id("session"))
    title: str = DEFAULT_TITLE
    messages: list[ChatMessage] = Field(default_factory=list)
    created_at: int = Field(default_factory=now_ms)
    updated_at: int = Field(default_factory=now_ms)
    model: str = "gpt-4.1"

    def touch(self) -> None:
        """Bump ``updated_at`` without ever moving it backwards."""
        self.updated_at = max(self.updated_at, now_ms())

    def append(self, message: ChatMessage) -> None:
        self.messages.append(message)
        if len(self.messages) == 1 and message.role == "user":
            self.title = derive_title(message.content)
        self.touch()

    def summary(self) -> "SessionIndexEntry":
        return SessionIndexEntry(
            id=self.id,
            title=self.title,
            created_at=self.created_at,
            updated_at=self.updated_at,
            model=self.model,
        )


class SessionIndexEntry(BaseModel):
    """Lightweight projection of a session for list views (no messages)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    title: str = DEFAULT_TITLE
    created_at: int = 0
    updated_at: int = 0
    model: str = "gpt-4.1"
