"""Message models for conversation history."""

from __future__ import annotations

import time
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def now_ms() -> int:
    """Current wall-clock time as integer epoch milliseconds."""
    return int(time.time() * 1000)


def new_id(prefix: str) -> str:
    return f"{prefix}-{uuid4().hex}"


class MessageRole(str, Enum):
    """Message sender role."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class ChatMessage(BaseModel):
    """One persisted turn of a conversation.

    Immutable once created; ``images`` holds data-URI encoded payloads in
    the order the user attached them.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        use_enum_values=True,
    )

    id: str = Field(default_factory=lambda: new_id("msg"))
    role: MessageRole
    content: str
    timestamp: int = Field(default_factory=now_ms)
    model: Optional[str] = None
    images: Optional[list[str]] = None

    def to_turn(self) -> dict[str, str]:
        """Strip local-only fields for the completion endpoint."""
        return {"role": self.role, "content": self.content}
