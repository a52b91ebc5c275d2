"""Request/response models for the completion client."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ChatTurn(BaseModel):
    """A role/content pair as sent to the completion endpoint."""

    role: Literal["user", "assistant", "system"]
    content: str


class CompletionRequest(BaseModel):
    """Turns plus model id, with optional sampling overrides."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    model: str
    messages: list[ChatTurn] = Field(min_length=1)
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None


class TokenUsage(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class CompletionResponse(BaseModel):
    """First choice of a finished completion, in canonical field names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = ""
    model: str = ""
    content: str
    finish_reason: Optional[str] = None
    usage: Optional[TokenUsage] = None
