"""Error taxonomy shared by the store, the completion client and the API."""

from __future__ import annotations


class ChatError(Exception):
    """Base class for every failure surfaced by the chat core."""


class InvalidModel(ChatError):
    """Requested model id is not in the model catalog."""

    def __init__(self, model: str) -> None:
        super().__init__(f"Unknown model: {model!r}")
        self.model = model


class InvalidInput(ChatError):
    """Malformed request shape."""


class Offline(ChatError):
    """The device is offline; nothing was sent."""

    def __init__(self, message: str = "You are offline. Cannot send messages.") -> None:
        super().__init__(message)


class NoActiveSession(ChatError):
    """The operation needs a current session and there is none."""

    def __init__(self, message: str = "No active session") -> None:
        super().__init__(message)


class TransportError(ChatError):
    """Network-level failure talking to the completion endpoint."""


class UpstreamError(ChatError):
    """The completion endpoint answered with a failure status."""

    def __init__(self, status_code: int, body: str) -> None:
        super().__init__(f"Azure OpenAI API error: {status_code} - {body}")
        self.status_code = status_code
        self.body = body


class ConfigurationError(UpstreamError):
    """Completion endpoint settings are missing."""

    def __init__(self, missing: list[str]) -> None:
        body = "Missing configuration: " + ", ".join(missing)
        super().__init__(500, body)
        self.missing = missing


class StorageFull(ChatError):
    """A persistence write failed even after evicting old sessions."""


class InvalidFormat(ChatError):
    """Serialized session data could not be parsed."""


class QuotaExceededError(Exception):
    """Raised by a storage backend when a write would exceed its capacity."""
