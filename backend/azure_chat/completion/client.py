"""Azure OpenAI chat-completions client over httpx.

Each catalog model maps to its own Azure deployment route::

    POST {endpoint}/deployments/{deployment}/chat/completions?api-version={v}
    api-key: {key}
    {"messages": [...], "temperature": 0.7, "max_tokens": 8192, "stream": false}

Streaming responses are ``text/event-stream`` records of the form
``data: {...choices[0].delta.content...}`` terminated by ``data: [DONE]``.
"""

from __future__ import annotations

import inspect
import json
import logging
from typing import TYPE_CHECKING, Any, AsyncIterator, Awaitable, Callable, Optional, Union

import httpx

from azure_chat.errors import ConfigurationError, TransportError, UpstreamError
from azure_chat.models.catalog import ModelDescriptor, get_model
from azure_chat.models.completion import CompletionRequest, CompletionResponse, TokenUsage

if TYPE_CHECKING:
    from azure_chat.config import Settings

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"

ChunkCallback = Callable[[str], Union[None, Awaitable[None]]]
CompleteCallback = Callable[[], Union[None, Awaitable[None]]]


async def _call(callback: Callable[..., Any], *args: Any) -> None:
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


def _delta_content(payload: Any) -> str | None:
    try:
        return payload["choices"][0]["delta"].get("content")
    except (KeyError, IndexError, TypeError, AttributeError):
        return None


class AzureOpenAIClient:
    """Blocking and streaming chat completions against Azure OpenAI.

    Pass ``http_client`` to share a connection pool (or a mock transport in
    tests); otherwise the client owns one and ``aclose()`` releases it.
    """

    def __init__(
        self,
        api_key: str,
        endpoint: str,
        api_version: str,
        *,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 120.0,
    ) -> None:
        self._api_key = api_key
        self._endpoint = endpoint.rstrip("/")
        self._api_version = api_version
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    @classmethod
    def from_settings(
        cls, settings: "Settings", http_client: httpx.AsyncClient | None = None
    ) -> "AzureOpenAIClient":
        return cls(
            settings.azure_openai_api_key,
            settings.azure_openai_endpoint,
            settings.azure_openai_api_version,
            http_client=http_client,
            timeout=settings.request_timeout,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
        logger.info("AzureOpenAIClient closed")

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        """Send a non-streaming completion and return the first choice.

        Raises:
            InvalidModel: unknown model id (no request is made).
            ConfigurationError: API key, endpoint or version missing.
            UpstreamError: the endpoint returned a non-success status.
            TransportError: no response arrived or its body could not be decoded.
        """
        descriptor = get_model(request.model)
        url, headers, body = self._build(request, descriptor, stream=False)

        try:
            response = await self._client.post(url, headers=headers, json=body)
        except httpx.RequestError as exc:
            logger.error("Completion request to %s failed: %s", descriptor.deployment, exc)
            raise TransportError(f"Network error contacting Azure OpenAI: {exc}") from exc

        if not response.is_success:
            logger.error(
                "Azure OpenAI API error %d: %s", response.status_code, response.text[:200]
            )
            raise UpstreamError(response.status_code, response.text)

        try:
            data = response.json()
            choice = data["choices"][0]
            content = choice["message"]["content"] or ""
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise UpstreamError(response.status_code, f"Malformed completion response: {exc}") from exc

        usage = data.get("usage")
        return CompletionResponse(
            id=data.get("id", ""),
            model=data.get("model", ""),
            content=content,
            finish_reason=choice.get("finish_reason"),
            usage=TokenUsage(
                prompt_tokens=usage.get("prompt_tokens", 0),
                completion_tokens=usage.get("completion_tokens", 0),
                total_tokens=usage.get("total_tokens", 0),
            )
            if isinstance(usage, dict)
            else None,
        )

    async def stream(self, request: CompletionRequest) -> AsyncIterator[str]:
        """Yield content deltas as the endpoint produces them.

        Only newline-terminated records are parsed; a partial record is
        held until the rest arrives. Records that are not JSON are logged
        and skipped. Iteration stops at ``data: [DONE]`` or at a clean end
        of the response body.
        """
        descriptor = get_model(request.model)
        url, headers, body = self._build(request, descriptor, stream=True)

        try:
            async with self._client.stream("POST", url, headers=headers, json=body) as response:
                if not response.is_success:
                    await response.aread()
                    logger.error(
                        "Azure OpenAI streaming error %d: %s",
                        response.status_code,
                        response.text[:200],
                    )
                    raise UpstreamError(response.status_code, response.text)

                buffer = ""
                async for text in response.aiter_text():
                    buffer += text
                    lines = buffer.split("\n")
                    buffer = lines.pop()
                    for line in lines:
                        done, content = self._parse_record(line)
                        if done:
                            return
                        if content:
                            yield content

                if buffer:
                    done, content = self._parse_record(buffer)
                    if content and not done:
                        yield content
        except httpx.RequestError as exc:
            logger.error("Completion stream from %s failed: %s", descriptor.deployment, exc)
            raise TransportError(f"Stream interrupted: {exc}") from exc

    async def complete_streaming(
        self,
        request: CompletionRequest,
        on_chunk: ChunkCallback,
        on_complete: Optional[CompleteCallback] = None,
    ) -> None:
        """Drive ``stream()`` through callbacks.

        ``on_chunk`` receives each fragment in arrival order; ``on_complete``
        runs exactly once after the last fragment and never when the
        stream fails. Callbacks may be plain functions or coroutines.
        """
        async for fragment in self.stream(request):
            await _call(on_chunk, fragment)
        if on_complete is not None:
            await _call(on_complete)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _build(
        self, request: CompletionRequest, descriptor: ModelDescriptor, *, stream: bool
    ) -> tuple[str, dict[str, str], dict[str, Any]]:
        missing = [
            name
            for name, value in (
                ("AZURE_OPENAI_API_KEY", self._api_key),
                ("AZURE_OPENAI_ENDPOINT", self._endpoint),
                ("AZURE_OPENAI_API_VERSION", self._api_version),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(missing)

        url = (
            f"{self._endpoint}/deployments/{descriptor.deployment}/chat/completions"
            f"?api-version={self._api_version}"
        )
        headers = {"Content-Type": "application/json", "api-key": self._api_key}
        body = {
            "messages": [turn.model_dump() for turn in request.messages],
            "temperature": (
                request.temperature
                if request.temperature is not None
                else descriptor.default_temperature
            ),
            "max_tokens": request.max_tokens if request.max_tokens is not None else descriptor.max_tokens,
            "stream": stream,
        }
        return url, headers, body

    @staticmethod
    def _parse_record(line: str) -> tuple[bool, str | None]:
        """Return ``(done, content)`` for one event-stream line."""
        line = line.rstrip("\r")
        if not line.startswith(DATA_PREFIX):
            return False, None
        data = line[len(DATA_PREFIX) :]
        if data.strip() == DONE_SENTINEL:
            return True, None
        try:
            payload = json.loads(data)
        except ValueError as exc:
            logger.warning("Skipping unparseable stream record %r: %s", data[:80], exc)
            return False, None
        return False, _delta_content(payload)
