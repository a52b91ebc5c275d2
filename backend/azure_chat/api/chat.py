"""Chat completion proxy endpoint.

Request body::

    {"messages": [{"role": "user", "content": "..."}], "model": "gpt-4.1",
     "stream": false, "temperature": 0.2, "maxTokens": 512}

Non-streaming replies are ``{"content": "...", "usage": {...}}``. Streaming
replies are ``text/event-stream`` records ``data: {"content": "..."}``
ending in ``data: [DONE]``; a failure mid-stream is sent as
``data: {"error": "..."}`` and the stream closes.
"""

from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterator

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import ValidationError

from azure_chat.completion.client import DONE_SENTINEL, AzureOpenAIClient
from azure_chat.dependencies import get_completion_client
from azure_chat.errors import ChatError, InvalidInput
from azure_chat.models.catalog import get_model
from azure_chat.models.completion import CompletionRequest

logger = logging.getLogger(__name__)
router = APIRouter()


def _parse_body(body: Any) -> tuple[CompletionRequest, bool]:
    """Validate the request body; raises before any upstream call."""
    if not isinstance(body, dict):
        raise InvalidInput("Request body must be a JSON object")
    messages = body.get("messages")
    if not isinstance(messages, list):
        raise InvalidInput("Messages array is required")
    model = body.get("model")
    if not model or not isinstance(model, str):
        raise InvalidInput("Valid model is required")
    get_model(model)

    try:
        request = CompletionRequest.model_validate(
            {
                "model": model,
                "messages": messages,
                "temperature": body.get("temperature"),
                "maxTokens": body.get("maxTokens"),
            }
        )
    except ValidationError as exc:
        raise InvalidInput(f"Invalid chat request: {exc.errors()[0]['msg']}") from exc
    return request, bool(body.get("stream", False))


def _event(payload: Any) -> str:
    return f"data: {json.dumps(payload)}\n\n"


async def _event_stream(
    client: AzureOpenAIClient, request: CompletionRequest
) -> AsyncIterator[str]:
    """Re-emit upstream fragments as ``{"content": ...}`` records."""
    try:
        async for fragment in client.stream(request):
            yield _event({"content": fragment})
        yield f"data: {DONE_SENTINEL}\n\n"
    except Exception as exc:
        logger.exception("Streaming error for model %s", request.model)
        yield _event({"error": str(exc)})


@router.post("")
async def chat(
    request: Request,
    client: AzureOpenAIClient = Depends(get_completion_client),
) -> Any:
    """Proxy one completion to Azure OpenAI."""
    try:
        body = await request.json()
    except ValueError as exc:
        raise InvalidInput("Request body must be JSON") from exc

    completion_request, stream = _parse_body(body)

    if stream:
        return StreamingResponse(
            _event_stream(client, completion_request),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
        )

    try:
        response = await client.complete(completion_request)
    except ChatError:
        raise
    except Exception as exc:
        logger.exception("Chat API error")
        return JSONResponse({"error": str(exc) or "Internal server error"}, status_code=500)

    return {
        "content": response.content,
        "usage": response.usage.model_dump(by_alias=True) if response.usage else None,
    }
