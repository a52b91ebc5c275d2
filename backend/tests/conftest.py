"""Shared test fixtures for the Azure Chat backend."""

from __future__ import annotations

import json
from collections.abc import AsyncGenerator
from typing import Any, Callable

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from azure_chat.completion.client import AzureOpenAIClient
from azure_chat.config import Settings
from azure_chat.main import create_app
from azure_chat.models.network import NetworkStatus
from azure_chat.network.monitor import ConnectivityMonitor
from azure_chat.storage.backends import MemoryStorage
from azure_chat.storage.store import ChatStorage

ENDPOINT = "https://example.openai.azure.com/openai"


def completion_payload(content: str, **usage: int) -> dict[str, Any]:
    """Azure-shaped non-streaming response body."""
    payload: dict[str, Any] = {
        "id": "chatcmpl-1",
        "object": "chat.completion",
        "created": 1700000000,
        "model": "gpt-4.1",
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": content},
                "finish_reason": "stop",
            }
        ],
    }
    if usage:
        payload["usage"] = usage
    return payload


def sse_chunks(*fragments: str) -> list[bytes]:
    """One event-stream record per fragment, then ``[DONE]``."""
    records = [
        f"data: {json.dumps({'choices': [{'delta': {'content': fragment}}]})}\n\n".encode()
        for fragment in fragments
    ]
    records.append(b"data: [DONE]\n\n")
    return records


async def _iterate(chunks: list[bytes]):
    for chunk in chunks:
        yield chunk


class FakeAzure:
    """Mock transport standing in for the Azure OpenAI endpoint."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.responder: Callable[[httpx.Request], httpx.Response] = lambda request: httpx.Response(
            200, json=completion_payload("Hi there")
        )

    def reply_json(self, payload: dict[str, Any], status_code: int = 200) -> None:
        self.responder = lambda request: httpx.Response(status_code, json=payload)

    def reply_text(self, text: str, status_code: int) -> None:
        self.responder = lambda request: httpx.Response(status_code, text=text)

    def reply_stream(self, chunks: list[bytes]) -> None:
        self.responder = lambda request: httpx.Response(
            200,
            headers={"Content-Type": "text/event-stream"},
            content=_iterate(chunks),
        )

    def fail(self, exc_type: type[httpx.TransportError] = httpx.ConnectError) -> None:
        def responder(request: httpx.Request) -> httpx.Response:
            raise exc_type("connection refused", request=request)

        self.responder = responder

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responder(request)

    @property
    def last_body(self) -> dict[str, Any]:
        return json.loads(self.requests[-1].content)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        azure_openai_api_key="test-key",
        azure_openai_endpoint=ENDPOINT,
        azure_openai_api_version="2024-02-01",
        storage_path="",
    )


@pytest.fixture
def storage() -> ChatStorage:
    return ChatStorage(MemoryStorage())


@pytest.fixture
def monitor() -> ConnectivityMonitor:
    return ConnectivityMonitor(NetworkStatus(is_online=True), probe=lambda: True)


@pytest.fixture
def fake_azure() -> FakeAzure:
    return FakeAzure()


@pytest_asyncio.fixture
async def completion_client(
    settings: Settings, fake_azure: FakeAzure
) -> AsyncGenerator[AzureOpenAIClient, None]:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(fake_azure.handler))
    yield AzureOpenAIClient.from_settings(settings, http_client=http_client)
    await http_client.aclose()


@pytest_asyncio.fixture
async def client(
    settings: Settings,
    storage: ChatStorage,
    monitor: ConnectivityMonitor,
    completion_client: AzureOpenAIClient,
) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client for testing FastAPI endpoints."""
    app = create_app(
        settings,
        storage=storage,
        completion_client=completion_client,
        monitor=monitor,
    )
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
