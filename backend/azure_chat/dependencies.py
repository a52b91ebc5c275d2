"""Dependency providers for FastAPI.

The core objects are built once in ``create_app`` and kept on
``app.state``; routes receive them through these providers.
"""

from fastapi import Request

from azure_chat.completion.client import AzureOpenAIClient
from azure_chat.network.monitor import ConnectivityMonitor
from azure_chat.storage.store import ChatStorage


def get_storage(request: Request) -> ChatStorage:
    """Return the application's ChatStorage instance."""
    return request.app.state.storage


def get_completion_client(request: Request) -> AzureOpenAIClient:
    """Return the application's AzureOpenAIClient instance."""
    return request.app.state.completion_client


def get_monitor(request: Request) -> ConnectivityMonitor:
    """Return the application's ConnectivityMonitor instance."""
    return request.app.state.monitor
