"""Health check endpoint for infrastructure monitoring."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends

from azure_chat.config import Settings, get_settings
from azure_chat.dependencies import get_monitor, get_storage
from azure_chat.network.monitor import ConnectivityMonitor
from azure_chat.storage.store import ChatStorage

logger = logging.getLogger(__name__)
router = APIRouter()


def _check_completion(settings: Settings) -> dict[str, Any]:
    """Report whether the Azure OpenAI settings are present."""
    if settings.completion_configured:
        return {"status": "healthy"}
    logger.warning("Azure OpenAI settings are incomplete")
    return {"status": "unhealthy", "error": "Azure OpenAI API key, endpoint or version missing"}


def _check_storage(storage: ChatStorage) -> dict[str, Any]:
    """Report session count and approximate bytes in use."""
    try:
        return {
            "status": "healthy",
            "sessions": len(storage.list_sessions()),
            "bytes": storage.storage_size(),
            "limit_bytes": storage.max_storage_bytes,
        }
    except Exception as exc:
        logger.warning("Storage health check failed: %s", exc)
        return {"status": "unhealthy", "error": str(exc)}


@router.get("")
async def health_check(
    settings: Settings = Depends(get_settings),
    storage: ChatStorage = Depends(get_storage),
    monitor: ConnectivityMonitor = Depends(get_monitor),
) -> dict[str, Any]:
    """Return aggregate health of the completion config, storage and network."""
    services = {
        "completion": _check_completion(settings),
        "storage": _check_storage(storage),
        "network": {
            "status": "healthy" if monitor.is_online else "unhealthy",
            **monitor.status.model_dump(by_alias=True),
        },
    }

    overall = (
        "healthy"
        if all(s["status"] == "healthy" for s in services.values())
        else "degraded"
    )

    return {
        "status": overall,
        "services": services,
    }
