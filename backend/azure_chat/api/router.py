"""Central API router that aggregates all route modules."""

from fastapi import APIRouter

from azure_chat.api.catalog import router as catalog_router
from azure_chat.api.chat import router as chat_router
from azure_chat.api.health import router as health_router
from azure_chat.api.network import router as network_router
from azure_chat.api.sessions import router as sessions_router

api_router = APIRouter()

api_router.include_router(health_router, prefix="/health", tags=["health"])
api_router.include_router(chat_router, prefix="/chat", tags=["chat"])
api_router.include_router(sessions_router, prefix="/sessions", tags=["sessions"])
api_router.include_router(catalog_router, prefix="/models", tags=["models"])
api_router.include_router(network_router, prefix="/network", tags=["network"])
