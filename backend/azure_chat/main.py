"""FastAPI application entry point with lifespan management."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from azure_chat import __version__
from azure_chat.api.router import api_router
from azure_chat.completion.client import AzureOpenAIClient
from azure_chat.config import Settings, get_settings, settings as default_settings
from azure_chat.errors import ChatError, InvalidFormat, InvalidInput, InvalidModel
from azure_chat.network.monitor import ConnectivityMonitor
from azure_chat.storage.store import ChatStorage

logger = logging.getLogger(__name__)

CLIENT_ERRORS = (InvalidInput, InvalidModel, InvalidFormat)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application startup and shutdown lifecycle."""
    logger.info(
        "Azure Chat backend started (%d stored sessions)",
        len(app.state.storage.list_sessions()),
    )

    yield

    await app.state.completion_client.aclose()
    logger.info("Azure Chat backend shut down cleanly")


async def chat_error_handler(request: Request, exc: ChatError) -> JSONResponse:
    """Render core failures as ``{"error": message}``."""
    status_code = 400 if isinstance(exc, CLIENT_ERRORS) else 500
    if status_code == 500:
        logger.error("%s on %s: %s", type(exc).__name__, request.url.path, exc)
    return JSONResponse({"error": str(exc)}, status_code=status_code)


def create_app(
    settings: Optional[Settings] = None,
    *,
    storage: Optional[ChatStorage] = None,
    completion_client: Optional[AzureOpenAIClient] = None,
    monitor: Optional[ConnectivityMonitor] = None,
) -> FastAPI:
    """Build the app and the core objects it serves.

    Every collaborator can be injected; anything omitted is built from
    ``settings``.
    """
    settings = settings or default_settings

    app = FastAPI(
        title="Azure Chat API",
        description="Local proxy and session store for Azure OpenAI chat completions",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.storage = storage if storage is not None else ChatStorage.from_settings(settings)
    app.state.completion_client = completion_client or AzureOpenAIClient.from_settings(settings)
    app.state.monitor = monitor if monitor is not None else ConnectivityMonitor()
    app.dependency_overrides[get_settings] = lambda: settings

    # CORS configuration
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            settings.frontend_url,
            "http://localhost:3000",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ChatError, chat_error_handler)

    # Mount API routes
    app.include_router(api_router, prefix="/api")
    return app


app = create_app()

# Configure logging
logging.basicConfig(
    level=getattr(logging, default_settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
