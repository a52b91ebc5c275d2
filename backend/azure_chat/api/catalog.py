"""Model catalog endpoint."""

from typing import Any

from fastapi import APIRouter

from azure_chat.models.catalog import MODELS

router = APIRouter()


@router.get("")
async def list_models() -> list[dict[str, Any]]:
    """Return every model the front-end may select."""
    return [
        descriptor.model_dump(by_alias=True, exclude={"deployment"})
        for descriptor in MODELS.values()
    ]
