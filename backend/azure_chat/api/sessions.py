"""Session management endpoints over the local chat store."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import Response

from azure_chat.dependencies import get_storage
from azure_chat.storage.store import ChatStorage

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("")
async def list_sessions(
    storage: ChatStorage = Depends(get_storage),
) -> list[dict[str, Any]]:
    """Return the session index, most recently updated first."""
    entries = sorted(storage.list_sessions(), key=lambda e: e.updated_at, reverse=True)
    return [entry.model_dump(by_alias=True) for entry in entries]


@router.delete("")
async def clear_sessions(
    storage: ChatStorage = Depends(get_storage),
) -> dict[str, str]:
    """Delete every session and the active-session pointer."""
    storage.clear_all()
    return {"status": "cleared"}


@router.get("/export")
async def export_sessions(
    storage: ChatStorage = Depends(get_storage),
) -> Response:
    """Download every full session as pretty-printed JSON."""
    return Response(
        content=storage.export_all(),
        media_type="application/json",
        headers={"Content-Disposition": 'attachment; filename="chat-sessions.json"'},
    )


@router.post("/import")
async def import_sessions(
    request: Request,
    storage: ChatStorage = Depends(get_storage),
) -> dict[str, Any]:
    """Import an export file; malformed records inside it are skipped."""
    raw = await request.body()
    imported = storage.import_all(raw.decode("utf-8", errors="replace"))
    return {"status": "imported", "count": imported}


@router.get("/{session_id}")
async def get_session(
    session_id: str,
    storage: ChatStorage = Depends(get_storage),
) -> dict[str, Any]:
    """Return one full session including its messages."""
    session = storage.get_session(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return session.model_dump(by_alias=True)


@router.delete("/{session_id}")
async def delete_session(
    session_id: str,
    storage: ChatStorage = Depends(get_storage),
) -> dict[str, str]:
    """Delete a chat session; deleting an unknown id also succeeds."""
    storage.delete_session(session_id)
    if storage.get_current_session_id() == session_id:
        storage.clear_current_session_id()
    return {"status": "deleted", "session_id": session_id}
