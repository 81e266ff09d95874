from typing import Any, Dict, List

from fastapi import APIRouter, HTTPException, Request, Response
from pydantic import BaseModel

from finch_service.core.errors import FinchError

router = APIRouter(prefix="/users", tags=["users"])


class HistoryEntry(BaseModel):
    role: str
    content: str
    timestamp: float


class PreferenceValue(BaseModel):
    value: Any


@router.get("/{user_id}/history", response_model=List[HistoryEntry])
async def get_history(user_id: str, request: Request):
    """Cached conversation window for a user, oldest first."""
    chat_svc = request.app.state.chat_svc
    try:
        return await chat_svc.get_history(user_id)
    except FinchError as e:
        raise HTTPException(status_code=502, detail=str(e))


@router.delete("/{user_id}/history", status_code=204)
async def clear_history(user_id: str, request: Request):
    """Delete a user's history from the cache and durable storage."""
    chat_svc = request.app.state.chat_svc
    try:
        await chat_svc.clear_history(user_id)
    except FinchError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return Response(status_code=204)


@router.get("/{user_id}/preferences", response_model=Dict[str, Any])
async def get_preferences(user_id: str, request: Request):
    chat_svc = request.app.state.chat_svc
    try:
        return await chat_svc.get_preferences(user_id)
    except FinchError as e:
        raise HTTPException(status_code=502, detail=str(e))


@router.put("/{user_id}/preferences/{key}", response_model=Dict[str, Any])
async def set_preference(user_id: str, key: str, body: PreferenceValue, request: Request):
    """Add or overwrite one preference key; returns the full preference set."""
    chat_svc = request.app.state.chat_svc
    try:
        await chat_svc.set_preference(user_id, key, body.value)
        return await chat_svc.get_preferences(user_id)
    except FinchError as e:
        raise HTTPException(status_code=502, detail=str(e))
