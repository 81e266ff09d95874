from typing import Any, Dict, List

from fastapi import APIRouter, Request

router = APIRouter(prefix="/tools", tags=["tools"])


@router.get("", response_model=List[Dict[str, Any]])
async def list_tools(request: Request):
    """Schemas of every registered tool."""
    return request.app.state.chat_svc.list_tools()
