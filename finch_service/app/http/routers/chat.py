import asyncio

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from finch_service.core.errors import FinchError
from finch_service.core.logging import logger

router = APIRouter(prefix="/chat", tags=["chat"])


class ChatRequest(BaseModel):
    user_id: str = Field(..., min_length=1, description="The user the turn belongs to.")
    message: str = Field(..., description="The user's message.")


class ChatResponse(BaseModel):
    reply: str


@router.post("", response_model=ChatResponse)
async def chat(request: Request, body: ChatRequest):
    logger.info(f"/chat called: user_id={body.user_id}")
    chat_svc = request.app.state.chat_svc
    try:
        reply = await chat_svc.reply(body.user_id, body.message)
    except FinchError as e:
        logger.error(f"/chat failed for user_id={body.user_id}: {e}")
        raise HTTPException(status_code=502, detail=str(e))
    return ChatResponse(reply=reply)


@router.post("/stream")
async def stream(request: Request, body: ChatRequest):
    logger.info(f"/chat/stream called: user_id={body.user_id}")
    chat_svc = request.app.state.chat_svc
    cancel_event = asyncio.Event()

    async def event_generator():
        events = chat_svc.stream(body.user_id, body.message, cancel_event=cancel_event)
        try:
            async for chunk in events:
                # Check disconnect BEFORE yielding
                if await request.is_disconnected():
                    logger.info(f"Client disconnected: user_id={body.user_id}")
                    cancel_event.set()
                    break
                yield chunk
        finally:
            await events.aclose()

    return StreamingResponse(event_generator(), media_type="application/x-ndjson")
