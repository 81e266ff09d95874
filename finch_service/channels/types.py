from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class IncomingMessage(BaseModel):
    """A user message delivered by a transport."""
    id: str
    channel_id: str
    user_id: str
    content: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    metadata: Optional[Dict[str, Any]] = None


class OutgoingMessage(BaseModel):
    """A reply handed back to a transport."""
    channel_id: str
    user_id: str
    content: str
    reply_to: Optional[str] = None
