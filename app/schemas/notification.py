from pydantic import BaseModel
from typing import Any, Optional


class BroadcastRequest(BaseModel):
    title: Optional[str] = None
    body: Optional[str] = None
    data: Optional[dict[str, Any]] = None
    sound: Optional[str] = None
    tokens: Optional[list[str]] = None
    excludeTokens: Optional[list[str]] = None
    senderToken: Optional[str] = None


class ChatMessageCreate(BaseModel):
    message: Optional[str] = None
    title: Optional[str] = None
    senderToken: Optional[str] = None
    recipientTokens: Optional[list[str]] = None
    data: Optional[dict[str, Any]] = None
    sound: Optional[str] = None
