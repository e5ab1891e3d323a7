from datetime import datetime
from typing import Any, List, Optional

from pydantic import AliasChoices, BaseModel, Field


class HistoryItem(BaseModel):
    role: str
    content: str = ""


class ChatRequest(BaseModel):
    message: Optional[str] = None
    sessionId: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("sessionId", "session_id"),
    )
    conversationHistory: List[HistoryItem] = Field(
        default_factory=list,
        validation_alias=AliasChoices("conversationHistory", "conversation_history"),
    )


class ChatResponse(BaseModel):
    response: str
    sessionId: str
    bookingData: Optional[dict[str, Any]] = None
    image: Optional[str] = None
    error: Optional[str] = None
    timestamp: datetime


class HistoryMessage(BaseModel):
    id: str
    sender: str
    content: str
    timestamp: datetime


class HistoryResponse(BaseModel):
    sessionId: Optional[str] = None
    messages: List[HistoryMessage]
    timestamp: datetime
