from datetime import datetime
from typing import Optional

from pydantic import AliasChoices, BaseModel, Field


class ImageRequest(BaseModel):
    prompt: Optional[str] = None
    style: Optional[str] = None
    image: Optional[str] = None
    sessionId: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("sessionId", "session_id"),
    )


class ImageResponse(BaseModel):
    imageUrl: Optional[str] = None
    prompt: str
    style: Optional[str] = None
    sessionId: str
    message: Optional[str] = None
    error: Optional[str] = None
    timestamp: datetime


class VoiceResponse(BaseModel):
    textResponse: str
    transcribedText: Optional[str] = None
    audioResponse: Optional[str] = None
    imageUrl: Optional[str] = None
    sessionId: str
    error: Optional[str] = None
    timestamp: datetime
