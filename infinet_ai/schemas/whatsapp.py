from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, Field


class WebhookMetadata(BaseModel):
    sender: Optional[str] = None
    timestamp: Optional[int] = None
    messageId: Optional[str] = None
    remoteJid: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("remoteJid", "remote_jid", "from"),
    )
    isGroup: Optional[bool] = Field(
        default=None,
        validation_alias=AliasChoices("isGroup", "is_group"),
    )


class WebhookMedia(BaseModel):
    base64: Optional[str] = Field(default=None, validation_alias=AliasChoices("base64", "data"))
    url: Optional[str] = None
    mimetype: Optional[str] = Field(default=None, validation_alias=AliasChoices("mimetype", "mimeType", "mime_type"))
    filename: Optional[str] = Field(default=None, validation_alias=AliasChoices("filename", "fileName"))


class WebhookBody(BaseModel):
    messageType: Optional[str] = Field(
        default="text",
        validation_alias=AliasChoices("messageType", "message_type", "type"),
    )
    message: Optional[str] = None
    metadata: Optional[WebhookMetadata] = None
    mediaData: Optional[Any] = Field(default=None, validation_alias=AliasChoices("mediaData", "media"))


class WebhookRequest(BaseModel):
    body: WebhookBody


class WebhookResponse(BaseModel):
    success: bool
    message: str
    route: Optional[str] = None
    status: Optional[str] = None
    delivered: Optional[bool] = None
