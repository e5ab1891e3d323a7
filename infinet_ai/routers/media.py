import base64
import binascii
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, Response, UploadFile, status

from infinet_ai.logging_config import get_logger
from infinet_ai.routers.chat import STATUS_CODES, client_address, data_url
from infinet_ai.schemas.media import ImageRequest, ImageResponse, VoiceResponse
from infinet_ai.services.conversation import Attachment, Channel, InboundMessage
from infinet_ai.services.image_codec import sniff_image_type
from infinet_ai.services.router_service import Route
from infinet_ai.services.runtime import Runtime, get_runtime

logger = get_logger("media_router")

router = APIRouter(prefix="/api/ai", tags=["media"])


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _decode_source_image(encoded: str, max_bytes: int) -> Attachment:
    """Base64 (optionally a data URL) to an image attachment, or the matching HTTP error."""
    payload = encoded.strip()
    if payload.startswith("data:") and "," in payload:
        payload = payload.split(",", 1)[1]
    try:
        data = base64.b64decode(payload, validate=False)
    except (binascii.Error, ValueError) as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Image is not valid base64") from exc
    if not data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Image is empty")
    if len(data) > max_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"Image exceeds {max_bytes} bytes",
        )
    mime = sniff_image_type(data)
    if mime is None:
        raise HTTPException(
            status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
            detail="Image must be JPEG, PNG, GIF or WebP",
        )
    return Attachment(kind="image", data=data, mime_type=mime)


@router.post("/image", response_model=ImageResponse, response_model_exclude_none=True)
async def generate_image(
    request: ImageRequest,
    response: Response,
    http_request: Request,
    runtime: Runtime = Depends(get_runtime),
):
    """Generate an image from a prompt, or transform ``image`` when one is sent."""
    prompt = (request.prompt or "").strip()
    if not prompt:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Prompt is required")

    attachment = None
    if request.image:
        attachment = _decode_source_image(request.image, runtime.settings.media_max_bytes)
    style = (request.style or "").strip() or None
    text = f"{prompt}, {style} style" if style else prompt

    session_id = request.sessionId or uuid4().hex
    inbound = InboundMessage(
        sender_id=session_id,
        text=text,
        attachment=attachment,
        client_address=client_address(http_request),
    )
    route = Route.IMAGE_TO_IMAGE if attachment is not None else Route.TEXT_TO_IMAGE
    reply = await runtime.dispatcher.handle(inbound, Channel.WEB, route=route)
    response.status_code = STATUS_CODES.get(reply.status, status.HTTP_200_OK)

    return ImageResponse(
        imageUrl=data_url(reply.image) if reply.image is not None else None,
        prompt=prompt,
        style=style,
        sessionId=session_id,
        message=reply.text,
        error=None if reply.ok else reply.status.value,
        timestamp=_now(),
    )


@router.post("/voice", response_model=VoiceResponse, response_model_exclude_none=True)
async def voice_message(
    response: Response,
    http_request: Request,
    audio: Optional[UploadFile] = File(None),
    sessionId: Optional[str] = Form(None),
    runtime: Runtime = Depends(get_runtime),
):
    """Answer a recorded voice message with text and, when synthesis works, speech."""
    data = await audio.read() if audio is not None else b""
    if not data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Audio file is required")
    max_bytes = runtime.settings.media_max_bytes
    if len(data) > max_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"Audio exceeds {max_bytes} bytes",
        )

    session_id = sessionId or uuid4().hex
    attachment = Attachment(
        kind="voice",
        data=data,
        mime_type=audio.content_type or "audio/webm",
        filename=audio.filename,
    )
    logger.debug(
        "Voice upload received",
        extra={"context": {"session_id": session_id, "bytes": len(data), "mime_type": attachment.mime_type}},
    )
    inbound = InboundMessage(sender_id=session_id, attachment=attachment, client_address=client_address(http_request))
    reply = await runtime.dispatcher.handle(inbound, Channel.WEB, route=Route.VOICE)
    response.status_code = STATUS_CODES.get(reply.status, status.HTTP_200_OK)

    return VoiceResponse(
        textResponse=reply.text or "",
        transcribedText=reply.meta.get("transcript"),
        audioResponse=data_url(reply.audio) if reply.audio is not None else None,
        imageUrl=data_url(reply.image) if reply.image is not None else None,
        sessionId=session_id,
        error=None if reply.ok else reply.status.value,
        timestamp=_now(),
    )
