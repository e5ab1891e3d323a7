import base64
import binascii
from dataclasses import dataclass
from typing import Optional

import httpx
from fastapi import APIRouter, Depends

from infinet_ai.logging_config import get_logger
from infinet_ai.schemas.whatsapp import WebhookBody, WebhookMedia, WebhookRequest, WebhookResponse
from infinet_ai.services import replies
from infinet_ai.services.conversation import Attachment, Channel, InboundMessage, OutboundReply
from infinet_ai.services.language_service import detect_language
from infinet_ai.services.runtime import Runtime, get_runtime
from infinet_ai.services.whatsapp_service import WhatsAppGateway

logger = get_logger("whatsapp_webhook")

router = APIRouter(prefix="/whatsapp", tags=["whatsapp"])

MEDIA_TYPE_ALIASES = {
    "ptt": "voice",
    "voice": "voice",
    "audio": "audio",
    "image": "image",
    "photo": "image",
    "sticker": "sticker",
    "video": "video",
    "document": "document",
    "file": "document",
}
TEXT_TYPES = {"", "text", "chat", "conversation", "extendedtextmessage"}


@dataclass
class MediaInfo:
    media_type: str
    mime: str
    url: Optional[str] = None
    base64_data: Optional[str] = None
    file_name: Optional[str] = None


def _normalize_media_type(raw_type: Optional[str], mime: Optional[str]) -> str:
    raw = (raw_type or "").strip().lower()
    if raw in MEDIA_TYPE_ALIASES:
        return MEDIA_TYPE_ALIASES[raw]
    if mime:
        if mime.startswith("image/webp"):
            return "sticker"
        if mime.startswith("image/"):
            return "image"
        if mime.startswith("audio/"):
            return "audio"
        if mime.startswith("video/"):
            return "video"
        return "document"
    return "unknown"


def _extract_media_info(body: WebhookBody) -> Optional[MediaInfo]:
    if not isinstance(body.mediaData, dict):
        return None
    media = WebhookMedia.model_validate(body.mediaData)
    if not media.base64 and not media.url:
        return None
    raw_type = (body.messageType or "").strip().lower()
    if raw_type in TEXT_TYPES:
        raw_type = ""
    if body.mediaData.get("ptt"):
        raw_type = "ptt"
    mime = (media.mimetype or "application/octet-stream").split(";")[0].strip().lower()
    return MediaInfo(
        media_type=_normalize_media_type(raw_type, mime),
        mime=mime,
        url=media.url,
        base64_data=media.base64,
        file_name=media.filename,
    )


async def _download_media_bytes(
    media: MediaInfo,
    max_bytes: int,
    timeout_seconds: float,
) -> tuple[Optional[bytes], Optional[str]]:
    if media.base64_data:
        payload = media.base64_data
        if payload.startswith("data:") and "," in payload:
            payload = payload.split(",", 1)[1]
        try:
            data = base64.b64decode(payload, validate=False)
        except (binascii.Error, ValueError) as exc:
            return None, f"bad_base64:{exc}"
        if max_bytes and len(data) > max_bytes:
            return None, "too_large"
        return data, None

    if not media.url:
        return None, "missing_url"

    size_bytes = 0
    data = bytearray()
    try:
        async with httpx.AsyncClient(timeout=timeout_seconds, follow_redirects=True) as client:
            async with client.stream("GET", media.url) as response:
                response.raise_for_status()
                async for chunk in response.aiter_bytes():
                    if not chunk:
                        continue
                    size_bytes += len(chunk)
                    if max_bytes and size_bytes > max_bytes:
                        return None, "too_large"
                    data.extend(chunk)
    except httpx.HTTPError as exc:
        return None, f"download_failed:{exc}"

    return bytes(data), None


def _sender_id(jid: str) -> str:
    return jid.split("@", 1)[0]


def _is_ignored_chat(jid: str, body: WebhookBody) -> bool:
    if jid == "status@broadcast" or jid.endswith("@g.us") or jid.endswith("@broadcast"):
        return True
    return bool(body.metadata and body.metadata.isGroup)


async def _deliver(whatsapp: WhatsAppGateway, jid: str, reply: OutboundReply) -> bool:
    """Send the richest part of the reply, degrading to text when media delivery fails."""
    if reply.audio is not None:
        if await whatsapp.send_audio(jid, reply.audio.data, reply.audio.mime_type):
            return True
        logger.warning("Voice reply delivery failed, sending text", extra={"context": {"jid": jid}})
    if reply.image is not None:
        if await whatsapp.send_image(jid, reply.image.data, reply.image.mime_type, reply.image.caption):
            return True
        logger.warning("Image reply delivery failed, sending text", extra={"context": {"jid": jid}})
    return await whatsapp.send_text(jid, reply.text or "")


@router.post("/webhook", response_model=WebhookResponse, response_model_exclude_none=True)
async def handle_webhook(request: WebhookRequest, runtime: Runtime = Depends(get_runtime)):
    """Handle one inbound WhatsApp message from the gateway and send the answer back."""
    body = request.body
    metadata = body.metadata
    jid = (metadata.remoteJid or metadata.sender) if metadata else None
    if not jid:
        return WebhookResponse(success=False, message="Missing sender")

    if _is_ignored_chat(jid, body):
        logger.debug("Ignoring group/broadcast message", extra={"context": {"jid": jid}})
        return WebhookResponse(success=True, message="Ignored")

    text = (body.message or "").strip()
    media = _extract_media_info(body)
    if media is None and not text:
        return WebhookResponse(success=True, message="Empty message ignored")

    attachment = None
    if media is not None:
        data, error = await _download_media_bytes(
            media,
            runtime.settings.media_max_bytes,
            runtime.settings.media_download_timeout_seconds,
        )
        if error or not data:
            logger.warning(
                "Inbound media unavailable",
                extra={"context": {"jid": jid, "media_type": media.media_type, "error": error}},
            )
            await runtime.whatsapp.send_text(jid, replies.reply(replies.TRANSIENT, detect_language(text)))
            return WebhookResponse(success=False, message=f"Media unavailable: {error}")
        attachment = Attachment(
            kind=media.media_type,
            data=data,
            mime_type=media.mime,
            filename=media.file_name,
        )

    async def notify(progress: str) -> None:
        await runtime.whatsapp.send_text(jid, progress)

    reply = await runtime.dispatcher.handle(
        InboundMessage(sender_id=_sender_id(jid), text=text, attachment=attachment),
        Channel.WHATSAPP,
        notify,
    )
    delivered = await _deliver(runtime.whatsapp, jid, reply)
    return WebhookResponse(
        success=True,
        message="Processed",
        route=reply.route,
        status=reply.status.value,
        delivered=delivered,
    )
