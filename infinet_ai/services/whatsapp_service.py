"""Outbound delivery through the WhatsApp gateway HTTP API."""

import base64
from typing import Optional

import httpx

from infinet_ai.config import Settings
from infinet_ai.logging_config import get_logger
from infinet_ai.services.alert_service import alert_critical

logger = get_logger("whatsapp_service")


class WhatsAppGateway:
    def __init__(
        self,
        base_url: Optional[str],
        token: Optional[str],
        *,
        timeout_seconds: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or "").rstrip("/")
        self.token = token
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "WhatsAppGateway":
        return cls(settings.whatsapp_gateway_url, settings.whatsapp_gateway_token)

    @property
    def configured(self) -> bool:
        return bool(self.base_url and self.token)

    async def _post(self, path: str, jid: str, payload: dict) -> bool:
        if not self.configured:
            logger.error("WhatsApp gateway is not configured (WHATSAPP_GATEWAY_URL / WHATSAPP_GATEWAY_TOKEN)")
            await alert_critical("WhatsApp send failed", {"jid": jid, "error": "missing_gateway_config"})
            return False

        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
                response = await client.post(
                    f"{self.base_url}/{path}",
                    params={"token": self.token},
                    json={"jid": jid, **payload},
                )
            logger.info(
                f"Gateway response: status={response.status_code}, jid={jid}, body={response.text[:200]}"
            )
            return response.status_code == 200
        except httpx.HTTPError as e:
            logger.error(f"Error sending WhatsApp message: {e}")
            await alert_critical("WhatsApp send failed", {"jid": jid, "error": str(e)})
            return False

    async def send_text(self, jid: str, text: str) -> bool:
        if not text:
            return False
        return await self._post("send-text", jid, {"msg": text})

    async def send_image(self, jid: str, data: bytes, mime_type: str, caption: str = "") -> bool:
        return await self._post(
            "send-media",
            jid,
            {
                "type": "image",
                "mimetype": mime_type,
                "base64": base64.b64encode(data).decode("ascii"),
                "caption": caption,
            },
        )

    async def send_audio(self, jid: str, data: bytes, mime_type: str = "audio/mpeg") -> bool:
        return await self._post(
            "send-media",
            jid,
            {
                "type": "audio",
                "mimetype": mime_type,
                "base64": base64.b64encode(data).decode("ascii"),
                "ptt": True,
            },
        )
