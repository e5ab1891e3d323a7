from typing import Optional

import httpx

from infinet_ai.errors import ProviderError
from infinet_ai.logging_config import get_logger

logger = get_logger("llm.elevenlabs")

ELEVENLABS_ASR_URL = "https://api.elevenlabs.io/v1/speech-to-text"


class ElevenLabsTranscriber:
    """ElevenLabs speech-to-text, used as secondary transcription."""

    name = "elevenlabs"

    def __init__(
        self,
        api_key: str,
        model_id: str = "scribe_v1",
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.model_id = model_id
        self._transport = transport

    async def transcribe_audio(
        self,
        *,
        audio_bytes: bytes,
        filename: str,
        mime_type: Optional[str] = None,
        language: Optional[str] = None,
        timeout_seconds: float = 30.0,
    ) -> str:
        files = {"file": (filename or "audio", audio_bytes, mime_type or "application/octet-stream")}
        data: dict[str, str] = {"model_id": self.model_id}
        if language:
            data["language_code"] = language

        async with httpx.AsyncClient(timeout=timeout_seconds, transport=self._transport) as client:
            response = await client.post(
                ELEVENLABS_ASR_URL,
                headers={"xi-api-key": self.api_key},
                files=files,
                data=data,
            )
        if response.status_code != 200:
            logger.warning(f"ElevenLabs transcription error: {response.status_code} - {response.text[:200]}")
            raise ProviderError.from_response(self.name, response.status_code, response.text)

        try:
            payload = response.json()
        except ValueError:
            payload = None
        transcript = None
        if isinstance(payload, dict):
            transcript = payload.get("text") or payload.get("transcript") or payload.get("transcription")
        cleaned = (transcript or "").strip()
        if not cleaned:
            logger.warning("ElevenLabs transcription returned empty text")
        return cleaned
