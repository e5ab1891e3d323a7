import base64
from typing import Optional

import httpx

from infinet_ai.errors import EmptyResponseError, ProviderError
from infinet_ai.logging_config import get_logger
from infinet_ai.services.llm.base import (
    AudioPayload,
    GenerationProvider,
    GenerationRequest,
    GenerationResult,
    ImagePayload,
    TextPayload,
)

logger = get_logger("llm.gemini")

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"


def normalize_audio_mime(mime_type: Optional[str]) -> str:
    """Map channel audio types onto ones the Gemini audio input accepts."""
    mime = (mime_type or "").split(";")[0].strip().lower()
    if not mime:
        return "audio/webm"
    if "ogg" in mime or "opus" in mime:
        return "audio/webm"
    if mime in {"audio/mpeg", "audio/mp3"}:
        return "audio/mp3"
    return mime


class GeminiProvider(GenerationProvider):
    """Google Gemini generateContent over REST, with inline audio support."""

    name = "gemini"
    supports_audio = True

    def __init__(
        self,
        api_key: str,
        default_model: str = "gemini-2.5-flash",
        *,
        temperature: float = 0.7,
        max_tokens: int = 2048,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.default_model = default_model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._transport = transport

    def _user_parts(self, request: GenerationRequest) -> list[dict]:
        payload = request.payload
        if isinstance(payload, TextPayload):
            return [{"text": payload.text}]
        if isinstance(payload, AudioPayload):
            return [
                {"text": "Listen to the voice message and reply to it directly."},
                {
                    "inline_data": {
                        "mime_type": normalize_audio_mime(payload.mime_type),
                        "data": base64.b64encode(payload.data).decode("ascii"),
                    }
                },
            ]
        if isinstance(payload, ImagePayload):
            return [
                {"text": payload.prompt},
                {
                    "inline_data": {
                        "mime_type": payload.mime_type,
                        "data": base64.b64encode(payload.data).decode("ascii"),
                    }
                },
            ]
        raise ProviderError(f"Unsupported payload {type(payload).__name__}", status_code=415, provider=self.name)

    def build_body(self, request: GenerationRequest) -> dict:
        contents = [
            {
                "role": "model" if turn.role == "assistant" else "user",
                "parts": [{"text": turn.content}],
            }
            for turn in request.history
        ]
        contents.append({"role": "user", "parts": self._user_parts(request)})
        body = {
            "contents": contents,
            "generationConfig": {
                "temperature": self.temperature,
                "maxOutputTokens": self.max_tokens,
            },
        }
        if request.instruction:
            body["systemInstruction"] = {"parts": [{"text": request.instruction}]}
        return body

    async def generate(self, request: GenerationRequest, *, timeout_seconds: float) -> GenerationResult:
        url = f"{GEMINI_BASE_URL}/{self.default_model}:generateContent"
        logger.debug(
            f"Gemini request: model={self.default_model}, history={len(request.history)}, "
            f"payload={type(request.payload).__name__}"
        )

        async with httpx.AsyncClient(timeout=timeout_seconds, transport=self._transport) as client:
            response = await client.post(
                url,
                headers={"x-goog-api-key": self.api_key, "Content-Type": "application/json"},
                json=self.build_body(request),
            )

        if response.status_code != 200:
            logger.warning(
                "Gemini error",
                extra={"context": {"status": response.status_code, "body": response.text[:300]}},
            )
            raise ProviderError.from_response(self.name, response.status_code, response.text)

        data = response.json()
        candidates = data.get("candidates") or []
        parts = (candidates[0].get("content") or {}).get("parts") or [] if candidates else []
        text = "".join(part.get("text", "") for part in parts)
        if not text.strip():
            block_reason = (data.get("promptFeedback") or {}).get("blockReason")
            raise EmptyResponseError(
                f"Gemini returned no text (block_reason={block_reason})",
                provider=self.name,
                body=str(block_reason) if block_reason else None,
            )

        return GenerationResult(
            model=data.get("modelVersion", self.default_model),
            text=text,
            raw=data,
            usage=data.get("usageMetadata"),
        )
