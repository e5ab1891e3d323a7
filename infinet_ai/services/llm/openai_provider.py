from typing import Optional

import httpx

from infinet_ai.errors import EmptyResponseError, ProviderError
from infinet_ai.logging_config import get_logger
from infinet_ai.services.llm.base import (
    Capability,
    GenerationProvider,
    GenerationRequest,
    GenerationResult,
    TextPayload,
    history_messages,
)

logger = get_logger("llm.openai")


class OpenAICompatibleProvider(GenerationProvider):
    """Chat completions over the OpenAI wire format."""

    name = "openai"
    base_url = "https://api.openai.com/v1"

    def __init__(
        self,
        api_key: str,
        default_model: str,
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

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=timeout, transport=self._transport)

    def _headers(self) -> dict:
        return {"Authorization": f"Bearer {self.api_key}"}

    def _raise_for_status(self, response: httpx.Response, operation: str) -> None:
        if response.status_code != 200:
            logger.warning(
                f"{self.name} {operation} error",
                extra={"context": {"status": response.status_code, "body": response.text[:300]}},
            )
            raise ProviderError.from_response(self.name, response.status_code, response.text)

    async def generate(self, request: GenerationRequest, *, timeout_seconds: float) -> GenerationResult:
        if not isinstance(request.payload, TextPayload):
            raise ProviderError(
                f"{self.name} chat accepts text payloads only",
                status_code=415,
                provider=self.name,
            )
        return await self.chat(request, timeout_seconds=timeout_seconds)

    async def chat(self, request: GenerationRequest, *, timeout_seconds: float) -> GenerationResult:
        messages = [{"role": "system", "content": request.instruction}]
        messages.extend(history_messages(request.history))
        messages.append({"role": "user", "content": request.text})

        payload = {
            "model": self.default_model,
            "messages": messages,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        logger.debug(f"{self.name} request: model={self.default_model}, messages_count={len(messages)}")

        async with self._client(timeout_seconds) as client:
            response = await client.post(f"{self.base_url}/chat/completions", headers=self._headers(), json=payload)
        self._raise_for_status(response, "chat")

        data = response.json()
        content = ""
        if data.get("choices"):
            content = (data["choices"][0].get("message") or {}).get("content") or ""
        if not content.strip():
            raise EmptyResponseError(f"{self.name} returned an empty completion", provider=self.name)

        return GenerationResult(
            model=data.get("model", self.default_model),
            text=content,
            raw=data,
            usage=data.get("usage"),
        )


class OpenAIProvider(OpenAICompatibleProvider):
    """OpenAI: chat, DALL-E images, Whisper transcription and TTS."""

    def __init__(
        self,
        api_key: str,
        default_model: str = "gpt-4o-mini",
        *,
        image_model: str = "dall-e-3",
        image_size: str = "1024x1024",
        image_quality: str = "standard",
        transcription_model: str = "whisper-1",
        tts_model: str = "tts-1",
        **kwargs,
    ):
        super().__init__(api_key, default_model, **kwargs)
        self.image_model = image_model
        self.image_size = image_size
        self.image_quality = image_quality
        self.transcription_model = transcription_model
        self.tts_model = tts_model

    async def generate(self, request: GenerationRequest, *, timeout_seconds: float) -> GenerationResult:
        if request.capability == Capability.TEXT_TO_IMAGE:
            return await self.generate_image(request.text, timeout_seconds=timeout_seconds)
        return await super().generate(request, timeout_seconds=timeout_seconds)

    async def generate_image(self, prompt: str, *, timeout_seconds: float) -> GenerationResult:
        payload = {
            "model": self.image_model,
            "prompt": prompt,
            "n": 1,
            "size": self.image_size,
            "quality": self.image_quality,
            "response_format": "url",
        }
        async with self._client(timeout_seconds) as client:
            response = await client.post(f"{self.base_url}/images/generations", headers=self._headers(), json=payload)
        self._raise_for_status(response, "image generation")

        data = response.json()
        items = data.get("data") or []
        url = items[0].get("url") if items else None
        if not url:
            raise EmptyResponseError("openai returned no image url", provider=self.name)
        return GenerationResult(model=self.image_model, image_url=url, raw=data)

    async def transcribe_audio(
        self,
        *,
        audio_bytes: bytes,
        filename: str,
        mime_type: Optional[str] = None,
        language: Optional[str] = None,
        timeout_seconds: float = 30.0,
    ) -> str:
        """Transcribe audio with Whisper. Returns stripped text, possibly empty."""
        if not audio_bytes:
            raise ValueError("audio_bytes is empty")

        files = {"file": (filename or "audio", audio_bytes, mime_type or "application/octet-stream")}
        data = {"model": self.transcription_model, "response_format": "text"}
        if language:
            data["language"] = language

        async with self._client(timeout_seconds) as client:
            response = await client.post(
                f"{self.base_url}/audio/transcriptions",
                headers=self._headers(),
                files=files,
                data=data,
            )
        self._raise_for_status(response, "transcription")

        transcript = (response.text or "").strip()
        if not transcript:
            logger.warning("OpenAI transcription returned empty text")
        return transcript

    async def synthesize_speech(self, text: str, *, voice: str, timeout_seconds: float = 30.0) -> bytes:
        payload = {"model": self.tts_model, "voice": voice, "input": text, "response_format": "mp3"}
        async with self._client(timeout_seconds) as client:
            response = await client.post(f"{self.base_url}/audio/speech", headers=self._headers(), json=payload)
        self._raise_for_status(response, "speech")
        if not response.content:
            raise EmptyResponseError("openai returned empty audio", provider=self.name)
        return response.content
