"""Speech-to-text with a secondary provider, and text-to-speech."""

import asyncio
import time
from typing import Optional, Protocol

from infinet_ai.logging_config import get_logger
from infinet_ai.services.language_service import Language
from infinet_ai.services.llm import ElevenLabsTranscriber, OpenAIProvider
from infinet_ai.services.result import Result

logger = get_logger("speech_service")

AUDIO_EXTENSIONS = {
    "audio/ogg": "ogg",
    "audio/opus": "ogg",
    "audio/mpeg": "mp3",
    "audio/mp3": "mp3",
    "audio/mp4": "m4a",
    "audio/m4a": "m4a",
    "audio/x-m4a": "m4a",
    "audio/wav": "wav",
    "audio/x-wav": "wav",
    "audio/webm": "webm",
    "audio/aac": "aac",
    "audio/amr": "amr",
}
# Less than this left on the shared deadline and the fallback is not started.
MIN_FALLBACK_SECONDS = 1.0


class Transcriber(Protocol):
    name: str

    async def transcribe_audio(
        self,
        *,
        audio_bytes: bytes,
        filename: str,
        mime_type: Optional[str] = None,
        language: Optional[str] = None,
        timeout_seconds: float = 30.0,
    ) -> str: ...


def audio_filename(mime_type: Optional[str]) -> str:
    base = (mime_type or "").split(";")[0].strip().lower()
    return f"voice.{AUDIO_EXTENSIONS.get(base, 'ogg')}"


class SpeechService:
    def __init__(
        self,
        primary: Optional[Transcriber] = None,
        fallback: Optional[Transcriber] = None,
        tts: Optional[OpenAIProvider] = None,
        *,
        voices: Optional[dict[Language, str]] = None,
        min_chars: int = 1,
    ):
        self.primary = primary
        self.fallback = fallback if fallback is not primary else None
        self.tts = tts
        self.voices = voices or {Language.DEFAULT: "alloy", Language.ALTERNATE: "nova"}
        self.min_chars = min_chars

    @classmethod
    def from_providers(
        cls,
        openai: Optional[OpenAIProvider],
        elevenlabs: Optional[ElevenLabsTranscriber],
        *,
        default_voice: str = "alloy",
        alternate_voice: str = "nova",
    ) -> "SpeechService":
        return cls(
            primary=openai or elevenlabs,
            fallback=elevenlabs if openai else None,
            tts=openai,
            voices={Language.DEFAULT: default_voice, Language.ALTERNATE: alternate_voice},
        )

    @property
    def can_transcribe(self) -> bool:
        return self.primary is not None

    @property
    def can_synthesize(self) -> bool:
        return self.tts is not None

    def _valid(self, transcript: Optional[str]) -> bool:
        return bool(transcript and len(transcript.strip()) >= self.min_chars)

    async def _attempt(
        self,
        transcriber: Transcriber,
        audio: bytes,
        mime_type: Optional[str],
        timeout_seconds: float,
    ) -> tuple[Optional[str], Optional[str]]:
        started = time.monotonic()
        try:
            transcript = await asyncio.wait_for(
                transcriber.transcribe_audio(
                    audio_bytes=audio,
                    filename=audio_filename(mime_type),
                    mime_type=mime_type,
                    timeout_seconds=timeout_seconds,
                ),
                timeout=timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(f"{transcriber.name} transcription timed out after {timeout_seconds:.1f}s")
            return None, "timeout"
        except Exception as exc:
            logger.warning(f"{transcriber.name} transcription failed: {exc}")
            return None, f"{transcriber.name}_error"
        finally:
            logger.info(
                "Timing",
                extra={
                    "context": {
                        "stage": f"asr_{transcriber.name}",
                        "elapsed_ms": round((time.monotonic() - started) * 1000, 2),
                    }
                },
            )
        cleaned = (transcript or "").strip()
        return cleaned or None, None

    async def transcribe(
        self,
        audio: bytes,
        mime_type: Optional[str],
        *,
        timeout_seconds: float = 300.0,
    ) -> Result[str]:
        """Transcribe with the primary provider, then the fallback.

        Both attempts share ``timeout_seconds``; the fallback only gets what
        the primary left over.

        Error codes: ``not_configured``, ``empty_transcript``, ``timeout``,
        ``<provider>_error``. Only ``empty_transcript`` means the audio was
        heard and nothing usable came out of it.
        """
        if self.primary is None:
            return Result.failure("No transcription provider configured", code="not_configured")

        deadline = time.monotonic() + timeout_seconds
        transcript, error = await self._attempt(self.primary, audio, mime_type, timeout_seconds)
        if self._valid(transcript):
            return Result.success(transcript)

        remaining = deadline - time.monotonic()
        if self.fallback is not None and remaining < MIN_FALLBACK_SECONDS:
            logger.warning(
                "ASR deadline spent before fallback",
                extra={"context": {"primary": self.primary.name, "fallback": self.fallback.name}},
            )
            return Result.failure("Transcription failed: timeout", code="timeout")

        if self.fallback is not None:
            logger.info(
                "ASR primary failed; trying fallback",
                extra={
                    "context": {
                        "primary": self.primary.name,
                        "fallback": self.fallback.name,
                        "status": error or "empty_transcript",
                    }
                },
            )
            transcript, error = await self._attempt(self.fallback, audio, mime_type, remaining)
            if self._valid(transcript):
                return Result.success(transcript)

        code = error or "empty_transcript"
        return Result.failure(f"Transcription failed: {code}", code=code)

    async def synthesize(self, text: str, language: Language, *, timeout_seconds: float = 60.0) -> Result[bytes]:
        """MP3 speech for ``text``; the voice follows the reply language."""
        if self.tts is None:
            return Result.failure("No speech provider configured", code="not_configured")
        voice = self.voices.get(language) or self.voices[Language.DEFAULT]
        try:
            audio = await self.tts.synthesize_speech(text, voice=voice, timeout_seconds=timeout_seconds)
        except Exception as exc:
            logger.warning(f"Speech synthesis failed: {exc}")
            return Result.failure(str(exc), code="tts_error")
        return Result.success(audio)
