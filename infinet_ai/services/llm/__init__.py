from infinet_ai.services.llm.base import (
    AudioPayload,
    Capability,
    GenerationProvider,
    GenerationRequest,
    GenerationResult,
    ImagePayload,
    TextPayload,
)
from infinet_ai.services.llm.elevenlabs_provider import ElevenLabsTranscriber
from infinet_ai.services.llm.gemini_provider import GeminiProvider
from infinet_ai.services.llm.groq_provider import GroqProvider
from infinet_ai.services.llm.openai_provider import OpenAIProvider
from infinet_ai.services.llm.replicate_provider import ReplicateProvider

__all__ = [
    "AudioPayload",
    "Capability",
    "ElevenLabsTranscriber",
    "GeminiProvider",
    "GenerationProvider",
    "GenerationRequest",
    "GenerationResult",
    "GroqProvider",
    "ImagePayload",
    "OpenAIProvider",
    "ReplicateProvider",
    "TextPayload",
]
