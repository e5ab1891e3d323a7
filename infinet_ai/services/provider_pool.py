"""Immutable, tier-ordered provider handles per capability."""

from dataclasses import dataclass
from typing import Iterable, Mapping, Optional

from infinet_ai.config import Settings
from infinet_ai.logging_config import get_logger
from infinet_ai.services.llm import (
    Capability,
    GeminiProvider,
    GenerationProvider,
    GroqProvider,
    OpenAIProvider,
    ReplicateProvider,
)

logger = get_logger("provider_pool")


@dataclass(frozen=True)
class ProviderHandle:
    capability: Capability
    tier: int
    credential: str
    provider: GenerationProvider

    @property
    def name(self) -> str:
        return f"{self.provider.name}#{self.tier}"

    def __repr__(self) -> str:
        return f"ProviderHandle({self.capability.value}, tier={self.tier}, provider={self.provider.name})"


class ProviderPool:
    """Ordered handles per capability, built once at startup and shared."""

    def __init__(self, tiers: Mapping[Capability, Iterable[tuple[str, GenerationProvider]]]):
        pools: dict[Capability, tuple[ProviderHandle, ...]] = {}
        for capability in Capability:
            entries = list(tiers.get(capability, ()))
            pools[capability] = tuple(
                ProviderHandle(capability=capability, tier=index, credential=credential, provider=provider)
                for index, (credential, provider) in enumerate(entries, start=1)
            )
        self._pools = pools

    def handles(self, capability: Capability) -> tuple[ProviderHandle, ...]:
        return self._pools.get(capability, ())

    def is_enabled(self, capability: Capability) -> bool:
        return bool(self._pools.get(capability))

    def summary(self) -> dict[str, list[str]]:
        return {capability.value: [h.provider.name for h in handles] for capability, handles in self._pools.items()}

    @classmethod
    def from_settings(cls, settings: Settings) -> "ProviderPool":
        """Build the pool from credentials; missing credentials are skipped."""

        def gemini(key: Optional[str]):
            if key:
                return key, GeminiProvider(
                    key,
                    settings.gemini_model,
                    temperature=settings.temperature,
                    max_tokens=settings.max_output_tokens,
                )
            return None

        def groq(key: Optional[str]):
            if key:
                return key, GroqProvider(
                    key,
                    settings.groq_model,
                    temperature=settings.temperature,
                    max_tokens=settings.max_output_tokens,
                )
            return None

        chat = [
            gemini(settings.gemini_api_key),
            gemini(settings.gemini_api_key_chat_fallback),
            groq(settings.groq_api_key_chat_fallback2),
            groq(settings.groq_api_key_chat_fallback3),
        ]
        voice = [
            gemini(settings.gemini_api_key_voice),
            gemini(settings.gemini_api_key_voice_fallback),
            groq(settings.groq_api_key_voice_fallback2),
            groq(settings.groq_api_key_voice_fallback3),
        ]

        text_to_image = []
        if settings.openai_api_key:
            text_to_image.append(
                (
                    settings.openai_api_key,
                    OpenAIProvider(
                        settings.openai_api_key,
                        image_model=settings.image_model,
                        image_size=settings.image_size,
                        image_quality=settings.image_quality,
                    ),
                )
            )

        image_to_image = []
        if settings.replicate_api_token:
            image_to_image.append(
                (
                    settings.replicate_api_token,
                    ReplicateProvider(
                        settings.replicate_api_token,
                        settings.replicate_model,
                        poll_interval_seconds=settings.replicate_poll_interval_seconds,
                    ),
                )
            )

        pool = cls(
            {
                Capability.CHAT: [entry for entry in chat if entry],
                Capability.VOICE: [entry for entry in voice if entry],
                Capability.TEXT_TO_IMAGE: text_to_image,
                Capability.IMAGE_TO_IMAGE: image_to_image,
            }
        )
        logger.info("Provider pool built", extra={"context": pool.summary()})
        return pool
