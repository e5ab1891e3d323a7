"""Builds the shared, immutable service graph once per process."""

from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from infinet_ai.config import Settings, get_settings
from infinet_ai.database import create_db_engine, create_session_factory
from infinet_ai.logging_config import get_logger
from infinet_ai.services import rate_limit_service
from infinet_ai.services.chat_service import ChatPipeline
from infinet_ai.services.dispatch_service import ConversationDispatcher
from infinet_ai.services.gateway import FallbackGateway
from infinet_ai.services.image_service import ImagePipeline
from infinet_ai.services.llm import ElevenLabsTranscriber, OpenAIProvider
from infinet_ai.services.provider_pool import ProviderPool
from infinet_ai.services.rate_limit_service import DailyLimiter
from infinet_ai.services.session_store import InMemorySessionStore, SessionStore, SqlSessionStore
from infinet_ai.services.speech_service import SpeechService
from infinet_ai.services.voice_service import VoicePipeline
from infinet_ai.services.whatsapp_service import WhatsAppGateway

logger = get_logger("runtime")


@dataclass
class Runtime:
    settings: Settings
    pool: ProviderPool
    gateway: FallbackGateway
    store: SessionStore
    limiter: DailyLimiter
    speech: SpeechService
    chat: ChatPipeline
    images: ImagePipeline
    voice: VoicePipeline
    dispatcher: ConversationDispatcher
    whatsapp: WhatsAppGateway


def build_store(settings: Settings) -> SessionStore:
    if settings.session_backend.lower() == "sql":
        return SqlSessionStore(create_session_factory(create_db_engine(settings.database_url)))
    return InMemorySessionStore()


def build_speech(settings: Settings) -> SpeechService:
    openai = None
    if settings.openai_api_key:
        openai = OpenAIProvider(
            settings.openai_api_key,
            transcription_model=settings.transcription_model,
            tts_model=settings.tts_model,
        )
    elevenlabs = None
    if settings.elevenlabs_api_key:
        elevenlabs = ElevenLabsTranscriber(settings.elevenlabs_api_key, settings.elevenlabs_model)
    return SpeechService.from_providers(
        openai,
        elevenlabs,
        default_voice=settings.tts_voice_default,
        alternate_voice=settings.tts_voice_alternate,
    )


def build_runtime(
    settings: Optional[Settings] = None,
    *,
    pool: Optional[ProviderPool] = None,
    store: Optional[SessionStore] = None,
    speech: Optional[SpeechService] = None,
    whatsapp: Optional[WhatsAppGateway] = None,
) -> Runtime:
    settings = settings or get_settings()
    pool = pool if pool is not None else ProviderPool.from_settings(settings)
    store = store if store is not None else build_store(settings)
    speech = speech if speech is not None else build_speech(settings)
    gateway = FallbackGateway(pool, default_deadline_seconds=settings.interactive_deadline_seconds)
    limiter = DailyLimiter(
        {
            rate_limit_service.TEXT_TO_IMAGE: settings.daily_text_to_image_limit,
            rate_limit_service.IMAGE_TO_IMAGE: settings.daily_image_to_image_limit,
        }
    )

    images = ImagePipeline(
        gateway,
        store,
        limiter,
        deadline_seconds=settings.interactive_deadline_seconds,
        transform_deadline_seconds=settings.transcription_deadline_seconds,
        download_timeout_seconds=settings.media_download_timeout_seconds,
        image_dimension=settings.image_max_dimension,
        max_download_bytes=settings.media_max_bytes,
        max_input_pixels=settings.image_max_input_pixels,
    )
    chat = ChatPipeline(
        gateway,
        store,
        history_turns=settings.history_turns,
        deadline_seconds=settings.interactive_deadline_seconds,
        images=images,
    )
    voice = VoicePipeline(
        gateway,
        store,
        speech,
        images,
        history_turns=settings.history_turns,
        deadline_seconds=settings.transcription_deadline_seconds,
        backup_transcription_seconds=settings.backup_transcription_seconds,
    )
    dispatcher = ConversationDispatcher(store, chat, images, voice)

    logger.info(
        "Runtime built",
        extra={"context": {"session_backend": settings.session_backend, "providers": pool.summary()}},
    )
    return Runtime(
        settings=settings,
        pool=pool,
        gateway=gateway,
        store=store,
        limiter=limiter,
        speech=speech,
        chat=chat,
        images=images,
        voice=voice,
        dispatcher=dispatcher,
        whatsapp=whatsapp if whatsapp is not None else WhatsAppGateway.from_settings(settings),
    )


@lru_cache
def get_runtime() -> Runtime:
    """FastAPI dependency; tests override it with a runtime built from fakes."""
    return build_runtime()
