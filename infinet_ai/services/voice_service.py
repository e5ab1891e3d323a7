"""Voice-note pipeline: native audio first, transcribe-then-generate as fallback."""

from enum import Enum
from typing import Optional

from infinet_ai.errors import NativeAudioUnavailable
from infinet_ai.logging_config import get_logger
from infinet_ai.services import replies
from infinet_ai.services.conversation import (
    Attachment,
    ConversationContext,
    MediaPart,
    OutboundReply,
    ReplyStatus,
    failure_reply,
)
from infinet_ai.services.gateway import FallbackGateway
from infinet_ai.services.image_service import ImagePipeline
from infinet_ai.services.language_service import (
    ChannelDialect,
    InstructionContext,
    Language,
    build_instruction,
    detect_language,
    post_process,
)
from infinet_ai.services.llm import AudioPayload, Capability, GenerationRequest, TextPayload
from infinet_ai.services.provider_pool import ProviderHandle
from infinet_ai.services.result import GenerationOutcome
from infinet_ai.services.router_service import Route, is_image_generation_request
from infinet_ai.services.session_store import SessionStore
from infinet_ai.services.speech_service import SpeechService

logger = get_logger("voice_service")

VOICE_PLACEHOLDER = "[Voice message]"


class VoiceState(str, Enum):
    RECEIVED = "received"
    NATIVE_ATTEMPT = "native_attempt"
    NATIVE_SUCCESS = "native_success"
    NEEDS_FALLBACK = "needs_fallback"
    FALLBACK_TRANSCRIBE = "fallback_transcribe"
    FALLBACK_GENERATE = "fallback_generate"
    SYNTHESIZE = "synthesize"
    DELIVERED = "delivered"
    DELIVERED_AS_TEXT = "delivered_as_text"
    REROUTED_TO_IMAGE = "rerouted_to_image"
    REJECTED = "rejected"


VOICE_TRANSITIONS = {
    VoiceState.RECEIVED: {VoiceState.NATIVE_ATTEMPT, VoiceState.NEEDS_FALLBACK, VoiceState.REJECTED},
    VoiceState.NATIVE_ATTEMPT: {VoiceState.NATIVE_SUCCESS, VoiceState.NEEDS_FALLBACK},
    VoiceState.NATIVE_SUCCESS: {VoiceState.SYNTHESIZE, VoiceState.REROUTED_TO_IMAGE},
    VoiceState.NEEDS_FALLBACK: {VoiceState.FALLBACK_TRANSCRIBE, VoiceState.REJECTED},
    VoiceState.FALLBACK_TRANSCRIBE: {VoiceState.FALLBACK_GENERATE, VoiceState.REROUTED_TO_IMAGE, VoiceState.REJECTED},
    VoiceState.FALLBACK_GENERATE: {VoiceState.SYNTHESIZE, VoiceState.REJECTED},
    VoiceState.SYNTHESIZE: {VoiceState.DELIVERED, VoiceState.DELIVERED_AS_TEXT},
    VoiceState.DELIVERED: set(),
    VoiceState.DELIVERED_AS_TEXT: set(),
    VoiceState.REROUTED_TO_IMAGE: set(),
    VoiceState.REJECTED: set(),
}


class InvalidVoiceTransition(Exception):
    pass


class VoiceRun:
    """Tracks one voice note through the pipeline states."""

    def __init__(self, context: ConversationContext):
        self.context = context
        self.state = VoiceState.RECEIVED
        self.history: list[VoiceState] = [VoiceState.RECEIVED]
        self.transcript: Optional[str] = None

    def move(self, target: VoiceState) -> None:
        if target not in VOICE_TRANSITIONS[self.state]:
            raise InvalidVoiceTransition(f"Cannot go from {self.state.value} to {target.value}")
        logger.debug(
            f"Voice state {self.state.value} -> {target.value}",
            extra={"context": {"session_key": self.context.key}},
        )
        self.state = target
        self.history.append(target)

    def finish(self, reply: OutboundReply) -> OutboundReply:
        reply.route = reply.route or Route.VOICE.value
        reply.meta.setdefault("voice_states", [state.value for state in self.history])
        if self.transcript:
            reply.meta.setdefault("transcript", self.transcript)
        return reply


def _audio_capable(handle: ProviderHandle) -> bool:
    return handle.provider.supports_audio


def _text_only(handle: ProviderHandle) -> bool:
    return not handle.provider.supports_audio


class VoicePipeline:
    def __init__(
        self,
        gateway: FallbackGateway,
        store: SessionStore,
        speech: SpeechService,
        images: Optional[ImagePipeline] = None,
        *,
        history_turns: int = 6,
        deadline_seconds: float = 300.0,
        backup_transcription_seconds: float = 30.0,
        base_instruction: Optional[str] = None,
    ):
        self.gateway = gateway
        self.store = store
        self.speech = speech
        self.images = images
        self.history_turns = history_turns
        self.deadline_seconds = deadline_seconds
        self.backup_transcription_seconds = backup_transcription_seconds
        self.base_instruction = base_instruction

    def _native_available(self) -> bool:
        return any(_audio_capable(handle) for handle in self.gateway.pool.handles(Capability.VOICE))

    async def run(self, attachment: Attachment, context: ConversationContext) -> OutboundReply:
        run = VoiceRun(context)
        native = self._native_available()
        if not native and not self.speech.can_transcribe:
            run.move(VoiceState.REJECTED)
            return run.finish(
                OutboundReply(text=replies.reply(replies.VOICE_UNAVAILABLE), status=ReplyStatus.UNAVAILABLE)
            )

        await context.progress(replies.reply(replies.VOICE_PROGRESS))
        history = tuple(await self.store.recent(context.key, self.history_turns))

        outcome: Optional[GenerationOutcome] = None
        if native:
            run.move(VoiceState.NATIVE_ATTEMPT)
            try:
                outcome = await self._native(attachment, history, context)
                run.move(VoiceState.NATIVE_SUCCESS)
            except NativeAudioUnavailable as signal:
                logger.info(
                    "Native audio unavailable; falling back to transcription",
                    extra={"context": {"session_key": context.key, "cause": str(signal.cause)[:200]}},
                )
                run.move(VoiceState.NEEDS_FALLBACK)
        else:
            run.move(VoiceState.NEEDS_FALLBACK)

        if run.state == VoiceState.NATIVE_SUCCESS:
            transcript = await self._backup_transcript(attachment)
            run.transcript = transcript
            if transcript and self.images is not None and is_image_generation_request(transcript):
                run.move(VoiceState.REROUTED_TO_IMAGE)
                return run.finish(await self.images.text_to_image(transcript, context))
        else:
            if not self.speech.can_transcribe:
                run.move(VoiceState.REJECTED)
                return run.finish(
                    OutboundReply(
                        text=replies.reply(replies.VOICE_FALLBACK_UNAVAILABLE),
                        status=ReplyStatus.UNAVAILABLE,
                    )
                )
            run.move(VoiceState.FALLBACK_TRANSCRIBE)
            transcription = await self.speech.transcribe(
                attachment.data, attachment.mime_type, timeout_seconds=self.deadline_seconds
            )
            if not transcription.ok:
                logger.warning(
                    "Voice transcription failed",
                    extra={"context": {"session_key": context.key, "code": transcription.error_code}},
                )
                run.move(VoiceState.REJECTED)
                if transcription.error_code == "empty_transcript":
                    return run.finish(
                        OutboundReply(text=replies.reply(replies.VOICE_NOT_UNDERSTOOD), status=ReplyStatus.REJECTED)
                    )
                return run.finish(OutboundReply(text=replies.reply(replies.TRANSIENT), status=ReplyStatus.TRANSIENT))
            run.transcript = transcription.value
            if self.images is not None and is_image_generation_request(run.transcript):
                run.move(VoiceState.REROUTED_TO_IMAGE)
                return run.finish(await self.images.text_to_image(run.transcript, context))

            run.move(VoiceState.FALLBACK_GENERATE)
            outcome = await self._generate_from_transcript(run.transcript, history, context)
            if not outcome.ok:
                language = detect_language(run.transcript)
                reply = await failure_reply(
                    outcome,
                    language,
                    unavailable_key=replies.VOICE_FALLBACK_UNAVAILABLE,
                    context=context,
                )
                run.move(VoiceState.REJECTED)
                return run.finish(reply)

        raw = outcome.text
        await self.store.append_exchange(context.key, run.transcript or VOICE_PLACEHOLDER, raw)

        run.move(VoiceState.SYNTHESIZE)
        reply_language = detect_language(raw)
        spoken = post_process(raw, ChannelDialect.PLAIN)
        speech = await self.speech.synthesize(spoken, reply_language) if self.speech.can_synthesize else None
        if speech is not None and speech.ok:
            run.move(VoiceState.DELIVERED)
            return run.finish(
                OutboundReply(
                    text=post_process(raw, context.dialect),
                    audio=MediaPart(data=speech.value, mime_type="audio/mpeg"),
                    provider_tier=outcome.provider_tier,
                    meta={"provider": outcome.provider, "language": reply_language.value},
                )
            )

        run.move(VoiceState.DELIVERED_AS_TEXT)
        return run.finish(
            OutboundReply(
                text=post_process(raw, context.dialect),
                provider_tier=outcome.provider_tier,
                meta={"provider": outcome.provider, "language": reply_language.value},
            )
        )

    async def _native(
        self,
        attachment: Attachment,
        history: tuple,
        context: ConversationContext,
    ) -> GenerationOutcome:
        instruction = build_instruction(
            self.base_instruction,
            None,
            InstructionContext(dialect=context.dialect, voice=True),
        )
        request = GenerationRequest(
            capability=Capability.VOICE,
            instruction=instruction,
            payload=AudioPayload(data=attachment.data, mime_type=attachment.mime_type),
            history=history,
        )
        outcome = await self.gateway.generate(
            Capability.VOICE,
            request,
            deadline_seconds=self.deadline_seconds,
            accept=_audio_capable,
        )
        if not outcome.ok:
            raise NativeAudioUnavailable(outcome.cause)
        return outcome

    async def _backup_transcript(self, attachment: Attachment) -> Optional[str]:
        """Short transcription used only to spot image requests and label history."""
        if not self.speech.can_transcribe:
            return None
        result = await self.speech.transcribe(
            attachment.data,
            attachment.mime_type,
            timeout_seconds=self.backup_transcription_seconds,
        )
        return result.unwrap_or(None)

    async def _generate_from_transcript(
        self,
        transcript: str,
        history: tuple,
        context: ConversationContext,
    ) -> GenerationOutcome:
        language: Language = detect_language(transcript)
        instruction = build_instruction(
            self.base_instruction,
            language,
            InstructionContext(user_text=transcript, dialect=context.dialect, voice=True),
        )
        request = GenerationRequest(
            capability=Capability.VOICE,
            instruction=instruction,
            payload=TextPayload(transcript),
            history=history,
        )
        return await self.gateway.generate(
            Capability.VOICE,
            request,
            deadline_seconds=self.deadline_seconds,
            accept=_text_only,
        )
