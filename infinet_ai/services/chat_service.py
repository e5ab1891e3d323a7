from typing import TYPE_CHECKING, Optional

from infinet_ai.logging_config import get_logger
from infinet_ai.services import replies
from infinet_ai.services.conversation import (
    Channel,
    ConversationContext,
    OutboundReply,
    ReplyStatus,
    failure_reply,
)
from infinet_ai.services.gateway import FallbackGateway
from infinet_ai.services.language_service import (
    InstructionContext,
    build_instruction,
    detect_language,
    filter_history,
    post_process,
)
from infinet_ai.services.llm import Capability, GenerationRequest, TextPayload
from infinet_ai.services.router_service import Route, is_image_generation_request
from infinet_ai.services.session_store import SessionStore

if TYPE_CHECKING:
    from infinet_ai.services.image_service import ImagePipeline

logger = get_logger("chat_service")


class ChatPipeline:
    def __init__(
        self,
        gateway: FallbackGateway,
        store: SessionStore,
        *,
        history_turns: int = 6,
        deadline_seconds: float = 60.0,
        base_instruction: Optional[str] = None,
        images: Optional["ImagePipeline"] = None,
    ):
        self.gateway = gateway
        self.store = store
        self.history_turns = history_turns
        self.deadline_seconds = deadline_seconds
        self.base_instruction = base_instruction
        self.images = images

    async def run(self, text: str, context: ConversationContext) -> OutboundReply:
        """Answer a text message. The caller holds the session lock."""
        if self.images is not None and is_image_generation_request(text):
            logger.info("Image request reached chat; rerouting", extra={"context": {"session_key": context.key}})
            return await self.images.text_to_image(text, context)

        language = detect_language(text)
        history = await self.store.recent(context.key, self.history_turns)
        if context.channel == Channel.WEB:
            history = filter_history(history, language)

        instruction = build_instruction(
            self.base_instruction,
            language,
            InstructionContext(user_text=text, dialect=context.dialect),
        )
        request = GenerationRequest(
            capability=Capability.CHAT,
            instruction=instruction,
            payload=TextPayload(text),
            history=tuple(history),
        )

        outcome = await self.gateway.generate(Capability.CHAT, request, deadline_seconds=self.deadline_seconds)
        if not outcome.ok:
            reply = await failure_reply(
                outcome,
                language,
                unavailable_key=replies.CHAT_UNAVAILABLE,
                context=context,
            )
            reply.route = Route.CHAT.value
            return reply

        raw = outcome.text
        await self.store.append_exchange(context.key, text, raw)
        return OutboundReply(
            text=post_process(raw, context.dialect),
            status=ReplyStatus.OK,
            route=Route.CHAT.value,
            provider_tier=outcome.provider_tier,
            meta={"provider": outcome.provider, "language": language.value},
        )
