"""Routes inbound messages to pipelines, one exchange per session at a time."""

import time
from typing import Optional

from infinet_ai.errors import RoutingAmbiguousError
from infinet_ai.logging_config import get_logger
from infinet_ai.services import replies
from infinet_ai.services.chat_service import ChatPipeline
from infinet_ai.services.conversation import (
    Channel,
    ConversationContext,
    InboundMessage,
    Notify,
    OutboundReply,
    ReplyStatus,
)
from infinet_ai.services.image_service import ImagePipeline
from infinet_ai.services.language_service import detect_language
from infinet_ai.services.router_service import Route, classify
from infinet_ai.services.session_store import SessionStore, session_key
from infinet_ai.services.voice_service import VoicePipeline

logger = get_logger("dispatch_service")


class ConversationDispatcher:
    def __init__(
        self,
        store: SessionStore,
        chat: ChatPipeline,
        images: ImagePipeline,
        voice: VoicePipeline,
    ):
        self.store = store
        self.chat = chat
        self.images = images
        self.voice = voice

    async def handle(
        self,
        message: InboundMessage,
        channel: Channel,
        notify: Optional[Notify] = None,
        *,
        route: Optional[Route] = None,
    ) -> OutboundReply:
        """Answer one message. ``route`` skips classification when the endpoint already names the capability."""
        key = session_key(channel.value, message.sender_id)
        context = ConversationContext(
            key=key,
            channel=channel,
            sender_id=message.sender_id,
            notify=notify,
            client_address=message.client_address,
        )
        started = time.monotonic()

        async with self.store.exclusive(key):
            try:
                route = route or classify(message)
            except RoutingAmbiguousError as exc:
                logger.info(
                    "Unsupported attachment",
                    extra={"context": {"session_key": key, "kind": exc.kind}},
                )
                return OutboundReply(
                    text=replies.reply(replies.UNSUPPORTED_ATTACHMENT, detect_language(message.text)),
                    status=ReplyStatus.REJECTED,
                )

            logger.info("Dispatching message", extra={"context": {"session_key": key, "route": route.value}})
            if route == Route.VOICE:
                reply = await self.voice.run(message.attachment, context)
            elif route == Route.IMAGE_TO_IMAGE:
                reply = await self.images.image_to_image(message.attachment, message.text, context)
            elif route == Route.TEXT_TO_IMAGE:
                reply = await self.images.text_to_image(message.text, context)
            else:
                reply = await self.chat.run(message.text, context)

        logger.info(
            "Message handled",
            extra={
                "context": {
                    "session_key": key,
                    "route": reply.route or route.value,
                    "status": reply.status.value,
                    "provider_tier": reply.provider_tier,
                    "elapsed_ms": round((time.monotonic() - started) * 1000, 2),
                }
            },
        )
        return reply
