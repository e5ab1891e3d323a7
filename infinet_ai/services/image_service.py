"""Text-to-image and image-to-image pipelines."""

import re
from typing import Optional

from infinet_ai.errors import ImageDecodeError, MediaError, ProviderError
from infinet_ai.logging_config import get_logger
from infinet_ai.services import rate_limit_service, replies
from infinet_ai.services.conversation import (
    Attachment,
    ConversationContext,
    MediaPart,
    OutboundReply,
    ReplyStatus,
    failure_reply,
)
from infinet_ai.services.error_classifier import ErrorClass
from infinet_ai.services.gateway import FallbackGateway
from infinet_ai.services.image_codec import MAX_INPUT_PIXELS, decode_image_output, normalize_image, resolve_image
from infinet_ai.services.language_service import Language, detect_language
from infinet_ai.services.llm import Capability, GenerationRequest, ImagePayload, TextPayload
from infinet_ai.services.rate_limit_service import DailyLimiter
from infinet_ai.services.result import GenerationOutcome
from infinet_ai.services.router_service import Route, extract_image_prompt
from infinet_ai.services.session_store import SessionStore

logger = get_logger("image_service")

DEFAULT_TRANSFORM_PROMPT = "enhance and improve this image"
TRANSFORM_VERBS = ("transform", "restore", "enhance", "improve", "convert", "change", "make")
RESTORE_COLOR_RE = re.compile(r"restore\s+.*?colou?rs?\b|colou?ri[sz]e", re.IGNORECASE)
CONTENT_POLICY_MARKERS = ("content_policy", "content policy", "safety system", "nsfw", "flagged")


def prepare_transform_prompt(text: Optional[str]) -> str:
    prompt = (text or "").strip()
    if len(prompt) < 3:
        prompt = DEFAULT_TRANSFORM_PROMPT
    prompt = RESTORE_COLOR_RE.sub("restore colors", prompt).strip()
    lowered = prompt.lower()
    if not any(verb in lowered for verb in TRANSFORM_VERBS):
        prompt = f"transform the image: {prompt}"
    return prompt


def is_content_policy_error(error: Optional[BaseException]) -> bool:
    if not isinstance(error, ProviderError):
        return False
    text = f"{error} {error.body or ''}".lower()
    return any(marker in text for marker in CONTENT_POLICY_MARKERS)


class ImagePipeline:
    def __init__(
        self,
        gateway: FallbackGateway,
        store: SessionStore,
        limiter: DailyLimiter,
        *,
        deadline_seconds: float = 60.0,
        transform_deadline_seconds: float = 300.0,
        download_timeout_seconds: float = 30.0,
        image_dimension: int = 1024,
        max_download_bytes: int = 16 * 1024 * 1024,
        max_input_pixels: int = MAX_INPUT_PIXELS,
    ):
        self.gateway = gateway
        self.store = store
        self.limiter = limiter
        self.deadline_seconds = deadline_seconds
        self.transform_deadline_seconds = transform_deadline_seconds
        self.download_timeout_seconds = download_timeout_seconds
        self.image_dimension = image_dimension
        self.max_download_bytes = max_download_bytes
        self.max_input_pixels = max_input_pixels

    def _limit_reply(self, key: str, kind: str, language: Language, context: ConversationContext) -> Optional[OutboundReply]:
        check = self.limiter.check_all(context.limit_keys, kind)
        if check.allowed:
            return None
        return OutboundReply(
            text=replies.reply(key, language, limit=check.limit),
            status=ReplyStatus.LIMITED,
        )

    async def _failure(
        self,
        outcome: GenerationOutcome,
        language: Language,
        unavailable_key: str,
        context: ConversationContext,
    ) -> OutboundReply:
        if outcome.classification == ErrorClass.FATAL and is_content_policy_error(outcome.cause):
            return OutboundReply(text=replies.reply(replies.IMAGE_POLICY, language), status=ReplyStatus.REJECTED)
        return await failure_reply(
            outcome,
            language,
            unavailable_key=unavailable_key,
            context=context,
            quota_key=replies.IMAGE_QUOTA,
            transient_key=replies.IMAGE_FAILED,
        )

    async def _deliverable(self, outcome: GenerationOutcome) -> MediaPart:
        result = outcome.result
        decoded = decode_image_output(result.image or result.image_url or result.raw)
        image = await resolve_image(
            decoded,
            timeout_seconds=self.download_timeout_seconds,
            max_bytes=self.max_download_bytes,
        )
        return MediaPart(data=image.data, mime_type=image.mime_type)

    async def text_to_image(self, text: str, context: ConversationContext) -> OutboundReply:
        language = detect_language(text)
        if not self.gateway.pool.is_enabled(Capability.TEXT_TO_IMAGE):
            return self._tag(
                OutboundReply(
                    text=replies.reply(replies.TEXT_TO_IMAGE_UNAVAILABLE, language),
                    status=ReplyStatus.UNAVAILABLE,
                ),
                Route.TEXT_TO_IMAGE,
            )

        limited = self._limit_reply(replies.TEXT_TO_IMAGE_LIMIT, rate_limit_service.TEXT_TO_IMAGE, language, context)
        if limited:
            return self._tag(limited, Route.TEXT_TO_IMAGE)

        prompt = extract_image_prompt(text)
        if not prompt:
            return self._tag(
                OutboundReply(text=replies.reply(replies.IMAGE_PROMPT_MISSING, language), status=ReplyStatus.REJECTED),
                Route.TEXT_TO_IMAGE,
            )

        await context.progress(replies.reply(replies.TEXT_TO_IMAGE_PROGRESS, language))
        logger.info("Text-to-image request", extra={"context": {"session_key": context.key, "prompt": prompt[:150]}})

        request = GenerationRequest(capability=Capability.TEXT_TO_IMAGE, instruction="", payload=TextPayload(prompt))
        outcome = await self.gateway.generate(
            Capability.TEXT_TO_IMAGE, request, deadline_seconds=self.deadline_seconds
        )
        if not outcome.ok:
            reply = await self._failure(outcome, language, replies.TEXT_TO_IMAGE_UNAVAILABLE, context)
            return self._tag(reply, Route.TEXT_TO_IMAGE)

        try:
            media = await self._deliverable(outcome)
        except MediaError as exc:
            logger.warning(f"Generated image could not be fetched: {exc}", extra={"context": {"session_key": context.key}})
            return self._tag(
                OutboundReply(text=replies.reply(replies.IMAGE_FAILED, language), status=ReplyStatus.TRANSIENT),
                Route.TEXT_TO_IMAGE,
            )

        caption = replies.reply(replies.TEXT_TO_IMAGE_CAPTION, language, prompt=prompt)
        self.limiter.record_all(context.limit_keys, rate_limit_service.TEXT_TO_IMAGE)
        await self.store.append_exchange(context.key, text, caption)
        return self._tag(
            OutboundReply(
                text=caption,
                image=MediaPart(data=media.data, mime_type=media.mime_type, caption=caption),
                provider_tier=outcome.provider_tier,
                meta={"prompt": prompt, "provider": outcome.provider},
            ),
            Route.TEXT_TO_IMAGE,
        )

    async def image_to_image(
        self,
        attachment: Attachment,
        text: str,
        context: ConversationContext,
    ) -> OutboundReply:
        language = detect_language(text)
        if not self.gateway.pool.is_enabled(Capability.IMAGE_TO_IMAGE):
            return self._tag(
                OutboundReply(
                    text=replies.reply(replies.IMAGE_TO_IMAGE_UNAVAILABLE, language),
                    status=ReplyStatus.UNAVAILABLE,
                ),
                Route.IMAGE_TO_IMAGE,
            )

        limited = self._limit_reply(replies.IMAGE_TO_IMAGE_LIMIT, rate_limit_service.IMAGE_TO_IMAGE, language, context)
        if limited:
            return self._tag(limited, Route.IMAGE_TO_IMAGE)

        await context.progress(replies.reply(replies.IMAGE_TO_IMAGE_PROGRESS, language))

        try:
            source = await normalize_image(attachment.data, self.image_dimension, self.max_input_pixels)
        except MediaError as exc:
            logger.warning(f"Inbound image unreadable: {exc}", extra={"context": {"session_key": context.key}})
            return self._tag(
                OutboundReply(text=replies.reply(replies.IMAGE_FAILED, language), status=ReplyStatus.TRANSIENT),
                Route.IMAGE_TO_IMAGE,
            )

        prompt = prepare_transform_prompt(text)
        logger.info("Image-to-image request", extra={"context": {"session_key": context.key, "prompt": prompt[:150]}})

        request = GenerationRequest(
            capability=Capability.IMAGE_TO_IMAGE,
            instruction="",
            payload=ImagePayload(data=source.data, mime_type=source.mime_type, prompt=prompt),
        )
        outcome = await self.gateway.generate(
            Capability.IMAGE_TO_IMAGE, request, deadline_seconds=self.transform_deadline_seconds
        )
        if not outcome.ok:
            reply = await self._failure(outcome, language, replies.IMAGE_TO_IMAGE_UNAVAILABLE, context)
            return self._tag(reply, Route.IMAGE_TO_IMAGE)

        try:
            media = await self._deliverable(outcome)
        except ImageDecodeError as exc:
            logger.error(f"Unrecognised image output: {exc}", extra={"context": {"session_key": context.key}})
            return self._tag(
                OutboundReply(text=replies.reply(replies.IMAGE_FAILED, language), status=ReplyStatus.TRANSIENT),
                Route.IMAGE_TO_IMAGE,
            )
        except MediaError as exc:
            logger.warning(f"Transformed image could not be fetched: {exc}", extra={"context": {"session_key": context.key}})
            return self._tag(
                OutboundReply(text=replies.reply(replies.IMAGE_FAILED, language), status=ReplyStatus.TRANSIENT),
                Route.IMAGE_TO_IMAGE,
            )

        caption = replies.reply(replies.IMAGE_TO_IMAGE_CAPTION, language, prompt=prompt)
        self.limiter.record_all(context.limit_keys, rate_limit_service.IMAGE_TO_IMAGE)
        await self.store.append_exchange(context.key, f"[Image] {text}".strip(), caption)
        return self._tag(
            OutboundReply(
                text=caption,
                image=MediaPart(data=media.data, mime_type=media.mime_type, caption=caption),
                provider_tier=outcome.provider_tier,
                meta={"prompt": prompt, "provider": outcome.provider},
            ),
            Route.IMAGE_TO_IMAGE,
        )

    @staticmethod
    def _tag(reply: OutboundReply, route: Route) -> OutboundReply:
        reply.route = route.value
        return reply
