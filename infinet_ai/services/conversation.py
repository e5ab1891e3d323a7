"""Inbound/outbound message types shared by the router and the pipelines."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Optional

from infinet_ai.errors import CapabilityUnavailableError
from infinet_ai.logging_config import get_logger
from infinet_ai.services import replies
from infinet_ai.services.alert_service import alert_error
from infinet_ai.services.error_classifier import ErrorClass
from infinet_ai.services.language_service import ChannelDialect, Language
from infinet_ai.services.result import GenerationOutcome

logger = get_logger("conversation")

Notify = Callable[[str], Awaitable[None]]


class Channel(str, Enum):
    WEB = "web"
    WHATSAPP = "whatsapp"

    @property
    def dialect(self) -> ChannelDialect:
        return ChannelDialect.PLAIN if self == Channel.WEB else ChannelDialect.WHATSAPP


class ReplyStatus(str, Enum):
    OK = "ok"
    QUOTA_EXHAUSTED = "quota_exhausted"
    TRANSIENT = "transient"
    FATAL = "fatal"
    UNAVAILABLE = "unavailable"
    REJECTED = "rejected"
    LIMITED = "limited"


@dataclass(frozen=True)
class Attachment:
    kind: str
    data: bytes = b""
    mime_type: str = "application/octet-stream"
    filename: Optional[str] = None


@dataclass(frozen=True)
class InboundMessage:
    sender_id: str
    text: str = ""
    attachment: Optional[Attachment] = None
    client_address: Optional[str] = None


@dataclass(frozen=True)
class MediaPart:
    data: bytes
    mime_type: str
    caption: str = ""


@dataclass
class OutboundReply:
    text: Optional[str] = None
    image: Optional[MediaPart] = None
    audio: Optional[MediaPart] = None
    status: ReplyStatus = ReplyStatus.OK
    route: Optional[str] = None
    provider_tier: Optional[int] = None
    meta: dict = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status == ReplyStatus.OK


@dataclass(frozen=True)
class ConversationContext:
    """Where a message came from and how to answer it."""

    key: str
    channel: Channel
    sender_id: str
    notify: Optional[Notify] = None
    client_address: Optional[str] = None

    @property
    def dialect(self) -> ChannelDialect:
        return self.channel.dialect

    @property
    def user_key(self) -> str:
        return f"{self.channel.value}_{self.sender_id}"

    @property
    def limit_keys(self) -> list[str]:
        """Identities daily limits count against: the user key, plus the client address when known."""
        keys = [self.user_key]
        if self.client_address:
            keys.append(f"ip_{self.client_address}")
        return keys

    async def progress(self, text: str) -> None:
        if self.notify is None:
            return
        try:
            await self.notify(text)
        except Exception as exc:
            logger.warning(f"Progress notice failed: {exc}", extra={"context": {"session_key": self.key}})


async def failure_reply(
    outcome: GenerationOutcome,
    language: Language,
    *,
    unavailable_key: str,
    context: ConversationContext,
    quota_key: str = replies.QUOTA,
    transient_key: str = replies.TRANSIENT,
) -> OutboundReply:
    """Map a failed generation onto the fixed user-facing reply set."""
    if outcome.classification == ErrorClass.QUOTA_EXHAUSTED:
        return OutboundReply(text=replies.reply(quota_key, language), status=ReplyStatus.QUOTA_EXHAUSTED)

    if outcome.classification == ErrorClass.FATAL:
        if isinstance(outcome.cause, CapabilityUnavailableError):
            return OutboundReply(text=replies.reply(unavailable_key, language), status=ReplyStatus.UNAVAILABLE)
        logger.error(
            "Fatal generation failure",
            extra={"context": {"session_key": context.key, "error": str(outcome.cause)[:300]}},
        )
        await alert_error(
            "Fatal generation failure",
            {"session": context.key, "error": str(outcome.cause)[:300]},
        )
        return OutboundReply(text=replies.reply(replies.FATAL, language), status=ReplyStatus.FATAL)

    return OutboundReply(text=replies.reply(transient_key, language), status=ReplyStatus.TRANSIENT)
