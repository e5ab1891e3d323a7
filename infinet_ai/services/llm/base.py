from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Sequence, Union

from infinet_ai.services.session_store import ConversationTurn


class Capability(str, Enum):
    CHAT = "chat"
    VOICE = "voice"
    TEXT_TO_IMAGE = "text_to_image"
    IMAGE_TO_IMAGE = "image_to_image"


@dataclass(frozen=True)
class TextPayload:
    text: str


@dataclass(frozen=True)
class AudioPayload:
    data: bytes
    mime_type: str


@dataclass(frozen=True)
class ImagePayload:
    data: bytes
    mime_type: str
    prompt: str


Payload = Union[TextPayload, AudioPayload, ImagePayload]


@dataclass(frozen=True)
class GenerationRequest:
    capability: Capability
    instruction: str
    payload: Payload
    history: tuple[ConversationTurn, ...] = ()
    deadline_seconds: Optional[float] = None

    @property
    def text(self) -> str:
        if isinstance(self.payload, TextPayload):
            return self.payload.text
        if isinstance(self.payload, ImagePayload):
            return self.payload.prompt
        return ""


@dataclass
class GenerationResult:
    """What a provider returned. Exactly one of the content fields is usually set."""

    model: str
    text: Optional[str] = None
    audio: Optional[bytes] = None
    audio_mime_type: Optional[str] = None
    image: Optional[bytes] = None
    image_mime_type: Optional[str] = None
    image_url: Optional[str] = None
    raw: Any = None
    usage: Optional[dict] = field(default=None, repr=False)


class GenerationProvider(ABC):
    """A provider client bound to one credential."""

    name: str = "provider"
    supports_audio: bool = False

    @abstractmethod
    async def generate(self, request: GenerationRequest, *, timeout_seconds: float) -> GenerationResult:
        """Run one generation call against the provider."""


def history_messages(history: Sequence[ConversationTurn]) -> list[dict]:
    """OpenAI-style message dicts for a turn sequence."""
    return [{"role": turn.role, "content": turn.content} for turn in history]
