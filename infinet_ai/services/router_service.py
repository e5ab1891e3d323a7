"""Pick a pipeline for an inbound message."""

import re
from enum import Enum
from typing import Optional

from infinet_ai.errors import RoutingAmbiguousError
from infinet_ai.services.conversation import InboundMessage


class Route(str, Enum):
    CHAT = "chat"
    VOICE = "voice"
    TEXT_TO_IMAGE = "text_to_image"
    IMAGE_TO_IMAGE = "image_to_image"


AUDIO_KINDS = {"audio", "voice", "ptt"}
IMAGE_KINDS = {"image", "sticker"}

_VERBS = r"generate|create|make|draw|paint|design|produce|render|sketch|illustrate|visuali[sz]e"
_NOUNS = r"image|picture|photo|drawing|artwork|illustration|painting|sketch|logo|icon|wallpaper"

IMAGE_REQUEST_PATTERNS = (
    # "generate an image of ...", "make me a picture", "can you draw a picture"
    re.compile(rf"\b({_VERBS})\b(\s+(me|us))?(\s+(a|an|the|some))?(\s+\w+)?\s+({_NOUNS})s?\b", re.IGNORECASE),
    # "an image of a cat", "picture of the sea"
    re.compile(rf"^(please\s+)?((show|give|send)\s+me\s+)?(a|an)?\s*({_NOUNS})\s+of\b", re.IGNORECASE),
    # "draw a horse", "paint the sunset"
    re.compile(r"^(please\s+)?(draw|paint|sketch|illustrate)\b", re.IGNORECASE),
    # "i want/need an image"
    re.compile(rf"\bi\s+(want|need|would like)\s+(a|an)?\s*({_NOUNS})\b", re.IGNORECASE),
    re.compile(r"(ارسم|ارسمي|أنشئ|انشئ|اصنع|صمم)\s*(لي|لنا)?\s*(صورة|رسمة|لوحة)?"),
    re.compile(r"(أريد|اريد|أحتاج|احتاج|أعطني|اعطني|أظهر لي)\s+(صورة|رسمة)"),
    re.compile(r"^(صورة|رسمة)\s+(ل|من|عن)"),
)

ENGLISH_PROMPT_PREFIXES = (
    re.compile(rf"^(please\s+)?(can|could|would|will)\s+you\s+(please\s+)?", re.IGNORECASE),
    re.compile(rf"^(please\s+)?({_VERBS})(\s+(me|us))?\s+(an?\s+)?({_NOUNS})s?\s+(of|for|showing|with)\s+", re.IGNORECASE),
    re.compile(rf"^(please\s+)?({_VERBS})(\s+(me|us))?\s+(an?\s+)?({_NOUNS})s?\s+", re.IGNORECASE),
    re.compile(rf"^(show|give|send)\s+me\s+(an?\s+)?({_NOUNS})\s+of\s+", re.IGNORECASE),
    re.compile(rf"^(an?\s+)?({_NOUNS})\s+of\s+", re.IGNORECASE),
    re.compile(r"^(please\s+)?(draw|paint|sketch)(\s+me)?\s+", re.IGNORECASE),
)
ARABIC_PROMPT_PREFIXES = (
    re.compile(r"^(أنشئ|انشئ|اصنع|ارسم|صمم)\s+(لي\s+)?(صورة|رسمة)\s+(من|ل|عن)\s*"),
    re.compile(r"^(صورة|رسمة)\s+(من|ل|عن)\s*"),
    re.compile(r"^(أنشئ|انشئ|اصنع|ارسم|صمم)\s+(لي\s+)?(صورة|رسمة)?\s*"),
)
MIN_PROMPT_LENGTH = 3


def is_image_generation_request(text: Optional[str]) -> bool:
    cleaned = (text or "").strip()
    if not cleaned:
        return False
    return any(pattern.search(cleaned) for pattern in IMAGE_REQUEST_PATTERNS)


def classify(message: InboundMessage) -> Route:
    """First match wins: voice, image attachment, image request, chat."""
    attachment = message.attachment
    if attachment is not None:
        kind = (attachment.kind or "").lower()
        if kind in AUDIO_KINDS:
            return Route.VOICE
        if kind in IMAGE_KINDS:
            return Route.IMAGE_TO_IMAGE
        raise RoutingAmbiguousError(kind or "unknown")
    if is_image_generation_request(message.text):
        return Route.TEXT_TO_IMAGE
    return Route.CHAT


def extract_image_prompt(text: str) -> str:
    """Strip the command phrase, keeping the subject.

    Falls back to the raw text when too little is left to be a useful prompt.
    """
    original = (text or "").strip()
    prompt = original
    is_ascii = all(ord(char) < 128 for char in original)
    for pattern in ENGLISH_PROMPT_PREFIXES if is_ascii else ARABIC_PROMPT_PREFIXES:
        prompt = pattern.sub("", prompt, count=1).strip()
    prompt = prompt.rstrip(" .!?")
    if len(prompt) < MIN_PROMPT_LENGTH:
        return original
    return prompt
