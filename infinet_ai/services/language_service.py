"""Language detection, instruction building and channel markup rewriting."""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from infinet_ai.services.session_store import ConversationTurn


class Language(str, Enum):
    DEFAULT = "en"
    ALTERNATE = "ar"


class ChannelDialect(str, Enum):
    WHATSAPP = "whatsapp"  # *bold*, ```mono```, bullets
    PLAIN = "plain"  # web widget and speech: no emphasis at all


ARABIC_CHARS = r"\u0600-\u06FF\u0750-\u077F"
ARABIC_PATTERN = re.compile(rf"[{ARABIC_CHARS}]")

GREETING_PATTERN = re.compile(
    r"^(hi|hey|hello|hola|hey there|hi there|greetings|good morning|good afternoon|good evening"
    r"|مرحبا|مرحباً|السلام عليكم|سلام|أهلا|اهلا|هلا|صباح الخير|مساء الخير)",
    re.IGNORECASE,
)
HELP_PATTERN = re.compile(
    r"help|assist|support|can you|could you|please|need help|مساعدة|ساعدني|ممكن|لو سمحت",
    re.IGNORECASE,
)

BASE_INSTRUCTION = (
    "You are a helpful AI assistant. Be friendly, professional, and helpful. "
    "Answer questions on any topic the user asks about. Do not limit yourself to any specific "
    "services or products unless the user specifically asks about them.\n\n"
    "IMAGE GENERATION: When the user asks you to create, generate, draw, or make an image, picture, "
    "or visual, acknowledge the request. The system generates the image for them. Do NOT refuse "
    "image generation requests or redirect users elsewhere."
)

LANGUAGE_DIRECTIVES = {
    Language.ALTERNATE: (
        "LANGUAGE RULE: The user's current message is in Arabic. You MUST respond in Arabic only. "
        "Even if previous messages were in English, respond in Arabic."
    ),
    Language.DEFAULT: (
        "LANGUAGE RULE: The user's current message is in English. You MUST respond in English only. "
        "Do NOT use Arabic."
    ),
}
UNKNOWN_LANGUAGE_DIRECTIVE = (
    "LANGUAGE RULE: Respond in the same language the user speaks in the voice message. "
    "If they speak Arabic, respond in Arabic. If they speak English, respond in English."
)
NO_GREETING_DIRECTIVE = (
    "IMPORTANT: Do NOT greet the user unless they greet you first or explicitly ask for help. "
    "Just respond directly to their message or question."
)
GREETING_ALLOWED_DIRECTIVE = (
    "IMPORTANT: The user has greeted you or asked for help. You may respond with "
    "\"How can I help you today?\" without any other greeting prefix."
)
NO_MARKUP_DIRECTIVE = (
    "FORMATTING RULE: When responding in Arabic, do NOT use markdown formatting "
    "(no asterisks *, no bold **, no italic _). Write plain Arabic text only."
)
BREVITY_HINTS = {
    ChannelDialect.WHATSAPP: "Keep responses concise for WhatsApp.",
    ChannelDialect.PLAIN: "Keep responses concise. The chat window shows plain text only, so do not use markdown.",
}
VOICE_BREVITY_HINT = "Keep responses short and conversational; the reply is read aloud as a voice message."


@dataclass(frozen=True)
class InstructionContext:
    user_text: str = ""
    dialect: ChannelDialect = ChannelDialect.WHATSAPP
    voice: bool = False


def detect_language(text: Optional[str]) -> Language:
    if text and ARABIC_PATTERN.search(text):
        return Language.ALTERNATE
    return Language.DEFAULT


def is_greeting_or_help(text: Optional[str]) -> bool:
    normalized = (text or "").strip().lower()
    if not normalized:
        return False
    return bool(GREETING_PATTERN.match(normalized) or HELP_PATTERN.search(normalized))


def build_instruction(
    base: Optional[str],
    language: Optional[Language],
    context: Optional[InstructionContext] = None,
) -> str:
    """Compose the system instruction for one generation call.

    ``language=None`` means the input language is not known yet (a raw voice
    note), so the model is told to mirror whatever the user speaks.
    """
    context = context or InstructionContext()
    sections = [base or BASE_INSTRUCTION]

    sections.append(LANGUAGE_DIRECTIVES[language] if language else UNKNOWN_LANGUAGE_DIRECTIVE)

    if is_greeting_or_help(context.user_text):
        sections.append(GREETING_ALLOWED_DIRECTIVE)
    else:
        sections.append(NO_GREETING_DIRECTIVE)

    if language == Language.ALTERNATE:
        sections.append(NO_MARKUP_DIRECTIVE)

    sections.append(VOICE_BREVITY_HINT if context.voice else BREVITY_HINTS[context.dialect])

    if language:
        reminder = "Arabic" if language == Language.ALTERNATE else "English"
        sections.append(f"CRITICAL REMINDER: The user's message is in {reminder}. Respond ONLY in {reminder}.")

    return "\n\n".join(sections)


def filter_history(turns: Iterable[ConversationTurn], language: Language) -> list[ConversationTurn]:
    """Drop Arabic turns when the current message is English so the reply language stays stable."""
    turns = list(turns)
    if language == Language.ALTERNATE:
        return turns
    return [turn for turn in turns if detect_language(turn.content) == Language.DEFAULT]


# Markup rewriting

_PLACEHOLDER = "\x00{}\x00"
_PLACEHOLDER_RE = re.compile(r"\x00(\d+)\x00")
_TRIPLE_CODE_RE = re.compile(r"```([^`]+?)```", re.DOTALL)
_SINGLE_CODE_RE = re.compile(r"`([^`\n]+?)`")
_HEADING_RE = re.compile(r"^[ \t]*#{1,6}[ \t]+(.+?)[ \t]*#*[ \t]*$", re.MULTILINE)
_BULLET_RE = re.compile(r"^([ \t]*)[*+][ \t]+", re.MULTILINE)
_DOUBLE_STAR_RE = re.compile(r"\*{2,}[ \t]*([^*\n]+?)[ \t]*\*{2,}")
_DOUBLE_UNDERSCORE_RE = re.compile(r"__[ \t]*([^_\n]+?)[ \t]*__")
_LONE_STAR_RE = re.compile(r"(?<=\s)\*+(?=\s)|^\*+(?=\s)|(?<=\s)\*+$", re.MULTILINE)
_ARABIC_AFTER_RE = re.compile(rf"([{ARABIC_CHARS}])([ \t]*)[*_~]+")
_ARABIC_BEFORE_RE = re.compile(rf"[*_~]+([ \t]*)([{ARABIC_CHARS}])")
_STAR_PAIR_RE = re.compile(r"\*[ \t]*([^\s*](?:[^*\n]*?[^\s*])?)[ \t]*\*")
_UNDERSCORE_PAIR_RE = re.compile(r"(?<!\w)_([^\s_](?:[^_\n]*?[^\s_])?)_(?!\w)")
_TILDE_PAIR_RE = re.compile(r"(?<!\w)~([^\s~](?:[^~\n]*?[^\s~])?)~(?!\w)")
_INNER_SPACES_RE = re.compile(r"(?<=\S)[ \t]{2,}(?=\S)")
_TRAILING_SPACES_RE = re.compile(r"[ \t]+$", re.MULTILINE)
_MAX_PASSES = 8


class _Spans:
    """Protected spans swapped out for placeholders during a rewrite pass."""

    def __init__(self):
        self.items: list[str] = []

    def hold(self, rendered: str) -> str:
        self.items.append(rendered)
        return _PLACEHOLDER.format(len(self.items) - 1)

    def restore(self, text: str) -> str:
        # Spans may nest (bold around code), so restore until none are left.
        while _PLACEHOLDER_RE.search(text):
            text = _PLACEHOLDER_RE.sub(lambda match: self.items[int(match.group(1))], text)
        return text


def _tidy(text: str) -> str:
    text = _INNER_SPACES_RE.sub(" ", text)
    text = _TRAILING_SPACES_RE.sub("", text)
    return text.strip()


def _whatsapp_pass(text: str) -> str:
    spans = _Spans()

    text = _TRIPLE_CODE_RE.sub(lambda m: spans.hold(m.group(0)) if m.group(1).strip() else "", text)
    text = _SINGLE_CODE_RE.sub(
        lambda m: spans.hold(f"```{m.group(1).strip()}```") if m.group(1).strip() else "",
        text,
    )
    text = text.replace("`", "")

    text = _HEADING_RE.sub(r"*\1*", text)
    text = _BULLET_RE.sub(r"\1• ", text)
    text = _DOUBLE_STAR_RE.sub(r"*\1*", text)
    text = _DOUBLE_UNDERSCORE_RE.sub(r"*\1*", text)

    text = _ARABIC_AFTER_RE.sub(r"\1\2", text)
    text = _ARABIC_BEFORE_RE.sub(r"\1\2", text)
    text = _LONE_STAR_RE.sub("", text)

    text = _STAR_PAIR_RE.sub(lambda m: spans.hold(f"*{' '.join(m.group(1).split())}*"), text)
    text = text.replace("*", "")

    return spans.restore(_tidy(text))


def _plain_pass(text: str) -> str:
    text = _TRIPLE_CODE_RE.sub(lambda m: m.group(1).strip(), text)
    text = _SINGLE_CODE_RE.sub(lambda m: m.group(1).strip(), text)
    text = text.replace("`", "")

    text = _HEADING_RE.sub(r"\1", text)
    text = _BULLET_RE.sub(r"\1• ", text)
    text = _DOUBLE_STAR_RE.sub(r"\1", text)
    text = _DOUBLE_UNDERSCORE_RE.sub(r"\1", text)
    text = _UNDERSCORE_PAIR_RE.sub(r"\1", text)
    text = _TILDE_PAIR_RE.sub(r"\1", text)
    text = text.replace("*", "")

    return _tidy(text)


def post_process(raw: Optional[str], dialect: ChannelDialect) -> str:
    """Rewrite model output into the channel's markup dialect.

    Rewrites run to a fixed point, so applying this twice changes nothing.
    """
    text = (raw or "").replace("\x00", "").replace("\r\n", "\n")
    rewrite = _whatsapp_pass if dialect == ChannelDialect.WHATSAPP else _plain_pass
    for _ in range(_MAX_PASSES):
        rewritten = rewrite(text)
        if rewritten == text:
            break
        text = rewritten
    return text
