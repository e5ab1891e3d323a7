import pytest

from infinet_ai.services.language_service import (
    ChannelDialect,
    InstructionContext,
    Language,
    build_instruction,
    detect_language,
    filter_history,
    is_greeting_or_help,
    post_process,
)
from infinet_ai.services.session_store import ConversationTurn


class TestDetectLanguage:
    def test_arabic(self):
        assert detect_language("مرحبا") == Language.ALTERNATE
        assert detect_language("hello مرحبا") == Language.ALTERNATE

    def test_english_and_empty(self):
        assert detect_language("hello") == Language.DEFAULT
        assert detect_language("") == Language.DEFAULT
        assert detect_language(None) == Language.DEFAULT


class TestGreeting:
    @pytest.mark.parametrize("text", ["hi", "Hello there", "مرحبا", "السلام عليكم", "can you help me?"])
    def test_greeting_or_help(self, text):
        assert is_greeting_or_help(text) is True

    def test_plain_question(self):
        assert is_greeting_or_help("what are your fiber prices") is False


class TestBuildInstruction:
    def test_arabic_gets_language_and_markup_rules(self):
        instruction = build_instruction(None, Language.ALTERNATE, InstructionContext(user_text="كم السعر؟"))

        assert "You MUST respond in Arabic only" in instruction
        assert "do NOT use markdown formatting" in instruction
        assert "Do NOT greet the user" in instruction
        assert instruction.endswith("Respond ONLY in Arabic.")

    def test_english_greeting(self):
        instruction = build_instruction("Base.", Language.DEFAULT, InstructionContext(user_text="hello"))

        assert instruction.startswith("Base.")
        assert "respond in English only" in instruction
        assert "How can I help you today?" in instruction
        assert "do NOT use markdown formatting" not in instruction

    def test_unknown_language_for_voice(self):
        instruction = build_instruction(None, None, InstructionContext(voice=True))

        assert "same language the user speaks" in instruction
        assert "read aloud" in instruction
        assert "CRITICAL REMINDER" not in instruction

    def test_brevity_follows_dialect(self):
        whatsapp = build_instruction(None, Language.DEFAULT, InstructionContext(dialect=ChannelDialect.WHATSAPP))
        plain = build_instruction(None, Language.DEFAULT, InstructionContext(dialect=ChannelDialect.PLAIN))
        assert "concise for WhatsApp" in whatsapp
        assert "plain text only" in plain


class TestFilterHistory:
    def test_english_message_drops_arabic_turns(self):
        turns = [
            ConversationTurn("user", "مرحبا"),
            ConversationTurn("assistant", "أهلاً"),
            ConversationTurn("user", "price?"),
            ConversationTurn("assistant", "It costs $20."),
        ]
        kept = filter_history(turns, Language.DEFAULT)
        assert [t.content for t in kept] == ["price?", "It costs $20."]

    def test_arabic_message_keeps_everything(self):
        turns = [ConversationTurn("user", "hi"), ConversationTurn("assistant", "مرحبا")]
        assert filter_history(turns, Language.ALTERNATE) == turns


class TestWhatsAppRewrite:
    def test_double_star_becomes_single(self):
        assert post_process("This is **important** info", ChannelDialect.WHATSAPP) == "This is *important* info"

    def test_heading_becomes_bold(self):
        assert post_process("## Our plans\nFast fiber", ChannelDialect.WHATSAPP) == "*Our plans*\nFast fiber"

    def test_bullets(self):
        raw = "Options:\n* Fiber\n+ Wireless\n- DSL"
        assert post_process(raw, ChannelDialect.WHATSAPP) == "Options:\n• Fiber\n• Wireless\n- DSL"

    def test_inline_code_becomes_monospace(self):
        assert post_process("Run `ping 8.8.8.8` now", ChannelDialect.WHATSAPP) == "Run ```ping 8.8.8.8``` now"

    def test_markers_around_arabic_are_removed(self):
        assert post_process("**مرحبا** بك", ChannelDialect.WHATSAPP) == "مرحبا بك"

    def test_inner_spacing_is_normalized(self):
        assert post_process("** spaced  bold **", ChannelDialect.WHATSAPP) == "*spaced bold*"

    def test_triple_star_collapses_to_bold(self):
        assert post_process("***Note*** here", ChannelDialect.WHATSAPP) == "*Note* here"

    def test_lone_stars_are_dropped(self):
        assert post_process("5 * 3 is fifteen", ChannelDialect.WHATSAPP) == "5 3 is fifteen"

    @pytest.mark.parametrize(
        "raw",
        [
            "This is **important** info",
            "## Title\n* one\n* two",
            "Use `code` and **bold `code`** here",
            "**مرحبا** بك *في* InfiNet",
            "***triple*** and ** spaced ** and __under__",
            "trailing star*",
            "",
        ],
    )
    def test_idempotent(self, raw):
        once = post_process(raw, ChannelDialect.WHATSAPP)
        assert post_process(once, ChannelDialect.WHATSAPP) == once


class TestPlainRewrite:
    def test_strips_all_emphasis(self):
        raw = "## Plans\n**Fiber** is _fast_ and ~cheap~, try `speedtest`"
        assert post_process(raw, ChannelDialect.PLAIN) == "Plans\nFiber is fast and cheap, try speedtest"

    @pytest.mark.parametrize("raw", ["**a** _b_ ~c~", "```\ncode\n```", "* item\n* item2"])
    def test_idempotent(self, raw):
        once = post_process(raw, ChannelDialect.PLAIN)
        assert post_process(once, ChannelDialect.PLAIN) == once
