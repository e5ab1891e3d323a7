import pytest

from fakes import FakeSpeaker, FakeTranscriber
from infinet_ai.errors import ProviderError
from infinet_ai.services.language_service import Language
from infinet_ai.services.speech_service import SpeechService, audio_filename


class TestAudioFilename:
    def test_known_types(self):
        assert audio_filename("audio/ogg; codecs=opus") == "voice.ogg"
        assert audio_filename("audio/mpeg") == "voice.mp3"
        assert audio_filename("audio/mp4") == "voice.m4a"

    def test_unknown_defaults_to_ogg(self):
        assert audio_filename(None) == "voice.ogg"


class TestTranscribe:
    @pytest.mark.asyncio
    async def test_primary_success(self):
        primary, fallback = FakeTranscriber("whisper", "hello"), FakeTranscriber("elevenlabs", "unused")
        result = await SpeechService(primary, fallback).transcribe(b"OggS", "audio/ogg")

        assert result.ok is True
        assert result.value == "hello"
        assert fallback.calls == 0

    @pytest.mark.asyncio
    async def test_fallback_after_primary_error(self):
        primary = FakeTranscriber("whisper", error=ProviderError("whisper down", status_code=500))
        fallback = FakeTranscriber("elevenlabs", "مرحبا")

        result = await SpeechService(primary, fallback).transcribe(b"OggS", "audio/ogg")

        assert result.value == "مرحبا"
        assert primary.calls == 1
        assert fallback.calls == 1

    @pytest.mark.asyncio
    async def test_fallback_after_empty_transcript(self):
        result = await SpeechService(FakeTranscriber("whisper", "  "), FakeTranscriber("elevenlabs", "hi")).transcribe(
            b"OggS", "audio/ogg"
        )
        assert result.value == "hi"

    @pytest.mark.asyncio
    async def test_both_fail(self):
        primary = FakeTranscriber("whisper", error=ProviderError("down"))
        fallback = FakeTranscriber("elevenlabs", error=ProviderError("down too"))

        result = await SpeechService(primary, fallback).transcribe(b"OggS", "audio/ogg")

        assert result.ok is False
        assert result.error_code == "elevenlabs_error"

    @pytest.mark.asyncio
    async def test_fallback_gets_only_the_remaining_time(self):
        primary = FakeTranscriber("whisper", error=ProviderError("whisper down", status_code=500), delay=0.05)
        fallback = FakeTranscriber("elevenlabs", "hi")

        result = await SpeechService(primary, fallback).transcribe(b"OggS", "audio/ogg", timeout_seconds=10.0)

        assert result.value == "hi"
        assert primary.timeouts == [10.0]
        assert fallback.timeouts[0] < 10.0

    @pytest.mark.asyncio
    async def test_slow_primary_spends_the_whole_deadline(self):
        primary = FakeTranscriber("whisper", "too late", delay=1.0)
        fallback = FakeTranscriber("elevenlabs", "hi")

        result = await SpeechService(primary, fallback).transcribe(b"OggS", "audio/ogg", timeout_seconds=0.05)

        assert result.ok is False
        assert result.error_code == "timeout"
        assert fallback.calls == 0

    @pytest.mark.asyncio
    async def test_empty_without_fallback(self):
        result = await SpeechService(FakeTranscriber("whisper", "")).transcribe(b"OggS", "audio/ogg")
        assert result.error_code == "empty_transcript"

    @pytest.mark.asyncio
    async def test_not_configured(self):
        service = SpeechService()
        assert service.can_transcribe is False
        assert (await service.transcribe(b"OggS", "audio/ogg")).error_code == "not_configured"


class TestSynthesize:
    @pytest.mark.asyncio
    async def test_voice_follows_language(self):
        speaker = FakeSpeaker(b"mp3")
        service = SpeechService(tts=speaker, voices={Language.DEFAULT: "alloy", Language.ALTERNATE: "nova"})

        assert (await service.synthesize("hello", Language.DEFAULT)).value == b"mp3"
        await service.synthesize("مرحبا", Language.ALTERNATE)

        assert speaker.voices == ["alloy", "nova"]

    @pytest.mark.asyncio
    async def test_tts_error(self):
        service = SpeechService(tts=FakeSpeaker(error=ProviderError("tts down", status_code=503)))
        result = await service.synthesize("hello", Language.DEFAULT)
        assert result.ok is False
        assert result.error_code == "tts_error"

    @pytest.mark.asyncio
    async def test_not_configured(self):
        assert (await SpeechService().synthesize("hello", Language.DEFAULT)).error_code == "not_configured"


class TestFromProviders:
    def test_openai_primary_with_elevenlabs_fallback(self):
        openai, elevenlabs = FakeTranscriber("openai"), FakeTranscriber("elevenlabs")
        service = SpeechService.from_providers(openai, elevenlabs)
        assert service.primary is openai
        assert service.fallback is elevenlabs
        assert service.tts is openai

    def test_elevenlabs_only(self):
        elevenlabs = FakeTranscriber("elevenlabs")
        service = SpeechService.from_providers(None, elevenlabs)
        assert service.primary is elevenlabs
        assert service.fallback is None
        assert service.can_synthesize is False
