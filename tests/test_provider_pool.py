from fakes import FakeProvider, make_pool
from infinet_ai.config import Settings
from infinet_ai.services.llm import GeminiProvider, GroqProvider, OpenAIProvider, ReplicateProvider
from infinet_ai.services.llm.base import Capability
from infinet_ai.services.provider_pool import ProviderPool


def _settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


class TestFromSettings:
    def test_full_chat_chain_in_tier_order(self):
        pool = ProviderPool.from_settings(
            _settings(
                gemini_api_key="g1",
                gemini_api_key_chat_fallback="g2",
                groq_api_key_chat_fallback2="q3",
                groq_api_key_chat_fallback3="q4",
            )
        )
        handles = pool.handles(Capability.CHAT)

        assert [h.tier for h in handles] == [1, 2, 3, 4]
        assert [h.credential for h in handles] == ["g1", "g2", "q3", "q4"]
        assert isinstance(handles[0].provider, GeminiProvider)
        assert isinstance(handles[1].provider, GeminiProvider)
        assert isinstance(handles[2].provider, GroqProvider)
        assert isinstance(handles[3].provider, GroqProvider)

    def test_missing_keys_are_skipped_and_tiers_stay_contiguous(self):
        pool = ProviderPool.from_settings(_settings(gemini_api_key="g1", groq_api_key_chat_fallback3="q4"))
        handles = pool.handles(Capability.CHAT)

        assert [h.tier for h in handles] == [1, 2]
        assert [h.credential for h in handles] == ["g1", "q4"]

    def test_voice_chain_is_independent_of_chat(self):
        pool = ProviderPool.from_settings(
            _settings(gemini_api_key_voice="v1", groq_api_key_voice_fallback2="v3")
        )
        assert pool.handles(Capability.CHAT) == ()
        assert [h.credential for h in pool.handles(Capability.VOICE)] == ["v1", "v3"]
        assert pool.handles(Capability.VOICE)[0].provider.supports_audio is True
        assert pool.handles(Capability.VOICE)[1].provider.supports_audio is False

    def test_image_capabilities(self):
        pool = ProviderPool.from_settings(_settings(openai_api_key="sk", replicate_api_token="r8"))
        assert isinstance(pool.handles(Capability.TEXT_TO_IMAGE)[0].provider, OpenAIProvider)
        assert isinstance(pool.handles(Capability.IMAGE_TO_IMAGE)[0].provider, ReplicateProvider)

    def test_nothing_configured(self):
        pool = ProviderPool.from_settings(_settings())
        for capability in Capability:
            assert pool.is_enabled(capability) is False


class TestPool:
    def test_summary_lists_provider_names(self):
        pool = make_pool(chat=[FakeProvider("gemini"), FakeProvider("groq")])
        assert pool.summary()[Capability.CHAT.value] == ["gemini", "groq"]
        assert pool.summary()[Capability.VOICE.value] == []

    def test_handle_repr_hides_credential(self):
        pool = ProviderPool({Capability.CHAT: [("super-secret-key", FakeProvider("gemini"))]})
        assert "super-secret-key" not in repr(pool.handles(Capability.CHAT)[0])
