from infinet_ai.services.llm.openai_provider import OpenAICompatibleProvider


class GroqProvider(OpenAICompatibleProvider):
    """Groq chat completions (OpenAI-compatible, text only)."""

    name = "groq"
    base_url = "https://api.groq.com/openai/v1"

    def __init__(self, api_key: str, default_model: str = "llama-3.3-70b-versatile", **kwargs):
        super().__init__(api_key, default_model, **kwargs)
