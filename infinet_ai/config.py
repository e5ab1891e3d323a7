from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Chat tiers
    gemini_api_key: Optional[str] = None
    gemini_api_key_chat_fallback: Optional[str] = None
    groq_api_key_chat_fallback2: Optional[str] = None
    groq_api_key_chat_fallback3: Optional[str] = None

    # Voice tiers
    gemini_api_key_voice: Optional[str] = None
    gemini_api_key_voice_fallback: Optional[str] = None
    groq_api_key_voice_fallback2: Optional[str] = None
    groq_api_key_voice_fallback3: Optional[str] = None

    # Transcription, speech and image generation
    openai_api_key: Optional[str] = None
    elevenlabs_api_key: Optional[str] = None
    replicate_api_token: Optional[str] = None

    gemini_model: str = "gemini-2.5-flash"
    groq_model: str = "llama-3.3-70b-versatile"
    transcription_model: str = "whisper-1"
    elevenlabs_model: str = "scribe_v1"
    tts_model: str = "tts-1"
    tts_voice_default: str = "alloy"
    tts_voice_alternate: str = "nova"
    image_model: str = "dall-e-3"
    image_size: str = "1024x1024"
    image_quality: str = "standard"
    replicate_model: str = "google/nano-banana"
    temperature: float = 0.7
    max_output_tokens: int = 2048

    interactive_deadline_seconds: float = 60.0
    transcription_deadline_seconds: float = 300.0
    backup_transcription_seconds: float = 30.0
    media_download_timeout_seconds: float = 30.0
    replicate_poll_interval_seconds: float = 1.0

    history_turns: int = 6
    image_max_dimension: int = 1024
    image_max_input_pixels: int = 40_000_000
    media_max_bytes: int = 16 * 1024 * 1024
    daily_text_to_image_limit: int = 5
    daily_image_to_image_limit: int = 5

    session_backend: str = "memory"
    database_url: str = "sqlite:///./infinet.db"

    whatsapp_gateway_url: Optional[str] = None
    whatsapp_gateway_token: Optional[str] = None

    alert_bot_token: Optional[str] = None
    alert_chat_id: Optional[str] = None

    business_name: str = "InfiNet"
    cors_allow_origins: str = "*"
    log_level: str = "INFO"
    debug: bool = False

    class Config:
        env_file = ".env"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    return Settings()
