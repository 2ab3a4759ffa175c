"""Application configuration."""
from typing import List, Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # OpenAI
    openai_api_key: str
    stt_model: str = "whisper-1"
    stt_language: str = "en"
    openai_tts_model: str = "tts-1"
    openai_tts_voice: str = "alloy"

    # ElevenLabs
    elevenlabs_api_key: Optional[str] = None
    elevenlabs_voice_id: str = "21m00Tcm4TlvDq8ikWAM"  # Rachel
    elevenlabs_model_id: str = "eleven_monolingual_v1"

    # Providers tried in order until one succeeds
    tts_provider_order: List[str] = ["elevenlabs", "openai"]

    # Replies
    reply_backend: Literal["keyword", "openai"] = "keyword"
    reply_model: str = "gpt-4o-mini"
    default_business_id: str = "pizzakarachi"
    greeting_text: str = "Hello! Welcome to Pizza Karachi. How can I help you today?"
    context_window: int = 10

    # Flush policy (seconds). Conservative profile: 3.0 / 5.0 / 1.0
    min_flush_duration: float = 0.8
    max_silence_gap: float = 2.0
    min_audio_floor: float = 0.5
    min_viable_duration: float = 0.1

    # Outbound audio
    outbound_encoding: Literal["mulaw", "pcm"] = "mulaw"
    # Derived from encoding and interval when unset (160 mu-law, 320 pcm at 20ms)
    outbound_chunk_size: Optional[int] = None
    outbound_interval: float = 0.02
    telephony_sample_rate: int = 8000

    # Conversation memory retained after a call ends (seconds)
    memory_grace_period: float = 300.0

    # Server
    base_url: Optional[str] = None
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )


settings = Settings()
