"""FastAPI dependencies."""
from functools import lru_cache

from openai import AsyncOpenAI

from receptionist.core.config import Settings, settings
from receptionist.services.call_session.accumulator import FlushPolicy
from receptionist.services.call_session.manager import CallSessionManager
from receptionist.services.call_session.store import ConversationMemoryStore
from receptionist.services.call_session.streamer import OutboundAudioStreamer
from receptionist.services.reply.base import ReplyGenerator
from receptionist.services.reply.business import BusinessRepository
from receptionist.services.reply.intent import KeywordReplyGenerator
from receptionist.services.reply.llm import LLMReplyGenerator
from receptionist.services.speech.stt import SpeechToTextService
from receptionist.services.speech.tts import build_synthesizer


def build_reply_generator(config: Settings, client: AsyncOpenAI) -> ReplyGenerator:
    """Get the reply generator for the configured backend."""
    repository = BusinessRepository()
    if config.reply_backend == "openai":
        return LLMReplyGenerator(repository, client=client, model=config.reply_model)
    return KeywordReplyGenerator(repository)


def build_call_manager(config: Settings) -> CallSessionManager:
    """Wire a call session manager from settings."""
    client = AsyncOpenAI(api_key=config.openai_api_key)
    return CallSessionManager(
        stt=SpeechToTextService(
            client=client, model=config.stt_model, language=config.stt_language
        ),
        reply_generator=build_reply_generator(config, client),
        synthesizer=build_synthesizer(config),
        streamer=OutboundAudioStreamer(
            chunk_size=config.outbound_chunk_size,
            interval=config.outbound_interval,
            encoding=config.outbound_encoding,
            sample_rate=config.telephony_sample_rate,
        ),
        flush_policy=FlushPolicy(
            min_flush_duration=config.min_flush_duration,
            max_silence_gap=config.max_silence_gap,
            min_audio_floor=config.min_audio_floor,
        ),
        memories=ConversationMemoryStore(grace_period=config.memory_grace_period),
        business_id=config.default_business_id,
        greeting_text=config.greeting_text,
        min_viable_duration=config.min_viable_duration,
        context_window=config.context_window,
    )


@lru_cache
def get_call_manager() -> CallSessionManager:
    """Get the process-wide call session manager."""
    return build_call_manager(settings)
