"""Text-to-speech service.

Providers return 16-bit mono PCM already resampled to the telephony rate.
SpeechSynthesizer tries them in the configured order.
"""
import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

import httpx
from openai import AsyncOpenAI

from receptionist.core.config import Settings, settings
from receptionist.core.exceptions import SynthesisError
from receptionist.services.audio.codec import resample_pcm16

logger = logging.getLogger(__name__)

# OpenAI "pcm" responses are 24kHz 16-bit mono
OPENAI_PCM_RATE = 24000
ELEVENLABS_PCM_RATE = 16000
ELEVENLABS_API_URL = "https://api.elevenlabs.io/v1/text-to-speech"


class SpeechProvider(ABC):
    """A single text-to-speech backend."""

    name: str = "provider"

    @abstractmethod
    async def synthesize(self, text: str) -> bytes:
        """Return 16-bit PCM at the telephony sample rate."""
        pass


class OpenAISpeechProvider(SpeechProvider):
    """OpenAI TTS."""

    name = "openai"

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        model: str = "tts-1",
        voice: str = "alloy",
        output_rate: int = 8000,
    ):
        self.client = client or AsyncOpenAI(api_key=settings.openai_api_key)
        self.model = model
        self.voice = voice
        self.output_rate = output_rate

    async def synthesize(self, text: str) -> bytes:
        """
        Synthesize speech from text using OpenAI TTS.

        Args:
            text: Text to convert to speech

        Returns:
            Audio bytes (16-bit PCM at output_rate)
        """
        try:
            response = await self.client.audio.speech.create(
                model=self.model,
                voice=self.voice,
                input=text,
                response_format="pcm",
            )
        except Exception as e:
            raise SynthesisError(f"OpenAI TTS failed: {type(e).__name__}: {e}") from e
        return resample_pcm16(response.content, OPENAI_PCM_RATE, self.output_rate)


class ElevenLabsSpeechProvider(SpeechProvider):
    """ElevenLabs TTS over its REST API."""

    name = "elevenlabs"

    def __init__(
        self,
        api_key: Optional[str],
        voice_id: str = "21m00Tcm4TlvDq8ikWAM",
        model_id: str = "eleven_monolingual_v1",
        output_rate: int = 8000,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 15.0,
    ):
        self.api_key = api_key
        self.voice_id = voice_id
        self.model_id = model_id
        self.output_rate = output_rate
        self.http_client = http_client
        self.timeout = timeout

    async def synthesize(self, text: str) -> bytes:
        if not self.api_key:
            raise SynthesisError("ElevenLabs API key not configured")

        url = f"{ELEVENLABS_API_URL}/{self.voice_id}"
        body = {
            "text": text,
            "model_id": self.model_id,
            "voice_settings": {
                "stability": 0.6,
                "similarity_boost": 0.8,
                "style": 0.2,
                "use_speaker_boost": True,
            },
        }
        headers = {"xi-api-key": self.api_key, "Accept": "audio/pcm"}
        params = {"output_format": f"pcm_{ELEVENLABS_PCM_RATE}"}

        try:
            if self.http_client is not None:
                response = await self.http_client.post(
                    url, json=body, headers=headers, params=params
                )
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(
                        url, json=body, headers=headers, params=params
                    )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise SynthesisError(
                f"ElevenLabs TTS failed: {type(e).__name__}: {e}"
            ) from e

        return resample_pcm16(response.content, ELEVENLABS_PCM_RATE, self.output_rate)


class SpeechSynthesizer:
    """Tries each provider in order and returns the first audio produced."""

    def __init__(self, providers: List[SpeechProvider]):
        if not providers:
            raise ValueError("At least one speech provider is required")
        self.providers = providers

    async def synthesize(self, text: str) -> bytes:
        """
        Synthesize speech, falling back through providers.

        Raises:
            SynthesisError: if every provider fails or returns no audio
        """
        failures = []
        for provider in self.providers:
            try:
                audio = await provider.synthesize(text)
            except SynthesisError as e:
                logger.warning(f"[TTS] Provider '{provider.name}' failed: {e}")
                failures.append(f"{provider.name}: {e}")
                continue
            if audio:
                logger.debug(
                    f"[TTS] Provider '{provider.name}' produced {len(audio)} bytes"
                )
                return audio
            failures.append(f"{provider.name}: empty audio")

        raise SynthesisError("All TTS providers failed - " + "; ".join(failures))


def build_synthesizer(config: Settings) -> SpeechSynthesizer:
    """Create the synthesizer with providers in the configured order."""
    available: Dict[str, SpeechProvider] = {
        "elevenlabs": ElevenLabsSpeechProvider(
            api_key=config.elevenlabs_api_key,
            voice_id=config.elevenlabs_voice_id,
            model_id=config.elevenlabs_model_id,
            output_rate=config.telephony_sample_rate,
        ),
        "openai": OpenAISpeechProvider(
            client=AsyncOpenAI(api_key=config.openai_api_key),
            model=config.openai_tts_model,
            voice=config.openai_tts_voice,
            output_rate=config.telephony_sample_rate,
        ),
    }
    providers = []
    for name in config.tts_provider_order:
        provider = available.get(name.lower())
        if provider is None:
            logger.warning(f"[TTS] Unknown provider '{name}' in tts_provider_order, skipping")
            continue
        providers.append(provider)
    return SpeechSynthesizer(providers)
