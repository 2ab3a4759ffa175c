"""Speech-to-text service."""
import logging
from typing import Optional

from openai import AsyncOpenAI

from receptionist.core.config import settings
from receptionist.core.exceptions import TranscriptionError

logger = logging.getLogger(__name__)


class SpeechToTextService:
    """Service for converting speech to text."""

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        model: Optional[str] = None,
        language: Optional[str] = None,
    ):
        self.client = client or AsyncOpenAI(api_key=settings.openai_api_key)
        self.model = model or settings.stt_model
        self.language = language or settings.stt_language

    async def transcribe(self, wav_audio: bytes) -> str:
        """
        Transcribe WAV audio to text using OpenAI Whisper.

        Args:
            wav_audio: Complete WAV file bytes

        Returns:
            Transcribed text, stripped; empty when nothing was said

        Raises:
            TranscriptionError: if the backend call fails
        """
        try:
            transcript = await self.client.audio.transcriptions.create(
                model=self.model,
                file=("audio.wav", wav_audio, "audio/wav"),
                language=self.language,
            )
        except Exception as e:
            raise TranscriptionError(
                f"Transcription failed: {type(e).__name__}: {e}"
            ) from e

        text = getattr(transcript, "text", transcript)
        return (text or "").strip()
