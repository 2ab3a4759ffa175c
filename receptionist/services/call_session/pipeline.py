"""Transcribe, reply, synthesize."""
import logging
from typing import List

from receptionist.core.exceptions import GenerationError, SynthesisError, TranscriptionError
from receptionist.services.audio.codec import mulaw_to_pcm16, wrap_wav
from receptionist.services.call_session.models import CallSession
from receptionist.services.call_session.store import CallSessionStore, ConversationMemoryStore
from receptionist.services.call_session.streamer import OutboundAudioStreamer
from receptionist.services.reply.base import ReplyGenerator
from receptionist.services.speech.stt import SpeechToTextService
from receptionist.services.speech.tts import SpeechSynthesizer

logger = logging.getLogger(__name__)


class SpeechPipeline:
    """Runs one processing cycle over a drained audio buffer.

    A failed stage ends the turn silently; the call itself carries on. After
    every await the session is looked up again, and if it has ended in the
    meantime the result is thrown away.
    """

    def __init__(
        self,
        stt: SpeechToTextService,
        reply_generator: ReplyGenerator,
        synthesizer: SpeechSynthesizer,
        streamer: OutboundAudioStreamer,
        sessions: CallSessionStore,
        memories: ConversationMemoryStore,
        min_viable_duration: float = 0.1,
        context_window: int = 10,
    ):
        self.stt = stt
        self.reply_generator = reply_generator
        self.synthesizer = synthesizer
        self.streamer = streamer
        self.sessions = sessions
        self.memories = memories
        self.min_viable_duration = min_viable_duration
        self.context_window = context_window

    def _is_live(self, session: CallSession, stage: str) -> bool:
        if session.closed or not self.sessions.is_current(session):
            logger.info(
                f"[PIPELINE] Call ended during {stage}, discarding result - "
                f"CallSid: {session.call_id}"
            )
            return False
        return True

    def to_wav(self, session: CallSession, frames: List[bytes]) -> bytes:
        """Join frames and wrap them as 16-bit PCM WAV."""
        audio = b"".join(frames)
        media_format = session.media_format
        pcm = mulaw_to_pcm16(audio) if media_format.is_mulaw else audio
        return wrap_wav(pcm, sample_rate=media_format.sample_rate, channels=media_format.channels)

    async def run(self, session: CallSession, frames: List[bytes]) -> bool:
        """Process one drained buffer. Returns True if a reply was queued."""
        call_id = session.call_id
        duration = session.duration_of(frames)
        if duration < self.min_viable_duration:
            logger.debug(
                f"[PIPELINE] Audio too short ({duration * 1000:.0f}ms), skipping - CallSid: {call_id}"
            )
            return False

        logger.info(
            f"[STT] Transcribing {len(frames)} frame(s), {duration:.2f}s - CallSid: {call_id}"
        )
        try:
            transcript = await self.stt.transcribe(self.to_wav(session, frames))
        except TranscriptionError as e:
            logger.error(f"[STT] {e} - CallSid: {call_id}")
            return False

        if not self._is_live(session, "transcription"):
            return False
        if not transcript or not transcript.strip():
            logger.info(f"[STT] No speech detected - CallSid: {call_id}")
            return False
        transcript = transcript.strip()
        logger.info(f"[STT] Transcribed: '{transcript}' - CallSid: {call_id}")

        memory = self.memories.get(call_id)
        if memory is None:
            logger.warning(f"[PIPELINE] No conversation memory - CallSid: {call_id}")
            return False
        memory.add_user_turn(transcript)

        try:
            reply = await self.reply_generator.generate_reply(
                transcript, memory.reply_context(self.context_window)
            )
        except GenerationError as e:
            logger.error(f"[REPLY] {e} - CallSid: {call_id}")
            return False

        if not self._is_live(session, "reply generation"):
            return False
        memory.add_assistant_turn(reply.text, reply.label)
        logger.info(
            f"[REPLY] ({reply.label}) '{reply.text[:100]}' - CallSid: {call_id}"
        )

        try:
            audio = await self.synthesizer.synthesize(reply.text)
        except SynthesisError as e:
            logger.error(f"[TTS] {e} - CallSid: {call_id}")
            return False

        if not self._is_live(session, "synthesis"):
            return False
        return self.streamer.enqueue(session, audio)
