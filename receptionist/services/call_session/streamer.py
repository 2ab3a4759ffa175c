"""Paced outbound audio."""
import asyncio
import logging
from typing import List, Optional

from receptionist.core.exceptions import AudioFormatError, SocketWriteError
from receptionist.services.audio.codec import is_wav, pcm16_to_mulaw, unwrap_wav
from receptionist.services.call_session.models import CallSession

logger = logging.getLogger(__name__)

# Bytes per sample on the wire
SAMPLE_WIDTHS = {"mulaw": 1, "pcm": 2}


class OutboundAudioStreamer:
    """Plays synthesized audio to a caller in small timed chunks.

    Each session gets one playback task, started with the session and
    cancelled at teardown. Audio handed over with enqueue() is played in
    order, one chunk per `interval` seconds.
    """

    def __init__(
        self,
        chunk_size: Optional[int] = None,
        interval: float = 0.02,
        encoding: str = "mulaw",
        sample_rate: int = 8000,
    ):
        if encoding not in SAMPLE_WIDTHS:
            raise ValueError(f"Unsupported outbound encoding: {encoding}")
        if chunk_size is None:
            # One interval of audio per chunk keeps playback at real time
            chunk_size = round(interval * sample_rate) * SAMPLE_WIDTHS[encoding]
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self.chunk_size = chunk_size
        self.interval = interval
        self.encoding = encoding

    def encode(self, audio: bytes) -> bytes:
        """Convert 16-bit PCM (raw or WAV) to the wire encoding."""
        if is_wav(audio):
            try:
                audio, _ = unwrap_wav(audio)
            except AudioFormatError as e:
                logger.warning(f"[STREAM] Malformed WAV from synthesizer, sending raw: {e}")
        if self.encoding == "mulaw":
            return pcm16_to_mulaw(audio)
        return audio

    def chunk(self, payload: bytes) -> List[bytes]:
        return [
            payload[i : i + self.chunk_size]
            for i in range(0, len(payload), self.chunk_size)
        ]

    def start(self, session: CallSession) -> None:
        """Start the playback task for a session."""
        if session.playback_task is None or session.playback_task.done():
            session.playback_task = asyncio.get_running_loop().create_task(
                self._run(session)
            )

    def stop(self, session: CallSession) -> None:
        """Cancel playback; nothing more is written to the socket."""
        task = session.playback_task
        if task is not None and not task.done():
            task.cancel()

    def enqueue(self, session: CallSession, audio: bytes) -> bool:
        """Queue synthesized audio for playback. False if the session is closed."""
        if session.closed:
            return False
        payload = self.encode(audio)
        if not payload:
            return False
        session.outbound.put_nowait(payload)
        return True

    async def _run(self, session: CallSession) -> None:
        while not session.closed:
            payload = await session.outbound.get()
            await self.play(session, payload)

    async def play(self, session: CallSession, payload: bytes) -> int:
        """Send an encoded payload chunk by chunk. Returns chunks sent."""
        sent = 0
        for chunk in self.chunk(payload):
            if session.closed:
                break
            try:
                await session.send_media(chunk)
            except SocketWriteError as e:
                logger.info(f"[STREAM] Playback halted - CallSid: {session.call_id}: {e}")
                break
            sent += 1
            await asyncio.sleep(self.interval)

        logger.debug(
            f"[STREAM] Played {sent} chunk(s) ({len(payload)} bytes) - CallSid: {session.call_id}"
        )
        return sent
