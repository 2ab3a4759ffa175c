"""Call session manager."""
import asyncio
import logging
import time
from typing import Callable, Coroutine, Optional, Set

from fastapi import WebSocket
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from receptionist.core.exceptions import SynthesisError
from receptionist.services.call_session.accumulator import FlushPolicy
from receptionist.services.call_session.messages import MediaPayload, StartPayload
from receptionist.services.call_session.models import CallSession
from receptionist.services.call_session.pipeline import SpeechPipeline
from receptionist.services.call_session.store import CallSessionStore, ConversationMemoryStore
from receptionist.services.call_session.streamer import OutboundAudioStreamer
from receptionist.services.reply.base import ReplyGenerator
from receptionist.services.speech.stt import SpeechToTextService
from receptionist.services.speech.tts import SpeechSynthesizer

logger = logging.getLogger(__name__)


class CallStats(BaseModel):
    """Status snapshot across all calls."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    active_calls: int
    conversations_in_memory: int
    uptime: float


class CallSessionManager:
    """Owns every call's lifecycle, from `start` to teardown.

    Sessions and conversation memory live in keyed stores. Inbound frames are
    buffered per session and, once the flush policy fires, handed to the
    speech pipeline as a background task so the socket keeps being read.
    """

    def __init__(
        self,
        stt: SpeechToTextService,
        reply_generator: ReplyGenerator,
        synthesizer: SpeechSynthesizer,
        streamer: OutboundAudioStreamer,
        flush_policy: Optional[FlushPolicy] = None,
        sessions: Optional[CallSessionStore] = None,
        memories: Optional[ConversationMemoryStore] = None,
        business_id: str = "pizzakarachi",
        greeting_text: Optional[str] = None,
        min_viable_duration: float = 0.1,
        context_window: int = 10,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.synthesizer = synthesizer
        self.streamer = streamer
        self.flush_policy = flush_policy or FlushPolicy.aggressive()
        self.sessions = sessions if sessions is not None else CallSessionStore()
        self.memories = memories if memories is not None else ConversationMemoryStore()
        self.business_id = business_id
        self.greeting_text = greeting_text
        self.clock = clock
        self.started_at = clock()
        self.pipeline = SpeechPipeline(
            stt=stt,
            reply_generator=reply_generator,
            synthesizer=synthesizer,
            streamer=streamer,
            sessions=self.sessions,
            memories=self.memories,
            min_viable_duration=min_viable_duration,
            context_window=context_window,
        )
        self._background: Set[asyncio.Task] = set()

    def start_call(self, websocket: WebSocket, start: StartPayload) -> CallSession:
        """Register a session and its memory, then greet the caller."""
        session = CallSession(
            call_id=start.call_sid,
            stream_id=start.stream_sid,
            websocket=websocket,
            media_format=start.media_format,
            now=self.clock(),
        )

        previous = self.sessions.add(session)
        if previous is not None:
            logger.warning(
                f"[SESSION MANAGER] Replacing existing session - CallSid: {start.call_sid}"
            )
            self._close(previous)

        memory = self.memories.get_or_create(start.call_sid, self.business_id)
        self.streamer.start(session)

        logger.info(
            f"[SESSION MANAGER] Call started - CallSid: {session.call_id}, "
            f"StreamSid: {session.stream_id}, Format: {session.media_format.encoding} "
            f"{session.media_format.sample_rate}Hz, Turns in memory: {len(memory.messages)}"
        )

        if self.greeting_text:
            self._spawn(self._play_greeting(session, self.greeting_text))
        return session

    async def _play_greeting(self, session: CallSession, text: str) -> None:
        try:
            audio = await self.synthesizer.synthesize(text)
        except SynthesisError as e:
            logger.error(f"[TTS] Greeting failed - CallSid: {session.call_id}: {e}")
            return
        if session.closed or not self.sessions.is_current(session):
            return
        self.streamer.enqueue(session, audio)
        logger.info(f"[SESSION MANAGER] Greeting queued - CallSid: {session.call_id}")

    def handle_media(self, session: CallSession, media: MediaPayload) -> bool:
        """Buffer one inbound frame. Returns True if it started a cycle."""
        if session.closed:
            return False

        now = self.clock()
        session.append_frame(media.payload, now)

        # The decision and the drain happen without awaiting in between
        if session.is_processing or not self.flush_policy.evaluate(session, now):
            return False

        frames = session.drain()
        session.is_processing = True
        session.last_flush_at = now
        logger.debug(
            f"[SESSION MANAGER] Flushing {len(frames)} frame(s) - CallSid: {session.call_id}"
        )
        self._spawn(self._run_cycle(session, frames))
        return True

    async def _run_cycle(self, session: CallSession, frames) -> None:
        try:
            await self.pipeline.run(session, frames)
        except Exception as e:
            logger.error(
                f"[SESSION MANAGER] Processing cycle failed - CallSid: {session.call_id}, "
                f"Error: {type(e).__name__}: {str(e)}",
                exc_info=True,
            )
        finally:
            session.is_processing = False

    def end_call(self, call_id: str, session: Optional[CallSession] = None) -> bool:
        """Tear down a call. Safe to call more than once.

        With `session`, only that exact session is removed, so a stale
        connection cannot end a newer one registered under the same call id.
        Returns True if a session was removed.
        """
        removed = self.sessions.remove(call_id, expected=session)
        if session is not None:
            self._close(session)
        if removed is None:
            return False

        self._close(removed)
        self.memories.schedule_eviction(call_id)
        logger.info(
            f"[SESSION MANAGER] Call ended - CallSid: {call_id}, "
            f"memory retained for {self.memories.grace_period:.0f}s"
        )
        return True

    def _close(self, session: CallSession) -> None:
        if session.closed:
            return
        session.closed = True
        session.drain()
        self.streamer.stop(session)

    def get_stats(self) -> CallStats:
        return CallStats(
            active_calls=len(self.sessions),
            conversations_in_memory=len(self.memories),
            uptime=self.clock() - self.started_at,
        )

    def _spawn(self, coro: Coroutine) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def wait_for_background(self) -> None:
        """Wait for in-flight cycles and greetings to finish."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def shutdown(self) -> None:
        """End every call and drop all state."""
        calls = self.sessions.all()
        for session in calls:
            self.end_call(session.call_id, session)
        for task in list(self._background):
            task.cancel()
        await self.wait_for_background()
        self.memories.clear()
        logger.info(f"[SESSION MANAGER] Shut down, {len(calls)} call(s) ended")
