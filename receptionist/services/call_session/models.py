"""Call session models."""
import asyncio
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from fastapi import WebSocket
from pydantic import BaseModel, Field

from receptionist.core.exceptions import SocketWriteError
from receptionist.services.call_session.messages import MediaFormat, OutboundMediaMessage


class ConversationMessage(BaseModel):
    """One turn of a conversation."""

    role: Literal["user", "assistant"]
    content: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    label: Optional[str] = None


class ReplyContext(BaseModel):
    """What a reply generator gets to see besides the transcript."""

    call_id: str
    business_id: str
    history: List[ConversationMessage] = []
    # Shared with ConversationMemory.context so generators can carry state
    state: Dict[str, Any] = {}


class ConversationMemory(BaseModel):
    """Per-call conversation history, kept briefly after the call ends."""

    call_id: str
    business_id: str
    messages: List[ConversationMessage] = []
    context: Dict[str, Any] = {}

    def add_user_turn(self, text: str) -> None:
        """Add a caller turn."""
        self.messages.append(ConversationMessage(role="user", content=text))

    def add_assistant_turn(self, text: str, label: Optional[str] = None) -> None:
        """Add a receptionist turn."""
        self.messages.append(
            ConversationMessage(role="assistant", content=text, label=label)
        )

    def recent(self, limit: int) -> List[ConversationMessage]:
        """Most recent turns, oldest first."""
        if limit <= 0:
            return []
        return list(self.messages[-limit:])

    def reply_context(self, limit: int) -> ReplyContext:
        """Build the context handed to the reply generator."""
        context = ReplyContext(
            call_id=self.call_id,
            business_id=self.business_id,
            history=self.recent(limit),
        )
        # Assign after construction; validation would copy the dict
        context.state = self.context
        return context


class CallSession:
    """Live state for one call's media stream.

    The websocket is owned by the session; only the outbound streamer writes
    to it, through send_media().
    """

    def __init__(
        self,
        call_id: str,
        stream_id: str,
        websocket: WebSocket,
        media_format: Optional[MediaFormat] = None,
        now: Optional[float] = None,
    ):
        started = time.monotonic() if now is None else now
        self.call_id = call_id
        self.stream_id = stream_id
        self.websocket = websocket
        self.media_format = media_format or MediaFormat()
        self.started_at = started
        self.last_activity_at = started
        self.last_flush_at = started
        self.pending_audio: List[bytes] = []
        self.is_processing = False
        self.closed = False
        self.playback_task: Optional[asyncio.Task] = None
        self.outbound: "asyncio.Queue[bytes]" = asyncio.Queue()

    @property
    def bytes_per_second(self) -> int:
        return self.media_format.bytes_per_second

    def append_frame(self, frame: bytes, now: Optional[float] = None) -> None:
        """Buffer one inbound frame in arrival order."""
        self.pending_audio.append(frame)
        self.last_activity_at = time.monotonic() if now is None else now

    def buffered_duration(self) -> float:
        """Seconds of audio waiting in the buffer."""
        return self.duration_of(self.pending_audio)

    def duration_of(self, frames: List[bytes]) -> float:
        """Seconds of audio in a list of frames of this session's format."""
        total = sum(len(f) for f in frames)
        return total / self.bytes_per_second

    def drain(self) -> List[bytes]:
        """Swap the buffer for an empty one and return the old frames."""
        frames, self.pending_audio = self.pending_audio, []
        return frames

    async def send_media(self, payload: bytes) -> None:
        """Send one outbound audio chunk to the caller.

        Raises:
            SocketWriteError: if the session is closed or the write fails.
        """
        if self.closed:
            raise SocketWriteError(f"Session {self.call_id} is closed")
        message = OutboundMediaMessage.for_payload(self.stream_id, payload)
        try:
            await self.websocket.send_text(message.model_dump_json(by_alias=True))
        except Exception as e:
            raise SocketWriteError(
                f"Write failed for call {self.call_id}: {type(e).__name__}: {e}"
            ) from e
