"""Flush policy for buffered inbound audio."""
from pydantic import BaseModel, ConfigDict

from receptionist.services.call_session.models import CallSession


class FlushPolicy(BaseModel):
    """Decides when buffered caller audio is ready for transcription.

    Flush when at least `min_flush_duration` seconds are buffered, or when
    `max_silence_gap` seconds have passed since the last flush, at least
    `min_audio_floor` seconds are buffered and no cycle is in flight.
    """

    model_config = ConfigDict(frozen=True)

    min_flush_duration: float = 0.8
    max_silence_gap: float = 2.0
    min_audio_floor: float = 0.5

    @classmethod
    def aggressive(cls) -> "FlushPolicy":
        return cls(min_flush_duration=0.8, max_silence_gap=2.0, min_audio_floor=0.5)

    @classmethod
    def conservative(cls) -> "FlushPolicy":
        return cls(min_flush_duration=3.0, max_silence_gap=5.0, min_audio_floor=1.0)

    def should_flush(
        self, buffered: float, since_last_flush: float, is_processing: bool
    ) -> bool:
        if buffered >= self.min_flush_duration:
            return True
        return (
            since_last_flush >= self.max_silence_gap
            and buffered >= self.min_audio_floor
            and not is_processing
        )

    def evaluate(self, session: CallSession, now: float) -> bool:
        """Apply the policy to a session's current buffer."""
        return self.should_flush(
            session.buffered_duration(),
            now - session.last_flush_at,
            session.is_processing,
        )
