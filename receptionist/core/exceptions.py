"""Exception types raised across the call pipeline.

None of these are fatal to the process. Pipeline errors end the current
turn only; protocol errors drop a single inbound message.
"""


class ReceptionistError(Exception):
    """Base class for all receptionist errors."""


class ProtocolParseError(ReceptionistError):
    """Inbound stream message is malformed or of an unknown kind."""


class AudioFormatError(ReceptionistError):
    """Audio payload is not in the expected container or encoding."""


class TranscriptionError(ReceptionistError):
    """Speech-to-text backend failed."""


class GenerationError(ReceptionistError):
    """Reply generation failed."""


class SynthesisError(ReceptionistError):
    """Every text-to-speech provider failed."""


class SocketWriteError(ReceptionistError):
    """Write attempted on a closed or errored socket."""


class SessionNotFound(ReceptionistError):
    """No active session exists for the call id."""

    def __init__(self, call_id: str):
        super().__init__(f"No active session for call {call_id}")
        self.call_id = call_id
