"""Media stream wire messages.

Inbound messages are decoded once, at the socket boundary, into one of four
event models discriminated on the `event` field. Wire field names are
camelCase; model attributes are snake_case.
"""
import base64
import binascii
import json
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from receptionist.core.exceptions import ProtocolParseError

MULAW_ENCODING = "audio/x-mulaw"


class WireModel(BaseModel):
    """Base for wire messages: camelCase aliases, unknown fields ignored."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class MediaFormat(WireModel):
    """Audio format declared by the start message."""

    encoding: str = MULAW_ENCODING
    sample_rate: int = Field(8000, gt=0)
    channels: int = Field(1, gt=0)

    @property
    def is_mulaw(self) -> bool:
        return self.encoding.lower() in (MULAW_ENCODING, "mulaw", "pcmu")

    @property
    def bytes_per_second(self) -> int:
        sample_width = 1 if self.is_mulaw else 2
        return self.sample_rate * self.channels * sample_width


class StartPayload(WireModel):
    call_sid: str
    stream_sid: str
    account_sid: Optional[str] = None
    tracks: List[str] = []
    media_format: MediaFormat = Field(default_factory=MediaFormat)


class MediaPayload(WireModel):
    track: str = "inbound"
    chunk: Optional[str] = None
    timestamp: Optional[str] = None
    payload: bytes

    @field_validator("payload", mode="before")
    @classmethod
    def decode_payload(cls, v):
        """Decode the base64 audio payload."""
        if not isinstance(v, str):
            raise ValueError("payload must be a base64 string")
        try:
            return base64.b64decode(v, validate=True)
        except binascii.Error as e:
            raise ValueError(f"payload is not valid base64: {e}") from e


class StopPayload(WireModel):
    call_sid: Optional[str] = None
    account_sid: Optional[str] = None


class ConnectedEvent(WireModel):
    event: Literal["connected"]
    protocol: Optional[str] = None
    version: Optional[str] = None


class StartEvent(WireModel):
    event: Literal["start"]
    sequence_number: Optional[int] = None
    stream_sid: Optional[str] = None
    start: StartPayload


class MediaEvent(WireModel):
    event: Literal["media"]
    sequence_number: Optional[int] = None
    stream_sid: Optional[str] = None
    media: MediaPayload


class StopEvent(WireModel):
    event: Literal["stop"]
    sequence_number: Optional[int] = None
    stream_sid: Optional[str] = None
    stop: StopPayload = Field(default_factory=StopPayload)


StreamEvent = Annotated[
    Union[ConnectedEvent, StartEvent, MediaEvent, StopEvent],
    Field(discriminator="event"),
]

_stream_event_adapter: TypeAdapter[StreamEvent] = TypeAdapter(StreamEvent)


def parse_stream_event(raw: Union[str, bytes]) -> StreamEvent:
    """Decode one inbound message.

    Raises:
        ProtocolParseError: if the message is not JSON, has an unknown
            `event`, or is missing fields its kind requires.
    """
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise ProtocolParseError(f"Message is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ProtocolParseError("Message is not a JSON object")

    try:
        return _stream_event_adapter.validate_python(data)
    except ValidationError as e:
        raise ProtocolParseError(
            f"Invalid '{data.get('event')}' message: {e.error_count()} error(s): "
            f"{e.errors()[0]['msg']}"
        ) from e


class OutboundMedia(WireModel):
    payload: str


class OutboundMediaMessage(WireModel):
    """One chunk of audio sent back to the caller."""

    event: Literal["media"] = "media"
    stream_sid: str
    media: OutboundMedia

    @classmethod
    def for_payload(cls, stream_sid: str, payload: bytes) -> "OutboundMediaMessage":
        return cls(
            stream_sid=stream_sid,
            media=OutboundMedia(payload=base64.b64encode(payload).decode("ascii")),
        )
