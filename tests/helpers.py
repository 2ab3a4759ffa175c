"""Test doubles and wire message builders for media stream tests."""
import asyncio
import base64
import json
from typing import Callable, List, Union

# 20ms of 8kHz mu-law
FRAME_SIZE = 160
SILENCE_FRAME = b"\xff" * FRAME_SIZE


class FakeWebSocket:
    """In-memory stand-in for a FastAPI WebSocket."""

    def __init__(self):
        self.incoming: asyncio.Queue = asyncio.Queue()
        self.sent: List[dict] = []
        self.accepted = False
        self.closed = False
        self.fail_writes = False

    async def accept(self):
        self.accepted = True

    async def receive(self) -> dict:
        return await self.incoming.get()

    async def send_text(self, data: str):
        if self.closed or self.fail_writes:
            raise RuntimeError("Cannot call 'send' once a close message has been sent.")
        self.sent.append(json.loads(data))

    async def close(self, code: int = 1000):
        self.closed = True

    def push(self, message: Union[dict, str, bytes]):
        if isinstance(message, dict):
            message = json.dumps(message)
        key = "bytes" if isinstance(message, bytes) else "text"
        self.incoming.put_nowait({"type": "websocket.receive", key: message})

    def disconnect(self, code: int = 1000):
        self.incoming.put_nowait({"type": "websocket.disconnect", "code": code})

    def sent_audio(self) -> bytes:
        return b"".join(base64.b64decode(m["media"]["payload"]) for m in self.sent)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


def start_message(call_sid: str = "CA1", stream_sid: str = "MZ1", **media_format) -> dict:
    start = {
        "callSid": call_sid,
        "streamSid": stream_sid,
        "accountSid": "AC123",
        "tracks": ["inbound"],
    }
    if media_format:
        start["mediaFormat"] = media_format
    return {"event": "start", "sequenceNumber": "1", "streamSid": stream_sid, "start": start}


def media_message(
    payload: bytes = SILENCE_FRAME, stream_sid: str = "MZ1", track: str = "inbound"
) -> dict:
    return {
        "event": "media",
        "streamSid": stream_sid,
        "media": {
            "track": track,
            "chunk": "1",
            "timestamp": "20",
            "payload": base64.b64encode(payload).decode("ascii"),
        },
    }


def stop_message(call_sid: str = "CA1", stream_sid: str = "MZ1") -> dict:
    return {"event": "stop", "streamSid": stream_sid, "stop": {"callSid": call_sid}}


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0):
    """Yield to the event loop until predicate() is true."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("Condition not met before timeout")
        await asyncio.sleep(0.001)


