"""Media stream WebSocket protocol handling."""
import logging
from enum import Enum
from typing import Optional, Union

from fastapi import WebSocket, WebSocketDisconnect

from receptionist.core.exceptions import ProtocolParseError
from receptionist.services.call_session.manager import CallSessionManager
from receptionist.services.call_session.messages import (
    ConnectedEvent,
    MediaEvent,
    StartEvent,
    StopEvent,
    StreamEvent,
    parse_stream_event,
)
from receptionist.services.call_session.models import CallSession

logger = logging.getLogger(__name__)


class GatewayState(str, Enum):
    CONNECTED = "connected"
    STREAMING = "streaming"
    STOPPED = "stopped"


class MediaStreamConnection:
    """One media stream socket, from accept to teardown.

    Teardown runs exactly once, whether the stream ends with `stop`, a
    disconnect or an error.
    """

    def __init__(self, websocket: WebSocket, manager: CallSessionManager):
        self.websocket = websocket
        self.manager = manager
        self.state = GatewayState.CONNECTED
        self.session: Optional[CallSession] = None
        self._torn_down = False

    async def run(self) -> None:
        await self.websocket.accept()
        logger.info("[STREAM] WebSocket connection accepted")

        try:
            while self.state != GatewayState.STOPPED:
                raw = await self._receive()
                try:
                    event = parse_stream_event(raw)
                except ProtocolParseError as e:
                    logger.warning(f"[STREAM] Discarding malformed message: {e}")
                    continue
                await self.dispatch(event)
        except WebSocketDisconnect as e:
            logger.info(
                f"[STREAM] WebSocket disconnected (code {e.code}) - CallSid: {self.call_id}"
            )
        except Exception as e:
            logger.error(
                f"[STREAM] WebSocket error - CallSid: {self.call_id}, "
                f"Error: {type(e).__name__}: {str(e)}",
                exc_info=True,
            )
        finally:
            self.teardown()

    async def _receive(self) -> Union[str, bytes, None]:
        """Read one frame, text or binary. Binary frames go to the parser too."""
        message = await self.websocket.receive()
        if message["type"] == "websocket.disconnect":
            raise WebSocketDisconnect(message.get("code", 1000), message.get("reason"))
        text = message.get("text")
        return text if text is not None else message.get("bytes")

    @property
    def call_id(self) -> Optional[str]:
        return self.session.call_id if self.session else None

    async def dispatch(self, event: StreamEvent) -> None:
        if isinstance(event, ConnectedEvent):
            logger.info(f"[STREAM] Stream connected - Protocol: {event.protocol}")
        elif isinstance(event, StartEvent):
            self._on_start(event)
        elif isinstance(event, MediaEvent):
            self._on_media(event)
        elif isinstance(event, StopEvent):
            logger.info(f"[STREAM] Stop received - CallSid: {self.call_id}")
            self.teardown()
            await self._close_socket()

    def _on_start(self, event: StartEvent) -> None:
        if self.state != GatewayState.CONNECTED:
            logger.warning(
                f"[STREAM] Duplicate start ignored - CallSid: {self.call_id}, "
                f"got: {event.start.call_sid}"
            )
            return
        self.session = self.manager.start_call(self.websocket, event.start)
        self.state = GatewayState.STREAMING

    def _on_media(self, event: MediaEvent) -> None:
        if self.state != GatewayState.STREAMING or self.session is None:
            logger.debug("[STREAM] Media before start ignored")
            return
        if event.media.track == "outbound":
            return
        self.manager.handle_media(self.session, event.media)

    def teardown(self) -> None:
        self.state = GatewayState.STOPPED
        if self._torn_down:
            return
        self._torn_down = True
        if self.session is not None:
            self.manager.end_call(self.session.call_id, self.session)

    async def _close_socket(self) -> None:
        try:
            await self.websocket.close()
        except RuntimeError as e:
            logger.debug(f"[STREAM] Socket already closed - CallSid: {self.call_id}: {e}")


class MediaStreamGateway:
    """Entry point for media stream sockets."""

    def __init__(self, manager: CallSessionManager):
        self.manager = manager

    async def handle(self, websocket: WebSocket) -> MediaStreamConnection:
        connection = MediaStreamConnection(websocket, self.manager)
        await connection.run()
        return connection
