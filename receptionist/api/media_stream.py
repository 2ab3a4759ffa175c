"""Media stream WebSocket endpoint."""
import logging
from fastapi import APIRouter, Depends, WebSocket

from receptionist.core.dependencies import get_call_manager
from receptionist.services.call_session.gateway import MediaStreamGateway
from receptionist.services.call_session.manager import CallSessionManager

router = APIRouter()
logger = logging.getLogger(__name__)


@router.websocket("/media-stream")
async def media_stream(
    websocket: WebSocket,
    manager: CallSessionManager = Depends(get_call_manager),
):
    """Bidirectional audio for one call."""
    client = websocket.client.host if websocket.client else "unknown"
    logger.info(f"[STREAM] Media stream connection - Client: {client}")
    await MediaStreamGateway(manager).handle(websocket)
