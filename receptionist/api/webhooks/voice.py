"""Twilio voice webhook endpoints."""
import logging
from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import Response

from receptionist.core.config import settings
from receptionist.core.dependencies import get_call_manager
from receptionist.core.exceptions import SessionNotFound
from receptionist.services.call_session.manager import CallSessionManager

router = APIRouter()
logger = logging.getLogger(__name__)

ENDED_CALL_STATUSES = ("completed", "failed", "busy", "no-answer", "canceled")


def get_base_url(request: Request) -> str:
    """
    Get the base URL for constructing absolute URLs.

    Uses BASE_URL environment variable if set, otherwise constructs from
    request.
    """
    if settings.base_url:
        return settings.base_url.rstrip('/')
    return str(request.base_url).rstrip('/')


def get_stream_url(base_url: str) -> str:
    """WebSocket URL of the media stream endpoint for a base URL."""
    if base_url.startswith("https://"):
        base_url = "wss://" + base_url[len("https://"):]
    elif base_url.startswith("http://"):
        base_url = "ws://" + base_url[len("http://"):]
    return f"{base_url}/media-stream"


def escape_xml(text: str) -> str:
    return (
        text.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
        .replace("'", "&apos;")
    )


def generate_stream_twiml(stream_url: str, call_sid: str) -> str:
    """
    Generate TwiML that connects the call to a bidirectional media stream.

    Args:
        stream_url: wss:// URL of the media stream endpoint
        call_sid: Twilio call SID, passed along as a stream parameter

    Returns:
        TwiML XML string
    """
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<Response>
    <Connect>
        <Stream url="{escape_xml(stream_url)}">
            <Parameter name="callSid" value="{escape_xml(call_sid)}"/>
        </Stream>
    </Connect>
</Response>"""


@router.post("/voice/incoming")
async def handle_incoming_call(
    request: Request,
    CallSid: str = Form(...),
    From: str = Form(None),
    To: str = Form(None),
):
    """
    Handle incoming call from Twilio.

    Answers with TwiML that opens the media stream; the greeting is played
    once the stream starts.
    """
    logger.info(
        f"[INCOMING CALL] Received incoming call webhook - CallSid: {CallSid}, "
        f"From: {From}, To: {To}, "
        f"Client: {request.client.host if request.client else 'unknown'}"
    )

    stream_url = get_stream_url(get_base_url(request))
    twiml = generate_stream_twiml(stream_url, CallSid)
    logger.debug(f"[INCOMING CALL] Connecting to stream {stream_url} - CallSid: {CallSid}")
    return Response(content=twiml, media_type="application/xml")


@router.post("/voice/status")
async def handle_call_status(
    request: Request,
    CallSid: str = Form(...),
    CallStatus: str = Form(...),
    manager: CallSessionManager = Depends(get_call_manager),
):
    """
    Handle call status updates from Twilio.

    Tears the call down once Twilio reports it has ended.
    """
    logger.info(
        f"[CALL STATUS] Received status update - CallSid: {CallSid}, "
        f"CallStatus: {CallStatus}, "
        f"Client: {request.client.host if request.client else 'unknown'}"
    )

    if CallStatus in ENDED_CALL_STATUSES:
        try:
            session = manager.sessions.require(CallSid)
        except SessionNotFound:
            # Stream already stopped and cleaned up
            logger.debug(f"[CALL STATUS] No active session - CallSid: {CallSid}")
        else:
            manager.end_call(CallSid, session)
            logger.info(f"[CALL STATUS] Session ended - CallSid: {CallSid}, Reason: {CallStatus}")
    else:
        logger.debug(
            f"[CALL STATUS] Status update received but no action needed - "
            f"CallSid: {CallSid}, CallStatus: {CallStatus}"
        )

    # Always OK so Twilio does not retry
    return Response(content="OK", media_type="text/plain")
