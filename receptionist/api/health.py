"""Health check and stream status endpoints."""
import logging
from fastapi import APIRouter, Depends, Request

from receptionist.core.dependencies import get_call_manager
from receptionist.services.call_session.manager import CallSessionManager

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health")
async def health_check(
    request: Request,
    manager: CallSessionManager = Depends(get_call_manager),
):
    """Health check endpoint."""
    logger.debug(
        f"[HEALTH] Health check requested - Client: {request.client.host if request.client else 'unknown'}"
    )
    return {"status": "healthy", "stats": manager.get_stats().model_dump(by_alias=True)}


@router.get("/stream/status")
async def stream_status(manager: CallSessionManager = Depends(get_call_manager)):
    """Active calls, conversations held in memory and uptime."""
    return manager.get_stats().model_dump(by_alias=True)
