"""Main FastAPI application."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from receptionist.api import health, media_stream
from receptionist.api.webhooks import voice
from receptionist.core.dependencies import get_call_manager
from receptionist.core.logging import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    setup_logging()
    logger.info("[APP] AI receptionist starting")
    yield
    # Shutdown
    manager_factory = app.dependency_overrides.get(get_call_manager, get_call_manager)
    await manager_factory().shutdown()


app = FastAPI(
    title="AI Receptionist",
    description="Voice receptionist over real-time telephony media streams",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(health.router, tags=["health"])
app.include_router(media_stream.router, tags=["stream"])
app.include_router(voice.router, prefix="/webhooks", tags=["webhooks"])


@app.get("/")
async def root():
    return {
        "message": "AI Receptionist API",
        "version": "0.1.0",
        "mediaStream": "/media-stream",
    }


if __name__ == "__main__":
    import uvicorn

    from receptionist.core.config import settings

    setup_logging()
    logger.info(f"Starting server on http://{settings.host}:{settings.port}")
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        websocket_ping_interval=5,
        websocket_ping_timeout=20,
    )
