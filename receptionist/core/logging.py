"""Logging configuration."""
import logging
import sys
from typing import Optional

from receptionist.core.config import settings

# Per-frame and per-request chatter from these drowns out call logs
NOISY_LOGGERS = ("httpx", "openai", "websockets", "uvicorn.access")


def setup_logging(level: Optional[str] = None) -> None:
    """Configure application logging at `level` (default: LOG_LEVEL)."""
    level = (level or settings.log_level).upper()
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.getLogger("receptionist").setLevel(level)
