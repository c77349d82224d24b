# server/core/logging.py
"""
Logging configuration for the backend
"""
import logging
import sys
from typing import Optional
from .config import Settings, get_settings

# Third-party loggers that are too chatty at INFO
_QUIET_LOGGERS = {
    "aiohttp.access": logging.WARNING,
    "aiohttp.client": logging.WARNING,
    "asyncio": logging.WARNING,
}

def setup_logging(settings: Optional[Settings] = None) -> None:
    """Configure the root logger from settings (stdout handler)"""
    settings = settings or get_settings()
    level = getattr(logging, settings.log_level.value)

    logging.basicConfig(
        level=level,
        format=settings.log_format,
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True
    )

    logging.getLogger("uvicorn").setLevel(logging.INFO)
    logging.getLogger("fastapi").setLevel(logging.INFO)
    for name, quiet_level in _QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(max(level, quiet_level))

    # Gateway and agent loggers follow the configured level
    logging.getLogger("agents").setLevel(level)
    logging.getLogger("core").setLevel(level)
