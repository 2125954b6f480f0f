# samvaad/core/logging.py

import logging
import sys
from typing import Dict, Optional

from samvaad.core.config import settings

# Third-party loggers and the level each is held at. websockets/httpx log
# every frame and request at DEBUG/INFO, which drowns out chat events.
LIBRARY_LEVELS: Dict[str, int] = {
    "websockets": logging.WARNING,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "redis": logging.WARNING,
    "uvicorn": logging.INFO,
    "uvicorn.error": logging.INFO,
    "uvicorn.access": logging.INFO,
}


def _resolve_level(name: Optional[str]) -> int:
    level = logging.getLevelName((name or "INFO").upper())
    return level if isinstance(level, int) else logging.INFO


def setup_logging(level: Optional[str] = None) -> None:
    """
    Configure application-wide logging.

    Args:
        level: level name; defaults to settings.LOG_LEVEL. Unknown names
            fall back to INFO.

    When a handler is already installed (Uvicorn, pytest) only the level is
    changed; otherwise one stdout handler is added using settings.LOG_FORMAT.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(_resolve_level(level or settings.LOG_LEVEL))

    if not root_logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(settings.LOG_FORMAT))
        root_logger.addHandler(handler)

    for name, library_level in LIBRARY_LEVELS.items():
        logging.getLogger(name).setLevel(library_level)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Module loggers: ``logger = get_logger(__name__)``."""
    return logging.getLogger(name)
