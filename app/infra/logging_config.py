"""Process-wide logging setup."""

from __future__ import annotations

import logging
import sys
from typing import Optional

from app.config import get_settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class LoggingConfig:
    """Configure the root logger once, with the level taken from settings."""

    _configured = False

    def __init__(self, level: Optional[str] = None) -> None:
        if LoggingConfig._configured:
            return
        settings = get_settings()
        level_name = (level or settings.log_level or "INFO").upper()
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root = logging.getLogger()
        root.handlers = [handler]
        root.setLevel(getattr(logging, level_name, logging.INFO))
        # HTTP client libraries log every request at INFO
        for noisy in ("httpx", "httpcore", "telethon"):
            logging.getLogger(noisy).setLevel(logging.WARNING)
        LoggingConfig._configured = True


def get_logger(name: str = "openlines") -> logging.Logger:
    return logging.getLogger(name)
