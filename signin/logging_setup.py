"""
Logging configuration for the sign-in engine
"""

import logging
from pathlib import Path

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(log_file: Path | None = None, level: int = logging.INFO):
    """Setup signin logging with HTTP library logs suppressed to WARNING"""
    # Suppress transport logs, request lines would otherwise leak endpoints
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler: logging.Handler = logging.FileHandler(log_file, encoding="utf-8")
    else:
        handler = logging.StreamHandler()
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    signin_logger = logging.getLogger("signin")
    signin_logger.setLevel(level)
    signin_logger.addHandler(handler)
    return signin_logger
