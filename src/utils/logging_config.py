"""Logging and tracing setup for the match service."""

from __future__ import annotations

import logging
import os
import sys
from logging.handlers import RotatingFileHandler

from src.config import config


LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
LOG_FILE_PATH = "logs/match_service.log"

# Chatty client libraries that log every RPC at DEBUG.
NOISY_LOGGERS = ("google.auth", "urllib3", "grpc", "httpx")


def setup_logging(*, debug: bool = False, log_file: str | None = LOG_FILE_PATH) -> None:
    """Configure Python logging.

    - Console output at INFO+ (or DEBUG+ when debug=True).
    - Rotating file output at DEBUG+ unless log_file is None.
    - Firestore transport loggers are capped at WARNING.
    """

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG if debug else logging.INFO)
    console_handler.setFormatter(formatter)

    # Avoid duplicate handlers when reloading in dev.
    root_logger.handlers.clear()
    root_logger.addHandler(console_handler)

    if log_file:
        os.makedirs(os.path.dirname(log_file) or ".", exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file, maxBytes=2_000_000, backupCount=5
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def setup_langsmith() -> bool:
    """Initialize LangSmith tracing for graph runs if enabled.

    Returns True when tracing was switched on.
    """

    if not config.LANGSMITH_ENABLED or not config.LANGSMITH_API_KEY:
        return False

    os.environ["LANGCHAIN_TRACING_V2"] = "true"
    os.environ["LANGCHAIN_API_KEY"] = config.LANGSMITH_API_KEY

    from langsmith import Client

    Client()
    logger.info("LangSmith tracing enabled")
    return True


logger = logging.getLogger("wanderlink.match")
