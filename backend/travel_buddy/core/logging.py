"""Centralized logging configuration using Loguru for the application.

Loguru is configured once at import time and an intercept handler routes
records from the standard library ``logging`` module (uvicorn, SQLAlchemy)
through it. The level is taken from the ``LOG_LEVEL`` environment variable.

Token strings and signing secrets must never be passed to the logger; log
the subject, principal type or ``jti`` instead.
"""

import logging
import os
import sys

from loguru import logger

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level} | {name}:{function} | {message}"

INTERCEPTED_LOGGERS = (
    "uvicorn",
    "uvicorn.error",
    "uvicorn.access",
    "asyncio",
    "sqlalchemy.engine",
)


class InterceptHandler(logging.Handler):
    """Handler to route stdlib logging records into Loguru.

    Caller information is preserved so Loguru reports the originating
    module/line rather than the interception point.
    """

    def emit(
        self, record: logging.LogRecord
    ) -> None:  # pragma: no cover - simple routing
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def configure_logging(level: str = LOG_LEVEL) -> None:
    """Install the stdout sink and the stdlib intercept handler.

    Args:
        level: Minimum level name for both Loguru and intercepted loggers.
    """
    logger.remove()
    logger.add(
        sys.stdout,
        level=level,
        format=LOG_FORMAT,
        backtrace=True,
        diagnose=False,
    )

    logging.basicConfig(handlers=[InterceptHandler()], level=level, force=True)
    for name in INTERCEPTED_LOGGERS:
        logging.getLogger(name).handlers = [InterceptHandler()]
        logging.getLogger(name).setLevel(level)
        logging.getLogger(name).propagate = False


configure_logging()

# Usage: from core.logging import logger
