# backend/quizora/core/log.py
import logging

from quizora.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = None) -> None:
    """Configure root logging once for the process (uvicorn keeps its own handlers)."""
    logging.basicConfig(level=level or settings.LOG_LEVEL, format=LOG_FORMAT)
