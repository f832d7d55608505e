"""Logging bootstrap for applications embedding the library."""

import logging

from blurranker.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Configure root logging once, using ``settings.LOG_LEVEL`` by default."""
    logging.basicConfig(
        level=getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO),
        format=LOG_FORMAT,
    )
    logging.getLogger("blurranker").debug("Logging configured")
