"""Logging configuration helpers."""

from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
    resolved = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(level=resolved, format=LOG_FORMAT)
    # The board is polled by browsers; per-request access lines drown out sync progress.
    if resolved > logging.DEBUG:
        logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
