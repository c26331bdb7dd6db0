"""Process-wide logging setup."""

from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Install a single stream handler on the ``redline`` logger.

    Safe to call more than once; later calls only change the level.
    """
    logger = logging.getLogger("redline")
    logger.setLevel(level.upper())
    if not any(getattr(h, "_redline", False) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._redline = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
