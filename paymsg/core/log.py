# paymsg/core/log.py
"""
Logging setup shared by the CLI and anything embedding the runtime.
"""
import logging
import os
import sys
from typing import Optional


class TextFormatter(logging.Formatter):
    def __init__(self):
        super().__init__(
            fmt="%(asctime)s | %(levelname)-8s | %(name)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )


def setup_logging(level: Optional[str] = None) -> logging.Logger:
    """Configure the ``paymsg`` logger; level falls back to PAYMSG_LOG_LEVEL, then WARNING."""
    level_name = (level or os.environ.get("PAYMSG_LOG_LEVEL") or "WARNING").upper()
    logger = logging.getLogger("paymsg")
    logger.setLevel(getattr(logging, level_name, logging.WARNING))

    logger.handlers.clear()
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(TextFormatter())
    logger.addHandler(handler)
    logger.propagate = False
    return logger
