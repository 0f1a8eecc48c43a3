"""Logger factory shared by the fetcher, feeder and API.

Every module asks for a named logger once at import time.  A single
stream handler is attached per logger and the level is taken from
``SIGNAL_ENGINE_LOG_LEVEL`` (default INFO).
"""
from __future__ import annotations

import logging
import os

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(message)s"


def get_logger(name: str) -> logging.Logger:
    logger = logging.getLogger(name)
    if not logger.handlers:
        _h = logging.StreamHandler()
        _h.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(_h)
    logger.setLevel(os.getenv("SIGNAL_ENGINE_LOG_LEVEL", "INFO").strip().upper() or "INFO")
    return logger
