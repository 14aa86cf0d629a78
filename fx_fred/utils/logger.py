"""Logging utilities for the fx_fred package."""

from __future__ import annotations

import logging
import os
from typing import Optional

_LOGGER: Optional[logging.Logger] = None

LOG_LEVEL_ENV = "FXFRED_LOG_LEVEL"


def get_logger(name: str = "fx_fred") -> logging.Logger:
    """Return a module-level logger; the first call configures the root handler.

    ``FXFRED_LOG_LEVEL`` (``DEBUG``, ``INFO``, ...) overrides the default INFO
    level of the ``fx_fred`` logger tree.
    """
    global _LOGGER
    if _LOGGER is None:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        )
        _LOGGER = logging.getLogger("fx_fred")
        level = os.environ.get(LOG_LEVEL_ENV, "").strip().upper()
        if level:
            _LOGGER.setLevel(level)
    return logging.getLogger(name)
