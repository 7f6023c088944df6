# -*- coding: utf-8 -*-
"""
Logging configuration for theca.

Quiet by default: only warnings from the ``theca`` logger reach stderr.
``--verbose`` or ``THECA_VERBOSE=1`` switches to debug output.
"""
from __future__ import annotations

import logging
import sys

_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _stderr_handler(level: int) -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(_FORMAT, datefmt="%H:%M:%S"))
    return handler


def configure_quiet_mode():
    """Send theca warnings and errors to stderr, nothing else."""
    logger = logging.getLogger("theca")
    logger.setLevel(logging.WARNING)
    if not logger.handlers:
        logger.addHandler(_stderr_handler(logging.WARNING))
    logger.propagate = False


def enable_debug_mode():
    """Enable debug-level logging to stderr."""
    theca_logger = logging.getLogger("theca")
    for handler in list(theca_logger.handlers):
        theca_logger.removeHandler(handler)
    theca_logger.propagate = True
    theca_logger.setLevel(logging.DEBUG)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    # Add stderr handler if not already present
    if not any(isinstance(h, logging.StreamHandler) and h.stream == sys.stderr
               for h in root_logger.handlers):
        root_logger.addHandler(_stderr_handler(logging.DEBUG))
