"""Logging for the GTP session.

Standard output carries nothing but protocol responses, so every operator
message goes through :mod:`logging` to standard error.  When logging is
enabled a file handler additionally records the full session transcript
(received commands, search statistics) at DEBUG level.
"""
from __future__ import annotations

import logging
import os
import sys
from typing import Optional, TextIO

CONSOLE_FORMAT = "%(levelname)s: %(message)s"
FILE_FORMAT = "%(asctime)s %(name)s %(levelname)s: %(message)s"


def configure_logging(level: int = logging.INFO, stream: Optional[TextIO] = None) -> logging.Handler:
    """Send log records of ``level`` and above to ``stream`` (default stderr)."""
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    root = logging.getLogger()
    root.addHandler(handler)
    root.setLevel(min(root.level or logging.WARNING, level))
    return handler


def attach_log_file(path: str) -> logging.Handler:
    """Record everything, including the command transcript, in ``path``."""
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(FILE_FORMAT))
    root = logging.getLogger()
    root.addHandler(handler)
    root.setLevel(logging.DEBUG)
    logging.getLogger(__name__).debug("session log %s", path)
    return handler


__all__ = ["attach_log_file", "configure_logging"]
