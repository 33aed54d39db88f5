"""Exceptions raised by the GTP session."""
from __future__ import annotations


class SessionError(Exception):
    """Base class for session errors."""


class CommandError(SessionError):
    """A command failed; the message becomes the body of the ``?`` response."""


class ConfigError(SessionError):
    """The session configuration is invalid."""


__all__ = ["CommandError", "ConfigError", "SessionError"]
