"""GTP response framing.

A response is ``<marker><id> <body>`` followed by a newline, where the
marker is ``=`` for success and ``?`` for failure and the id is echoed only
when the request carried one.  A second newline closes the response unless
streaming analysis is active, in which case the output continues with
analysis lines and the blank line is sent when streaming stops.
"""
from __future__ import annotations

from typing import Optional, TextIO


def format_response(success: bool, command_id: Optional[int], body: str, streaming: bool = False) -> str:
    """Return a GTP response for ``body``."""
    head = "=" if success else "?"
    if command_id is not None:
        head += str(command_id)
    terminator = "\n" if streaming else "\n\n"
    return f"{head} {body}{terminator}"


class ResponseFormatter:
    """Owner of the protocol output stream."""

    def __init__(self, stream: TextIO) -> None:
        self.stream = stream

    def send(self, success: bool, command_id: Optional[int], body: str, streaming: bool = False) -> None:
        self.send_raw(format_response(success, command_id, body, streaming))

    def send_raw(self, text: str) -> None:
        self.stream.write(text)
        self.stream.flush()


__all__ = ["ResponseFormatter", "format_response"]
