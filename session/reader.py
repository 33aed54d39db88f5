"""Background thread feeding stdin lines into the command queue."""
from __future__ import annotations

import logging
import threading
import time
from typing import TextIO

from session.command_queue import CommandQueue

logger = logging.getLogger(__name__)


class InputReader(threading.Thread):
    """Read ``stream`` line by line for the lifetime of the process.

    The thread never stops by itself.  Once the stream is exhausted every
    read yields an empty line, which is pushed like any other after a short
    pause; the session loop ignores blank lines and waits for ``quit``.
    """

    def __init__(self, stream: TextIO, queue: CommandQueue, eof_poll_interval: float = 0.05) -> None:
        super().__init__(name="gtp-input-reader", daemon=True)
        self.stream = stream
        self.queue = queue
        self.eof_poll_interval = eof_poll_interval
        self.at_eof = False

    def run(self) -> None:
        while True:
            line = self.stream.readline()
            if line == "":
                if not self.at_eof:
                    logger.warning("input stream closed without quit")
                    self.at_eof = True
                time.sleep(self.eof_poll_interval)
            self.queue.push(line)


__all__ = ["InputReader"]
