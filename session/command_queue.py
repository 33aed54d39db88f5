"""Thread-safe FIFO of raw command lines.

The input reader thread is the only producer and the session loop the only
consumer.  Besides blocking ``pop`` the queue lets the session register
``threading.Event`` watchers that fire on the next push, which is how a
running ponder search learns that a command is waiting.
"""
from __future__ import annotations

import threading
from collections import deque
from typing import Deque, List, Optional


class CommandQueue:
    """Unbounded single-producer/single-consumer line buffer."""

    def __init__(self) -> None:
        self._lines: Deque[str] = deque()
        self._cond = threading.Condition()
        self._watchers: List[threading.Event] = []

    def push(self, line: str) -> None:
        """Append ``line`` at the tail and wake the consumer and watchers."""
        with self._cond:
            self._lines.append(line)
            for event in self._watchers:
                event.set()
            self._cond.notify()

    def pop(self, timeout: Optional[float] = None) -> str:
        """Remove and return the head, blocking while the queue is empty.

        Raises
        ------
        TimeoutError
            If ``timeout`` seconds pass without a line arriving.
        """
        with self._cond:
            if not self._cond.wait_for(lambda: self._lines, timeout=timeout):
                raise TimeoutError("no command received")
            return self._lines.popleft()

    def watch(self, event: threading.Event) -> None:
        """Set ``event`` on the next push, or now if a line is already queued."""
        with self._cond:
            self._watchers.append(event)
            if self._lines:
                event.set()

    def unwatch(self, event: threading.Event) -> None:
        """Stop setting ``event`` on push."""
        with self._cond:
            if event in self._watchers:
                self._watchers.remove(event)

    def empty(self) -> bool:
        """Return ``True`` if no line is waiting."""
        with self._cond:
            return not self._lines

    def __len__(self) -> int:
        with self._cond:
            return len(self._lines)


__all__ = ["CommandQueue"]
