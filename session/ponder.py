"""Thinking on the opponent's time.

The coordinator runs the search while the session waits for the next
command and stops it cooperatively once a command is queued.  Cancellation
is best effort: the search is told to stop and given ``cancel_grace``
seconds to unwind before the command is dispatched.
"""
from __future__ import annotations

import enum
import logging
import threading
import time

from session.command_queue import CommandQueue
from session.config import SessionConfig
from session.evaluator import EvaluatorGuard
from session.formatter import ResponseFormatter
from session.state import SessionState

logger = logging.getLogger(__name__)


class PonderState(enum.Enum):
    IDLE = "idle"
    PONDERING = "pondering"


class PonderingCoordinator:
    """Start and cancel background thinking between commands."""

    def __init__(
        self,
        config: SessionConfig,
        state: SessionState,
        search,
        queue: CommandQueue,
        evaluator: EvaluatorGuard,
        formatter: ResponseFormatter,
    ) -> None:
        self.config = config
        self.state = state
        self.search = search
        self.queue = queue
        self.evaluator = evaluator
        self.formatter = formatter
        self.status = PonderState.IDLE

    @property
    def is_pondering(self) -> bool:
        return self.status is PonderState.PONDERING

    def can_ponder(self) -> bool:
        """Return ``True`` if a ponder search may start now."""
        if not (self.config.use_ponder and self.state.should_ponder):
            return False
        if self.state.board.last_move_was_pass():
            return False
        return self.search.left_time() > self.config.min_ponder_time or self.search.byoyomi() != 0

    def time_budget(self) -> float:
        """Seconds the ponder search may run if nothing interrupts it."""
        if self.config.lizzie or self.state.streaming:
            return self.config.analysis_time
        byoyomi = self.search.byoyomi()
        if byoyomi > 0 and self.search.main_time() > 0 and self.search.left_time() < byoyomi * 2:
            return byoyomi * 2
        return self.config.ponder_time

    def _emit_analysis(self, line: str) -> None:
        self.formatter.send_raw(line + "\n")

    def ponder(self) -> bool:
        """Think until a command is queued or the budget runs out.

        Returns ``True`` if a ponder search ran.
        """
        if not self.can_ponder():
            return False
        self.evaluator.ensure_acquired()
        self.status = PonderState.PONDERING

        token = threading.Event()
        self.queue.watch(token)
        try:
            self.search.think(
                self.state.board,
                self.time_budget(),
                streaming_interval=self.state.streaming_interval,
                is_pondering=True,
                cancel=token,
                on_analysis=self._emit_analysis,
            )
        finally:
            self.queue.unwatch(token)
        if self.queue.empty():
            self.settle()
        return True

    def settle(self) -> None:
        """Go back to idle after a search that no command interrupted."""
        self.status = PonderState.IDLE

    def cancel(self) -> None:
        """Stop the ponder search and wait the grace period."""
        if not self.is_pondering:
            return
        self.search.cancel()
        time.sleep(self.config.cancel_grace)
        self.status = PonderState.IDLE
        logger.debug("pondering stopped")


__all__ = ["PonderState", "PonderingCoordinator"]
