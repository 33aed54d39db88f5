"""When to acquire the search evaluator.

Acquiring the evaluator can take tens of seconds, so unless the session is
configured to do it eagerly it is deferred until a search actually needs
it.  That keeps protocol handshakes fast and avoids game-server timeouts.
"""
from __future__ import annotations

import logging
import time

from session.config import SessionConfig

logger = logging.getLogger(__name__)


class EvaluatorGuard:
    """Acquire the search collaborator's evaluator at most once."""

    def __init__(self, search, config: SessionConfig) -> None:
        self.search = search
        self.config = config

    def ensure_acquired(self, deferred: bool = True) -> None:
        """Acquire the evaluator unless it is already available.

        In rating mode a deferred acquisition first waits
        ``config.acquire_delay`` seconds so it does not overlap with the
        opponent's own start-up.  Errors from the search propagate.
        """
        if self.search.has_evaluator_acquired():
            return
        logger.info("allocating memory...")
        if deferred and self.config.rating_mode:
            time.sleep(self.config.acquire_delay)
        self.search.acquire_evaluator()


__all__ = ["EvaluatorGuard"]
