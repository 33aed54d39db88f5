"""GTP connector: the session loop between a controller and the engine.

See https://www.lysator.liu.se/~gunnar/gtp/gtp2-spec-draft2/gtp2-spec.html
for the protocol.  Standard output is reserved for GTP responses; all
diagnostics go to the logging system.

Two threads are involved.  :class:`~session.reader.InputReader` blocks on
standard input and queues raw lines.  The session loop, running in the
caller's thread, ponders while nothing is queued, then takes commands one
at a time, parses and dispatches them and writes the responses.
"""
from __future__ import annotations

import logging
import sys
from typing import Optional, TextIO

from engine.board import Board
from engine.search import SearchTree
from monitoring.session_log import attach_log_file
from record.sgf_record import GameRecord
from session.command_queue import CommandQueue
from session.config import SessionConfig, session_paths
from session.dispatcher import KNOWN_COMMANDS, CommandDispatcher
from session.evaluator import EvaluatorGuard
from session.formatter import ResponseFormatter
from session.ponder import PonderingCoordinator
from session.reader import InputReader
from session.state import SessionState

logger = logging.getLogger(__name__)


class GTPConnector:
    """Run GTP over text streams until ``quit`` is received.

    Parameters
    ----------
    config : SessionConfig
        Options fixed for the lifetime of the session.
    search : optional
        Search collaborator; a :class:`~engine.search.SearchTree` built from
        ``config`` is used when omitted.
    stdin, stdout : TextIO, optional
        Protocol streams, the process's standard streams by default.
    """

    def __init__(
        self,
        config: SessionConfig,
        search=None,
        stdin: Optional[TextIO] = None,
        stdout: Optional[TextIO] = None,
    ) -> None:
        self.config = config
        self.search = search or SearchTree(
            komi=config.komi,
            main_time=config.main_time,
            byoyomi=config.byoyomi,
            playout_depth=config.playout_depth,
        )
        self.search.set_komi(config.komi)

        log_path, sgf_path = session_paths(config)
        self.state = SessionState(
            board=Board(),
            record=GameRecord(komi=config.komi, engine_name=config.engine_name),
            save_log=config.save_log,
            log_path=log_path,
            sgf_path=sgf_path,
        )
        if self.state.save_log:
            attach_log_file(log_path)

        self.queue = CommandQueue()
        self.reader = InputReader(stdin or sys.stdin, self.queue, config.eof_poll_interval)
        self.formatter = ResponseFormatter(stdout or sys.stdout)
        self.evaluator = EvaluatorGuard(self.search, config)
        self.dispatcher = CommandDispatcher(config, self.state, self.search, self.formatter, self.evaluator)
        self.coordinator = PonderingCoordinator(
            config, self.state, self.search, self.queue, self.evaluator, self.formatter
        )

        if config.send_list:
            self.formatter.send(True, None, "\n".join(KNOWN_COMMANDS))
        if config.allocate_gpu:
            self.evaluator.ensure_acquired(deferred=False)

    def step(self) -> bool:
        """Run one loop iteration; return ``False`` once ``quit`` was handled."""
        self.coordinator.ponder()

        line = self.queue.pop()
        if self.coordinator.is_pondering:
            if line.strip():
                self.coordinator.cancel()
            else:
                self.coordinator.settle()
        self.search.prepare_to_think()

        if not line.strip():
            return True
        return self.dispatcher.execute(line)

    def start(self) -> None:
        """Start reading input and serve commands until ``quit``."""
        self.reader.start()
        logger.debug("GTP session started")
        while self.step():
            pass
        logger.debug("GTP session finished")


__all__ = ["GTPConnector"]
