"""Root-level pytest configuration and shared fixtures.

This module provides:
- Automatic sys.path configuration for all tests
- A scripted search collaborator standing in for the real search tree
- Factories for sessions running on in-memory streams
"""
from __future__ import annotations

import io
import logging
import sys
import threading
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest

# ---------------------------------------------------------------------------
# Path Configuration (automatically applied to all tests)
# ---------------------------------------------------------------------------

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from engine.board import Move  # noqa: E402
from session.config import SessionConfig  # noqa: E402
from session.connector import GTPConnector  # noqa: E402


# ---------------------------------------------------------------------------
# Fake collaborators
# ---------------------------------------------------------------------------

class FakeSearch:
    """Search collaborator with scripted answers.

    ``think`` returns ``move``/``winrate``.  Ponder calls block on the
    cancellation token (bounded by ``time_limit`` and ``max_ponder``) so
    tests can observe the coordinator stopping them.
    """

    def __init__(
        self,
        move: Optional[Move] = (3, 15),
        winrate: float = 0.55,
        max_ponder: float = 2.0,
        analysis: Optional[List[str]] = None,
    ) -> None:
        self.move = move
        self.winrate = winrate
        self.max_ponder = max_ponder
        self.analysis = analysis or []
        self.acquired = False
        self.acquire_calls = 0
        self.cancel_calls = 0
        self.think_calls: List[Dict[str, Any]] = []
        self.komi_value = 7.0
        self.main = 900.0
        self.byo = 0.0
        self.left = 900.0
        self.score: float = 0.0
        self.thinking = threading.Event()

    # evaluator
    def has_evaluator_acquired(self) -> bool:
        return self.acquired

    def acquire_evaluator(self) -> None:
        self.acquire_calls += 1
        self.acquired = True

    # time control
    def set_komi(self, komi: float) -> None:
        self.komi_value = komi

    def main_time(self) -> float:
        return self.main

    def byoyomi(self) -> float:
        return self.byo

    def left_time(self) -> float:
        return self.left

    def set_left_time(self, seconds: float) -> None:
        self.left = seconds

    def set_time_settings(self, main_time: float, byoyomi: float) -> None:
        self.main = main_time
        self.byo = byoyomi
        self.left = main_time

    def thinking_time(self, board) -> float:
        return 1.0

    def clear(self) -> None:
        self.left = self.main

    # search
    def cancel(self) -> None:
        self.cancel_calls += 1

    def prepare_to_think(self) -> None:
        pass

    def think(
        self,
        board,
        time_limit: float,
        *,
        streaming_interval: int = -1,
        is_pondering: bool = False,
        cancel: Optional[threading.Event] = None,
        on_analysis: Optional[Callable[[str], None]] = None,
    ) -> Tuple[Optional[Move], float]:
        self.think_calls.append(
            {
                "time_limit": time_limit,
                "streaming_interval": streaming_interval,
                "is_pondering": is_pondering,
            }
        )
        if on_analysis is not None and streaming_interval > 0:
            for line in self.analysis:
                on_analysis(line)
        if is_pondering and cancel is not None:
            self.thinking.set()
            cancel.wait(min(time_limit, self.max_ponder))
            self.thinking.clear()
        return self.move, self.winrate

    def final_score(self, board) -> Tuple[float, List[List[float]]]:
        return self.score, [[0.0] * board.size for _ in range(board.size)]


# ---------------------------------------------------------------------------
# Session fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def fake_search() -> FakeSearch:
    return FakeSearch()


@pytest.fixture
def session_config(tmp_path) -> SessionConfig:
    """Configuration without pondering, delays or logging."""
    return SessionConfig(
        use_ponder=False,
        acquire_delay=0.0,
        cancel_grace=0.0,
        eof_poll_interval=0.01,
        working_dir=str(tmp_path),
    )


@pytest.fixture
def make_connector(session_config, fake_search):
    """Factory fixture returning ``(connector, stdout)`` on in-memory streams.

    Usage:
        connector, out = make_connector(use_ponder=True)
    """
    def _create(search=None, stdin: str = "", **overrides: Any):
        values = {**session_config.__dict__, **overrides}
        config = SessionConfig(**values)
        stdout = io.StringIO()
        connector = GTPConnector(
            config,
            search=search or fake_search,
            stdin=io.StringIO(stdin),
            stdout=stdout,
        )
        return connector, stdout
    return _create


@pytest.fixture
def gtp(make_connector):
    """Send a command through a fresh session and return the raw output.

    Usage:
        assert gtp("name") == "= AQ\\n\\n"
    """
    connector, out = make_connector()

    def _send(line: str) -> str:
        start = out.tell()
        connector.queue.push(line + "\n")
        connector.step()
        out.seek(start)
        text = out.read()
        out.seek(0, io.SEEK_END)
        return text

    _send.connector = connector  # type: ignore[attr-defined]
    return _send


@pytest.fixture
def restore_root_logger():
    """Remove logging handlers installed during the test."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)


# ---------------------------------------------------------------------------
# Pytest Configuration
# ---------------------------------------------------------------------------

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
