"""Mutable state of a GTP session."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from engine.board import Board
from record.sgf_record import GameRecord


@dataclass
class SessionState:
    """Everything the dispatcher mutates between commands.

    ``streaming_interval`` is in centiseconds and ``<= 0`` means streaming
    analysis is off.  ``should_ponder`` becomes true once the engine has
    produced a move (or analysis was requested) and is waiting on the
    opponent.
    """

    board: Board = field(default_factory=Board)
    record: GameRecord = field(default_factory=GameRecord)
    engine_color: Optional[int] = None
    should_ponder: bool = False
    streaming_interval: int = -1
    save_log: bool = False
    log_path: str = ""
    sgf_path: str = ""
    success: bool = True

    @property
    def streaming(self) -> bool:
        return self.streaming_interval > 0


__all__ = ["SessionState"]
