"""Game record kept alongside the session and persisted with ``sgfmill``."""
from __future__ import annotations

import datetime
import logging
import os
from typing import List, Optional, Sequence, Tuple

from sgfmill import sgf

from engine.board import BLACK, BOARD_SIZE, Move

logger = logging.getLogger(__name__)


def _to_sgf_point(move: Move) -> Tuple[int, int]:
    """Convert ``(x, y)`` with the origin top-left to sgfmill ``(row, col)``."""
    x, y = move
    return BOARD_SIZE - 1 - y, x


class GameRecord:
    """Moves, handicap and metadata of the current game."""

    def __init__(self, komi: float = 7.0, engine_name: str = "AQ") -> None:
        self.komi = komi
        self.engine_name = engine_name
        self.engine_color: Optional[int] = None
        self.handicap: List[Move] = []
        self.moves: List[Tuple[int, Optional[Move]]] = []

    def clear(self) -> None:
        self.handicap = []
        self.moves = []
        self.engine_color = None

    def add_move(self, color: int, move: Optional[Move]) -> None:
        self.moves.append((color, move))

    def undo(self) -> None:
        if self.moves:
            self.moves.pop()

    def set_handicap(self, vertices: Sequence[Move]) -> None:
        self.handicap = list(vertices)

    def __len__(self) -> int:
        return len(self.moves)

    # ------------------------------------------------------------------
    def to_sgf(self, result: Optional[str] = None) -> sgf.Sgf_game:
        """Build an ``sgfmill`` game from the record."""
        game = sgf.Sgf_game(size=BOARD_SIZE)
        root = game.get_root()
        root.set("KM", self.komi)
        root.set("DT", datetime.date.today().isoformat())
        if self.engine_color == BLACK:
            root.set("PB", self.engine_name)
        elif self.engine_color is not None:
            root.set("PW", self.engine_name)
        if self.handicap:
            root.set("HA", len(self.handicap))
            root.set_setup_stones([_to_sgf_point(v) for v in self.handicap], [])
        if result:
            root.set("RE", result)
        for color, move in self.moves:
            node = game.extend_main_sequence()
            node.set_move("b" if color == BLACK else "w", None if move is None else _to_sgf_point(move))
        return game

    def save(self, path: str, result: Optional[str] = None) -> None:
        """Write the record to ``path`` in SGF format."""
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(path, "wb") as fh:
            fh.write(self.to_sgf(result).serialise())
        logger.debug("saved game record to %s", path)


__all__ = ["GameRecord"]
