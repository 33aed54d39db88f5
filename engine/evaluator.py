"""Rollout evaluator used by :mod:`engine.search`.

Acquiring the evaluator stands for the expensive part of engine start-up
(loading weights, allocating accelerator memory).  The search tree owns at
most one instance for the lifetime of the process.
"""
from __future__ import annotations

import logging
import random
from typing import Callable, List, Optional

from engine.board import EMPTY, Board, Matrix, Move, neighbors

logger = logging.getLogger(__name__)


class RolloutEvaluator:
    """Score positions by playing random games to the end.

    Parameters
    ----------
    max_depth : int
        Maximum number of moves in a rollout before it is scored as is.
    seed : int, optional
        Seed for the internal random generator.
    """

    def __init__(self, max_depth: int = 400, seed: Optional[int] = None) -> None:
        self.max_depth = max_depth
        self._rng = random.Random(seed)
        logger.debug("rollout evaluator ready (depth=%d)", max_depth)

    def _is_eye(self, board: Board, x: int, y: int, color: int) -> bool:
        """A simple eye check: all neighbors are ``color``."""
        return all(board.stones[ny][nx] == color for nx, ny in neighbors(x, y, board.size))

    def select_move(self, board: Board) -> Optional[Move]:
        """Pick a random legal move that does not fill an own eye."""
        color = board.side_to_move
        empties: List[Move] = [
            (x, y)
            for y in range(board.size)
            for x in range(board.size)
            if board.stones[y][x] == EMPTY
        ]
        self._rng.shuffle(empties)
        for x, y in empties:
            if self._is_eye(board, x, y, color):
                continue
            if board.is_legal((x, y)):
                return (x, y)
        return None

    def rollout(self, board: Board, should_stop: Callable[[], bool]) -> Optional[Matrix]:
        """Play ``board`` out and return the final area ownership.

        ``board`` is modified in place.  Returns ``None`` when ``should_stop``
        fires before the game ends.
        """
        depth = 0
        while board.passes < 2 and depth < self.max_depth:
            if should_stop():
                return None
            board.play(self.select_move(board))
            depth += 1
        return board.area_ownership()

    def random_choice(self, moves: List[Move]) -> Move:
        return self._rng.choice(moves)


__all__ = ["RolloutEvaluator"]
