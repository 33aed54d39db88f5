"""Time-bounded Monte Carlo tree search driven by the GTP session.

The session talks to :class:`SearchTree` through a small contract:

* ``think`` runs a search for a bounded amount of wall-clock time and can be
  interrupted cooperatively, either through :meth:`SearchTree.cancel` from
  another thread or an explicit ``cancel`` event passed by the caller.  Both
  are checked between playouts and between rollout moves, so a cancelled
  search unwinds within a few milliseconds.
* remaining-time bookkeeping (``main_time``, ``byoyomi``, ``left_time``) is
  owned here and read by the session to pick ponder budgets.
* the rollout evaluator is acquired lazily via :meth:`acquire_evaluator`.
"""
from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

from engine.board import BLACK, WHITE, Board, Matrix, Move, vertex_to_str
from engine.evaluator import RolloutEvaluator

logger = logging.getLogger(__name__)

UNLIMITED = math.inf


@dataclass
class SearchNode:
    """A node in the search tree.

    Attributes
    ----------
    move : Move | None
        The move that led to this node (``None`` for the root or a pass).
    parent : SearchNode | None
        Parent node in the tree.
    color : int
        The color that played to reach this state (1=black, -1=white).
    wins : float
        Wins from the point of view of ``color``.
    visits : int
        Number of playouts through this node.
    untried_moves : list[Move]
        Legal moves that have not been expanded yet.
    """

    move: Move | None = None
    parent: Optional["SearchNode"] = None
    color: int = BLACK
    children: List["SearchNode"] = field(default_factory=list)
    wins: float = 0.0
    visits: int = 0
    untried_moves: List[Move] = field(default_factory=list)

    def ucb1(self, exploration: float = 1.414) -> float:
        """UCB1 = wins/visits + exploration * sqrt(ln(parent_visits) / visits)."""
        if self.visits == 0:
            return float("inf")
        parent_visits = self.parent.visits if self.parent else self.visits
        exploitation = self.wins / self.visits
        return exploitation + exploration * math.sqrt(math.log(parent_visits) / self.visits)

    def best_child(self, exploration: float = 1.414) -> "SearchNode":
        return max(self.children, key=lambda c: c.ucb1(exploration))

    def is_fully_expanded(self) -> bool:
        return not self.untried_moves

    @property
    def winrate(self) -> float:
        return self.wins / self.visits if self.visits else 0.5


class SearchTree:
    """Search collaborator used by :class:`session.connector.GTPConnector`.

    Parameters
    ----------
    komi : float
        Compensation points for white.
    main_time : float
        Main time in seconds; :data:`UNLIMITED` disables time control.
    byoyomi : float
        Seconds available per move once main time is used up.
    playout_depth : int
        Maximum moves per rollout.
    default_think_time : float
        Budget for ``genmove`` when no time control is set.
    seed : int, optional
        Seed forwarded to the rollout evaluator.
    """

    def __init__(
        self,
        komi: float = 7.0,
        main_time: float = 900.0,
        byoyomi: float = 0.0,
        playout_depth: int = 400,
        default_think_time: float = 5.0,
        seed: Optional[int] = None,
    ) -> None:
        self._komi = komi
        self._main_time = main_time
        self._byoyomi = byoyomi
        self._left_time = main_time
        self.playout_depth = playout_depth
        self.default_think_time = default_think_time
        self.exploration = 1.414
        self.seed = seed
        self._evaluator: Optional[RolloutEvaluator] = None
        self._stop = threading.Event()

    # ------------------------------------------------------------------
    # Evaluator
    # ------------------------------------------------------------------
    def has_evaluator_acquired(self) -> bool:
        return self._evaluator is not None

    def acquire_evaluator(self) -> None:
        if self._evaluator is None:
            self._evaluator = RolloutEvaluator(max_depth=self.playout_depth, seed=self.seed)

    # ------------------------------------------------------------------
    # Time control
    # ------------------------------------------------------------------
    def komi(self) -> float:
        return self._komi

    def set_komi(self, komi: float) -> None:
        self._komi = komi

    def main_time(self) -> float:
        return self._main_time

    def byoyomi(self) -> float:
        return self._byoyomi

    def left_time(self) -> float:
        return self._left_time

    def set_left_time(self, seconds: float) -> None:
        self._left_time = seconds

    def set_time_settings(self, main_time: float, byoyomi: float) -> None:
        self._main_time = main_time
        self._byoyomi = byoyomi
        self._left_time = main_time

    def clear(self) -> None:
        """Reset the clock for a new game."""
        self._left_time = self._main_time

    def thinking_time(self, board: Board) -> float:
        """Return the budget in seconds for the next ``genmove``."""
        if not math.isfinite(self._left_time):
            return self.default_think_time
        moves_left = max(15, (160 - board.move_count) // 2)
        budget = self._left_time / moves_left
        if self._byoyomi > 0:
            budget = max(budget, self._byoyomi * 0.8)
        return max(budget, 0.1)

    def _consume_time(self, elapsed: float) -> None:
        if not math.isinf(self._left_time) and self._left_time > 0:
            self._left_time = max(0.0, self._left_time - elapsed)

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------
    def cancel(self) -> None:
        """Ask a running :meth:`think` to stop as soon as possible."""
        self._stop.set()

    def prepare_to_think(self) -> None:
        self._stop.clear()

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------
    @staticmethod
    def _legal_moves(board: Board) -> List[Move]:
        return [
            (x, y)
            for y in range(board.size)
            for x in range(board.size)
            if board.is_legal((x, y))
        ]

    def _winner(self, ownership: Matrix) -> int:
        score = sum(sum(row) for row in ownership) - self._komi
        if score > 0:
            return BLACK
        if score < 0:
            return WHITE
        return 0

    def think(
        self,
        board: Board,
        time_limit: float,
        *,
        streaming_interval: int = -1,
        is_pondering: bool = False,
        cancel: Optional[threading.Event] = None,
        on_analysis: Optional[Callable[[str], None]] = None,
    ) -> Tuple[Optional[Move], float]:
        """Search ``board`` for at most ``time_limit`` seconds.

        Parameters
        ----------
        streaming_interval : int
            Centiseconds between analysis reports sent to ``on_analysis``;
            values ``<= 0`` disable reporting.
        is_pondering : bool
            Pondering does not consume the engine's clock.
        cancel : threading.Event, optional
            Cooperative cancellation token checked between playouts.

        Returns
        -------
        tuple[Move | None, float]
            Best move (``None`` for pass) and its win rate for the side to move.
        """
        if self._evaluator is None:
            raise RuntimeError("evaluator has not been acquired")
        evaluator = self._evaluator
        # A stop request only applies to the search that was running.
        self._stop.clear()

        start = time.monotonic()
        deadline = start + time_limit

        def should_stop() -> bool:
            if self._stop.is_set() or (cancel is not None and cancel.is_set()):
                return True
            return time.monotonic() >= deadline

        color = board.side_to_move
        if board.last_move_was_pass() and board.area_score(self._komi) * color > 0:
            return None, 1.0

        legal = self._legal_moves(board)
        if not legal:
            return None, 0.5

        root = SearchNode(color=-color, untried_moves=legal[:])
        interval = streaming_interval / 100.0 if streaming_interval > 0 else 0.0
        last_report = start
        playouts = 0

        while not should_stop():
            node = root
            sim = board.copy()

            while node.is_fully_expanded() and node.children:
                node = node.best_child(self.exploration)
                sim.play(node.move)

            if node.untried_moves:
                move = evaluator.random_choice(node.untried_moves)
                node.untried_moves.remove(move)
                sim.play(move)
                child = SearchNode(
                    move=move,
                    parent=node,
                    color=-sim.side_to_move,
                    untried_moves=self._legal_moves(sim),
                )
                node.children.append(child)
                node = child

            ownership = evaluator.rollout(sim, should_stop)
            if ownership is None:
                break
            winner = self._winner(ownership)
            playouts += 1

            while node is not None:
                node.visits += 1
                if winner == node.color:
                    node.wins += 1.0
                elif winner == 0:
                    node.wins += 0.5
                node = node.parent

            if interval and on_analysis is not None and time.monotonic() - last_report >= interval:
                on_analysis(self.analysis_line(root))
                last_report = time.monotonic()

        elapsed = time.monotonic() - start
        if not is_pondering:
            self._consume_time(elapsed)
        logger.debug(
            "%s %d playouts in %.2fs", "ponder" if is_pondering else "think", playouts, elapsed
        )

        visited = [c for c in root.children if c.visits]
        if not visited:
            return evaluator.random_choice(legal), 0.5
        best = max(visited, key=lambda c: c.visits)
        return best.move, best.winrate

    @staticmethod
    def analysis_line(root: SearchNode) -> str:
        """Render the root's children in Leela Zero ``lz-analyze`` format."""
        children = sorted((c for c in root.children if c.visits), key=lambda c: -c.visits)
        parts = []
        for order, child in enumerate(children):
            vertex = vertex_to_str(child.move)
            parts.append(
                f"info move {vertex} visits {child.visits} "
                f"winrate {int(child.winrate * 10000)} prior 0 order {order} pv {vertex}"
            )
        return " ".join(parts)

    # ------------------------------------------------------------------
    def final_score(self, board: Board) -> Tuple[float, List[List[float]]]:
        """Return black's area margin after komi and the ownership matrix."""
        ownership = board.area_ownership()
        score = sum(sum(row) for row in ownership) - self._komi
        return score, [[float(v) for v in row] for row in ownership]


__all__ = ["SearchNode", "SearchTree", "UNLIMITED"]
