"""Fixed-size Go position used by the GTP session.

The board stores stones as a matrix of integers (``0`` empty, ``1`` black,
``-1`` white), the same representation used throughout the engine.  Moves
are ``(x, y)`` tuples with ``(0, 0)`` at the top-left corner, or ``None``
for a pass.  Only 19x19 is supported.
"""
from __future__ import annotations

from typing import Dict, Iterator, List, Optional, Sequence, Set, Tuple

BOARD_SIZE = 19

BLACK = 1
WHITE = -1
EMPTY = 0

Matrix = List[List[int]]
Move = Tuple[int, int]

COLUMNS = "ABCDEFGHJKLMNOPQRST"
SYMBOLS = {EMPTY: ".", BLACK: "X", WHITE: "O"}

# D4 Q16 D16 Q4 K10 D10 Q10 K4 K16, the GTP fixed handicap order.
_HANDICAP_ORDER = [
    (3, 15), (15, 3), (3, 3), (15, 15), (9, 9),
    (3, 9), (15, 9), (9, 15), (9, 3),
]
_HANDICAP_LAYOUT: Dict[int, Sequence[int]] = {
    2: (0, 1),
    3: (0, 1, 2),
    4: (0, 1, 2, 3),
    5: (0, 1, 2, 3, 4),
    6: (0, 1, 2, 3, 5, 6),
    7: (0, 1, 2, 3, 4, 5, 6),
    8: (0, 1, 2, 3, 5, 6, 7, 8),
    9: (0, 1, 2, 3, 4, 5, 6, 7, 8),
}


class IllegalMoveError(ValueError):
    """Raised when a move violates the rules of the current position."""


# ---------------------------------------------------------------------------
# Vertex and color helpers
# ---------------------------------------------------------------------------

def parse_color(text: str) -> int:
    """Return ``BLACK`` or ``WHITE`` for GTP color names like ``b`` or ``white``."""
    lowered = text.lower()
    if lowered in ("b", "black"):
        return BLACK
    if lowered in ("w", "white"):
        return WHITE
    raise ValueError(f"invalid color: {text}")


def color_name(color: int) -> str:
    return "black" if color == BLACK else "white"


def parse_vertex(text: str) -> Optional[Move]:
    """Convert a GTP vertex such as ``Q16`` to ``(x, y)``; ``pass`` is ``None``."""
    lowered = text.lower()
    if lowered == "pass":
        return None
    column = text[:1].upper()
    if not column or column not in COLUMNS:
        raise ValueError(f"invalid vertex: {text}")
    try:
        row = int(text[1:])
    except ValueError:
        raise ValueError(f"invalid vertex: {text}") from None
    if not 1 <= row <= BOARD_SIZE:
        raise ValueError(f"invalid vertex: {text}")
    return COLUMNS.index(column), BOARD_SIZE - row


def vertex_to_str(move: Optional[Move]) -> str:
    if move is None:
        return "pass"
    x, y = move
    return f"{COLUMNS[x]}{BOARD_SIZE - y}"


def fixed_handicap_vertices(count: int) -> List[Move]:
    """Return the standard handicap points for ``count`` stones (2 to 9)."""
    if count not in _HANDICAP_LAYOUT:
        raise ValueError(f"invalid handicap: {count}")
    return [_HANDICAP_ORDER[i] for i in _HANDICAP_LAYOUT[count]]


# ---------------------------------------------------------------------------
# Group helpers
# ---------------------------------------------------------------------------

def neighbors(x: int, y: int, size: int = BOARD_SIZE) -> Iterator[Move]:
    """Yield the coordinates adjacent to ``(x, y)``."""
    if x > 0:
        yield x - 1, y
    if x < size - 1:
        yield x + 1, y
    if y > 0:
        yield x, y - 1
    if y < size - 1:
        yield x, y + 1


def group_and_liberties(stones: Matrix, x: int, y: int) -> Tuple[Set[Move], Set[Move]]:
    """Return the connected group at ``(x, y)`` and its liberties."""
    color = stones[y][x]
    size = len(stones)
    group = {(x, y)}
    liberties: Set[Move] = set()
    stack = [(x, y)]
    while stack:
        cx, cy = stack.pop()
        for nx, ny in neighbors(cx, cy, size):
            val = stones[ny][nx]
            if val == EMPTY:
                liberties.add((nx, ny))
            elif val == color and (nx, ny) not in group:
                group.add((nx, ny))
                stack.append((nx, ny))
    return group, liberties


# ---------------------------------------------------------------------------
# Board
# ---------------------------------------------------------------------------

class Board:
    """A 19x19 Go position with move history.

    ``history`` records every ``(color, move)`` played since the last
    :meth:`clear`, and ``handicap`` the stones placed before the first move.
    :meth:`undo` rebuilds the position by replaying the history, which keeps
    the class free of incremental bookkeeping.
    """

    def __init__(self) -> None:
        self.size = BOARD_SIZE
        self.stones: Matrix = [[EMPTY] * self.size for _ in range(self.size)]
        self.side_to_move = BLACK
        self.ko_point: Optional[Move] = None
        self.passes = 0
        self.captures = {BLACK: 0, WHITE: 0}
        self.history: List[Tuple[int, Optional[Move]]] = []
        self.handicap: List[Move] = []

    # ------------------------------------------------------------------
    def copy(self) -> "Board":
        other = Board.__new__(Board)
        other.size = self.size
        other.stones = [row[:] for row in self.stones]
        other.side_to_move = self.side_to_move
        other.ko_point = self.ko_point
        other.passes = self.passes
        other.captures = dict(self.captures)
        other.history = list(self.history)
        other.handicap = list(self.handicap)
        return other

    def clear(self) -> None:
        self.__init__()

    @property
    def move_count(self) -> int:
        return len(self.history)

    def move_before(self) -> Optional[Tuple[int, Optional[Move]]]:
        """Return the last ``(color, move)`` played, or ``None`` on a fresh board."""
        if not self.history:
            return None
        return self.history[-1]

    def last_move_was_pass(self) -> bool:
        last = self.move_before()
        return last is not None and last[1] is None

    def is_empty(self) -> bool:
        return all(cell == EMPTY for row in self.stones for cell in row)

    # ------------------------------------------------------------------
    # Rules
    # ------------------------------------------------------------------
    def is_legal(self, move: Optional[Move], color: Optional[int] = None) -> bool:
        """Return ``True`` if ``color`` (default: side to move) may play ``move``."""
        if move is None:
            return True
        color = self.side_to_move if color is None else color
        x, y = move
        if not (0 <= x < self.size and 0 <= y < self.size):
            return False
        if self.stones[y][x] != EMPTY:
            return False
        if color == self.side_to_move and self.ko_point == move:
            return False

        self.stones[y][x] = color
        try:
            for nx, ny in neighbors(x, y, self.size):
                if self.stones[ny][nx] == -color:
                    _, libs = group_and_liberties(self.stones, nx, ny)
                    if not libs:
                        return True
            _, own_libs = group_and_liberties(self.stones, x, y)
            return bool(own_libs)
        finally:
            self.stones[y][x] = EMPTY

    def play(self, move: Optional[Move], color: Optional[int] = None) -> None:
        """Play ``move`` for ``color`` and hand the turn to the opponent.

        Raises
        ------
        IllegalMoveError
            If the point is occupied, a ko recapture or suicide.
        """
        color = self.side_to_move if color is None else color
        if not self.is_legal(move, color):
            raise IllegalMoveError(f"illegal move: {color_name(color)} {vertex_to_str(move)}")

        self.history.append((color, move))
        self.side_to_move = -color
        if move is None:
            self.passes += 1
            self.ko_point = None
            return

        x, y = move
        self.passes = 0
        self.stones[y][x] = color
        captured: List[Move] = []
        for nx, ny in neighbors(x, y, self.size):
            if self.stones[ny][nx] == -color:
                group, libs = group_and_liberties(self.stones, nx, ny)
                if not libs:
                    for gx, gy in group:
                        self.stones[gy][gx] = EMPTY
                    captured.extend(group)
        self.captures[color] += len(captured)

        self.ko_point = None
        if len(captured) == 1:
            group, libs = group_and_liberties(self.stones, x, y)
            if len(group) == 1 and len(libs) == 1:
                self.ko_point = captured[0]

    def undo(self) -> Tuple[int, Optional[Move]]:
        """Take back the last move and return it."""
        if not self.history:
            raise IndexError("no move to undo")
        history = self.history[:-1]
        handicap = self.handicap
        last = self.history[-1]
        self.clear()
        if handicap:
            self.place_handicap(handicap)
        for color, move in history:
            self.play(move, color)
        return last

    def place_handicap(self, vertices: Sequence[Move]) -> None:
        """Put black stones on ``vertices``; white moves next."""
        if self.history or not self.is_empty():
            raise IllegalMoveError("board not empty")
        if len(set(vertices)) != len(vertices):
            raise IllegalMoveError("repeated handicap vertex")
        for x, y in vertices:
            self.stones[y][x] = BLACK
        self.handicap = list(vertices)
        self.side_to_move = WHITE

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------
    def _flood_fill_territory(self, x: int, y: int) -> Tuple[Set[Move], int]:
        """Return the empty region at ``(x, y)`` and its owner (0 if shared)."""
        territory: Set[Move] = set()
        border_colors: Set[int] = set()
        stack = [(x, y)]
        while stack:
            cx, cy = stack.pop()
            if (cx, cy) in territory:
                continue
            if self.stones[cy][cx] != EMPTY:
                border_colors.add(self.stones[cy][cx])
                continue
            territory.add((cx, cy))
            for nx, ny in neighbors(cx, cy, self.size):
                if (nx, ny) not in territory:
                    stack.append((nx, ny))
        if len(border_colors) == 1:
            return territory, border_colors.pop()
        return territory, EMPTY

    def area_ownership(self) -> Matrix:
        """Return a matrix of owners (1, -1 or 0) under area scoring."""
        owner: Matrix = [[EMPTY] * self.size for _ in range(self.size)]
        seen: Set[Move] = set()
        for y in range(self.size):
            for x in range(self.size):
                val = self.stones[y][x]
                if val != EMPTY:
                    owner[y][x] = val
                elif (x, y) not in seen:
                    region, color = self._flood_fill_territory(x, y)
                    seen |= region
                    for rx, ry in region:
                        owner[ry][rx] = color
        return owner

    def area_score(self, komi: float) -> float:
        """Black's area minus white's area minus ``komi``."""
        owner = self.area_ownership()
        total = sum(sum(row) for row in owner)
        return total - komi

    def ownership_map(self, score: float, ownership: Sequence[Sequence[float]]) -> str:
        """Render ``ownership`` (values in [-1, 1]) next to the stones."""
        header = "   " + " ".join(COLUMNS[: self.size])
        lines = [header]
        for y in range(self.size):
            row = []
            for x in range(self.size):
                value = ownership[y][x]
                stone = self.stones[y][x]
                if stone != EMPTY and value * stone < 0:
                    row.append("x" if stone == BLACK else "o")  # dead
                elif stone != EMPTY:
                    row.append(SYMBOLS[stone])
                elif value > 0.5:
                    row.append("b")
                elif value < -0.5:
                    row.append("w")
                else:
                    row.append(".")
            lines.append(f"{self.size - y:2d} " + " ".join(row))
        lines.append(header)
        lines.append(f"result: {format_result(score)}")
        return "\n".join(lines)

    def __str__(self) -> str:
        rows = [
            f"{self.size - y:2d} " + " ".join(SYMBOLS[self.stones[y][x]] for x in range(self.size))
            for y in range(self.size)
        ]
        return "\n".join(["   " + " ".join(COLUMNS[: self.size])] + rows)


def format_result(score: float) -> str:
    """Format a black-minus-white margin as ``B+x.y``, ``W+x.y`` or ``0``."""
    if score == 0:
        return "0"
    return f"{'B' if score > 0 else 'W'}+{abs(score):.1f}"


__all__ = [
    "BLACK",
    "BOARD_SIZE",
    "Board",
    "EMPTY",
    "IllegalMoveError",
    "Move",
    "WHITE",
    "color_name",
    "fixed_handicap_vertices",
    "format_result",
    "group_and_liberties",
    "neighbors",
    "parse_color",
    "parse_vertex",
    "vertex_to_str",
]
