"""GTP command dispatch.

Each supported command is handled by a dedicated ``handle_*`` method that
updates the session state and returns the response body.  A handler
reports failure by raising :class:`~session.errors.CommandError`; malformed
arguments are answered with ``? syntax error``.  Nothing a client sends can
stop the session except ``quit``.
"""
from __future__ import annotations

import logging
import math
from typing import Callable, Dict, List, Optional, Tuple

from engine.board import (
    BLACK,
    BOARD_SIZE,
    WHITE,
    Board,
    IllegalMoveError,
    Move,
    color_name,
    fixed_handicap_vertices,
    format_result,
    parse_color,
    parse_vertex,
    vertex_to_str,
)
from engine.search import UNLIMITED
from monitoring.performance import PerformanceMonitor
from session.config import SessionConfig
from session.errors import CommandError
from session.evaluator import EvaluatorGuard
from session.formatter import ResponseFormatter
from session.frame import CommandFrame, parse_command
from session.state import SessionState

logger = logging.getLogger(__name__)
transcript = logging.getLogger("session.transcript")

KNOWN_COMMANDS = [
    "protocol_version",
    "name",
    "version",
    "known_command",
    "list_commands",
    "boardsize",
    "clear_board",
    "komi",
    "time_left",
    "genmove",
    "play",
    "undo",
    "final_score",
    "lz-analyze",
    "kgs-time_settings",
    "time_settings",
    "set_free_handicap",
    "fixed_handicap",
    "place_free_handicap",
    "gogui-play_sequence",
    "kgs-game_over",
    "quit",
]

LIZZIE_VERSION = "0.16"
MIN_MOVES_BEFORE_RESIGN = 20


class CommandDispatcher:
    """Route parsed commands to their handlers and send the responses."""

    def __init__(
        self,
        config: SessionConfig,
        state: SessionState,
        search,
        formatter: ResponseFormatter,
        evaluator: EvaluatorGuard,
    ) -> None:
        self.config = config
        self.state = state
        self.search = search
        self.formatter = formatter
        self.evaluator = evaluator
        self._handlers: Dict[str, Callable[[List[str]], str]] = {
            "protocol_version": self.handle_protocol_version,
            "name": self.handle_name,
            "version": self.handle_version,
            "known_command": self.handle_known_command,
            "list_commands": self.handle_list_commands,
            "boardsize": self.handle_boardsize,
            "clear_board": self.handle_clear_board,
            "komi": self.handle_komi,
            "time_left": self.handle_time_left,
            "genmove": self.handle_genmove,
            "play": self.handle_play,
            "undo": self.handle_undo,
            "final_score": self.handle_final_score,
            "lz-analyze": self.handle_lz_analyze,
            "kgs-time_settings": self.handle_kgs_time_settings,
            "time_settings": self.handle_time_settings,
            "set_free_handicap": self.handle_set_free_handicap,
            "fixed_handicap": self.handle_fixed_handicap,
            "place_free_handicap": self.handle_place_free_handicap,
            "gogui-play_sequence": self.handle_gogui_play_sequence,
            "kgs-game_over": self.handle_kgs_game_over,
            "quit": self.handle_quit,
        }

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------
    def execute(self, line: str) -> bool:
        """Process one raw command line; return ``False`` after ``quit``."""
        transcript.debug(line.rstrip("\r\n"))

        if self.state.streaming:
            self.formatter.send_raw("\n")
            self.stop_streaming()

        frame = parse_command(line)
        if not frame.name:
            return True

        body, success = self.dispatch(frame)
        self.state.success = success
        self.formatter.send(success, frame.id, body, streaming=self.state.streaming)
        return frame.name != "quit"

    def dispatch(self, frame: CommandFrame) -> Tuple[str, bool]:
        """Run the handler for ``frame`` and return ``(body, success)``."""
        handler = self._handlers.get(frame.name)
        if handler is None:
            logger.warning("? unknown command.")
            return "unknown command.", False
        try:
            return handler(frame.args), True
        except CommandError as exc:
            logger.warning("? %s", exc)
            return str(exc), False
        except (ValueError, IndexError) as exc:
            logger.warning("? syntax error in %s: %s", frame.name, exc)
            return "syntax error", False

    def stop_streaming(self) -> None:
        self.search.cancel()
        self.state.streaming_interval = -1

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _color(text: str) -> int:
        try:
            return parse_color(text)
        except ValueError:
            raise CommandError("invalid color") from None

    @staticmethod
    def _number(text: str) -> float:
        """Parse a finite number; ``nan`` and ``inf`` are rejected."""
        value = float(text)
        if not math.isfinite(value):
            raise CommandError("syntax error")
        return value

    @staticmethod
    def _vertex(text: str) -> Optional[Move]:
        try:
            return parse_vertex(text)
        except ValueError:
            raise CommandError("invalid vertex") from None

    @staticmethod
    def _play_on(board: Board, color: int, move: Optional[Move]) -> List[Tuple[int, Optional[Move]]]:
        """Play ``move`` for ``color`` on ``board``, passing for the other side if needed."""
        if not board.is_legal(move, color):
            raise CommandError("illegal move")
        played = []
        if board.side_to_move != color:
            board.play(None, -color)
            played.append((-color, None))
        board.play(move, color)
        played.append((color, move))
        return played

    def _apply(self, color: int, move: Optional[Move]) -> None:
        for played_color, played_move in self._play_on(self.state.board, color, move):
            self.state.record.add_move(played_color, played_move)

    def _final_result(self) -> str:
        score, ownership = self.search.final_score(self.state.board)
        logger.info("%s", self.state.board.ownership_map(score, ownership))
        return format_result(score)

    def _save_record(self, result: Optional[str] = None) -> None:
        if self.state.save_log and len(self.state.record):
            self.state.record.save(self.state.sgf_path, result)

    def _place_handicap(self, count: int) -> str:
        try:
            vertices = fixed_handicap_vertices(count)
        except ValueError:
            raise CommandError("invalid handicap") from None
        try:
            self.state.board.place_handicap(vertices)
        except IllegalMoveError:
            raise CommandError("board not empty") from None
        self.state.record.set_handicap(vertices)
        return " ".join(vertex_to_str(v) for v in vertices)

    def _set_engine_color(self, color: Optional[int]) -> None:
        self.state.engine_color = color
        self.state.record.engine_color = color

    # ------------------------------------------------------------------
    # Protocol metadata
    # ------------------------------------------------------------------
    def handle_protocol_version(self, args: List[str]) -> str:
        """Return the GTP protocol version."""
        return "2"

    def handle_name(self, args: List[str]) -> str:
        """Return the engine name."""
        return self.config.engine_name

    def handle_version(self, args: List[str]) -> str:
        """Return the engine version."""
        return LIZZIE_VERSION if self.config.lizzie else self.config.version

    def handle_known_command(self, args: List[str]) -> str:
        """Return whether the command is supported."""
        return "true" if args and args[0] in KNOWN_COMMANDS else "false"

    def handle_list_commands(self, args: List[str]) -> str:
        """Return all supported commands."""
        return "\n".join(KNOWN_COMMANDS)

    # ------------------------------------------------------------------
    # Game setup
    # ------------------------------------------------------------------
    def handle_boardsize(self, args: List[str]) -> str:
        """Accept only the 19x19 board."""
        if int(args[0]) != BOARD_SIZE:
            raise CommandError(f"This build is allowed to play in only {BOARD_SIZE} board.")
        return ""

    def handle_clear_board(self, args: List[str]) -> str:
        """Start a new game, saving the previous record."""
        self._save_record()
        self.state.board.clear()
        self.state.record.clear()
        self.search.clear()
        self._set_engine_color(None)
        self.state.should_ponder = False
        return ""

    def handle_komi(self, args: List[str]) -> str:
        """Set komi for the search and the record."""
        komi = self._number(args[0])
        self.search.set_komi(komi)
        self.state.record.komi = komi
        logger.info("set komi=%.1f.", komi)
        return ""

    def handle_time_left(self, args: List[str]) -> str:
        """Update the remaining time of the engine's clock."""
        color = self._color(args[0])
        left_time = self._number(args[1])
        if self.state.engine_color is None or self.state.engine_color == color:
            self.search.set_left_time(left_time)
        return ""

    def handle_kgs_time_settings(self, args: List[str]) -> str:
        """Set time control from a KGS time system."""
        kind = args[0].lower()
        if kind == "none":
            self.search.set_time_settings(UNLIMITED, 0.0)
        elif kind == "absolute":
            self.search.set_time_settings(self._number(args[1]), 0.0)
        elif kind == "byoyomi":
            main_time, byoyomi, periods = self._number(args[1]), self._number(args[2]), int(args[3])
            self.search.set_time_settings(main_time, byoyomi if periods > 0 else 0.0)
        elif kind == "canadian":
            main_time, period, stones = self._number(args[1]), self._number(args[2]), int(args[3])
            self.search.set_time_settings(main_time, period / stones if stones > 0 else 0.0)
        else:
            raise CommandError(f"unsupported time system: {args[0]}")
        return ""

    def handle_time_settings(self, args: List[str]) -> str:
        """Set main time and byoyomi per move."""
        main_time, byoyomi, stones = self._number(args[0]), self._number(args[1]), int(args[2])
        if byoyomi > 0 and stones == 0:
            self.search.set_time_settings(UNLIMITED, 0.0)
        else:
            self.search.set_time_settings(main_time, byoyomi / stones if stones > 0 else 0.0)
        return ""

    def handle_set_free_handicap(self, args: List[str]) -> str:
        """Place black handicap stones chosen by the controller."""
        vertices = [self._vertex(a) for a in args]
        if len(vertices) < 2 or None in vertices:
            raise CommandError("invalid handicap")
        try:
            self.state.board.place_handicap(vertices)
        except IllegalMoveError as exc:
            raise CommandError(str(exc)) from None
        self.state.record.set_handicap(vertices)
        self._set_engine_color(WHITE)
        return ""

    def handle_fixed_handicap(self, args: List[str]) -> str:
        """Place standard handicap stones."""
        return self._place_handicap(int(args[0]))

    def handle_place_free_handicap(self, args: List[str]) -> str:
        """Place standard handicap stones for the engine as black."""
        vertices = self._place_handicap(int(args[0]))
        self._set_engine_color(BLACK)
        return vertices

    # ------------------------------------------------------------------
    # Gameplay
    # ------------------------------------------------------------------
    def handle_play(self, args: List[str]) -> str:
        """Play a move for the given color."""
        color = self._color(args[0])
        move = self._vertex(args[1])
        self._apply(color, move)
        return ""

    def handle_undo(self, args: List[str]) -> str:
        """Take back the last move."""
        try:
            self.state.board.undo()
        except IndexError:
            raise CommandError("cannot undo") from None
        self.state.record.undo()
        self.state.should_ponder = False
        return ""

    def handle_genmove(self, args: List[str]) -> str:
        """Search and play a move for the given color."""
        color = self._color(args[0])
        self._set_engine_color(color)
        board = self.state.board
        if board.side_to_move != color:
            board.play(None, -color)
            self.state.record.add_move(-color, None)

        self.evaluator.ensure_acquired()
        with PerformanceMonitor() as monitor:
            move, winrate = self.search.think(board, self.search.thinking_time(board))
        logger.debug("genmove %s: %s", color_name(color), monitor.summary())
        logger.info("%s %s winrate=%.1f%%", color_name(color), vertex_to_str(move), winrate * 100)

        if winrate < self.config.resign_threshold and board.move_count > MIN_MOVES_BEFORE_RESIGN:
            self.state.should_ponder = False
            return "resign"

        board.play(move, color)
        self.state.record.add_move(color, move)
        self.state.should_ponder = True
        return vertex_to_str(move)

    def handle_gogui_play_sequence(self, args: List[str]) -> str:
        """Play a sequence of moves, all or none."""
        if len(args) % 2:
            raise CommandError("invalid sequence")
        moves = [(self._color(args[i]), self._vertex(args[i + 1])) for i in range(0, len(args), 2)]
        trial = self.state.board.copy()
        for color, move in moves:
            self._play_on(trial, color, move)
        for color, move in moves:
            self._apply(color, move)
        return ""

    # ------------------------------------------------------------------
    # Reporting and lifecycle
    # ------------------------------------------------------------------
    def handle_final_score(self, args: List[str]) -> str:
        """Return the score of the current position."""
        return self._final_result()

    def handle_lz_analyze(self, args: List[str]) -> str:
        """Start streaming analysis while pondering."""
        interval = 0
        for token in args:
            if token.isdigit():
                interval = int(token)
            elif token.lower() == "interval":
                continue
            else:
                try:
                    float(token)
                except ValueError:
                    self._color(token)
                else:
                    raise CommandError("invalid interval")
        self.state.streaming_interval = interval if interval > 0 else -1
        self.state.should_ponder = True
        return ""

    def handle_kgs_game_over(self, args: List[str]) -> str:
        """Stop pondering and save the record."""
        self.state.should_ponder = False
        self._save_record()
        return ""

    def handle_quit(self, args: List[str]) -> str:
        """Log the final result and end the session."""
        self.stop_streaming()
        result = self._final_result()
        logger.info("final result: %s", result)
        self._save_record(result)
        return ""


__all__ = ["CommandDispatcher", "KNOWN_COMMANDS", "LIZZIE_VERSION"]
