"""Component tests for GTP command dispatch (session/dispatcher.py).

Commands go through a full session (queue, dispatcher, formatter) with a
scripted search collaborator and the raw protocol output is checked.
"""
from __future__ import annotations

import logging
import os
import threading

import pytest
from sgfmill import sgf

from engine.board import BLACK, COLUMNS, WHITE, parse_vertex
from engine.search import SearchTree
from session.dispatcher import KNOWN_COMMANDS


def stone_at(state, text):
    x, y = parse_vertex(text)
    return state.board.stones[y][x]


class TestProtocolCommands:
    """Fixed answers and response framing."""

    def test_protocol_version(self, gtp):
        assert gtp("protocol_version") == "= 2\n\n"

    def test_name_and_version(self, gtp):
        assert gtp("name") == "= AQ\n\n"
        assert gtp("version") == "= 4.0.0\n\n"

    def test_lizzie_version(self, make_connector):
        connector, out = make_connector(lizzie=True)
        connector.queue.push("version\n")
        connector.step()

        assert out.getvalue() == "= 0.16\n\n"

    def test_id_is_echoed(self, gtp):
        assert gtp("12 name") == "=12 AQ\n\n"
        assert gtp("=3 protocol_version") == "=3 2\n\n"

    def test_unknown_command(self, gtp, caplog):
        assert gtp("7 foo bar") == "?7 unknown command.\n\n"
        assert "? unknown command." in caplog.text

    def test_blank_line_has_no_response(self, gtp):
        assert gtp("") == ""
        assert gtp("   ") == ""

    def test_list_commands(self, gtp):
        assert gtp("list_commands") == "= " + "\n".join(KNOWN_COMMANDS) + "\n\n"

    @pytest.mark.parametrize("name", KNOWN_COMMANDS)
    def test_known_command_round_trip(self, gtp, name):
        assert gtp(f"known_command {name}") == "= true\n\n"

    @pytest.mark.parametrize("args", ["", "foo", "showboard"])
    def test_known_command_false(self, gtp, args):
        assert gtp(f"known_command {args}") == "= false\n\n"

    def test_only_quit_ends_session(self, gtp):
        connector = gtp.connector
        for line in ["name", "foo", "play x Z99", "boardsize 9", ""]:
            connector.queue.push(line + "\n")
            assert connector.step() is True

        connector.queue.push("quit\n")
        assert connector.step() is False

    def test_handlers_are_documented(self, gtp):
        handlers = gtp.connector.dispatcher._handlers

        assert sorted(handlers) == sorted(KNOWN_COMMANDS)
        assert all(handler.__doc__ for handler in handlers.values())


class TestBoardSetup:
    def test_boardsize_19(self, gtp):
        assert gtp("boardsize 19") == "= \n\n"

    def test_boardsize_other(self, gtp):
        gtp("play b D4")

        assert gtp("boardsize 13") == "? This build is allowed to play in only 19 board.\n\n"
        assert stone_at(gtp.connector.state, "D4") == BLACK

    def test_boardsize_syntax_error(self, gtp):
        assert gtp("boardsize") == "? syntax error\n\n"
        assert gtp("boardsize abc") == "? syntax error\n\n"

    def test_clear_board(self, gtp, fake_search):
        gtp("genmove b")
        fake_search.left = 10.0

        assert gtp("clear_board") == "= \n\n"
        state = gtp.connector.state
        assert state.board.is_empty()
        assert len(state.record) == 0
        assert state.engine_color is None
        assert state.should_ponder is False
        assert fake_search.left == fake_search.main

    def test_komi(self, gtp, fake_search, caplog):
        caplog.set_level(logging.INFO)

        assert gtp("komi 6.5") == "= \n\n"
        assert fake_search.komi_value == 6.5
        assert gtp.connector.state.record.komi == 6.5
        assert "set komi=6.5." in caplog.text

    def test_komi_syntax_error(self, gtp):
        assert gtp("komi seven") == "? syntax error\n\n"

    @pytest.mark.parametrize("value", ["nan", "inf", "-inf"])
    def test_komi_must_be_finite(self, gtp, fake_search, value):
        assert gtp(f"komi {value}") == "? syntax error\n\n"
        assert fake_search.komi_value == 7.0
        assert gtp.connector.state.record.komi == 7.0


class TestTimeCommands:
    def test_time_left_without_engine_color(self, gtp, fake_search):
        assert gtp("time_left b 120 0") == "= \n\n"
        assert fake_search.left == 120.0

    def test_time_left_filters_opponent(self, gtp, fake_search):
        gtp("genmove w")

        gtp("time_left b 30 0")
        assert fake_search.left == 900.0

        gtp("time_left w 45 0")
        assert fake_search.left == 45.0

    def test_time_left_bad_color(self, gtp):
        assert gtp("time_left red 30 0") == "? invalid color\n\n"

    @pytest.mark.parametrize(
        "line,main,byo",
        [
            ("kgs-time_settings none", float("inf"), 0.0),
            ("kgs-time_settings absolute 600", 600.0, 0.0),
            ("kgs-time_settings byoyomi 600 30 5", 600.0, 30.0),
            ("kgs-time_settings byoyomi 600 30 0", 600.0, 0.0),
            ("kgs-time_settings canadian 600 300 25", 600.0, 12.0),
            ("time_settings 300 300 25", 300.0, 12.0),
            ("time_settings 300 0 0", 300.0, 0.0),
            ("time_settings 300 30 0", float("inf"), 0.0),
        ],
    )
    def test_time_settings(self, gtp, fake_search, line, main, byo):
        assert gtp(line) == "= \n\n"
        assert fake_search.main == main
        assert fake_search.byo == byo

    def test_unsupported_time_system(self, gtp):
        assert gtp("kgs-time_settings hourglass 60") == "? unsupported time system: hourglass\n\n"

    def test_time_settings_syntax_error(self, gtp):
        assert gtp("time_settings 300") == "? syntax error\n\n"

    @pytest.mark.parametrize(
        "line",
        [
            "time_left b nan 0",
            "time_left b inf 0",
            "time_settings nan 30 1",
            "time_settings 300 inf 1",
            "kgs-time_settings absolute nan",
            "kgs-time_settings byoyomi 600 nan 5",
            "kgs-time_settings canadian inf 300 25",
        ],
    )
    def test_clock_values_must_be_finite(self, gtp, fake_search, line):
        assert gtp(line) == "? syntax error\n\n"
        assert (fake_search.main, fake_search.byo, fake_search.left) == (900.0, 0.0, 900.0)

    def test_genmove_finishes_after_rejected_clock(self, make_connector):
        search = SearchTree(main_time=30.0, playout_depth=10, seed=5)
        connector, out = make_connector(search=search)
        for line in ["time_left b nan 0", "genmove b"]:
            connector.queue.push(line + "\n")

        def serve():
            connector.step()
            connector.step()

        worker = threading.Thread(target=serve, daemon=True)
        worker.start()
        worker.join(timeout=10.0)

        assert not worker.is_alive()
        assert out.getvalue().startswith("? syntax error\n\n= ")
        assert search.left_time() < 30.0


class TestHandicap:
    def test_fixed_handicap(self, gtp):
        assert gtp("fixed_handicap 4") == "= D4 Q16 D16 Q4\n\n"
        state = gtp.connector.state
        assert state.board.side_to_move == WHITE
        assert state.record.handicap == [parse_vertex(v) for v in ["D4", "Q16", "D16", "Q4"]]
        assert state.engine_color is None

    @pytest.mark.parametrize("count", ["1", "10"])
    def test_fixed_handicap_invalid(self, gtp, count):
        assert gtp(f"fixed_handicap {count}") == "? invalid handicap\n\n"

    def test_fixed_handicap_needs_empty_board(self, gtp):
        gtp("play b K10")

        assert gtp("fixed_handicap 2") == "? board not empty\n\n"

    def test_place_free_handicap(self, gtp):
        assert gtp("place_free_handicap 2") == "= D4 Q16\n\n"
        assert gtp.connector.state.engine_color == BLACK

    def test_set_free_handicap(self, gtp):
        assert gtp("set_free_handicap C3 R17 K10") == "= \n\n"
        state = gtp.connector.state
        assert state.engine_color == WHITE
        assert state.board.side_to_move == WHITE
        assert stone_at(state, "R17") == BLACK

    @pytest.mark.parametrize("args", ["D4", "D4 pass", "D4 Z30"])
    def test_set_free_handicap_invalid(self, gtp, args):
        assert gtp(f"set_free_handicap {args}").startswith("? invalid")
        assert gtp.connector.state.board.is_empty()

    def test_set_free_handicap_repeated_vertex(self, gtp):
        assert gtp("set_free_handicap D4 D4").startswith("? ")
        assert gtp.connector.state.board.is_empty()


class TestPlay:
    def test_play(self, gtp):
        assert gtp("play b D4") == "= \n\n"
        state = gtp.connector.state
        assert stone_at(state, "D4") == BLACK
        assert state.record.moves == [(BLACK, parse_vertex("D4"))]

    def test_play_out_of_turn_inserts_pass(self, gtp):
        assert gtp("play w Q16") == "= \n\n"
        assert gtp.connector.state.board.history == [(BLACK, None), (WHITE, parse_vertex("Q16"))]
        assert len(gtp.connector.state.record) == 2

    def test_play_pass(self, gtp):
        assert gtp("play b pass") == "= \n\n"
        assert gtp.connector.state.board.last_move_was_pass()

    def test_illegal_move(self, gtp):
        gtp("play b D4")

        assert gtp("play w D4") == "? illegal move\n\n"
        assert gtp.connector.state.board.move_count == 1

    @pytest.mark.parametrize(
        "line,expected",
        [
            ("play x D4", "? invalid color\n\n"),
            ("play b Z9", "? invalid vertex\n\n"),
            ("play b I9", "? invalid vertex\n\n"),
            ("play b", "? syntax error\n\n"),
        ],
    )
    def test_bad_arguments(self, gtp, line, expected):
        assert gtp(line) == expected
        assert gtp.connector.state.board.move_count == 0

    def test_undo(self, gtp):
        gtp("play b D4")

        assert gtp("undo") == "= \n\n"
        assert gtp.connector.state.board.is_empty()
        assert len(gtp.connector.state.record) == 0
        assert gtp("undo") == "? cannot undo\n\n"

    def test_play_sequence(self, gtp):
        assert gtp("gogui-play_sequence b D4 w Q16 b D16") == "= \n\n"
        assert gtp.connector.state.board.move_count == 3

    def test_play_sequence_is_atomic(self, gtp):
        assert gtp("gogui-play_sequence b D4 w Q16 b Q16") == "? illegal move\n\n"
        assert gtp.connector.state.board.move_count == 0
        assert len(gtp.connector.state.record) == 0

    def test_play_sequence_odd_arguments(self, gtp):
        assert gtp("gogui-play_sequence b D4 w") == "? invalid sequence\n\n"


class TestGenmove:
    def test_genmove(self, gtp, fake_search):
        assert gtp("genmove b") == "= D4\n\n"
        state = gtp.connector.state
        assert state.engine_color == BLACK
        assert state.record.engine_color == BLACK
        assert state.should_ponder is True
        assert stone_at(state, "D4") == BLACK
        assert fake_search.acquire_calls == 1
        assert fake_search.think_calls == [
            {"time_limit": 1.0, "streaming_interval": -1, "is_pondering": False}
        ]

    def test_genmove_out_of_turn_inserts_pass(self, gtp):
        assert gtp("genmove w") == "= D4\n\n"
        assert gtp.connector.state.board.history == [(BLACK, None), (WHITE, parse_vertex("D4"))]

    def test_genmove_pass(self, gtp, fake_search):
        fake_search.move = None

        assert gtp("genmove b") == "= pass\n\n"

    def test_evaluator_acquired_once(self, gtp, fake_search):
        gtp("genmove b")
        fake_search.move = parse_vertex("Q16")
        gtp("genmove w")

        assert fake_search.acquire_calls == 1

    def test_low_winrate_early_does_not_resign(self, gtp, fake_search):
        fake_search.winrate = 0.01

        assert gtp("genmove b") == "= D4\n\n"

    def test_resign(self, gtp, fake_search):
        for column in COLUMNS[:11]:
            gtp(f"play b {column}3")
            gtp(f"play w {column}17")
        fake_search.winrate = 0.05

        assert gtp("genmove b") == "= resign\n\n"
        state = gtp.connector.state
        assert state.board.move_count == 22
        assert state.should_ponder is False

    def test_genmove_bad_color(self, gtp):
        assert gtp("genmove purple") == "? invalid color\n\n"


class TestScoring:
    @pytest.mark.parametrize("score,expected", [(3.5, "B+3.5"), (-0.5, "W+0.5"), (0.0, "0")])
    def test_final_score(self, gtp, fake_search, score, expected):
        fake_search.score = score

        assert gtp("final_score") == f"= {expected}\n\n"

    def test_final_score_logs_ownership(self, gtp, fake_search, caplog):
        caplog.set_level(logging.INFO)
        fake_search.score = -7.0

        gtp("final_score")

        assert "result: W+7.0" in caplog.text


class TestAnalysis:
    def test_lz_analyze_starts_streaming(self, gtp):
        assert gtp("lz-analyze 50") == "= \n"
        state = gtp.connector.state
        assert state.streaming_interval == 50
        assert state.should_ponder is True

    @pytest.mark.parametrize("args", ["b 10", "interval 10", "w interval 10"])
    def test_lz_analyze_argument_forms(self, gtp, args):
        assert gtp(f"lz-analyze {args}") == "= \n"
        assert gtp.connector.state.streaming_interval == 10

    def test_lz_analyze_without_interval(self, gtp):
        assert gtp("lz-analyze") == "= \n\n"
        assert gtp.connector.state.streaming_interval == -1

    def test_lz_analyze_bad_color(self, gtp):
        assert gtp("lz-analyze x 10") == "? invalid color\n\n"

    @pytest.mark.parametrize("args", ["b 0.5", "-10", "nan"])
    def test_lz_analyze_bad_interval(self, gtp, args):
        assert gtp(f"lz-analyze {args}") == "? invalid interval\n\n"
        assert gtp.connector.state.streaming_interval == -1

    def test_next_command_ends_stream_once(self, gtp, fake_search):
        gtp("lz-analyze 50")

        assert gtp("name") == "\n= AQ\n\n"
        assert fake_search.cancel_calls == 1
        assert gtp.connector.state.streaming_interval == -1
        assert gtp("name") == "= AQ\n\n"

    def test_unknown_command_ends_stream(self, gtp):
        gtp("lz-analyze 50")

        assert gtp("foo") == "\n? unknown command.\n\n"


class TestGameOver:
    def test_kgs_game_over(self, gtp):
        gtp("genmove b")

        assert gtp("kgs-game_over") == "= \n\n"
        assert gtp.connector.state.should_ponder is False

    def test_quit_stops_streaming(self, gtp, fake_search):
        connector = gtp.connector
        connector.state.streaming_interval = 20
        connector.queue.push("quit\n")

        assert connector.step() is False
        assert connector.state.streaming_interval == -1

    def test_quit_logs_result(self, gtp, fake_search, caplog):
        caplog.set_level(logging.INFO)
        fake_search.score = 2.0

        assert gtp("quit") == "= \n\n"
        assert "final result: B+2.0" in caplog.text


@pytest.mark.usefixtures("restore_root_logger")
class TestSessionLog:
    def send(self, connector, line):
        connector.queue.push(line + "\n")
        return connector.step()

    def test_quit_saves_record(self, make_connector, fake_search):
        connector, _ = make_connector(save_log=True)
        fake_search.move = parse_vertex("Q16")
        fake_search.score = -3.0
        self.send(connector, "play b D4")
        self.send(connector, "genmove w")
        self.send(connector, "quit")

        game = sgf.Sgf_game.from_bytes(open(connector.state.sgf_path, "rb").read())
        assert game.get_root().get("RE") == "W+3.0"
        assert game.get_root().get("PW") == "AQ"
        moves = [node.get_move() for node in game.get_main_sequence()[1:]]
        assert moves == [("b", (3, 3)), ("w", (15, 15))]

    def test_transcript_in_log_file(self, make_connector):
        connector, _ = make_connector(save_log=True)
        self.send(connector, "protocol_version")
        self.send(connector, "komi 6.5")

        text = open(connector.state.log_path, encoding="utf-8").read()
        assert "protocol_version" in text
        assert "komi 6.5" in text

    def test_clear_board_saves_record(self, make_connector):
        connector, _ = make_connector(save_log=True)
        self.send(connector, "play b D4")
        self.send(connector, "clear_board")

        game = sgf.Sgf_game.from_bytes(open(connector.state.sgf_path, "rb").read())
        assert [node.get_move() for node in game.get_main_sequence()[1:]] == [("b", (3, 3))]

    def test_no_record_without_logging(self, make_connector):
        connector, _ = make_connector()
        self.send(connector, "play b D4")
        self.send(connector, "quit")

        assert not os.path.exists(connector.state.sgf_path)
