"""Entry point for the AQ GTP engine.

Reads an optional YAML/JSON configuration, applies command line overrides
and runs a GTP session on standard input/output until ``quit``.  Log
messages go to standard error, which GTP controllers show as engine
diagnostics.
"""

from __future__ import annotations

import argparse
import logging
from typing import Iterable, Optional

from monitoring.session_log import configure_logging
from session.config import SessionConfig, load_config
from session.connector import GTPConnector
from session.errors import ConfigError


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="AQ Go engine (GTP)")
    parser.add_argument("--config", help="Optional configuration YAML/JSON")
    parser.add_argument("--lizzie", action="store_true", default=None, help="Analysis mode for Lizzie")
    parser.add_argument("--ponder", dest="use_ponder", action="store_true", default=None,
                        help="Think on the opponent's time")
    parser.add_argument("--no-ponder", dest="use_ponder", action="store_false",
                        help="Do not think on the opponent's time")
    parser.add_argument("--save-log", action="store_true", default=None,
                        help="Write the session log and game records")
    parser.add_argument("--working-dir", help="Directory receiving log/ (default: .)")
    parser.add_argument("--allocate-gpu", action="store_true", default=None,
                        help="Acquire the evaluator at start-up")
    parser.add_argument("--send-list", action="store_true", default=None,
                        help="Send the command list once at start-up")
    parser.add_argument("--komi", type=float, help="Initial komi")
    parser.add_argument("--main-time", type=float, help="Main time in seconds")
    parser.add_argument("--byoyomi", type=float, help="Byoyomi in seconds")
    parser.add_argument("--verbose", action="store_true", help="Show debug messages")
    return parser


def build_config(args: argparse.Namespace) -> SessionConfig:
    """Merge the configuration file with the command line options."""
    data = load_config(args.config)
    return SessionConfig.from_mapping(
        data,
        lizzie=args.lizzie,
        use_ponder=args.use_ponder,
        save_log=args.save_log,
        working_dir=args.working_dir,
        allocate_gpu=args.allocate_gpu,
        send_list=args.send_list,
        komi=args.komi,
        main_time=args.main_time,
        byoyomi=args.byoyomi,
    )


def main(argv: Optional[Iterable[str]] = None) -> None:
    """Entry point for the ``aq-gtp`` command line tool."""
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    configure_logging(logging.DEBUG if args.verbose else logging.INFO)

    try:
        config = build_config(args)
    except ConfigError as exc:
        parser.error(str(exc))
    logging.debug("Loaded config: %s", config)

    GTPConnector(config).start()


if __name__ == "__main__":
    main()
