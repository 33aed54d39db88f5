"""Test package for the AQ GTP session.

- unit/: parser, queue, formatter, configuration, board, SGF record, CLI
- components/: dispatcher, pondering, session loop, search and evaluator
"""
