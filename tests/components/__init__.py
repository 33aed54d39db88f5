"""Component tests for the GTP session.

These tests run commands through a full session on in-memory streams:
1. Dispatcher - command handlers and response framing (session/dispatcher.py)
2. Pondering - coordinator and evaluator policy (session/ponder.py, session/evaluator.py)
3. Connector - session loop and input reader (session/connector.py, session/reader.py)
4. Search - time-bounded tree search (engine/search.py)
5. Evaluator - rollout policy (engine/evaluator.py)
"""
