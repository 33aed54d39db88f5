"""Session configuration.

The configuration is built once at start-up (defaults, then an optional
YAML/JSON file, then command line overrides) and handed to every part of
the session.  Times are in seconds.
"""
from __future__ import annotations

import dataclasses
import datetime
import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml

from session.errors import ConfigError

logger = logging.getLogger(__name__)

_TRUE = {"true", "yes", "on", "1"}
_FALSE = {"false", "no", "off", "0"}


@dataclass
class SessionConfig:
    """Options of a GTP session.

    ``lizzie`` switches to analysis-GUI mode: logging is disabled, pondering
    is enabled and the reported version mimics Leela Zero.  ``allocate_gpu``
    acquires the evaluator while the session is constructed instead of on
    first use.
    """

    engine_name: str = "AQ"
    version: str = "4.0.0"
    lizzie: bool = False
    use_ponder: bool = True
    save_log: bool = False
    working_dir: str = "."
    allocate_gpu: bool = False
    send_list: bool = False
    komi: float = 7.0
    main_time: float = 900.0
    byoyomi: float = 0.0
    resign_threshold: float = 0.1
    ponder_time: float = 100.0
    analysis_time: float = 86400.0
    cancel_grace: float = 0.01
    acquire_delay: float = 5.0
    min_ponder_time: float = 10.0
    eof_poll_interval: float = 0.05
    playout_depth: int = 400

    def __post_init__(self) -> None:
        if self.lizzie:
            self.save_log = False
            self.use_ponder = True

    @property
    def rating_mode(self) -> bool:
        """Unattended matches: no logging and no pondering."""
        return not self.save_log and not self.use_ponder

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], **overrides: Any) -> "SessionConfig":
        """Create a configuration from ``data`` with ``overrides`` applied on top.

        Unknown keys are ignored with a warning; ``None`` overrides are skipped.
        """
        fields = {f.name: f for f in dataclasses.fields(cls)}
        values: Dict[str, Any] = {}
        merged = dict(data)
        merged.update({k: v for k, v in overrides.items() if v is not None})
        for key, raw in merged.items():
            name = key.replace("-", "_")
            if name not in fields:
                logger.warning("Ignoring unknown config key %s", key)
                continue
            values[name] = _coerce(name, fields[name].default, raw)
        return cls(**values)


def _coerce(name: str, default: Any, raw: Any) -> Any:
    """Convert ``raw`` to the type of ``default``."""
    try:
        if isinstance(default, bool):
            if isinstance(raw, bool):
                return raw
            text = str(raw).strip().lower()
            if text in _TRUE:
                return True
            if text in _FALSE:
                return False
            raise ValueError(raw)
        if isinstance(default, int):
            return int(raw)
        if isinstance(default, float):
            return float(raw)
        return str(raw)
    except (TypeError, ValueError):
        raise ConfigError(f"invalid value for {name}: {raw!r}") from None


def load_config(path: Optional[str]) -> Dict[str, Any]:
    """Load an optional YAML/JSON configuration file."""
    if not path:
        return {}
    try:
        with open(path, "r", encoding="utf-8") as fh:
            if path.endswith(".json"):
                data = json.load(fh)
            else:
                data = yaml.safe_load(fh)
    except FileNotFoundError:
        logger.warning("Config file %s not found", path)
        return {}
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigError(f"Failed to load config {path}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config {path} must be a mapping")
    return data


def session_paths(config: SessionConfig, now: Optional[datetime.datetime] = None) -> Tuple[str, str]:
    """Return the ``(log_path, sgf_path)`` pair for a session started at ``now``."""
    stamp = (now or datetime.datetime.now()).strftime("%Y%m%d_%H%M%S")
    base = os.path.join(config.working_dir, "log", stamp)
    return base + ".txt", base + ".sgf"


__all__ = ["SessionConfig", "load_config", "session_paths"]
