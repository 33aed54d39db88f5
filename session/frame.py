"""Parsing of raw GTP command lines."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class CommandFrame:
    """One parsed request: optional numeric id, command name and arguments."""

    name: str
    id: Optional[int] = None
    args: List[str] = field(default_factory=list)


def _is_command_id(token: str) -> bool:
    return token.isascii() and token.isdigit()


def parse_command(line: str) -> CommandFrame:
    """Split ``line`` into a :class:`CommandFrame`.

    Tokens before the command name may carry a leading ``=`` which is
    dropped; a remaining all-digit token is the command id.  Everything
    after the name is kept verbatim as positional arguments.  A line without
    a name yields an empty ``name``.
    """
    command_id: Optional[int] = None
    name = ""
    args: List[str] = []
    for token in line.split():
        if name:
            args.append(token)
            continue
        if token.startswith("="):
            token = token[1:]
        if not token:
            continue
        if _is_command_id(token):
            command_id = int(token)
        else:
            name = token
    return CommandFrame(name=name, id=command_id, args=args)


__all__ = ["CommandFrame", "parse_command"]
