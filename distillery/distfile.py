"""Parsing Distfiles: lists of install commands with file inclusion."""

from __future__ import annotations

import os
from dataclasses import dataclass, field


class DistfileError(ValueError):
    """Raised when a Distfile is malformed or includes itself."""


@dataclass
class Command:
    """A command parsed from a Distfile."""

    action: str
    args: list[str] = field(default_factory=list)


_INSTALL_ACTIONS = frozenset({"distill", "install", "dist"})
_INCLUDE_ACTIONS = frozenset({"distfile", "file"})


def parse(file_path: str) -> list[Command]:
    """Parse the Distfile at file_path, following includes, into a list of commands."""
    return _parse(file_path, set())


def _parse(file_path: str, processed: set[str]) -> list[Command]:
    key = os.path.abspath(file_path)
    if key in processed:
        raise DistfileError(f"circular inclusion detected: {file_path}")

    with open(file_path, encoding="utf-8") as fh:
        processed.add(key)
        commands: list[Command] = []
        for raw in fh:
            line = raw.strip()
            if not line or line.startswith("#"):
                continue
            action, *args = line.split()
            if action in _INSTALL_ACTIONS:
                commands.append(Command(action="install", args=args))
            elif action in _INCLUDE_ACTIONS:
                if len(args) != 1:
                    raise DistfileError("file command requires exactly one argument")
                commands.extend(_parse(args[0], processed))
            else:
                raise DistfileError(f"unknown command: {action}")
    return commands