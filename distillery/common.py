"""Shared constants, version information, logging setup and the command registry."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

UNKNOWN = "unknown"
LATEST = "latest"

WARN = "warn"
ERROR = "error"
IGNORE = "ignore"

NAME = "distillery"
SUMMARY = "v1.0.0"
BRANCH = "dev"
VERSION = "1.0.0"
COMMIT = "dirty"

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

_LOG_LEVELS = {
    "trace": TRACE,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}

_LEVEL_TAGS = {
    TRACE: "TRAC",
    logging.DEBUG: "DEBU",
    logging.INFO: "INFO",
    logging.WARNING: "WARN",
    logging.ERROR: "ERRO",
    logging.CRITICAL: "FATA",
}

_LEVEL_COLORS = {
    TRACE: 37,
    logging.DEBUG: 37,
    logging.INFO: 36,
    logging.WARNING: 33,
    logging.ERROR: 31,
    logging.CRITICAL: 31,
}

_HANDLER_MARK = "_distillery_handler"

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class AppVersionInfo:
    """Name and version details of the application."""

    name: str = NAME
    version: str = VERSION
    branch: str = BRANCH
    summary: str = SUMMARY
    commit: str = COMMIT

    def __str__(self) -> str:
        return f"{{{self.name} {self.version} {self.branch} {self.summary} {self.commit}}}"


APP_VERSION = AppVersionInfo()


@dataclass
class Command:
    """A named sub-command of the command line interface."""

    name: str
    usage: str = ""
    description: str = ""
    action: Callable[..., Any] | None = None
    aliases: tuple[str, ...] = field(default_factory=tuple)


_commands: dict[str, list[Command]] = {}


def register_command(command: Command) -> None:
    """Register a command under the main group."""
    log.debug("Registering %s command...", command.name)
    _commands.setdefault("_main_", []).append(command)


def get_commands() -> list[Command]:
    """Return all commands registered under the main group."""
    return list(_commands.get("_main_", []))


def get_command(name: str) -> Command | None:
    """Return the registered command with the given name, or None."""
    for command in _commands.get("_main_", []):
        if command.name == name:
            return command
    return None


def add_logging_arguments(parser: argparse.ArgumentParser) -> argparse.ArgumentParser:
    """Add the global logging options to an argument parser."""
    group = parser.add_argument_group("Logging Options")
    group.add_argument(
        "-l",
        "--log-level",
        default=os.environ.get("LOG_LEVEL", "info"),
        help="Log Level",
    )
    group.add_argument(
        "--log-caller",
        action="store_true",
        help="log the caller (aka line number and file)",
    )
    group.add_argument(
        "--log-disable-color",
        action="store_true",
        help="disable log coloring",
    )
    group.add_argument(
        "--log-full-timestamp",
        action="store_true",
        help="force log output to always show full timestamp",
    )
    return parser


class _TextFormatter(logging.Formatter):
    def __init__(self, colors: bool, full_timestamp: bool, caller: bool) -> None:
        super().__init__()
        self._colors = colors
        self._full_timestamp = full_timestamp
        self._caller = caller

    def format(self, record: logging.LogRecord) -> str:
        tag = _LEVEL_TAGS.get(record.levelno, record.levelname[:4].upper())
        if self._colors:
            code = _LEVEL_COLORS.get(record.levelno, 37)
            tag = f"\x1b[{code}m{tag}\x1b[0m"
        if self._full_timestamp:
            stamp = datetime.fromtimestamp(record.created).astimezone().isoformat(timespec="seconds")
        else:
            stamp = f"{int(record.relativeCreated // 1000):04d}"
        line = f"{tag}[{stamp}] {record.getMessage()}"
        if self._caller:
            line += f" {os.path.basename(record.pathname)}:{record.lineno}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(
    level: str, caller: bool, disable_color: bool, full_timestamp: bool
) -> logging.Logger:
    """Configure the application logger; unknown level names leave the level as it was."""
    logger = logging.getLogger(NAME)
    for handler in list(logger.handlers):
        if getattr(handler, _HANDLER_MARK, False):
            logger.removeHandler(handler)

    stream = sys.stderr
    colors = not disable_color and hasattr(stream, "isatty") and stream.isatty()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(_TextFormatter(colors, full_timestamp, caller))
    setattr(handler, _HANDLER_MARK, True)
    logger.addHandler(handler)

    if level in _LOG_LEVELS:
        logger.setLevel(_LOG_LEVELS[level])
    return logger