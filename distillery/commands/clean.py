"""The clean command: find and remove binaries no symlink points at."""

from __future__ import annotations

import argparse
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from distillery.common import (
    LATEST,
    NAME,
    Command,
    add_logging_arguments,
    configure_logging,
    register_command,
)

log = logging.getLogger(__name__)


@dataclass
class CleanReport:
    """What a scan of the bin directory found."""

    symlinks: dict[str, dict[str, str]] = field(default_factory=dict)
    targets: list[str] = field(default_factory=list)
    binaries: list[str] = field(default_factory=list)

    @property
    def orphans(self) -> list[str]:
        """Binaries that no symlink points at."""
        targets = set(self.targets)
        return [path for path in self.binaries if path not in targets]


def _entries(bin_dir: str):
    """Yield non-directory paths under bin_dir in lexical order without following links."""
    try:
        names = sorted(os.listdir(bin_dir))
    except OSError:
        return
    for name in names:
        path = os.path.join(bin_dir, name)
        if os.path.isdir(path) and not os.path.islink(path):
            yield from _entries(path)
        else:
            yield path


def scan_bin_dir(bin_dir: str) -> CleanReport:
    """Collect symlinks, their targets and regular files below bin_dir."""
    report = CleanReport()
    for path in _entries(bin_dir):
        if os.path.islink(path):
            name = os.path.basename(path)
            simple_name, version = name, LATEST
            parts = name.split("@")
            if len(parts) > 1:
                simple_name, version = parts[0], parts[1]
            report.targets.append(os.readlink(path))
            report.symlinks.setdefault(simple_name, {})[version] = path
        else:
            report.binaries.append(path)
    return report


def execute(bin_dir: str, no_dry_run: bool) -> CleanReport:
    """Report orphaned binaries in bin_dir and remove them unless this is a dry run."""
    if not no_dry_run:
        log.warning("dry-run enabled, no changes will be made, use --no-dry-run to perform actions")

    report = scan_bin_dir(bin_dir)

    log.warning("orphaned binaries:")
    for path in report.orphans:
        log.warning("  - %s", path)
        if no_dry_run:
            os.remove(path)
    return report


def _default_bin_dir() -> str:
    return str(Path.home() / f".{NAME}" / "bin")


def main(argv: list[str] | None = None) -> int:
    """Run the clean command from the command line."""
    parser = argparse.ArgumentParser(prog=f"{NAME} clean", description="cleanup")
    parser.add_argument("--no-dry-run", action="store_true", help="Perform all actions")
    add_logging_arguments(parser)
    args = parser.parse_args(argv)
    configure_logging(args.log_level, args.log_caller, args.log_disable_color, args.log_full_timestamp)

    try:
        execute(_default_bin_dir(), args.no_dry_run)
    except OSError as exc:
        log.error("%s", exc)
        return 1
    return 0


register_command(Command(name="clean", usage="clean", description="cleanup", action=main))