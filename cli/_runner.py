"""
Shared CLI runner helpers.

Runs development commands (tests, lint, format) with the current
interpreter, so they behave the same inside any virtual environment.
"""

from __future__ import annotations

import subprocess
import sys
from collections.abc import Sequence

# Trees checked and formatted by the lint/format wrappers
SOURCE_PATHS = ("rules_sdk", "tests", "cli")


def ruff(*args: str) -> list[str]:
    """Build a ruff command line for the current interpreter."""
    return [sys.executable, "-m", "ruff", *args]


def run(cmd: Sequence[str]) -> None:
    """
    Run a command and exit with its return code.

    Example:
        >>> run([sys.executable, "-m", "pytest", "-q"])
    """
    result = subprocess.run(cmd)
    raise SystemExit(result.returncode)


def run_all(commands: Sequence[Sequence[str]]) -> None:
    """Run commands in order, exiting at the first failure."""
    for cmd in commands:
        result = subprocess.run(cmd)
        if result.returncode != 0:
            raise SystemExit(result.returncode)
    raise SystemExit(0)
