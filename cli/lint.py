"""CLI wrapper: Lint and check formatting without modifying files."""

from __future__ import annotations

import sys

from cli._runner import SOURCE_PATHS, ruff, run_all


def main() -> None:
    run_all(
        [
            ruff("check", *SOURCE_PATHS, *sys.argv[1:]),
            ruff("format", "--check", *SOURCE_PATHS),
        ]
    )
