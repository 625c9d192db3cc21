"""CLI wrapper: Apply lint autofixes (import order included), then format."""

from __future__ import annotations

from cli._runner import SOURCE_PATHS, ruff, run_all


def main() -> None:
    run_all([ruff("check", "--fix", *SOURCE_PATHS), ruff("format", *SOURCE_PATHS)])
