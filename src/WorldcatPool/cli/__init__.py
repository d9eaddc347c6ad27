"""CLI package for WorldcatPool command orchestration."""

from __future__ import annotations

__all__ = ["CommandRunner", "main"]

from WorldcatPool.cli.runner import CommandRunner
from WorldcatPool.cli.ui import cli


def main() -> None:
    """Run WorldcatPool CLI.

    Entry point referenced by console script in pyproject.toml.
    """
    cli()
