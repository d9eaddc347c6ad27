"""Click CLI interface definitions.

Defines the command-line interface structure and routes commands
to their respective runners.
"""

from __future__ import annotations

from pathlib import Path

import click
from dotenv import load_dotenv

from WorldcatPool.cli.runner import CommandRunner
from WorldcatPool.config import load_config_with_defaults
from WorldcatPool.core.models import Pagination, SortSpec


@click.group(help="WorldcatPool: serve WorldCat as a federated search pool.")
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path, dir_okay=False),
    default=Path("config/default.yml"),
    show_default=True,
    help="Path to YAML config file, merged onto config/default.yml.",
)
@click.pass_context
def cli(ctx: click.Context, config_path: Path) -> None:
    """CLI entry group.

    Loads environment variables from .env file before processing config.

    Args:
        ctx: Click context.
        config_path: Path to YAML config file.
    """
    # Secrets referenced by *_env config keys may live in .env
    load_dotenv()

    cfg = load_config_with_defaults(config_path)
    ctx.obj = cfg


@cli.command("serve")
@click.option("--host", default=None, help="Listen address, overrides server.host.")
@click.option("--port", type=int, default=None, help="Listen port, overrides server.port.")
@click.pass_context
def serve_cmd(ctx: click.Context, host: str | None, port: int | None) -> None:
    """Run the pool HTTP API."""
    runner = CommandRunner(ctx.obj)
    runner.run_serve(action=ctx.command.name, host=host, port=port)


@cli.command("translate")
@click.argument("query")
@click.option("--sort", "sort_id", default="", help="Sort id: relevance, date, title or author.")
@click.option("--order", type=click.Choice(["asc", "desc", ""]), default="", help="Sort order.")
@click.option("--start", type=click.IntRange(min=0), default=0, show_default=True, help="Zero-based offset.")
@click.option("--rows", type=click.IntRange(min=0), default=20, show_default=True, help="Page size.")
@click.pass_context
def translate_cmd(ctx: click.Context, query: str, sort_id: str, order: str, start: int, rows: int) -> None:
    """Translate QUERY into the upstream dialect without searching.

    Args:
        ctx: Click context.
        query: Query in the normalized grammar, e.g. 'title: {cats}'.
    """
    runner = CommandRunner(ctx.obj)
    runner.run_translate(
        action=ctx.command.name,
        query=query,
        sort=SortSpec(sort_id=sort_id, order=order),
        pagination=Pagination(start=start, rows=rows),
    )
