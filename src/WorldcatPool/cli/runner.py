"""Command runner for coordinating CLI execution.

Manages logging configuration, component creation and error handling for
command execution.
"""

from __future__ import annotations

import click
import uvicorn

from WorldcatPool.api import create_app
from WorldcatPool.config import AppConfig
from WorldcatPool.core.errors import PoolError
from WorldcatPool.core.models import Pagination, SortSpec
from WorldcatPool.core.query import validate
from WorldcatPool.sources.factory import create_translator
from WorldcatPool.utils.log import configure_logging, log


class CommandRunner:
    """Orchestrates command execution.

    Handles logging configuration, component creation and error handling
    for CLI commands.
    """

    def __init__(self, config: AppConfig) -> None:
        """Initialize command runner.

        Args:
            config: Application configuration.
        """
        self.config = config

    def configure(self, action: str) -> None:
        configure_logging(
            level=self.config.runtime.level,
            action=action,
            log_to_file=self.config.runtime.to_file,
            log_dir=self.config.runtime.dir,
        )

    def run_serve(self, action: str, *, host: str | None = None, port: int | None = None) -> None:
        """Serve the pool API until interrupted.

        Args:
            action: The CLI command name (e.g., 'serve').
            host: Listen address overriding ``server.host``.
            port: Listen port overriding ``server.port``.
        """
        self.configure(action)
        app = create_app(self.config)
        uvicorn.run(
            app,
            host=host or self.config.server.host,
            port=port or self.config.server.port,
            log_config=None,
            access_log=self.config.runtime.access_log,
        )

    def run_translate(
        self,
        action: str,
        query: str,
        *,
        sort: SortSpec,
        pagination: Pagination,
    ) -> None:
        """Print the upstream request produced for a normalized query.

        Raises:
            click.Abort: When the query cannot be translated.
        """
        self.configure(action)
        translator = create_translator(self.config)
        try:
            validate(query)
            upstream = translator.translate(query, sort=sort, pagination=pagination)
        except PoolError as e:
            log.error("Translation failed (%d): %s", e.status_code, e.message)
            raise click.Abort from e

        click.echo(f"dialect:    {upstream.dialect.name}")
        click.echo(f"query:      {upstream.query}")
        click.echo(f"no_results: {str(upstream.no_results).lower()}")
        for name, value in upstream.params().items():
            click.echo(f"param:      {name}={value}")
