"""Builders wiring configuration into the WorldCat source."""

from __future__ import annotations

from typing import TYPE_CHECKING

import requests

from WorldcatPool.sources.worldcat.auth import OclcAuth
from WorldcatPool.sources.worldcat.client import WorldcatApiClient
from WorldcatPool.sources.worldcat.dialect import get_dialect
from WorldcatPool.sources.worldcat.parser import FieldMapper
from WorldcatPool.sources.worldcat.query import QueryTranslator
from WorldcatPool.sources.worldcat.source import WorldcatSource
from WorldcatPool.utils.log import log

if TYPE_CHECKING:
    from WorldcatPool.config import AppConfig


def create_translator(config: AppConfig) -> QueryTranslator:
    """Create a query translator for the configured dialect.

    Args:
        config: Application configuration.

    Returns:
        QueryTranslator bound to ``query.dialect`` and the excluded holdings.
    """
    return QueryTranslator(
        dialect=get_dialect(config.query.dialect),
        excluded_holdings=config.query.excluded_holdings,
        unsupported_fields=config.query.unsupported_fields,
    )


def create_mapper(config: AppConfig) -> FieldMapper:
    return FieldMapper(
        provider_rules=config.providers.rules,
        invalid_url_markers=config.providers.invalid_url_markers,
        record_url=config.worldcat.record_url,
        default_provider=config.providers.fallback,
    )


def create_worldcat_source(config: AppConfig) -> WorldcatSource:
    """Create the WorldCat source with one HTTP session shared by all requests.

    Args:
        config: Application configuration.

    Returns:
        Configured WorldcatSource instance.
    """
    session = requests.Session()
    auth = None
    if config.worldcat.has_oauth:
        auth = OclcAuth(
            session=session,
            auth_url=config.worldcat.auth_url,
            key=config.worldcat.key,
            secret=config.worldcat.secret,
            timeout=config.worldcat.timeout,
        )
    else:
        log.warning("OCLC credentials missing; record lookups are disabled")

    client = WorldcatApiClient(
        search_url=config.worldcat.search_url,
        bib_url=config.worldcat.bib_url,
        format_url=config.worldcat.format_url or config.worldcat.bib_url,
        wskey=config.worldcat.wskey,
        auth=auth,
        session=session,
        timeout=config.worldcat.timeout,
    )
    log.info("WorldCat source ready: dialect=%s search_url=%s", config.query.dialect, config.worldcat.search_url)
    return WorldcatSource(client=client, translator=create_translator(config), mapper=create_mapper(config))
