from __future__ import annotations

"""Public configuration API for WorldcatPool."""

from WorldcatPool.config.app import (
    AppConfig,
    check_cross_domain,
    load_config,
    load_config_with_defaults,
    parse_config_dict,
)
from WorldcatPool.config.runtime import RuntimeConfig
from WorldcatPool.config.search import ProviderDetails, ProvidersConfig, QueryConfig
from WorldcatPool.config.server import ServerConfig
from WorldcatPool.config.worldcat import WorldcatConfig

__all__ = [
    "RuntimeConfig",
    "ServerConfig",
    "WorldcatConfig",
    "QueryConfig",
    "ProviderDetails",
    "ProvidersConfig",
    "AppConfig",
    "load_config",
    "load_config_with_defaults",
    "parse_config_dict",
    "check_cross_domain",
]
