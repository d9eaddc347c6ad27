from __future__ import annotations

"""Root configuration: YAML layering and per-domain parsing.

``config/default.yml`` holds every default. An override file passed with
``--config`` only names the keys it changes; mappings are merged key by key
and any other value (lists included) replaces the default wholesale.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Mapping, TypeVar

import yaml

from WorldcatPool.config.runtime import RuntimeConfig, check_runtime, load_runtime
from WorldcatPool.config.search import (
    ProvidersConfig,
    QueryConfig,
    check_providers,
    check_query,
    load_providers,
    load_query,
)
from WorldcatPool.config.server import ServerConfig, check_server, load_server
from WorldcatPool.config.worldcat import WorldcatConfig, check_worldcat, load_worldcat

DEFAULT_CONFIG_PATH = Path("config/default.yml")

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Validated configuration of every domain."""

    runtime: RuntimeConfig
    server: ServerConfig
    worldcat: WorldcatConfig
    query: QueryConfig
    providers: ProvidersConfig


def _domain(raw: Mapping[str, Any], load: Callable[[Mapping[str, Any]], T], check: Callable[[T], None]) -> T:
    config = load(raw)
    check(config)
    return config


def parse_config_dict(raw: Mapping[str, Any]) -> AppConfig:
    """Build AppConfig from an already merged mapping.

    Raises:
        TypeError: If a value has the wrong type.
        ValueError: If a value is missing or violates a constraint.
    """
    config = AppConfig(
        runtime=_domain(raw, load_runtime, check_runtime),
        server=_domain(raw, load_server, check_server),
        worldcat=_domain(raw, load_worldcat, check_worldcat),
        query=_domain(raw, load_query, check_query),
        providers=_domain(raw, load_providers, check_providers),
    )
    check_cross_domain(config)
    return config


def check_cross_domain(config: AppConfig) -> None:
    """Validate constraints spanning more than one section."""
    if config.worldcat.key and not config.worldcat.auth_url:
        raise ValueError("worldcat.auth_url is required when OCLC credentials are set")
    if config.query.dialect == "sru" and not config.worldcat.wskey_env:
        raise ValueError("query.dialect=sru requires worldcat.wskey_env")


def load_config(path: Path) -> AppConfig:
    """Load a single, complete YAML file."""
    return parse_config_dict(read_yaml(path))


def load_config_with_defaults(config_path: Path, default_path: Path = DEFAULT_CONFIG_PATH) -> AppConfig:
    """Load ``default_path`` and layer ``config_path`` on top of it."""
    raw = read_yaml(default_path)
    if config_path.resolve() != default_path.resolve():
        raw = merge_config_dicts(raw, read_yaml(config_path))
    return parse_config_dict(raw)


def read_yaml(path: Path) -> dict[str, Any]:
    return parse_yaml(path.read_text(encoding="utf-8"))


def parse_yaml(text: str) -> dict[str, Any]:
    """Parse YAML text whose root must be a mapping; empty text is ``{}``."""
    data = yaml.safe_load(text)
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise ValueError("Config root must be a mapping/object")
    return dict(data)


def merge_config_dicts(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Return ``base`` with ``override`` merged in, recursing into mappings."""
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            value = merge_config_dicts(current, value)
        merged[key] = value
    return merged
