"""Query translation and provider classification configuration."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from WorldcatPool.config.common import (
    check_non_empty,
    expect_str,
    expect_str_tuple,
    get_section,
    get_value,
)
from WorldcatPool.sources.worldcat.dialect import dialect_names
from WorldcatPool.sources.worldcat.parser import DEFAULT_INVALID_URL_MARKERS
from WorldcatPool.sources.worldcat.query import DEFAULT_UNSUPPORTED_FIELDS


@dataclass(frozen=True, slots=True)
class QueryConfig:
    """Store validated query translation settings."""

    dialect: str
    excluded_holdings: tuple[str, ...]
    unsupported_fields: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class ProviderDetails:
    """One access-link provider.

    Attributes:
        provider: Tag attached to classified access URLs.
        match: URL substring selecting this provider. Empty for the
            upstream itself, which is the fallback.
        label: Display name.
        homepage_url: Provider home page.
        logo_url: Logo served by the pool.
    """

    provider: str
    match: str
    label: str
    homepage_url: str = ""
    logo_url: str = ""

    def to_dict(self) -> dict[str, str]:
        out = {"provider": self.provider}
        for key in ("label", "homepage_url", "logo_url"):
            value = getattr(self, key)
            if value:
                out[key] = value
        return out


@dataclass(frozen=True, slots=True)
class ProvidersConfig:
    """Ordered provider table and URL patterns that are never links."""

    providers: tuple[ProviderDetails, ...]
    invalid_url_markers: tuple[str, ...]

    @property
    def rules(self) -> tuple[tuple[str, str], ...]:
        """Classification rules in configured order, fallback excluded."""
        return tuple((p.match, p.provider) for p in self.providers if p.match)

    @property
    def fallback(self) -> str:
        """Provider of URLs no rule matches."""
        for provider in self.providers:
            if not provider.match:
                return provider.provider
        return "worldcat"


def load_query(raw: Mapping[str, Any]) -> QueryConfig:
    """Load the ``query`` section.

    Raises:
        TypeError: If config types are invalid.
    """
    section = get_section(raw, "query")
    fields = expect_str_tuple(
        get_value(section, "query.unsupported_fields", list(DEFAULT_UNSUPPORTED_FIELDS)),
        "query.unsupported_fields",
    )
    return QueryConfig(
        dialect=expect_str(get_value(section, "query.dialect", "discovery"), "query.dialect").strip().lower(),
        excluded_holdings=expect_str_tuple(get_value(section, "query.excluded_holdings", []), "query.excluded_holdings"),
        unsupported_fields=tuple(field.lower() for field in fields),
    )


def check_query(config: QueryConfig) -> None:
    """Validate query domain constraints.

    Raises:
        ValueError: If the dialect is unknown.
    """
    if config.dialect not in dialect_names():
        raise ValueError(f"query.dialect must be one of {sorted(dialect_names())}")


def load_providers(raw: Mapping[str, Any]) -> ProvidersConfig:
    """Load the ``providers`` list and ``invalid_url_markers``.

    Raises:
        TypeError: If provider entries are not objects of strings.
        ValueError: If required provider keys are missing.
    """
    items = raw.get("providers", [])
    if not isinstance(items, list):
        raise TypeError("providers must be a list")

    providers: list[ProviderDetails] = []
    for idx, item in enumerate(items):
        prefix = f"providers[{idx}]"
        if not isinstance(item, Mapping):
            raise TypeError(f"{prefix} must be an object")

        providers.append(
            ProviderDetails(
                provider=_provider_str(item, f"{prefix}.provider"),
                match=_provider_str(item, f"{prefix}.match", ""),
                label=_provider_str(item, f"{prefix}.label", ""),
                homepage_url=_provider_str(item, f"{prefix}.homepage_url", ""),
                logo_url=_provider_str(item, f"{prefix}.logo_url", ""),
            )
        )

    markers = expect_str_tuple(
        get_value(raw, "invalid_url_markers", list(DEFAULT_INVALID_URL_MARKERS)),
        "invalid_url_markers",
    )
    return ProvidersConfig(providers=tuple(providers), invalid_url_markers=markers)


def check_providers(config: ProvidersConfig) -> None:
    """Validate provider table constraints.

    Raises:
        ValueError: If a provider tag is empty or repeated.
    """
    seen: set[str] = set()
    for idx, provider in enumerate(config.providers):
        check_non_empty(provider.provider, f"providers[{idx}].provider")
        if provider.provider in seen:
            raise ValueError(f"providers has duplicate provider: {provider.provider}")
        seen.add(provider.provider)


def _provider_str(item: Mapping[str, Any], key_path: str, *default: str) -> str:
    return expect_str(get_value(item, key_path, *default), key_path).strip()
