"""WorldCat upstream domain configuration.

Endpoints live in YAML; credentials never do. The YAML names environment
variables and the values are read from the environment (or ``.env``) when
the configuration is parsed.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from WorldcatPool.config.common import (
    check_url,
    expect_float,
    expect_str,
    get_section,
    get_value,
    load_secret_from_env,
)


@dataclass(frozen=True, slots=True)
class WorldcatConfig:
    """Store validated WorldCat endpoints and credentials."""

    search_url: str
    bib_url: str
    format_url: str
    auth_url: str
    record_url: str
    key_env: str
    secret_env: str
    wskey_env: str
    key: str
    secret: str
    wskey: str
    timeout: float

    @property
    def has_oauth(self) -> bool:
        return bool(self.key and self.secret and self.auth_url)


def load_worldcat(raw: Mapping[str, Any]) -> WorldcatConfig:
    """Load the ``worldcat`` section.

    Raises:
        TypeError: If config types are invalid.
        ValueError: If required keys are missing.
    """
    section = get_section(raw, "worldcat", required=True)

    def read_str(field: str, *default: str) -> str:
        key_path = f"worldcat.{field}"
        return expect_str(get_value(section, key_path, *default), key_path).strip()

    key_env = read_str("key_env", "OCLC_KEY")
    secret_env = read_str("secret_env", "OCLC_SECRET")
    wskey_env = read_str("wskey_env", "")
    return WorldcatConfig(
        search_url=read_str("search_url"),
        bib_url=read_str("bib_url"),
        format_url=read_str("format_url", ""),
        auth_url=read_str("auth_url", ""),
        record_url=read_str("record_url", "https://www.worldcat.org/oclc/{id}"),
        key_env=key_env,
        secret_env=secret_env,
        wskey_env=wskey_env,
        key=load_secret_from_env(key_env),
        secret=load_secret_from_env(secret_env),
        wskey=load_secret_from_env(wskey_env),
        timeout=expect_float(get_value(section, "worldcat.timeout", 10.0), "worldcat.timeout"),
    )


def check_worldcat(config: WorldcatConfig) -> None:
    """Validate WorldCat domain constraints.

    Raises:
        ValueError: If values violate WorldCat constraints.
    """
    check_url(config.search_url, "worldcat.search_url")
    check_url(config.bib_url, "worldcat.bib_url")
    for field in ("format_url", "auth_url"):
        value = getattr(config, field)
        if value:
            check_url(value, f"worldcat.{field}")
    check_url(config.record_url, "worldcat.record_url")
    if "{id}" not in config.record_url:
        raise ValueError("worldcat.record_url must contain an {id} placeholder")
    if config.timeout <= 0:
        raise ValueError("worldcat.timeout must be positive")
    if bool(config.key) != bool(config.secret):
        raise ValueError(
            f"Both {config.key_env} and {config.secret_env} environment variables must be set together"
        )
