"""HTTP server domain configuration."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from WorldcatPool.config.common import (
    check_non_empty,
    expect_int,
    expect_str,
    get_section,
    get_value,
    load_secret_from_env,
)


@dataclass(frozen=True, slots=True)
class ServerConfig:
    """Store validated listener and request-auth settings.

    ``jwt_key`` is resolved from the environment variable named by
    ``jwt_key_env``; an empty key disables bearer token validation.
    """

    host: str
    port: int
    jwt_key_env: str
    jwt_key: str


def load_server(raw: Mapping[str, Any]) -> ServerConfig:
    section = get_section(raw, "server")
    jwt_key_env = expect_str(get_value(section, "server.jwt_key_env", "V4_JWT_KEY"), "server.jwt_key_env")
    return ServerConfig(
        host=expect_str(get_value(section, "server.host", "0.0.0.0"), "server.host"),
        port=expect_int(get_value(section, "server.port", 8080), "server.port"),
        jwt_key_env=jwt_key_env,
        jwt_key=load_secret_from_env(jwt_key_env),
    )


def check_server(config: ServerConfig) -> None:
    """Validate server domain constraints.

    Raises:
        ValueError: If values violate server constraints.
    """
    check_non_empty(config.host, "server.host")
    if not 0 < config.port < 65536:
        raise ValueError("server.port must be between 1 and 65535")
