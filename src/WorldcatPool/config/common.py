from __future__ import annotations

"""Typed accessors shared by the config domains.

Accessors take the dotted path of the YAML entry (``worldcat.timeout``) and
put it in every error message.
"""

import os
from typing import Any, Mapping
from urllib.parse import urlsplit

_MISSING: Any = object()


def get_section(raw: Mapping[str, Any], name: str, *, required: bool = False) -> Mapping[str, Any]:
    """Return a top-level section, or an empty mapping when optional and absent.

    Raises:
        ValueError: If a required section is absent.
        TypeError: If the section is not a mapping.
    """
    section = raw.get(name)
    if section is None:
        if required:
            raise ValueError(f"Missing required config: {name}")
        return {}
    if not isinstance(section, Mapping):
        raise TypeError(f"{name} must be an object")
    return section


def get_value(section: Mapping[str, Any], key_path: str, default: Any = _MISSING) -> Any:
    """Return the entry named by the last component of ``key_path``.

    The entry is required unless a ``default`` is given.

    Raises:
        ValueError: If a required entry is absent.
    """
    field = key_path.rsplit(".", 1)[-1]
    if field in section:
        return section[field]
    if default is _MISSING:
        raise ValueError(f"Missing required config: {key_path}")
    return default


def expect_str(value: Any, key_path: str) -> str:
    if not isinstance(value, str):
        raise TypeError(f"{key_path} must be a string")
    return value


def expect_bool(value: Any, key_path: str) -> bool:
    if not isinstance(value, bool):
        raise TypeError(f"{key_path} must be a boolean")
    return value


def expect_int(value: Any, key_path: str) -> int:
    # bool is an int subclass; `port: true` is a typo, not 1
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{key_path} must be an integer")
    return value


def expect_float(value: Any, key_path: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"{key_path} must be a number")
    return float(value)


def expect_str_tuple(value: Any, key_path: str) -> tuple[str, ...]:
    """Validate a list of strings; blank entries are dropped, others stripped."""
    if not isinstance(value, list):
        raise TypeError(f"{key_path} must be a list")
    for idx, item in enumerate(value):
        if not isinstance(item, str):
            raise TypeError(f"{key_path}[{idx}] must be a string")
    return tuple(item.strip() for item in value if item.strip())


def check_non_empty(value: str, key_path: str) -> None:
    if not value.strip():
        raise ValueError(f"{key_path} must not be empty")


def check_url(value: str, key_path: str) -> None:
    """Require an absolute http(s) URL.

    Raises:
        ValueError: If ``value`` has no http/https scheme or no host.
    """
    parts = urlsplit(value.strip())
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise ValueError(f"{key_path} must be an http(s) URL, got {value!r}")


def load_secret_from_env(env_name: str) -> str:
    """Read a secret from the environment; empty when unset or unnamed."""
    if not env_name:
        return ""
    return os.getenv(env_name, "").strip()
