"""Logging configuration for the service and CLI commands."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from WorldcatPool.config.common import (
    check_non_empty,
    expect_bool,
    expect_str,
    get_section,
    get_value,
)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True, slots=True)
class RuntimeConfig:
    """Logging settings.

    Attributes:
        level: Level applied to the ``WorldcatPool`` and uvicorn loggers.
        to_file: Mirror log lines to ``<dir>/<action>/``.
        dir: Base directory for mirrored log files.
        access_log: Emit one uvicorn access line per HTTP request.
    """

    level: str
    to_file: bool
    dir: str
    access_log: bool


def load_runtime(raw: Mapping[str, Any]) -> RuntimeConfig:
    section = get_section(raw, "log")
    level = expect_str(get_value(section, "log.level", "INFO"), "log.level")
    return RuntimeConfig(
        level=level.strip().upper(),
        to_file=expect_bool(get_value(section, "log.to_file", False), "log.to_file"),
        dir=expect_str(get_value(section, "log.dir", "log"), "log.dir"),
        access_log=expect_bool(get_value(section, "log.access_log", True), "log.access_log"),
    )


def check_runtime(config: RuntimeConfig) -> None:
    """Validate logging settings.

    Raises:
        ValueError: For an unknown level, or file mirroring without a directory.
    """
    if config.level not in LOG_LEVELS:
        raise ValueError(f"log.level must be one of {list(LOG_LEVELS)}")
    if config.to_file:
        check_non_empty(config.dir, "log.dir")
