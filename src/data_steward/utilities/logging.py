"""Logging utilities for the Data Steward server."""

import logging
from collections.abc import Mapping
from typing import Any, Literal

from rich.console import Console
from rich.logging import RichHandler

DEFAULT_SENSITIVE_KEYS = frozenset({"password", "authorization", "connection_string"})


def get_logger(name: str) -> logging.Logger:
    """Get a logger for the given module name."""
    return logging.getLogger(name)


def configure_logging(
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO",
) -> None:
    """Configure logging for the server.

    Args:
        level: the log level to use
    """
    handler = RichHandler(console=Console(stderr=True), rich_tracebacks=True)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[handler],
    )


def redact_sensitive_data(
    data: Mapping[str, Any] | None,
    sensitive_keys: frozenset[str] | set[str] | None = None,
) -> Mapping[str, Any] | None:
    """Return a copy with sensitive values replaced by "***".

    Nested mappings (such as a tool's ``connection_info``) are redacted too.
    """
    if data is None:
        return None

    keys = sensitive_keys or DEFAULT_SENSITIVE_KEYS

    redacted: dict[str, Any] = {}
    for key, value in data.items():
        if key.lower() in keys:
            redacted[key] = "***"
        elif isinstance(value, Mapping):
            redacted[key] = redact_sensitive_data(value, keys)
        else:
            redacted[key] = value
    return redacted
