"""Peer descriptions exchanged during the initialize handshake."""

from typing import Any

from data_steward.types.base import MCPModel


class Implementation(MCPModel):
    """Name and version of a client or server."""

    name: str
    version: str
    title: str | None = None


class ClientCapabilities(MCPModel):
    """What the client says it supports. Kept verbatim; unknown keys are preserved."""

    experimental: dict[str, Any] | None = None


class ServerCapabilities(MCPModel):
    """What this server advertises: tool-list change notifications and log messages."""

    experimental: dict[str, Any] | None = None
    logging: dict[str, Any] | None = None
    tools: dict[str, Any] | None = None
