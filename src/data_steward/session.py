"""Protocol-level session state from the init handshake."""

from __future__ import annotations

from dataclasses import dataclass

from data_steward.types.common import ClientCapabilities, Implementation


@dataclass(frozen=True)
class SessionInfo:
    """Immutable protocol-level session state, created during the init handshake.

    Transport-level session state (the channel, its outbound queue) lives in
    ``data_steward.transport``.
    """

    client_info: Implementation
    client_capabilities: ClientCapabilities
    protocol_version: str
