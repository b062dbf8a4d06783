"""Tool catalog and the periodic change notifier."""

from __future__ import annotations

import contextlib
import logging
from collections.abc import AsyncIterator, Iterable, Mapping
from types import MappingProxyType

import anyio

from data_steward.exceptions import ChannelClosedError
from data_steward.tools.base import ToolDefinition
from data_steward.transport.registry import SessionRegistry
from data_steward.types.notifications import ToolListChangedNotification
from data_steward.types.tools import Tool

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_INTERVAL = 5.0


class ToolCatalog:
    """The set of advertised tools, keyed by name.

    Each ``rebuild`` recomputes every descriptor and publishes the new set with
    a single assignment, so readers always see either the previous or the new
    snapshot, never a mix.
    """

    def __init__(self, definitions: Iterable[ToolDefinition] = ()) -> None:
        self._definitions: dict[str, ToolDefinition] = {}
        self._snapshot: Mapping[str, Tool] = MappingProxyType({})
        for definition in definitions:
            self._definitions[definition.name] = definition
        self.rebuild()

    def __len__(self) -> int:
        return len(self._snapshot)

    def __contains__(self, name: object) -> bool:
        return name in self._snapshot

    @property
    def snapshot(self) -> Mapping[str, Tool]:
        return self._snapshot

    def add(self, definition: ToolDefinition) -> None:
        """Register a definition at runtime and publish it immediately."""
        if definition.name in self._definitions:
            logger.warning("Replacing tool definition %s", definition.name)
        self._definitions[definition.name] = definition
        self.rebuild()

    def rebuild(self) -> Mapping[str, Tool]:
        snapshot: dict[str, Tool] = {}
        for name, definition in self._definitions.items():
            tool = definition.describe()
            if tool.name != name:
                raise ValueError(f"Tool definition {name!r} described itself as {tool.name!r}")
            snapshot[name] = tool
        self._snapshot = MappingProxyType(snapshot)
        logger.debug("Tool catalog rebuilt with %d tool(s)", len(snapshot))
        return self._snapshot

    def list_tools(self) -> list[Tool]:
        return list(self._snapshot.values())

    def get(self, name: str) -> ToolDefinition | None:
        """Return the definition for an advertised tool, or None."""
        if name not in self._snapshot:
            return None
        return self._definitions.get(name)


class CatalogChangeNotifier:
    """Rebuilds the catalog on a fixed period and tells every session about it.

    Use ``run()`` as a scoped resource tied to the server lifespan:

        async with notifier.run():
            ...  # serve requests

    The refresh loop is cancelled when the block exits, however it exits.
    """

    def __init__(
        self,
        catalog: ToolCatalog,
        registry: SessionRegistry,
        *,
        interval: float = DEFAULT_REFRESH_INTERVAL,
    ) -> None:
        self.catalog = catalog
        self.registry = registry
        self.interval = interval
        self.refresh_count = 0

    @contextlib.asynccontextmanager
    async def run(self) -> AsyncIterator[None]:
        async with anyio.create_task_group() as tg:
            tg.start_soon(self._refresh_loop)
            logger.info("Tool catalog refresh started (every %ss)", self.interval)
            try:
                yield
            finally:
                logger.info("Tool catalog refresh stopping")
                tg.cancel_scope.cancel()

    async def _refresh_loop(self) -> None:
        while True:
            await anyio.sleep(self.interval)
            try:
                await self.refresh()
            except Exception:
                logger.exception("Tool catalog refresh failed")

    async def refresh(self) -> int:
        """Rebuild the catalog, then broadcast one list-changed notification per session."""
        self.catalog.rebuild()
        self.refresh_count += 1
        return await self.broadcast()

    async def broadcast(self) -> int:
        """Notify every registered session. Returns how many were notified.

        Delivery is best effort: a failing channel is logged and skipped, and a
        closed one is removed from the registry.
        """
        notified = 0
        for session in self.registry.sessions():
            try:
                await session.channel.send_notification(ToolListChangedNotification())
            except ChannelClosedError:
                logger.info("Session %s is closed, removing it", session.id)
                self.registry.remove(session.id)
            except Exception:
                logger.exception("Failed to notify session %s of tool list change", session.id)
            else:
                notified += 1
        return notified
