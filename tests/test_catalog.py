from typing import Any

import anyio
import pytest

from data_steward.catalog import CatalogChangeNotifier, ToolCatalog
from data_steward.exceptions import ChannelClosedError
from data_steward.tools.base import text_result
from data_steward.transport.registry import Session, SessionRegistry
from data_steward.types.json_rpc import NotificationBase
from data_steward.types.tools import CallToolResult, JsonSchema, Tool

pytestmark = pytest.mark.anyio


class StaticTool:
    def __init__(self, name: str, described_as: str | None = None) -> None:
        self.name = name
        self._described_as = described_as or name
        self.describe_calls = 0

    def describe(self) -> Tool:
        self.describe_calls += 1
        return Tool(name=self._described_as, input_schema=JsonSchema())

    async def execute(self, arguments: dict[str, Any]) -> CallToolResult:
        return text_result("ok")


class RecordingChannel:
    def __init__(self, error: Exception | None = None) -> None:
        self.received: list[NotificationBase[Any, Any]] = []
        self._error = error

    async def send_notification(self, notification: NotificationBase[Any, Any]) -> None:
        if self._error is not None:
            raise self._error
        self.received.append(notification)


def _registry(*channels: RecordingChannel) -> SessionRegistry:
    registry = SessionRegistry()
    for index, channel in enumerate(channels):
        registry.register(Session(id=f"session-{index}", channel=channel))  # type: ignore[arg-type]
    return registry


def test_catalog_lists_definitions() -> None:
    catalog = ToolCatalog([StaticTool("alpha"), StaticTool("beta")])

    assert [tool.name for tool in catalog.list_tools()] == ["alpha", "beta"]
    assert "alpha" in catalog
    assert len(catalog) == 2


def test_get_returns_only_advertised_definitions() -> None:
    tool = StaticTool("alpha")
    catalog = ToolCatalog([tool])

    assert catalog.get("alpha") is tool
    assert catalog.get("missing") is None


def test_rebuild_recomputes_descriptors() -> None:
    tool = StaticTool("alpha")
    catalog = ToolCatalog([tool])
    before = catalog.snapshot

    after = catalog.rebuild()

    assert tool.describe_calls == 2
    assert after is catalog.snapshot
    assert after is not before
    assert list(after) == ["alpha"]


def test_rebuild_rejects_mismatched_name() -> None:
    with pytest.raises(ValueError, match="described itself as"):
        ToolCatalog([StaticTool("alpha", described_as="beta")])


def test_add_publishes_new_definition() -> None:
    catalog = ToolCatalog([StaticTool("alpha")])

    catalog.add(StaticTool("beta"))

    assert [tool.name for tool in catalog.list_tools()] == ["alpha", "beta"]


def test_snapshot_is_read_only() -> None:
    catalog = ToolCatalog([StaticTool("alpha")])

    with pytest.raises(TypeError):
        catalog.snapshot["beta"] = catalog.snapshot["alpha"]  # type: ignore[index]


async def test_refresh_notifies_every_session_once() -> None:
    channels = [RecordingChannel(), RecordingChannel(), RecordingChannel()]
    catalog = ToolCatalog([StaticTool("alpha")])
    notifier = CatalogChangeNotifier(catalog, _registry(*channels))

    notified = await notifier.refresh()

    assert notified == 3
    assert notifier.refresh_count == 1
    assert len(catalog) == 1
    for channel in channels:
        assert [notification.method for notification in channel.received] == ["notifications/tools/list_changed"]


async def test_broadcast_is_best_effort() -> None:
    healthy = RecordingChannel()
    broken = RecordingChannel(error=RuntimeError("boom"))
    closed = RecordingChannel(error=ChannelClosedError("session-2"))
    registry = _registry(broken, healthy, closed)
    notifier = CatalogChangeNotifier(ToolCatalog([StaticTool("alpha")]), registry)

    notified = await notifier.broadcast()

    assert notified == 1
    assert len(healthy.received) == 1
    assert "session-0" in registry
    assert "session-2" not in registry


async def test_refresh_loop_runs_while_scoped() -> None:
    channel = RecordingChannel()
    notifier = CatalogChangeNotifier(ToolCatalog([StaticTool("alpha")]), _registry(channel), interval=0.01)

    async with notifier.run():
        with anyio.fail_after(5):
            while notifier.refresh_count < 3:
                await anyio.sleep(0.01)

    refreshes = notifier.refresh_count
    assert len(channel.received) == refreshes

    await anyio.sleep(0.05)
    assert notifier.refresh_count == refreshes


class FlakyCatalog(ToolCatalog):
    pending_failures = 0

    def rebuild(self) -> Any:
        if self.pending_failures:
            self.pending_failures -= 1
            raise RuntimeError("describe failed")
        return super().rebuild()


async def test_refresh_loop_survives_failures() -> None:
    catalog = FlakyCatalog([StaticTool("alpha")])
    catalog.pending_failures = 2
    notifier = CatalogChangeNotifier(catalog, SessionRegistry(), interval=0.01)

    async with notifier.run():
        with anyio.fail_after(5):
            while notifier.refresh_count < 1:
                await anyio.sleep(0.01)

    assert catalog.pending_failures == 0
