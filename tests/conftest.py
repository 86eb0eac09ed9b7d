import asyncio
import json
from typing import Any, Dict, List, Optional

import pytest

from pizzeria_voice.agent_client import UpstreamAdapter
from pizzeria_voice.catalog import Catalog
from pizzeria_voice.coordinator import FunctionCallCoordinator
from pizzeria_voice.relay import RelayBridge
from pizzeria_voice.session import SessionRegistry
from pizzeria_voice.settings import DEFAULT_CATALOG_PATH, Settings

_CLOSED = object()


class FakeClient:
    """Browser channel that records what the relay sends."""

    def __init__(self) -> None:
        self.sent: List[Dict[str, Any]] = []
        self.open = True

    @property
    def is_open(self) -> bool:
        return self.open

    async def send_json(self, payload: Dict[str, Any]) -> None:
        if not self.open:
            raise RuntimeError("client closed")
        self.sent.append(payload)

    def of_type(self, t: str) -> List[Dict[str, Any]]:
        return [m for m in self.sent if m.get("type") == t]


class FakeUpstream:
    """Realtime websocket stand-in: iterate to receive, send() to record."""

    def __init__(self) -> None:
        self.sent: List[Dict[str, Any]] = []
        self.closed = False
        self.close_code: Optional[int] = None
        self.close_reason: str = ""
        self._inbox: asyncio.Queue = asyncio.Queue()

    async def send(self, data: str) -> None:
        self.sent.append(json.loads(data))

    async def close(self) -> None:
        if not self.closed:
            self.closed = True
            self.close_code = self.close_code or 1000
            self._inbox.put_nowait(_CLOSED)

    def push(self, message) -> None:
        self._inbox.put_nowait(json.dumps(message) if isinstance(message, dict) else message)

    def server_close(self, code: int, reason: str = "") -> None:
        self.closed = True
        self.close_code = code
        self.close_reason = reason
        self._inbox.put_nowait(_CLOSED)

    def __aiter__(self):
        return self

    async def __anext__(self):
        item = await self._inbox.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item

    def of_type(self, t: str) -> List[Dict[str, Any]]:
        return [m for m in self.sent if m.get("type") == t]


class FakeConnector:
    def __init__(self) -> None:
        self.calls: List[Dict[str, Any]] = []
        self.upstreams: List[FakeUpstream] = []
        self.fail: Optional[Exception] = None

    async def __call__(self, url: str, headers: Dict[str, str]) -> FakeUpstream:
        self.calls.append({"url": url, "headers": headers})
        if self.fail is not None:
            raise self.fail
        up = FakeUpstream()
        self.upstreams.append(up)
        return up

    @property
    def last(self) -> FakeUpstream:
        return self.upstreams[-1]


async def settle(rounds: int = 10) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        openai_api_key="sk-test",
        reconnect_delay_ms=50,
        pending_call_timeout_s=5,
        log_agent_events=False,
    )


@pytest.fixture
def catalog() -> Catalog:
    return Catalog.from_file(DEFAULT_CATALOG_PATH)


@pytest.fixture
def connector() -> FakeConnector:
    return FakeConnector()


@pytest.fixture
def registry() -> SessionRegistry:
    return SessionRegistry()


@pytest.fixture
def adapter(settings, catalog, connector) -> UpstreamAdapter:
    return UpstreamAdapter(settings, catalog, connector=connector)


@pytest.fixture
def coordinator(adapter, catalog, settings) -> FunctionCallCoordinator:
    return FunctionCallCoordinator(adapter, catalog, settings)


@pytest.fixture
def bridge(registry, adapter, coordinator, settings) -> RelayBridge:
    return RelayBridge(registry, adapter, coordinator, settings)
