"""
Shared fixtures: call recorder, gateway over httpx.MockTransport, scripted
WebSocket connections for the relay, and an API client with overridden
services.
"""
import asyncio
from typing import Any, Callable, List, Optional

import httpx
import pytest
from fastapi.testclient import TestClient
from websockets.exceptions import ConnectionClosedError
from websockets.frames import Close

from fonepay_tester.config import Settings
from fonepay_tester.main import app
from fonepay_tester.api.dependencies import get_call_recorder, get_provider_gateway, get_relay_factory
from fonepay_tester.services.call_recorder import CallRecorder
from fonepay_tester.services.notification_relay import NotificationRelay
from fonepay_tester.services.provider_gateway import ProviderGateway


QR_VECTOR_DIGEST = (
    "A02AF3C6D5C1C5A6EFB6370FF18D4ECE16507C099B923681CE872EC27657A063"
    "3D989B3981371F9C4EAFC3EAFE640366F6C57F7A99ACD8FC6F3180966B933D58"
)
STATUS_VECTOR_DIGEST = (
    "50B791A3EBDA8823AF8408C4E1AF6489D8A3314475039045B5A7D9E31C6E69EA"
    "E6FB7C91753B05B02D8C7C598D2AD43D4519D688220E0BD5B229501631BE4088"
)

_CLOSE = object()


class FakeTransport:

    def __init__(self):
        self.aborted = False

    def abort(self) -> None:
        self.aborted = True


class FakeConnection:
    """
    Scripted stand-in for a websockets client connection.

    Closures surface the way the websockets client reports them: a clean
    1000 close ends iteration, any other close code or a dropped transport
    raises ConnectionClosedError.
    """

    def __init__(self, close_delay: float = 0):
        self.sent: List[str] = []
        self.closed = False
        self.close_code: Optional[int] = None
        self.close_reason = ""
        self.close_delay = close_delay
        self.send_error: Optional[Exception] = None
        self.transport = FakeTransport()
        self._incoming: asyncio.Queue = asyncio.Queue()

    def push(self, frame: Any) -> None:
        """Queue an inbound frame (or an exception to raise)."""
        self._incoming.put_nowait(frame)

    def remote_close(self, code: int = 1000, reason: str = "") -> None:
        """Peer sends a close frame."""
        self.close_code = code
        self.close_reason = reason
        if code == 1000:
            self._incoming.put_nowait(_CLOSE)
        else:
            self._incoming.put_nowait(ConnectionClosedError(Close(code, reason), None))

    def drop(self) -> None:
        """Transport lost without any close frame."""
        self.close_code = 1006
        self._incoming.put_nowait(ConnectionClosedError(None, None))

    async def send(self, data: str) -> None:
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(data)

    async def close(self, code: int = 1000, reason: str = "") -> None:
        if self.closed:
            return
        if self.close_delay:
            await asyncio.sleep(self.close_delay)
        self.closed = True
        self.close_code = code
        self.close_reason = reason
        self._incoming.put_nowait(_CLOSE)

    def __aiter__(self):
        return self

    async def __anext__(self):
        item = await self._incoming.get()
        if item is _CLOSE:
            raise StopAsyncIteration
        if isinstance(item, Exception):
            raise item
        return item


def make_connect(connection: Optional[FakeConnection] = None, error: Optional[Exception] = None):
    """Connect factory returning `connection` or raising `error`."""
    calls = []

    async def connect(url, **kwargs):
        calls.append((url, kwargs))
        if error is not None:
            raise error
        return connection

    connect.calls = calls
    return connect


async def next_event(stream, timeout: float = 1.0):
    return await asyncio.wait_for(stream.__anext__(), timeout)


@pytest.fixture
def recorder() -> CallRecorder:
    return CallRecorder()


@pytest.fixture
def make_gateway(recorder) -> Callable[..., ProviderGateway]:
    """Build a gateway whose HTTP traffic is answered by `handler`."""

    def factory(handler, timeout: Optional[float] = None) -> ProviderGateway:
        return ProviderGateway(
            recorder,
            settings=Settings(),
            transport=httpx.MockTransport(handler),
            timeout=timeout
        )

    return factory


@pytest.fixture
def api_client(recorder, make_gateway):
    """
    TestClient with the recorder and a mock-transport gateway injected.

    Returns a function taking the provider handler (and optionally a relay
    connect factory).
    """

    def build(handler=None, connect=None) -> TestClient:
        if handler is None:
            handler = lambda request: httpx.Response(200, json={"success": True})
        gateway = make_gateway(handler)

        app.dependency_overrides[get_call_recorder] = lambda: recorder
        app.dependency_overrides[get_provider_gateway] = lambda: gateway
        if connect is not None:
            app.dependency_overrides[get_relay_factory] = (
                lambda: lambda url, **kwargs: NotificationRelay(url, connect=connect, **kwargs)
            )
        return TestClient(app)

    yield build

    app.dependency_overrides.clear()
