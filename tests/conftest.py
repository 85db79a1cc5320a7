"""Pytest configuration and fixtures for tak_stream tests."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from tak_stream import TAKAuth, TransportEventHandlers, TransportFactoryParams
from tak_stream.errors import TAKConnectionError


class FakeTransport:
    """In-memory transport that records writes.

    ``connect()`` fires ``connect`` then ``secure_connect`` synchronously,
    the way a real socket would after a successful handshake.
    """

    def __init__(self, params: TransportFactoryParams | None = None) -> None:
        self.params = params
        self.handlers = TransportEventHandlers()
        self.connect_calls = 0
        self.send_payloads: list[str] = []
        self.destroyed = False
        self.fail_connect: Exception | None = None

    def set_handlers(self, handlers: TransportEventHandlers) -> None:
        self.handlers = handlers

    async def connect(self) -> None:
        self.connect_calls += 1
        if self.fail_connect is not None:
            if self.handlers.error:
                self.handlers.error(self.fail_connect)
            raise self.fail_connect
        if self.handlers.connect:
            self.handlers.connect()
        if self.handlers.secure_connect:
            self.handlers.secure_connect()

    async def send(self, payload: str) -> None:
        if self.destroyed:
            raise TAKConnectionError("Transport not connected")
        self.send_payloads.append(payload)

    def destroy(self) -> None:
        self.destroyed = True

    # Test helpers

    def feed(self, chunk: str) -> None:
        """Deliver inbound text as if it came off the socket."""
        assert self.handlers.data is not None
        self.handlers.data(chunk)

    @property
    def non_empty_payloads(self) -> list[str]:
        return [payload for payload in self.send_payloads if payload]


def make_event(cot_type: str, uid: str = "test-uid", detail: str = "") -> str:
    """Build a minimal CoT event string."""
    return (
        f'<event version="2.0" type="{cot_type}" uid="{uid}" how="m-g" '
        'time="2024-01-01T00:00:00Z" start="2024-01-01T00:00:00Z" '
        'stale="2024-01-01T00:01:00Z">'
        '<point lat="1.0" lon="2.0" hae="0" ce="10" le="10"/>'
        f"<detail>{detail}</detail></event>"
    )


PONG_EVENT = make_event("t-x-c-t-r", uid="takPong")

VERSION_EVENT = make_event(
    "t-x-takp-v",
    uid="protouid",
    detail=(
        "<TakControl>"
        '<TakProtocolSupport version="1"/>'
        '<TakServerVersionInfo serverVersion="5.2-RELEASE-43-HEAD"/>'
        "</TakControl>"
    ),
)


@pytest.fixture
def auth() -> TAKAuth:
    """Credential bundle with placeholder PEM text."""
    return TAKAuth(cert="fake-cert", key="fake-key")


@pytest.fixture
def fake_transport() -> FakeTransport:
    """Create an in-memory transport."""
    return FakeTransport()


@pytest.fixture
def fake_factory(fake_transport: FakeTransport) -> MagicMock:
    """Transport factory that always returns ``fake_transport``."""

    def _factory(params: TransportFactoryParams) -> FakeTransport:
        fake_transport.params = params
        return fake_transport

    return MagicMock(side_effect=_factory)


def create_mock_stream(chunks: list[bytes]) -> tuple[AsyncMock, MagicMock]:
    """Create a mocked asyncio (reader, writer) pair.

    Args:
        chunks: Data returned by successive ``reader.read()`` calls; an
            empty ``b""`` signals EOF

    Returns:
        Configured reader and writer mocks
    """
    reader = AsyncMock()
    reader.read.side_effect = chunks

    writer = MagicMock()
    writer.start_tls = AsyncMock()
    writer.drain = AsyncMock()
    writer.write = MagicMock()
    writer.transport = MagicMock()
    ssl_object = MagicMock()
    ssl_object.version.return_value = "TLSv1.3"
    writer.get_extra_info.return_value = ssl_object

    return reader, writer
