"""Tests for the certificate-pinned TLS transport."""

from __future__ import annotations

import asyncio
import hashlib
import ssl
from unittest.mock import AsyncMock, MagicMock, patch
from urllib.parse import urlsplit

import aiohttp
import pytest

from tak_stream import TAKAuth, TransportEventHandlers, TransportFactoryParams
from tak_stream.errors import (
    TAKConfigError,
    TAKConnectionError,
    TAKHandshakeError,
    TAKTimeout,
)
from tak_stream.transport.pinned import PinnedTLSTransport, parse_fingerprint

SERVER_CERT = b"server-certificate-der"
SERVER_DIGEST = hashlib.sha256(SERVER_CERT).hexdigest()


def make_params(fingerprint: str | None = None) -> TransportFactoryParams:
    return TransportFactoryParams(
        url=urlsplit("ssl://tak.example.com:8089"),
        auth=TAKAuth(cert="fake-cert", key="fake-key", fingerprint=fingerprint),
        connect_timeout=1.0,
    )


def create_mock_transport(cert: bytes = SERVER_CERT) -> MagicMock:
    """Create a mocked asyncio transport presenting ``cert``."""
    ssl_object = MagicMock()
    ssl_object.getpeercert.return_value = cert
    extra = {
        "sslcontext": MagicMock(spec=ssl.SSLContext),
        "ssl_object": ssl_object,
        "peername": ("203.0.113.7", 8089),
    }

    transport = MagicMock(spec=asyncio.Transport)
    transport.get_extra_info.side_effect = lambda name, default=None: extra.get(name, default)
    return transport


@pytest.fixture(autouse=True)
def mock_ssl_context():
    """Skip loading real certificate material."""
    with patch("tak_stream.transport.pinned.create_ssl_context") as create:
        create.return_value = MagicMock(spec=ssl.SSLContext)
        yield create


class FakeConnection:
    """Stand-in for ``loop.create_connection`` that wires up the protocol."""

    def __init__(self, transport: MagicMock) -> None:
        self.transport = transport
        self.protocol: asyncio.Protocol | None = None
        self.kwargs: dict[str, object] = {}

    async def __call__(self, protocol_factory, host, port, **kwargs):
        self.kwargs = {"host": host, "port": port, **kwargs}
        self.protocol = protocol_factory()
        self.protocol.connection_made(self.transport)
        return self.transport, self.protocol


def patch_create_connection(fake: FakeConnection):
    return patch.object(asyncio.get_running_loop(), "create_connection", fake)


class TestParseFingerprint:
    """Tests for parse_fingerprint()."""

    def test_colon_separated(self):
        """Test the openssl x509 -fingerprint output format is accepted."""
        spaced = ":".join(SERVER_DIGEST[i : i + 2] for i in range(0, 64, 2)).upper()
        pin = parse_fingerprint(spaced)
        assert isinstance(pin, aiohttp.Fingerprint)
        assert pin.fingerprint == bytes.fromhex(SERVER_DIGEST)

    @pytest.mark.parametrize("value", ["zz", "abcd", hashlib.sha1(b"x").hexdigest()])
    def test_invalid(self, value: str):
        """Test malformed or non-SHA-256 digests are rejected."""
        with pytest.raises(TAKConfigError, match="Invalid certificate fingerprint"):
            parse_fingerprint(value)


class TestPinnedConnect:
    """Tests for PinnedTLSTransport.connect()."""

    async def test_connect_with_matching_pin(self):
        """Test a matching certificate completes the connection."""
        mock_transport = create_mock_transport()
        fake = FakeConnection(mock_transport)
        events: list[str] = []

        transport = PinnedTLSTransport(make_params(SERVER_DIGEST))
        transport.set_handlers(
            TransportEventHandlers(
                connect=lambda: events.append("connect"),
                secure_connect=lambda: events.append("secure_connect"),
            )
        )

        with patch_create_connection(fake):
            await transport.connect()

        assert events == ["connect", "secure_connect"]
        assert transport.connected is True
        assert fake.kwargs["host"] == "tak.example.com"
        assert fake.kwargs["port"] == 8089
        assert fake.kwargs["server_hostname"] == "tak.example.com"
        mock_transport.pause_reading.assert_called_once()
        mock_transport.resume_reading.assert_called_once()
        transport.destroy()

    async def test_fingerprint_mismatch(self):
        """Test a certificate with another digest is rejected."""
        mock_transport = create_mock_transport(cert=b"someone-else")
        errors: list[Exception] = []
        secure = MagicMock()

        transport = PinnedTLSTransport(make_params(SERVER_DIGEST))
        transport.set_handlers(
            TransportEventHandlers(secure_connect=secure, error=errors.append)
        )

        with patch_create_connection(FakeConnection(mock_transport)), pytest.raises(
            TAKHandshakeError, match="fingerprint mismatch"
        ):
            await transport.connect()

        assert len(errors) == 1
        mock_transport.abort.assert_called_once()
        mock_transport.resume_reading.assert_not_called()
        secure.assert_not_called()
        assert transport.connected is False

    async def test_without_pin(self):
        """Test the transport connects without a fingerprint configured."""
        mock_transport = create_mock_transport(cert=b"anything")
        transport = PinnedTLSTransport(make_params())

        with patch_create_connection(FakeConnection(mock_transport)):
            await transport.connect()

        assert transport.connected is True
        transport.destroy()

    async def test_invalid_pin_rejected_at_construction(self):
        """Test a bad fingerprint fails before any socket is opened."""
        with pytest.raises(TAKConfigError):
            PinnedTLSTransport(make_params("not-hex"))

    @pytest.mark.parametrize(
        ("failure", "expected"),
        [
            (ssl.SSLError("handshake failure"), TAKHandshakeError),
            (ConnectionRefusedError("refused"), TAKConnectionError),
        ],
    )
    async def test_connect_failures(self, failure: Exception, expected: type[Exception]):
        """Test socket and TLS failures are mapped and emitted."""
        errors: list[Exception] = []
        transport = PinnedTLSTransport(make_params())
        transport.set_handlers(TransportEventHandlers(error=errors.append))

        with patch.object(
            asyncio.get_running_loop(),
            "create_connection",
            AsyncMock(side_effect=failure),
        ), pytest.raises(expected):
            await transport.connect()

        assert len(errors) == 1
        assert isinstance(errors[0], expected)

    async def test_connect_timeout(self):
        """Test a stalled handshake raises TAKTimeout."""

        async def stall(*_args: object, **_kwargs: object) -> None:
            await asyncio.sleep(1.0)

        params = TransportFactoryParams(
            url=urlsplit("ssl://tak.example.com:8089"),
            auth=TAKAuth(cert="fake-cert", key="fake-key"),
            connect_timeout=0.01,
        )
        transport = PinnedTLSTransport(params)

        with patch.object(
            asyncio.get_running_loop(),
            "create_connection",
            AsyncMock(side_effect=stall),
        ), pytest.raises(TAKTimeout):
            await transport.connect()


class TestPinnedStream:
    """Tests for data flow once connected."""

    async def _connect(
        self, handlers: TransportEventHandlers
    ) -> tuple[PinnedTLSTransport, MagicMock, asyncio.Protocol]:
        mock_transport = create_mock_transport()
        fake = FakeConnection(mock_transport)
        transport = PinnedTLSTransport(make_params(SERVER_DIGEST))
        transport.set_handlers(handlers)

        with patch_create_connection(fake):
            await transport.connect()

        assert fake.protocol is not None
        return transport, mock_transport, fake.protocol

    async def test_data_decoded(self):
        """Test inbound bytes reach the data handler as text."""
        received: list[str] = []
        _, _, protocol = await self._connect(TransportEventHandlers(data=received.append))

        protocol.data_received(b"<event>caf\xc3")
        protocol.data_received(b"\xa9</event>")

        assert received == ["<event>caf", "é</event>"]

    async def test_send_writes_byte_view(self):
        """Test payloads are written as read-only UTF-8 views."""
        transport, mock_transport, _ = await self._connect(TransportEventHandlers())

        await transport.send("<event/>\n")
        await transport.send("")

        mock_transport.write.assert_called_once()
        written = mock_transport.write.call_args.args[0]
        assert isinstance(written, memoryview)
        assert written.readonly
        assert bytes(written) == b"<event/>\n"

    async def test_send_waits_for_resume(self):
        """Test send blocks while the socket buffer is above the high-water mark."""
        transport, _, protocol = await self._connect(TransportEventHandlers())
        protocol.pause_writing()

        pending = asyncio.create_task(transport.send("<event/>"))
        await asyncio.sleep(0)
        assert not pending.done()

        protocol.resume_writing()
        await asyncio.wait_for(pending, timeout=1.0)

    async def test_connection_lost_with_error(self):
        """Test a dropped socket emits error then end."""
        events: list[object] = []
        transport, _, protocol = await self._connect(
            TransportEventHandlers(error=events.append, end=lambda: events.append("end"))
        )

        protocol.connection_lost(ConnectionResetError("reset"))

        assert isinstance(events[0], TAKConnectionError)
        assert events[1] == "end"
        assert transport.connected is False
        with pytest.raises(TAKConnectionError):
            await transport.send("<event/>")

    async def test_clean_close(self):
        """Test a clean close emits only end."""
        events: list[object] = []
        _, _, protocol = await self._connect(
            TransportEventHandlers(error=events.append, end=lambda: events.append("end"))
        )

        protocol.connection_lost(None)

        assert events == ["end"]

    async def test_destroy_is_silent(self):
        """Test destroy aborts without emitting end."""
        end = MagicMock()
        transport, mock_transport, protocol = await self._connect(
            TransportEventHandlers(end=end)
        )

        transport.destroy()
        protocol.connection_lost(None)
        transport.destroy()

        mock_transport.abort.assert_called_once()
        end.assert_not_called()

    async def test_unencodable_payload(self):
        """Test a lone surrogate is reported as a write failure."""
        transport, mock_transport, _ = await self._connect(TransportEventHandlers())

        with pytest.raises(TAKConnectionError, match="Write failed"):
            await transport.send("<event>\ud800</event>")

        mock_transport.write.assert_not_called()
        transport.destroy()


class TestPinnedDestroyWhileConnecting:
    """Tests for destroy() racing an in-flight connect()."""

    async def test_connection_made_after_destroy(self):
        """Test a socket that completes after destroy is aborted, not adopted."""
        mock_transport = create_mock_transport()
        fake = FakeConnection(mock_transport)
        gate = asyncio.Event()
        connecting = asyncio.Event()

        async def slow_connection(*args, **kwargs):
            connecting.set()
            await gate.wait()
            return await fake(*args, **kwargs)

        transport = PinnedTLSTransport(make_params(SERVER_DIGEST))
        secure = MagicMock()
        transport.set_handlers(TransportEventHandlers(secure_connect=secure))

        with patch.object(asyncio.get_running_loop(), "create_connection", slow_connection):
            pending = asyncio.create_task(transport.connect())
            await connecting.wait()

            transport.destroy()
            gate.set()

            with pytest.raises(TAKConnectionError, match="Transport destroyed"):
                await pending

        mock_transport.abort.assert_called_once()
        mock_transport.resume_reading.assert_not_called()
        secure.assert_not_called()
        assert transport.connected is False
