"""Certificate-pinned TLS transport for constrained runtimes.

Mobile Python builds (Android, iOS) often lack a usable system trust store,
so this variant trusts the server by pinning the SHA-256 digest of its
certificate instead. It talks to the event loop through a bare
``asyncio.Protocol``. Outbound payloads are written as byte views and
inbound bytes go through an explicit UTF-8 decoding step.
"""

from __future__ import annotations

import asyncio
import logging
import ssl

import aiohttp

from ..encoding import Utf8StreamDecoder, encode_utf8
from ..errors import (
    TAKClientError,
    TAKConfigError,
    TAKConnectionError,
    TAKHandshakeError,
    TAKTimeout,
)
from .base import TAKTransport, TransportEventHandlers, TransportFactoryParams
from .context import create_ssl_context

_LOGGER = logging.getLogger(__name__)


def parse_fingerprint(value: str) -> aiohttp.Fingerprint:
    """Parse a hex SHA-256 digest, with or without ``:`` separators."""
    digest = value.replace(":", "").replace(" ", "").strip()
    try:
        return aiohttp.Fingerprint(bytes.fromhex(digest))
    except ValueError as err:
        raise TAKConfigError(f"Invalid certificate fingerprint: {err}") from err


class _PinnedProtocol(asyncio.Protocol):
    """Forward socket callbacks to the owning transport."""

    def __init__(self, owner: PinnedTLSTransport) -> None:
        self._owner = owner
        self._can_write = asyncio.Event()
        self._can_write.set()

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        # Hold inbound data back until the pin has been checked.
        transport.pause_reading()  # type: ignore[attr-defined]

    def data_received(self, data: bytes) -> None:
        self._owner._on_data(memoryview(data))

    def eof_received(self) -> bool | None:
        return False

    def connection_lost(self, exc: Exception | None) -> None:
        self._can_write.set()
        self._owner._on_close(exc)

    def pause_writing(self) -> None:
        self._can_write.clear()

    def resume_writing(self) -> None:
        self._can_write.set()

    async def wait_writable(self) -> None:
        await self._can_write.wait()


class PinnedTLSTransport(TAKTransport):
    """TLS transport that verifies the server by certificate fingerprint."""

    def __init__(self, params: TransportFactoryParams) -> None:
        super().__init__(params)
        self._transport: asyncio.Transport | None = None
        self._protocol: _PinnedProtocol | None = None
        self._decoder = Utf8StreamDecoder()
        self._pin = (
            parse_fingerprint(params.auth.fingerprint)
            if params.auth.fingerprint
            else None
        )
        self._connected = False
        self._destroyed = False

    @property
    def connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        context = create_ssl_context(self.params.auth)
        loop = asyncio.get_running_loop()
        host, port = self.params.host, self.params.port

        try:
            transport, protocol = await asyncio.wait_for(
                loop.create_connection(
                    lambda: _PinnedProtocol(self),
                    host,
                    port,
                    ssl=context,
                    server_hostname=host,
                ),
                timeout=self.params.connect_timeout,
            )
        except TimeoutError as err:
            raise self._handshake_failed(
                TAKTimeout("TLS connection timed out")
            ) from err
        except ssl.SSLError as err:
            raise self._handshake_failed(
                TAKHandshakeError(f"TLS handshake failed: {err}")
            ) from err
        except OSError as err:
            raise self._handshake_failed(
                TAKConnectionError(f"TLS connection failed: {err}")
            ) from err

        self._transport = transport  # type: ignore[assignment]
        self._protocol = protocol

        if self._destroyed:
            self._abort()
            raise TAKConnectionError("Transport destroyed")

        if self._pin is not None:
            try:
                self._pin.check(transport)  # type: ignore[arg-type]
            except aiohttp.ServerFingerprintMismatch as err:
                raise self._handshake_failed(
                    TAKHandshakeError(
                        f"Server certificate fingerprint mismatch for {host}:{port}"
                    )
                ) from err

        _LOGGER.info(
            "Pinned TLS established to %s:%s (pinned=%s, utf8_codec=%s)",
            host,
            port,
            self._pin is not None,
            self._decoder.has_codec,
        )

        self._connected = True
        if self.handlers.connect is not None:
            self.handlers.connect()
        if self.handlers.secure_connect is not None:
            self.handlers.secure_connect()

        transport.resume_reading()  # type: ignore[attr-defined]

    def _handshake_failed(self, error: TAKClientError) -> TAKClientError:
        _LOGGER.warning(
            "Pinned connection to %s:%s failed: %s",
            self.params.host,
            self.params.port,
            error,
        )
        self._abort()
        self._emit_error(error)
        return error

    def _on_data(self, data: memoryview) -> None:
        text = self._decoder.decode(data)
        if text and self.handlers.data is not None:
            self.handlers.data(text)

    def _on_close(self, exc: Exception | None) -> None:
        was_connected = self._connected
        self._connected = False
        self._transport = None

        if not was_connected:
            return

        if exc is not None:
            error = TAKConnectionError(f"TLS socket error: {exc}")
            error.__cause__ = exc
            _LOGGER.warning("%s", error)
            self._emit_error(error)
        if self.handlers.end is not None:
            self.handlers.end()

    async def send(self, payload: str | bytes) -> None:
        transport, protocol = self._transport, self._protocol
        if transport is None or protocol is None or not self._connected:
            raise TAKConnectionError("Transport not connected")

        if not payload:
            return

        try:
            transport.write(encode_utf8(payload))
        except (OSError, RuntimeError, UnicodeEncodeError) as err:
            raise TAKConnectionError(f"Write failed: {err}") from err
        await protocol.wait_writable()

    def destroy(self) -> None:
        self._destroyed = True
        self.handlers = TransportEventHandlers()
        self._connected = False
        self._abort()

    def _abort(self) -> None:
        if self._transport is not None:
            self._transport.abort()
            self._transport = None
        self._protocol = None


def create_pinned_transport(params: TransportFactoryParams) -> PinnedTLSTransport:
    return PinnedTLSTransport(params)
