"""Host-native TLS transport built on asyncio streams."""

from __future__ import annotations

import asyncio
import logging
import ssl

from ..encoding import Utf8StreamDecoder
from ..errors import (
    TAKClientError,
    TAKConnectionError,
    TAKHandshakeError,
    TAKTimeout,
)
from .base import TAKTransport, TransportEventHandlers, TransportFactoryParams
from .context import create_ssl_context

_LOGGER = logging.getLogger(__name__)

READ_SIZE = 65536


class NativeTLSTransport(TAKTransport):
    """Mutual-TLS socket using :func:`asyncio.open_connection`.

    The TCP connection is opened in plain text first and then upgraded with
    ``StreamWriter.start_tls``. That way the ``connect`` handler fires once
    the socket is up and the ``secure_connect`` handler fires once the
    handshake has finished.
    """

    def __init__(self, params: TransportFactoryParams) -> None:
        super().__init__(params)
        self._reader: asyncio.StreamReader | None = None
        self._writer: asyncio.StreamWriter | None = None
        self._reader_task: asyncio.Task[None] | None = None
        self._decoder = Utf8StreamDecoder()
        self._connected = False
        self._destroyed = False

    @property
    def connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        """Connect and complete the TLS handshake."""
        context = create_ssl_context(self.params.auth)

        try:
            await asyncio.wait_for(
                self._open(context),
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

        self._check_destroyed()

        self._connected = True
        if self.handlers.secure_connect is not None:
            self.handlers.secure_connect()

        self._reader_task = asyncio.create_task(self._read_loop())

    async def _open(self, context: ssl.SSLContext) -> None:
        host, port = self.params.host, self.params.port

        reader, writer = await asyncio.open_connection(host, port)
        self._reader, self._writer = reader, writer
        self._check_destroyed()
        _LOGGER.debug("TCP connected to %s:%s", host, port)

        if self.handlers.connect is not None:
            self.handlers.connect()

        await writer.start_tls(context, server_hostname=host)
        self._check_destroyed()

        ssl_object = writer.get_extra_info("ssl_object")
        _LOGGER.info(
            "TLS established to %s:%s (%s, verified=%s)",
            host,
            port,
            ssl_object.version() if ssl_object is not None else "unknown",
            context.verify_mode == ssl.CERT_REQUIRED,
        )

    def _check_destroyed(self) -> None:
        if self._destroyed:
            self._abort()
            raise TAKConnectionError("Transport destroyed")

    def _handshake_failed(self, error: TAKClientError) -> TAKClientError:
        _LOGGER.warning(
            "Connection to %s:%s failed: %s",
            self.params.host,
            self.params.port,
            error,
        )
        self._abort()
        self._emit_error(error)
        return error

    async def _read_loop(self) -> None:
        reader = self._reader
        if reader is None:
            return

        try:
            while True:
                try:
                    chunk = await asyncio.wait_for(
                        reader.read(READ_SIZE),
                        timeout=self.params.idle_timeout,
                    )
                except TimeoutError:
                    if self.handlers.timeout is not None:
                        self.handlers.timeout()
                    continue

                if not chunk:
                    _LOGGER.info("Server closed the stream")
                    break

                text = self._decoder.decode(chunk)
                if text and self.handlers.data is not None:
                    self.handlers.data(text)
        except OSError as err:
            error = TAKConnectionError(f"TLS socket error: {err}")
            error.__cause__ = err
            _LOGGER.warning("%s", error)
            self._emit_error(error)
        except Exception as err:  # raised by data listeners
            _LOGGER.error("Data handler failed, closing stream: %s", err, exc_info=True)
            self._abort()
            self._emit_error(err)

        self._connected = False
        if self.handlers.end is not None:
            self.handlers.end()

    async def send(self, payload: str | bytes) -> None:
        writer = self._writer
        if writer is None or not self._connected:
            raise TAKConnectionError("Transport not connected")

        if not payload:
            return

        try:
            data = payload.encode("utf-8") if isinstance(payload, str) else payload
            writer.write(data)
            await writer.drain()
        except (OSError, UnicodeEncodeError) as err:
            raise TAKConnectionError(f"Write failed: {err}") from err

    def destroy(self) -> None:
        self._destroyed = True
        self.handlers = TransportEventHandlers()
        self._connected = False

        if self._reader_task is not None:
            self._reader_task.cancel()
            self._reader_task = None

        self._abort()

    def _abort(self) -> None:
        if self._writer is not None:
            self._writer.transport.abort()
            self._writer = None
        self._reader = None


def create_native_transport(params: TransportFactoryParams) -> NativeTLSTransport:
    return NativeTLSTransport(params)
