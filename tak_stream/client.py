"""Streaming connection engine for TAK servers.

This module provides the long-lived CoT connection used by applications.
It handles:
- Transport creation and the connect/reconnect/destroy lifecycle
- Framing of the inbound byte stream into CoT events
- Interception of server keepalive acks and version announcements
- Serialized outbound writes through a single-flight queue
- Heartbeat pings

Events emitted (see :class:`~tak_stream.emitter.EventEmitter`):
``connect``, ``secureConnect``, ``ping``, ``cot`` (with the decoded :class:`CoT`),
``timeout``, ``error`` (with the exception) and ``end``.

Errors never trigger an automatic reconnect. Call :meth:`TAK.reconnect` or
:meth:`TAK.destroy` from an ``error``/``end`` listener as appropriate.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING
from urllib.parse import SplitResult, urlsplit

from .auth import TAKAuth
from .cot import PONG_TYPE, VERSION_TYPE, CoT, CoTCodec, XmlCoTCodec
from .emitter import EventEmitter
from .errors import (
    TAKClientError,
    TAKConnectionError,
    TAKUnsupportedProtocolError,
)
from .framing import PartialCoT, find_cot
from .transport import (
    TAKTransport,
    TransportEventHandlers,
    TransportFactory,
    TransportFactoryParams,
    get_default_transport_factory,
)
from .utils import IdFactory, create_id
from .write_queue import WriteQueue

if TYPE_CHECKING:
    from .profile import ConnectionProfile

_LOGGER = logging.getLogger(__name__)

SUPPORTED_SCHEMES: tuple[str, ...] = ("ssl",)

HEARTBEAT_INTERVAL = 5.0

VERSION_PATH = "detail/TakControl/TakServerVersionInfo"


class TAK(EventEmitter):
    """A single CoT streaming connection to a TAK server.

    Usage:
        tak = await TAK.connect("ssl://tak.example.com:8089", auth)
        tak.on("cot", handle_cot)
        tak.on("error", handle_error)
        tak.write([cot])
        ...
        tak.destroy()
    """

    find_cot = staticmethod(find_cot)

    def __init__(
        self,
        url: str | SplitResult,
        auth: TAKAuth,
        *,
        connection_id: str | None = None,
        connection_type: str = "unknown",
        codec: CoTCodec | None = None,
        transport_factory: TransportFactory | None = None,
        heartbeat_interval: float = HEARTBEAT_INTERVAL,
        connect_timeout: float = 15.0,
        idle_timeout: float | None = None,
        id_factory: IdFactory = create_id,
    ) -> None:
        """Initialize an unconnected client.

        Args:
            url: Server URL, ``ssl://host:port``
            auth: Client certificate bundle
            connection_id: Identifier used in logs (generated when omitted)
            connection_type: Free-form tag describing the connection
            codec: CoT codec (default: XmlCoTCodec)
            transport_factory: Transport factory (default: runtime detection)
            heartbeat_interval: Seconds between keepalive pings
            connect_timeout: Seconds allowed for connect plus handshake
            idle_timeout: Seconds without data before ``timeout`` is emitted
            id_factory: Generator used when ``connection_id`` is omitted
        """
        super().__init__()

        self.id = connection_id or id_factory()
        self.type = connection_type

        self.url = urlsplit(url) if isinstance(url, str) else url
        self.auth = auth

        self.codec: CoTCodec = codec or XmlCoTCodec()
        self.transport_factory = transport_factory or get_default_transport_factory()
        self.heartbeat_interval = heartbeat_interval
        self.connect_timeout = connect_timeout
        self.idle_timeout = idle_timeout

        self.open = False
        self.destroyed = False
        self.version: str | None = None

        self.transport: TAKTransport | None = None
        self.partial_buffer = ""
        self.queue = WriteQueue(
            self._writer,
            on_error=self._on_write_error,
            name=str(self.id),
        )

        self._heartbeat_task: asyncio.Task[None] | None = None

    def __repr__(self) -> str:
        return (
            f"TAK(id={self.id!r}, url={self.url.geturl()!r}, "
            f"open={self.open}, destroyed={self.destroyed})"
        )

    @property
    def writing(self) -> bool:
        """True while the write queue is draining."""
        return self.queue.writing

    # -------------------------------------------------------------------------
    # Public API: Connection Management
    # -------------------------------------------------------------------------

    @classmethod
    async def connect(
        cls,
        url: str | SplitResult,
        auth: TAKAuth,
        **options: object,
    ) -> TAK:
        """Create a client and open its connection.

        Raises:
            TAKUnsupportedProtocolError: If the URL scheme is not ``ssl``
            TAKConfigError: If the certificate or key is missing
            TAKClientError: If the transport fails to connect
        """
        tak = cls(url, auth, **options)  # type: ignore[arg-type]

        if tak.url.scheme not in SUPPORTED_SCHEMES:
            raise TAKUnsupportedProtocolError(tak.url.scheme)

        tak.auth.validate()
        return await tak.connect_ssl()

    @classmethod
    async def connect_profile(cls, profile: ConnectionProfile) -> TAK:
        """Connect using a loaded :class:`~tak_stream.profile.ConnectionProfile`."""
        return await cls.connect(profile.url, profile.auth, **profile.options())

    async def connect_ssl(self) -> TAK:
        """Build a fresh transport and connect it.

        The heartbeat starts only once the transport has connected. Messages
        still queued from an earlier connection are sent afterwards. If
        :meth:`destroy` runs while connecting, the outcome is discarded.
        """
        self.destroyed = False
        self.open = False
        self.partial_buffer = ""

        if self.transport is not None:
            self.transport.destroy()
            self.transport = None
        self._stop_heartbeat()

        params = TransportFactoryParams(
            url=self.url,
            auth=self.auth,
            connect_timeout=self.connect_timeout,
            idle_timeout=self.idle_timeout,
        )
        created = self.transport_factory(params)
        transport = await created if inspect.isawaitable(created) else created

        self.transport = transport
        self._attach_transport_handlers(transport)

        _LOGGER.info(
            "[%s] Connecting to %s:%s",
            self.id,
            self.url.hostname,
            self.url.port,
        )

        try:
            await transport.connect()
        except Exception as err:
            transport.destroy()
            if self.transport is not transport:
                _LOGGER.debug("[%s] Connect abandoned after destroy: %s", self.id, err)
                return self
            self.transport = None
            raise

        if self.transport is not transport:
            _LOGGER.debug("[%s] Destroyed while connecting", self.id)
            transport.destroy()
            return self

        self._start_heartbeat()
        self.queue.kick()
        return self

    async def reconnect(self) -> None:
        """Tear down the current transport and connect again.

        Unconsumed inbound bytes are discarded. Queued outbound messages are
        kept and sent once the new connection is up.
        """
        _LOGGER.info("[%s] Reconnecting", self.id)
        self.destroy()
        self.destroyed = False
        await self.connect_ssl()

    def destroy(self) -> None:
        """Close the connection immediately.

        Outbound messages stay queued for a later :meth:`reconnect`.
        """
        self.destroyed = True

        if self.transport is not None:
            self.transport.destroy()
            self.transport = None

        self._stop_heartbeat()
        self.partial_buffer = ""
        _LOGGER.debug("[%s] Destroyed (%d message(s) queued)", self.id, len(self.queue))

    # -------------------------------------------------------------------------
    # Public API: Writing
    # -------------------------------------------------------------------------

    def ping(self) -> None:
        """Queue a keepalive ping."""
        _LOGGER.debug("[%s] Sending ping (%d queued)", self.id, len(self.queue))
        self.write([self.codec.ping()])

    def write(self, cots: Iterable[CoT]) -> None:
        """Encode and queue CoT events for sending.

        Raises:
            TAKConnectionError: If no connection has been created
        """
        self._require_transport()
        bodies = [self.codec.to_xml(cot) for cot in cots]
        for body in bodies:
            self.queue.push(body)

    def write_xml(self, body: str) -> None:
        """Queue pre-serialized CoT XML for sending.

        Raises:
            TAKConnectionError: If no connection has been created
        """
        self._require_transport()
        self.queue.push(body)

    def _require_transport(self) -> None:
        if self.transport is None:
            raise TAKConnectionError(
                "A Connection Client must first be created before it can be written"
            )

    async def _writer(self, body: str) -> None:
        transport = self.transport
        if transport is None:
            raise TAKConnectionError(
                "A Connection Client must first be created before it can be written"
            )
        await transport.send(f"{body}\n" if body else "")

    def _on_write_error(self, err: TAKClientError) -> None:
        if self.destroyed:
            _LOGGER.debug("[%s] Write aborted by destroy: %s", self.id, err)
            return
        self.emit("error", err)

    # -------------------------------------------------------------------------
    # Internal: Transport Events
    # -------------------------------------------------------------------------

    def _attach_transport_handlers(self, transport: TAKTransport) -> None:
        transport.set_handlers(
            TransportEventHandlers(
                connect=self._on_connect,
                secure_connect=self._on_secure_connect,
                data=self._handle_incoming_data,
                timeout=self._on_timeout,
                end=self._on_end,
                error=self._on_error,
            )
        )

    def _on_connect(self) -> None:
        _LOGGER.debug("[%s] Socket connected", self.id)
        self.emit("connect")

    def _on_secure_connect(self) -> None:
        _LOGGER.info("[%s] Secure connection established", self.id)
        self.emit("secureConnect")

    def _on_timeout(self) -> None:
        _LOGGER.debug("[%s] Socket idle timeout", self.id)
        self.emit("timeout")

    def _on_end(self) -> None:
        _LOGGER.info("[%s] Connection ended", self.id)
        self.open = False
        self._stop_heartbeat()
        self.emit("end")

    def _on_error(self, err: Exception) -> None:
        self.emit("error", err)

    # -------------------------------------------------------------------------
    # Internal: Inbound Messages
    # -------------------------------------------------------------------------

    def _handle_incoming_data(self, chunk: str) -> None:
        self.partial_buffer += chunk

        result: PartialCoT | None = find_cot(self.partial_buffer)
        while result is not None:
            self.partial_buffer = result.remainder

            cot = self._decode(result.event)
            if cot is not None:
                self._dispatch(cot)

            result = find_cot(self.partial_buffer)

    def _decode(self, xml: str) -> CoT | None:
        try:
            return self.codec.from_xml(xml)
        except Exception as err:  # pluggable codecs raise arbitrary errors
            _LOGGER.warning("[%s] Error parsing CoT: %s", self.id, err)
            _LOGGER.debug("[%s] Unparseable message: %s", self.id, xml)
            return None

    def _dispatch(self, cot: CoT) -> None:
        if cot.type == PONG_TYPE:
            self.open = True
            self.emit("ping")
            return

        if cot.type == VERSION_TYPE:
            version = cot.attribute(VERSION_PATH, "serverVersion")
            if version is not None:
                self.version = version
                _LOGGER.info("[%s] TAK server version %s", self.id, version)
                return

        self.emit("cot", cot)

    # -------------------------------------------------------------------------
    # Internal: Heartbeat
    # -------------------------------------------------------------------------

    def _start_heartbeat(self) -> None:
        self._stop_heartbeat()
        self._heartbeat_task = asyncio.create_task(self._heartbeat_loop())

    def _stop_heartbeat(self) -> None:
        if self._heartbeat_task is not None:
            self._heartbeat_task.cancel()
            self._heartbeat_task = None

    async def _heartbeat_loop(self) -> None:
        try:
            while True:
                await asyncio.sleep(self.heartbeat_interval)
                try:
                    self.ping()
                except TAKConnectionError as err:
                    _LOGGER.debug("[%s] Heartbeat skipped: %s", self.id, err)
        except asyncio.CancelledError:
            _LOGGER.debug("[%s] Heartbeat cancelled", self.id)
            raise
