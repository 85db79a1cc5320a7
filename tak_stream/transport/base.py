"""Transport capability shared by every socket implementation."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ..auth import TAKAuth

if TYPE_CHECKING:
    from urllib.parse import SplitResult


@dataclass
class TransportEventHandlers:
    """Callbacks a transport invokes as its socket changes state.

    Every handler is optional. ``data`` always receives decoded text.
    """

    connect: Callable[[], None] | None = None
    secure_connect: Callable[[], None] | None = None
    data: Callable[[str], None] | None = None
    timeout: Callable[[], None] | None = None
    end: Callable[[], None] | None = None
    error: Callable[[Exception], None] | None = None


@dataclass(frozen=True)
class TransportFactoryParams:
    """Everything a transport needs to open one socket session.

    Attributes:
        url: Parsed ``ssl://host:port`` server URL.
        auth: Client certificate bundle.
        connect_timeout: Seconds allowed for TCP connect plus TLS handshake.
        idle_timeout: Seconds without inbound data before ``timeout`` fires.
    """

    url: SplitResult
    auth: TAKAuth
    connect_timeout: float = 15.0
    idle_timeout: float | None = None

    @property
    def host(self) -> str:
        return self.url.hostname or ""

    @property
    def port(self) -> int:
        return self.url.port or 8089


class TAKTransport(ABC):
    """One encrypted byte-stream session to a TAK server.

    A transport is created for a single connection attempt and discarded on
    reconnect. Implementations must:

    - raise from :meth:`connect` only after forwarding the error to the
      ``error`` handler when the failure happens during the handshake;
    - return from :meth:`connect` once the TLS handshake has completed;
    - raise ``TAKConnectionError`` from :meth:`send` when not connected;
    - make :meth:`destroy` idempotent and exception free.
    """

    def __init__(self, params: TransportFactoryParams) -> None:
        self.params = params
        self.handlers = TransportEventHandlers()

    def set_handlers(self, handlers: TransportEventHandlers) -> None:
        self.handlers = handlers

    @abstractmethod
    async def connect(self) -> None:
        """Open the socket and complete the TLS handshake."""

    @abstractmethod
    async def send(self, payload: str | bytes) -> None:
        """Write ``payload`` to the server."""

    @abstractmethod
    def destroy(self) -> None:
        """Forcibly close the session and detach all handlers."""

    def _emit_error(self, err: Exception) -> None:
        if self.handlers.error is not None:
            self.handlers.error(err)


TransportFactory = Callable[
    [TransportFactoryParams], TAKTransport | Awaitable[TAKTransport]
]
