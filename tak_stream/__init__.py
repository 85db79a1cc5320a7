"""Streaming Cursor-on-Target client for TAK servers."""

__version__ = "0.1.0"

from .auth import TAKAuth
from .client import TAK
from .cot import CoT, CoTCodec, XmlCoTCodec
from .emitter import EventEmitter
from .errors import (
    TAKClientError,
    TAKConfigError,
    TAKConnectionError,
    TAKDecodeError,
    TAKHandshakeError,
    TAKTimeout,
    TAKUnsupportedProtocolError,
)
from .framing import PartialCoT, find_cot
from .profile import ConnectionProfile, ProfileLoadError, load_profile
from .transport import (
    TAKTransport,
    TransportEventHandlers,
    TransportFactory,
    TransportFactoryParams,
    get_default_transport_factory,
)
from .write_queue import WriteQueue

__all__ = [
    "TAK",
    "CoT",
    "CoTCodec",
    "ConnectionProfile",
    "EventEmitter",
    "PartialCoT",
    "ProfileLoadError",
    "TAKAuth",
    "TAKClientError",
    "TAKConfigError",
    "TAKConnectionError",
    "TAKDecodeError",
    "TAKHandshakeError",
    "TAKTimeout",
    "TAKTransport",
    "TAKUnsupportedProtocolError",
    "TransportEventHandlers",
    "TransportFactory",
    "TransportFactoryParams",
    "WriteQueue",
    "XmlCoTCodec",
    "__version__",
    "find_cot",
    "get_default_transport_factory",
    "load_profile",
]
