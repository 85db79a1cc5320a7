"""Transport layer for TAK streaming connections.

This package contains all socket IO for the engine.

Components:
- base: TAKTransport capability, handler and factory parameter types
- context: SSL context construction from a credential bundle
- tls: host-native TLS transport (asyncio streams)
- pinned: certificate-pinned transport for mobile runtimes
- factory: default transport selection

The concrete transports are imported lazily by the factory.
"""

from .base import (
    TAKTransport,
    TransportEventHandlers,
    TransportFactory,
    TransportFactoryParams,
)
from .factory import (
    get_default_transport_factory,
    get_transport_factory,
    is_constrained_runtime,
)

__all__ = [
    "TAKTransport",
    "TransportEventHandlers",
    "TransportFactory",
    "TransportFactoryParams",
    "get_default_transport_factory",
    "get_transport_factory",
    "is_constrained_runtime",
]
