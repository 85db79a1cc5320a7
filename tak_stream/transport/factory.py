"""Runtime-based selection of the default transport implementation."""

from __future__ import annotations

import logging
import os
import sys

from ..errors import TAKConfigError
from .base import TAKTransport, TransportFactory, TransportFactoryParams

_LOGGER = logging.getLogger(__name__)

TRANSPORT_ENV = "TAK_STREAM_TRANSPORT"

CONSTRAINED_PLATFORMS: frozenset[str] = frozenset({"android", "ios"})

TRANSPORT_KINDS: tuple[str, ...] = ("auto", "tls", "pinned")


def is_constrained_runtime(platform: str | None = None) -> bool:
    """Return True on mobile interpreters that need the pinned transport."""
    return (platform or sys.platform) in CONSTRAINED_PLATFORMS


def _native_factory(params: TransportFactoryParams) -> TAKTransport:
    from .tls import create_native_transport

    return create_native_transport(params)


def _pinned_factory(params: TransportFactoryParams) -> TAKTransport:
    from .pinned import create_pinned_transport

    return create_pinned_transport(params)


def get_transport_factory(kind: str) -> TransportFactory:
    """Return the factory for ``kind`` (``auto``, ``tls`` or ``pinned``)."""
    if kind == "tls":
        return _native_factory
    if kind == "pinned":
        return _pinned_factory
    if kind == "auto":
        return _pinned_factory if is_constrained_runtime() else _native_factory
    raise TAKConfigError(
        f"Unknown transport {kind!r}, expected one of {', '.join(TRANSPORT_KINDS)}"
    )


def get_default_transport_factory() -> TransportFactory:
    """Pick a transport factory for the current runtime.

    ``TAK_STREAM_TRANSPORT`` overrides auto-detection.
    """
    kind = os.environ.get(TRANSPORT_ENV, "auto").strip().lower() or "auto"
    factory = get_transport_factory(kind)
    _LOGGER.debug(
        "Transport selection: %s -> %s (platform=%s)",
        kind,
        "pinned" if factory is _pinned_factory else "tls",
        sys.platform,
    )
    return factory
