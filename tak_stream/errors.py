"""Client error types for TAK server streaming connections."""

from __future__ import annotations


class TAKClientError(Exception):
    """Base error for TAK streaming client failures."""


class TAKConfigError(TAKClientError):
    """Connection parameters are missing or invalid."""


class TAKUnsupportedProtocolError(TAKConfigError):
    """The server URL uses a scheme the client cannot speak."""

    def __init__(self, scheme: str) -> None:
        super().__init__(f"Unknown TAK Server Protocol: {scheme or '<none>'}")
        self.scheme = scheme


class TAKTimeout(TAKClientError):
    """Timeout while communicating with the server."""


class TAKConnectionError(TAKClientError):
    """Network connection to the server failed or does not exist."""


class TAKHandshakeError(TAKClientError):
    """TLS handshake or certificate pinning failed."""


class TAKDecodeError(TAKClientError):
    """A CoT message could not be decoded."""

    def __init__(self, message: str, xml: str) -> None:
        super().__init__(message)
        self.xml = xml
