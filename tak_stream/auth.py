"""Mutual-TLS credential bundle for TAK server connections."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from .errors import TAKConfigError


@dataclass(frozen=True)
class TAKAuth:
    """Client certificate material for a connection.

    Attributes:
        cert: Client certificate chain (PEM text).
        key: Client private key (PEM text).
        passphrase: Passphrase for an encrypted private key.
        ca: Trusted CA bundle (PEM text) used to verify the server.
        reject_unauthorized: Verify the server certificate against ``ca``.
        fingerprint: Hex SHA-256 digest of the server certificate, used by
            the pinned transport.
    """

    cert: str
    key: str
    passphrase: str | None = None
    ca: str | None = None
    reject_unauthorized: bool = False
    fingerprint: str | None = None

    def __repr__(self) -> str:
        # Never leak key material into logs.
        return (
            f"TAKAuth(cert=<{len(self.cert)} chars>, key=<redacted>, "
            f"ca={'<set>' if self.ca else None}, "
            f"reject_unauthorized={self.reject_unauthorized}, "
            f"fingerprint={self.fingerprint!r})"
        )

    def validate(self) -> None:
        """Raise TAKConfigError if required fields are absent."""
        if not self.cert:
            raise TAKConfigError("auth.cert required")
        if not self.key:
            raise TAKConfigError("auth.key required")

    @classmethod
    def from_files(
        cls,
        cert: str | Path,
        key: str | Path,
        *,
        passphrase: str | None = None,
        ca: str | Path | None = None,
        reject_unauthorized: bool = False,
        fingerprint: str | None = None,
    ) -> TAKAuth:
        """Build a credential bundle from PEM files on disk."""
        try:
            return cls(
                cert=Path(cert).read_text(),
                key=Path(key).read_text(),
                passphrase=passphrase,
                ca=Path(ca).read_text() if ca is not None else None,
                reject_unauthorized=reject_unauthorized,
                fingerprint=fingerprint,
            )
        except OSError as err:
            raise TAKConfigError(f"Unable to read credential file: {err}") from err
