"""SSL context construction from a :class:`TAKAuth` bundle."""

from __future__ import annotations

import ssl
import tempfile
from pathlib import Path

from ..auth import TAKAuth
from ..errors import TAKConfigError


def create_ssl_context(auth: TAKAuth) -> ssl.SSLContext:
    """Build a client-side SSL context presenting the bundle's certificate.

    The ``ssl`` module only loads certificate chains from disk, so the PEM
    text is written to a private (0700) temporary directory that is removed as
    soon as the chain is loaded.
    """
    auth.validate()

    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)

    if auth.reject_unauthorized:
        context.check_hostname = True
        context.verify_mode = ssl.CERT_REQUIRED
        if auth.ca:
            context.load_verify_locations(cadata=auth.ca)
        else:
            context.load_default_certs(ssl.Purpose.SERVER_AUTH)
    else:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE

    with tempfile.TemporaryDirectory(prefix="tak-stream-") as tmp:
        cert_file = Path(tmp) / "cert.pem"
        key_file = Path(tmp) / "key.pem"
        cert_file.write_text(auth.cert)
        key_file.write_text(auth.key)

        try:
            context.load_cert_chain(
                certfile=str(cert_file),
                keyfile=str(key_file),
                password=auth.passphrase,
            )
        except (ssl.SSLError, ValueError) as err:
            raise TAKConfigError(f"Unable to load client certificate: {err}") from err

    return context
