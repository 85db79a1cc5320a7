"""Connection profile loading.

A profile is a small YAML document describing one TAK server connection:

    url: ssl://tak.example.com:8089
    id: truck-12
    type: vehicle
    heartbeat_interval: 5
    transport: auto          # auto | tls | pinned
    auth:
      cert: certs/client.pem
      key: certs/client.key
      passphrase: atakatak
      ca: certs/truststore.pem
      reject_unauthorized: false
      fingerprint: "AB:CD:..."

Certificate paths are resolved relative to the profile file.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from .auth import TAKAuth
from .errors import TAKConfigError
from .transport import TransportFactory, get_default_transport_factory
from .transport.factory import TRANSPORT_KINDS, get_transport_factory


class ProfileLoadError(TAKConfigError):
    """Error loading a connection profile."""

    pass


@dataclass(frozen=True)
class ConnectionProfile:
    """A loaded connection profile.

    Attributes:
        url: Server URL (``ssl://host:port``).
        auth: Client certificate bundle.
        connection_id: Optional connection identifier.
        connection_type: Free-form connection tag.
        heartbeat_interval: Seconds between keepalive pings.
        connect_timeout: Seconds allowed for connect plus handshake.
        transport: Transport selection (auto, tls or pinned).
    """

    url: str
    auth: TAKAuth
    connection_id: str | None = None
    connection_type: str = "unknown"
    heartbeat_interval: float = 5.0
    connect_timeout: float = 15.0
    transport: str = "auto"

    def transport_factory(self) -> TransportFactory:
        """Return the transport factory this profile asks for."""
        if self.transport == "auto":
            return get_default_transport_factory()
        return get_transport_factory(self.transport)

    def options(self) -> dict[str, Any]:
        """Keyword arguments for :class:`~tak_stream.client.TAK`."""
        return {
            "connection_id": self.connection_id,
            "connection_type": self.connection_type,
            "heartbeat_interval": self.heartbeat_interval,
            "connect_timeout": self.connect_timeout,
            "transport_factory": self.transport_factory(),
        }


def _load_yaml(path: Path) -> dict[str, Any]:
    """Load YAML file with error handling."""
    if not path.exists():
        raise ProfileLoadError(f"File not found: {path}")
    with path.open() as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as err:
            raise ProfileLoadError(f"Invalid YAML in {path}: {err}") from err
    if not isinstance(data, dict):
        raise ProfileLoadError(f"Profile must be a mapping: {path}")
    return data


def _resolve(base: Path, value: str | None) -> Path | None:
    if value is None:
        return None
    candidate = Path(value).expanduser()
    return candidate if candidate.is_absolute() else base / candidate


def _parse_auth(data: dict[str, Any], base: Path) -> TAKAuth:
    if not isinstance(data, dict):
        raise ProfileLoadError("Profile 'auth' must be a mapping")

    for required in ("cert", "key"):
        if not data.get(required):
            raise ProfileLoadError(f"Profile is missing auth.{required}")

    try:
        return TAKAuth.from_files(
            _resolve(base, data["cert"]),  # type: ignore[arg-type]
            _resolve(base, data["key"]),  # type: ignore[arg-type]
            passphrase=data.get("passphrase"),
            ca=_resolve(base, data.get("ca")),
            reject_unauthorized=bool(data.get("reject_unauthorized", False)),
            fingerprint=data.get("fingerprint"),
        )
    except TAKConfigError as err:
        raise ProfileLoadError(str(err)) from err


def load_profile(path: str | Path) -> ConnectionProfile:
    """Load a connection profile from a YAML file.

    Args:
        path: Path to the profile YAML.

    Returns:
        Parsed ConnectionProfile.

    Raises:
        ProfileLoadError: If the file is missing or malformed.
    """
    path = Path(path)
    data = _load_yaml(path)

    url = data.get("url")
    if not url:
        raise ProfileLoadError(f"Profile is missing url: {path}")

    transport = str(data.get("transport", "auto")).lower()
    if transport not in TRANSPORT_KINDS:
        raise ProfileLoadError(
            f"Unknown transport {transport!r}, expected one of {', '.join(TRANSPORT_KINDS)}"
        )

    connection_id = data.get("id")

    return ConnectionProfile(
        url=str(url),
        auth=_parse_auth(data.get("auth") or {}, path.parent),
        connection_id=str(connection_id) if connection_id is not None else None,
        connection_type=str(data.get("type", "unknown")),
        heartbeat_interval=float(data.get("heartbeat_interval", 5.0)),
        connect_timeout=float(data.get("connect_timeout", 15.0)),
        transport=transport,
    )
