"""Canonical identity for a tracked port.

A port is identified by the 6-tuple
``(server_id, host_ip, host_port, protocol, container_id, internal)``. The
same identity keys annotation rows in the database and in-memory maps, so
``container_id`` spellings (None, missing, empty string) all collapse to a
single canonical value.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

from portracker.core.errors import IdentityValidationError
from portracker.models.server import LOCAL_SERVER_ID

WILDCARD_IPV4 = "0.0.0.0"
WILDCARD_IPV6 = "::"
WILDCARD_SIBLINGS = {WILDCARD_IPV4: WILDCARD_IPV6, WILDCARD_IPV6: WILDCARD_IPV4}

VALID_PROTOCOLS = frozenset({"tcp", "udp"})
MIN_PORT = 1
MAX_PORT = 65535

KEY_SEPARATOR = "|"


def normalize_container_id(value: Any) -> str | None:
    """Collapse None and blank strings to None; reject non-strings."""
    if value is None:
        return None
    if not isinstance(value, str):
        raise IdentityValidationError(
            "container_id", "container_id must be a non-empty string when provided"
        )
    stripped = value.strip()
    return stripped or None


def normalize_port(value: Any) -> int:
    """Parse a port number, raising a field-tagged error when invalid."""
    if isinstance(value, bool) or value is None:
        raise IdentityValidationError(
            "host_port", "host_port is required and must be a valid port number (1-65535)"
        )
    try:
        port = int(value)
    except (TypeError, ValueError):
        raise IdentityValidationError(
            "host_port", "host_port is required and must be a valid port number (1-65535)"
        ) from None
    if isinstance(value, float) and value != port:
        raise IdentityValidationError(
            "host_port", "host_port is required and must be a valid port number (1-65535)"
        )
    if port < MIN_PORT or port > MAX_PORT:
        raise IdentityValidationError(
            "host_port", "host_port is required and must be a valid port number (1-65535)"
        )
    return port


def _require_text(field: str, value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise IdentityValidationError(field, f"{field} is required and must be a non-empty string")
    return value.strip()


def _escape(component: str) -> str:
    # ':' '.' '[' ']' stay readable for IP addresses; the separator is always escaped
    return quote(component, safe=":.[]")


@dataclass(frozen=True)
class PortIdentity:
    """Validated, normalized port identity."""

    server_id: str
    host_ip: str
    host_port: int
    protocol: str = "tcp"
    container_id: str | None = None
    internal: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "server_id", _require_text("server_id", self.server_id))
        object.__setattr__(self, "host_ip", _require_text("host_ip", self.host_ip))
        object.__setattr__(self, "host_port", normalize_port(self.host_port))

        protocol = self.protocol.lower() if isinstance(self.protocol, str) else self.protocol
        if protocol not in VALID_PROTOCOLS:
            raise IdentityValidationError(
                "protocol", "Field 'protocol' is required and must be either 'tcp' or 'udp'"
            )
        object.__setattr__(self, "protocol", protocol)

        object.__setattr__(self, "container_id", normalize_container_id(self.container_id))

        internal = self.internal
        if internal is None:
            internal = False
        if not isinstance(internal, bool):
            raise IdentityValidationError("internal", "internal must be a boolean when provided")
        object.__setattr__(self, "internal", internal)

    @classmethod
    def from_observation(
        cls, observation: Any, server_id: str = LOCAL_SERVER_ID
    ) -> PortIdentity:
        """Build an identity from a PortObservation or a plain mapping."""
        if isinstance(observation, dict):
            get = observation.get
        else:

            def get(name: str, default: Any = None) -> Any:
                return getattr(observation, name, default)

        return cls(
            server_id=server_id,
            host_ip=get("host_ip"),
            host_port=get("host_port"),
            protocol=get("protocol") or "tcp",
            container_id=get("container_id"),
            internal=get("internal"),
        )

    @property
    def key(self) -> str:
        """Injective, restart-stable string form of the 6-tuple."""
        return KEY_SEPARATOR.join(
            (
                _escape(self.server_id),
                _escape(self.host_ip),
                str(self.host_port),
                self.protocol,
                _escape(self.container_id or ""),
                "1" if self.internal else "0",
            )
        )

    @property
    def stored_container_id(self) -> str:
        """Value persisted in the container_id column (empty for none)."""
        return self.container_id or ""

    @property
    def is_wildcard_mirrored(self) -> bool:
        """True when annotation writes must be mirrored to the other wildcard."""
        return (
            self.container_id is None
            and not self.internal
            and self.host_ip in WILDCARD_SIBLINGS
        )

    def wildcard_sibling(self) -> PortIdentity | None:
        """The IPv4/IPv6 wildcard twin of this identity, if it has one."""
        if not self.is_wildcard_mirrored:
            return None
        return PortIdentity(
            server_id=self.server_id,
            host_ip=WILDCARD_SIBLINGS[self.host_ip],
            host_port=self.host_port,
            protocol=self.protocol,
            container_id=None,
            internal=False,
        )

    def without_container(self) -> PortIdentity:
        """Same identity with the container dropped (pre-container rows)."""
        return PortIdentity(
            server_id=self.server_id,
            host_ip=self.host_ip,
            host_port=self.host_port,
            protocol=self.protocol,
            container_id=None,
            internal=self.internal,
        )

    def describe(self) -> str:
        """Human-readable form for log lines."""
        text = f"{self.server_id} {self.host_ip}:{self.host_port}/{self.protocol}"
        if self.container_id:
            text += f" (container: {self.container_id})"
        return f"{text} (internal: {int(self.internal)})"

    def to_dict(self) -> dict[str, Any]:
        return {
            "server_id": self.server_id,
            "host_ip": self.host_ip,
            "host_port": self.host_port,
            "protocol": self.protocol,
            "container_id": self.container_id,
            "internal": self.internal,
        }


def compute_key(observation: Any, server_id: str = LOCAL_SERVER_ID) -> str:
    """Return the identity key of a raw observation."""
    return PortIdentity.from_observation(observation, server_id=server_id).key
