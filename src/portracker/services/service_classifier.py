"""Service type detection from a port number and owning process name."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any


class ServiceType(str, Enum):
    """Broad service category, drives the status decision table."""

    SYSTEM = "system"
    WEB = "web"
    DATABASE = "database"
    SERVICE = "service"


@dataclass(frozen=True)
class ServiceDescriptor:
    """What kind of service is expected behind a port."""

    name: str
    type: ServiceType
    description: str

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "type": self.type.value, "description": self.description}


WELL_KNOWN_PORTS: MappingProxyType[int, ServiceDescriptor] = MappingProxyType(
    {
        22: ServiceDescriptor("SSH", ServiceType.SYSTEM, "Secure Shell (SSH)"),
        23: ServiceDescriptor("Telnet", ServiceType.SYSTEM, "Telnet protocol"),
        25: ServiceDescriptor("SMTP", ServiceType.SYSTEM, "Simple Mail Transfer Protocol (SMTP)"),
        53: ServiceDescriptor("DNS", ServiceType.SYSTEM, "Domain Name System (DNS)"),
        80: ServiceDescriptor("HTTP", ServiceType.WEB, "Hypertext Transfer Protocol (HTTP)"),
        110: ServiceDescriptor("POP3", ServiceType.SYSTEM, "Post Office Protocol version 3 (POP3)"),
        143: ServiceDescriptor("IMAP", ServiceType.SYSTEM, "Internet Message Access Protocol (IMAP)"),
        443: ServiceDescriptor("HTTPS", ServiceType.WEB, "HTTP Secure (HTTPS)"),
        993: ServiceDescriptor("IMAPS", ServiceType.SYSTEM, "IMAP over SSL"),
        995: ServiceDescriptor("POP3S", ServiceType.SYSTEM, "POP3 over SSL"),
        1433: ServiceDescriptor("SQL Server", ServiceType.DATABASE, "Microsoft SQL Server database"),
        3306: ServiceDescriptor("MySQL", ServiceType.DATABASE, "MySQL database"),
        5432: ServiceDescriptor("PostgreSQL", ServiceType.DATABASE, "PostgreSQL database"),
        6379: ServiceDescriptor("Redis", ServiceType.DATABASE, "Redis in-memory database"),
        8080: ServiceDescriptor("HTTP Alt", ServiceType.WEB, "HTTP alternative port"),
        8443: ServiceDescriptor("HTTPS Alt", ServiceType.WEB, "HTTPS alternative port"),
        9000: ServiceDescriptor("Management", ServiceType.WEB, "Common management interface port"),
    }
)

# Owner substring groups, checked in order
OWNER_KEYWORDS: tuple[tuple[frozenset[str], ServiceDescriptor], ...] = (
    (
        frozenset({"ssh", "sshd"}),
        ServiceDescriptor("SSH", ServiceType.SYSTEM, "SSH service"),
    ),
    (
        frozenset({"nginx", "apache", "httpd"}),
        ServiceDescriptor("Web Server", ServiceType.WEB, "Web server"),
    ),
    (
        frozenset({"mysql", "postgres", "redis"}),
        ServiceDescriptor("Database", ServiceType.DATABASE, "Database service"),
    ),
)

WEB_PORTS = frozenset({80, 443, 8080, 8443})
WEB_PORT_RANGES = ((3000, 3999), (4000, 4999), (8000, 8999), (9000, 9999))

WEB_SERVICE = ServiceDescriptor("Web Service", ServiceType.WEB, "Web service")
SYSTEM_SERVICE = ServiceDescriptor("System Service", ServiceType.SYSTEM, "System service")
GENERIC_SERVICE = ServiceDescriptor("Service", ServiceType.SERVICE, "Application service")


def _coerce_port(port: Any) -> int | None:
    if isinstance(port, bool):
        return None
    try:
        return int(port)
    except (TypeError, ValueError):
        return None


def is_web_port(port: int) -> bool:
    """Ports that conventionally carry HTTP(S) traffic."""
    if port in WEB_PORTS:
        return True
    return any(low <= port <= high for low, high in WEB_PORT_RANGES)


def detect_service_type(port: Any, owner: str | None = None) -> ServiceDescriptor:
    """Classify a port, first match wins.

    Order: well-known port table, owner keywords, web port ranges,
    privileged ports, generic service. Never raises; unparseable ports fall
    through to the owner check and then the generic descriptor.
    """
    port_number = _coerce_port(port)

    if port_number is not None and port_number in WELL_KNOWN_PORTS:
        return WELL_KNOWN_PORTS[port_number]

    if owner and isinstance(owner, str):
        owner_lower = owner.lower()
        for keywords, descriptor in OWNER_KEYWORDS:
            if any(keyword in owner_lower for keyword in keywords):
                return descriptor

    if port_number is None:
        return GENERIC_SERVICE

    if is_web_port(port_number):
        return WEB_SERVICE

    if port_number < 1024:
        return SYSTEM_SERVICE

    return GENERIC_SERVICE
