"""Final status decision for a probed port.

Pure decision table: combines the service descriptor with the HTTPS and HTTP
probe results. No I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from portracker.services.reachability import ProbeResult
from portracker.services.service_classifier import ServiceDescriptor, ServiceType


class PortStatus(str, Enum):
    SYSTEM = "system"
    ACCESSIBLE = "accessible"
    LISTENING = "listening"
    UNREACHABLE = "unreachable"
    ERROR = "error"


class StatusColor(str, Enum):
    GRAY = "gray"
    GREEN = "green"
    YELLOW = "yellow"
    RED = "red"


@dataclass(frozen=True)
class StatusResult:
    """Status shown for a port, with the protocol that produced it."""

    status: PortStatus
    color: StatusColor
    title: str
    description: str
    protocol: str | None = None

    @property
    def reachable(self) -> bool:
        return self.status != PortStatus.UNREACHABLE

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "color": self.color.value,
            "title": self.title,
            "description": self.description,
            "protocol": self.protocol,
        }


def _is_success(result: ProbeResult) -> bool:
    return (
        result.reachable
        and result.status_code is not None
        and 200 <= result.status_code < 300
    )


def select_working_response(
    https_result: ProbeResult, http_result: ProbeResult
) -> ProbeResult | None:
    """Pick the probe result to judge by.

    Preference: HTTPS 2xx, HTTP 2xx, any reachable HTTPS, any reachable HTTP.
    """
    if _is_success(https_result):
        return https_result
    if _is_success(http_result):
        return http_result
    if https_result.reachable:
        return https_result
    if http_result.reachable:
        return http_result
    return None


def _web_status(descriptor: ServiceDescriptor, working: ProbeResult) -> StatusResult | None:
    name = descriptor.name
    code = working.status_code or 0

    def result(status: PortStatus, color: StatusColor, title: str) -> StatusResult:
        return StatusResult(status, color, title, descriptor.description, working.protocol)

    if 200 <= code < 400:
        return result(PortStatus.ACCESSIBLE, StatusColor.GREEN, f"{name} - Web service accessible")
    if code == 401:
        return result(PortStatus.ACCESSIBLE, StatusColor.GREEN, f"{name} - Web accessible (auth)")
    if code == 403:
        return result(PortStatus.LISTENING, StatusColor.YELLOW, f"{name} - Listening (Forbidden)")
    if code == 405 and working.method == "HEAD":
        # HEAD rejected but the service answered
        return result(PortStatus.ACCESSIBLE, StatusColor.GREEN, f"{name} - Web accessible (GET)")
    if code == 404:
        if working.is_spa:
            return result(PortStatus.ACCESSIBLE, StatusColor.GREEN, f"{name} - Web accessible")
        return result(PortStatus.LISTENING, StatusColor.YELLOW, f"{name} - Listening (no web UI)")
    if 400 <= code < 500:
        return result(
            PortStatus.ACCESSIBLE, StatusColor.GREEN, f"{name} - Web accessible (HTTP {code})"
        )
    if code >= 500:
        return result(PortStatus.ERROR, StatusColor.RED, f"{name} - HTTP {code} error")
    return None


def _non_web_status(descriptor: ServiceDescriptor, working: ProbeResult) -> StatusResult:
    name = descriptor.name
    code = working.status_code or 0

    if code == 401:
        return StatusResult(
            PortStatus.ACCESSIBLE,
            StatusColor.GREEN,
            f"{name} - HTTP accessible (auth)",
            descriptor.description,
            working.protocol,
        )
    if code == 403:
        return StatusResult(
            PortStatus.LISTENING,
            StatusColor.YELLOW,
            f"{name} - Listening (Forbidden)",
            descriptor.description,
            working.protocol,
        )
    if code < 500:
        return StatusResult(
            PortStatus.ACCESSIBLE,
            StatusColor.GREEN,
            f"{name} - HTTP accessible",
            descriptor.description,
            working.protocol,
        )
    # Database ports often answer HTTP probes with garbage
    return StatusResult(
        PortStatus.LISTENING,
        StatusColor.YELLOW,
        f"{name} - Service listening (not HTTP)",
        descriptor.description,
    )


def determine_service_status(
    descriptor: ServiceDescriptor,
    https_result: ProbeResult,
    http_result: ProbeResult,
) -> StatusResult:
    """Resolve the displayed status of a port from its probe results."""
    if descriptor.type == ServiceType.SYSTEM:
        return StatusResult(
            PortStatus.SYSTEM,
            StatusColor.GRAY,
            f"{descriptor.name} - System service",
            descriptor.description,
        )

    working = select_working_response(https_result, http_result)
    if working is None:
        return StatusResult(
            PortStatus.UNREACHABLE,
            StatusColor.RED,
            f"{descriptor.name} - Service not reachable",
            descriptor.description,
        )

    if descriptor.type == ServiceType.WEB:
        web_result = _web_status(descriptor, working)
        if web_result is not None:
            return web_result
    elif descriptor.type in (ServiceType.DATABASE, ServiceType.SERVICE):
        return _non_web_status(descriptor, working)

    return StatusResult(
        PortStatus.LISTENING,
        StatusColor.YELLOW,
        f"{descriptor.name} - Service listening",
        descriptor.description,
    )
