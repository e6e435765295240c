"""Docker collector: container port mappings from the Docker Engine API."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from portracker.collectors.base import BaseCollector, PortObservation
from portracker.core.config import settings

logger = logging.getLogger(__name__)

DOCKER_API_BASE_URL = "http://docker"
DOCKER_TIMEOUT_SECONDS = 5.0
SHORT_ID_LENGTH = 12

UNKNOWN_HEALTH = {"status": "unknown", "health": "unknown"}


def _container_name(container: dict[str, Any]) -> str:
    names = container.get("Names") or []
    if names:
        return str(names[0]).lstrip("/")
    return str(container.get("Id", ""))[:SHORT_ID_LENGTH]


def ports_from_container(container: dict[str, Any]) -> list[PortObservation]:
    """Translate one ``/containers/json`` entry into observations.

    Published ports become host observations. Exposed ports without a host
    binding become internal observations on the IPv4 wildcard.
    """
    container_id = str(container.get("Id", ""))[:SHORT_ID_LENGTH] or None
    name = _container_name(container)
    observations: list[PortObservation] = []

    for mapping in container.get("Ports") or []:
        private_port = mapping.get("PrivatePort")
        protocol = (mapping.get("Type") or "tcp").lower()
        public_port = mapping.get("PublicPort")
        target = f"{private_port}/{protocol}" if private_port else None

        if public_port:
            observations.append(
                PortObservation(
                    host_ip=mapping.get("IP") or "0.0.0.0",
                    host_port=int(public_port),
                    protocol=protocol,
                    owner=name,
                    container_id=container_id,
                    source="docker",
                    target=target,
                )
            )
        elif private_port:
            observations.append(
                PortObservation(
                    host_ip="0.0.0.0",
                    host_port=int(private_port),
                    protocol=protocol,
                    owner=name,
                    container_id=container_id,
                    internal=True,
                    source="docker",
                    target=target,
                )
            )
    return observations


class DockerCollector(BaseCollector):
    """Reads running containers over the Docker unix socket.

    When the daemon is unreachable the collector logs a warning and reports no
    ports, so hosts without Docker still get their system ports listed.
    """

    platform = "docker"

    def __init__(
        self,
        debug: bool = False,
        socket_path: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(debug=debug)
        self.socket_path = socket_path or settings.docker_socket
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        transport = self._transport or httpx.AsyncHTTPTransport(uds=self.socket_path)
        return httpx.AsyncClient(
            transport=transport,
            base_url=DOCKER_API_BASE_URL,
            timeout=DOCKER_TIMEOUT_SECONDS,
        )

    async def _list_containers(self) -> list[dict[str, Any]] | None:
        try:
            async with self._client() as client:
                response = await client.get("/containers/json")
                response.raise_for_status()
                return response.json()
        except httpx.HTTPError as e:
            logger.warning("Docker API unavailable at %s: %s", self.socket_path, e)
            return None

    async def get_ports(self) -> list[PortObservation]:
        containers = await self._list_containers()
        if containers is None:
            return []

        observations: list[PortObservation] = []
        for container in containers:
            observations.extend(ports_from_container(container))
        if self.debug:
            logger.debug(
                "Docker collector found %d ports across %d containers",
                len(observations),
                len(containers),
            )
        return observations

    async def get_apps(self) -> list[dict[str, Any]]:
        containers = await self._list_containers()
        if containers is None:
            return []
        return [
            {
                "id": str(container.get("Id", ""))[:SHORT_ID_LENGTH],
                "name": _container_name(container),
                "image": container.get("Image"),
                "state": container.get("State"),
                "status": container.get("Status"),
            }
            for container in containers
        ]

    async def inspect_container(self, container_id: str, size: bool = False) -> dict[str, Any]:
        """Return the Engine API inspect document of a container.

        Raises ``httpx.HTTPStatusError`` for unknown ids and ``httpx.HTTPError``
        when the daemon cannot be reached.
        """
        async with self._client() as client:
            response = await client.get(
                f"/containers/{container_id}/json",
                params={"size": "true"} if size else None,
            )
            response.raise_for_status()
            return response.json()

    async def get_container_health(self, container_id: str) -> dict[str, str]:
        """Return ``{status, health}`` for a container.

        ``health`` is ``none`` for containers without a healthcheck. Lookup
        failures return ``unknown`` for both fields.
        """
        try:
            details = await self.inspect_container(container_id)
        except httpx.HTTPError as e:
            logger.warning("Failed to inspect container %s: %s", container_id, e)
            return dict(UNKNOWN_HEALTH)
        return container_health(details)


def container_health(details: dict[str, Any]) -> dict[str, str]:
    """Extract ``{status, health}`` from an inspect document."""
    state = details.get("State") or {}
    health = (state.get("Health") or {}).get("Status") or "none"
    return {"status": str(state.get("Status") or "unknown"), "health": str(health)}
