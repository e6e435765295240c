"""Tests for the local port listing endpoint."""

import pytest
from conftest import StaticCollector
from httpx import AsyncClient

from portracker.collectors.base import PortObservation
from portracker.core.config import settings
from portracker.core.deps import get_collectors
from portracker.main import app
from portracker.models.server import Server


class BrokenCollector(StaticCollector):
    async def get_ports(self) -> list[PortObservation]:
        raise OSError("permission denied")


class TestPortsRouter:
    """Tests for GET /api/ports."""

    async def test_ports_are_aggregated(self, client: AsyncClient):
        """Owners sharing an address are merged into one entry."""
        response = await client.get("/api/ports")

        assert response.status_code == 200
        data = response.json()
        assert data["cached"] is False
        assert data["ttlMs"] == settings.endpoint_cache_ports_ttl_ms
        assert [(p["host_ip"], p["host_port"]) for p in data["data"]] == [
            ("0.0.0.0", 8080),
            ("127.0.0.1", 5432),
        ]
        assert data["data"][0]["owner"] == "nginx, caddy"
        assert data["data"][0]["pids"] == [10, 11]

    async def test_second_call_is_served_from_cache(
        self, client: AsyncClient, collector: StaticCollector
    ):
        first = await client.get("/api/ports")
        second = await client.get("/api/ports")

        assert first.json()["cached"] is False
        assert second.json()["cached"] is True
        assert second.json()["data"] == first.json()["data"]
        assert collector.calls == 1

    async def test_debug_bypasses_cache(self, client: AsyncClient, collector: StaticCollector):
        await client.get("/api/ports")
        response = await client.get("/api/ports", params={"debug": "true"})

        assert response.json()["cached"] is False
        assert collector.calls == 2

    async def test_disabled_cache(
        self,
        client: AsyncClient,
        collector: StaticCollector,
        monkeypatch: pytest.MonkeyPatch,
    ):
        monkeypatch.setattr(settings, "disable_cache", True)

        await client.get("/api/ports")
        response = await client.get("/api/ports")

        assert response.json()["cached"] is False
        assert collector.calls == 2

    async def test_annotation_change_invalidates_cache(
        self, client: AsyncClient, collector: StaticCollector, local_server: Server
    ):
        """Saving a note forces the next listing to be collected again."""
        await client.get("/api/ports")
        await client.post(
            "/api/notes",
            json={
                "server_id": "local",
                "host_ip": "0.0.0.0",
                "host_port": 8080,
                "protocol": "tcp",
                "note": "proxy",
            },
        )

        response = await client.get("/api/ports")

        assert response.json()["cached"] is False
        assert collector.calls == 2

    async def test_collector_failure(self, client: AsyncClient):
        app.dependency_overrides[get_collectors] = lambda: [BrokenCollector([])]

        response = await client.get("/api/ports")

        assert response.status_code == 500
        assert response.json() == {"error": "Failed to scan ports", "details": "permission denied"}
