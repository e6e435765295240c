"""Tests for the custom service name service."""

from datetime import datetime

import pytest
from httpx import AsyncClient
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from conftest import fail_commit_on_call
from portracker.core.cache import PORTS_CACHE_KEY, TTLCache
from portracker.core.errors import IdentityValidationError
from portracker.models.server import Server
from portracker.services import custom_service_names as names_service
from portracker.services.custom_service_names import (
    batch_custom_service_names,
    delete_custom_service_name,
    get_custom_service_name,
    get_custom_service_names,
    upsert_custom_service_name,
)
from portracker.services.port_identity import PortIdentity


def identity(host_ip: str = "0.0.0.0", host_port: int = 8080, **kwargs) -> PortIdentity:
    return PortIdentity(server_id="local", host_ip=host_ip, host_port=host_port, **kwargs)


class TestCustomServiceNameService:
    """Tests for custom service name service functions."""

    async def test_create_name(self, db_session: AsyncSession, local_server: Server):
        """Setting a name on a specific address creates one row."""
        action = await upsert_custom_service_name(
            db_session, identity("192.168.1.10"), "  Grafana ", original_name="Web Service"
        )

        assert action == "created"
        row = await get_custom_service_name(db_session, identity("192.168.1.10"))
        assert row.custom_name == "Grafana"
        assert row.original_name == "Web Service"
        assert len(await get_custom_service_names(db_session, "local")) == 1

    async def test_update_name(self, db_session: AsyncSession, local_server: Server):
        """Setting again updates the existing row."""
        await upsert_custom_service_name(db_session, identity("192.168.1.10"), "Grafana")
        action = await upsert_custom_service_name(
            db_session, identity("192.168.1.10"), "Prometheus", original_name="   "
        )

        assert action == "updated"
        row = await get_custom_service_name(db_session, identity("192.168.1.10"))
        assert row.custom_name == "Prometheus"
        assert row.original_name is None

    async def test_resave_refreshes_updated_at(
        self, db_session: AsyncSession, local_server: Server
    ):
        """Saving the same name again still stamps the row as updated."""
        await upsert_custom_service_name(db_session, identity("192.168.1.10"), "Grafana")
        row = await get_custom_service_name(db_session, identity("192.168.1.10"))
        row.updated_at = datetime(2020, 1, 1)
        await db_session.commit()

        await upsert_custom_service_name(db_session, identity("192.168.1.10"), "Grafana")

        row = await get_custom_service_name(db_session, identity("192.168.1.10"))
        assert row.updated_at > datetime(2020, 1, 1)

    @pytest.mark.parametrize("name", ["", "   "])
    async def test_empty_name_is_rejected(
        self, db_session: AsyncSession, local_server: Server, name
    ):
        """An empty name is a validation error tagged with its field."""
        with pytest.raises(IdentityValidationError) as exc_info:
            await upsert_custom_service_name(db_session, identity(), name)

        assert exc_info.value.field == "custom_name"

    @pytest.mark.parametrize(("written", "mirrored"), [("0.0.0.0", "::"), ("::", "0.0.0.0")])
    async def test_wildcard_name_is_mirrored(
        self, db_session: AsyncSession, local_server: Server, written, mirrored
    ):
        """A name on one wildcard address also lands on the other."""
        await upsert_custom_service_name(db_session, identity(written), "Jellyfin")

        row = await get_custom_service_name(db_session, identity(mirrored))
        assert row is not None
        assert row.custom_name == "Jellyfin"

    async def test_mirror_follows_updates(self, db_session: AsyncSession, local_server: Server):
        """Renaming from either side updates both rows."""
        await upsert_custom_service_name(db_session, identity("0.0.0.0"), "Old")
        await upsert_custom_service_name(db_session, identity("::"), "New")

        names = await get_custom_service_names(db_session, "local")
        assert sorted((n.host_ip, n.custom_name) for n in names) == [
            ("0.0.0.0", "New"),
            ("::", "New"),
        ]

    @pytest.mark.parametrize(
        "kwargs", [{"container_id": "abc123"}, {"internal": True}], ids=["container", "internal"]
    )
    async def test_no_mirror_for_container_or_internal(
        self, db_session: AsyncSession, local_server: Server, kwargs
    ):
        """Container and internal bindings are never mirrored."""
        await upsert_custom_service_name(db_session, identity("0.0.0.0", **kwargs), "App")

        assert len(await get_custom_service_names(db_session, "local")) == 1

    async def test_mirror_failure_keeps_primary_write(
        self,
        db_session: AsyncSession,
        local_server: Server,
        monkeypatch: pytest.MonkeyPatch,
    ):
        """A failing mirror write neither raises nor undoes the primary write."""
        real_write = names_service._write_name

        async def failing_mirror(db, ident, custom_name, original_name):
            if ident.host_ip == "::":
                raise OperationalError("INSERT", {}, Exception("database is locked"))
            return await real_write(db, ident, custom_name, original_name)

        monkeypatch.setattr(names_service, "_write_name", failing_mirror)

        action = await upsert_custom_service_name(db_session, identity("0.0.0.0"), "Plex")
        await db_session.commit()

        assert action == "created"
        assert (await get_custom_service_name(db_session, identity("0.0.0.0"))).custom_name == "Plex"
        assert await get_custom_service_name(db_session, identity("::")) is None

    async def test_delete_removes_mirror(self, db_session: AsyncSession, local_server: Server):
        """Deleting a wildcard name removes both rows."""
        await upsert_custom_service_name(db_session, identity("0.0.0.0"), "Plex")

        deleted = await delete_custom_service_name(db_session, identity("0.0.0.0"))

        assert deleted == 2
        assert await get_custom_service_names(db_session, "local") == []

    async def test_delete_missing_returns_zero(
        self, db_session: AsyncSession, local_server: Server
    ):
        """Deleting an unknown name removes nothing."""
        assert await delete_custom_service_name(db_session, identity("10.0.0.5")) == 0

    async def test_delete_falls_back_to_legacy_row(
        self, db_session: AsyncSession, local_server: Server
    ):
        """A row stored without container id is found by a delete that names one."""
        await upsert_custom_service_name(db_session, identity("10.0.0.5"), "Legacy")

        deleted = await delete_custom_service_name(
            db_session, identity("10.0.0.5", container_id="abc123")
        )

        assert deleted == 1
        assert await get_custom_service_names(db_session, "local") == []

    async def test_exact_container_row_wins_over_legacy(
        self, db_session: AsyncSession, local_server: Server
    ):
        """The legacy row survives when the container row itself is deleted."""
        await upsert_custom_service_name(db_session, identity("10.0.0.5"), "Legacy")
        await upsert_custom_service_name(
            db_session, identity("10.0.0.5", container_id="abc123"), "Current"
        )

        await delete_custom_service_name(db_session, identity("10.0.0.5", container_id="abc123"))

        names = await get_custom_service_names(db_session, "local")
        assert [n.custom_name for n in names] == ["Legacy"]

    async def test_cache_invalidated(
        self, db_session: AsyncSession, local_server: Server, response_cache: TTLCache
    ):
        """Set and delete both drop the cached port list."""
        response_cache.set(PORTS_CACHE_KEY, [], ttl_ms=60000)
        await upsert_custom_service_name(db_session, identity(), "Plex", cache=response_cache)
        assert response_cache.get(PORTS_CACHE_KEY) is None

        response_cache.set(PORTS_CACHE_KEY, [], ttl_ms=60000)
        await delete_custom_service_name(db_session, identity(), cache=response_cache)
        assert response_cache.get(PORTS_CACHE_KEY) is None


class TestBatchCustomServiceNames:
    """Tests for batch custom service name operations."""

    async def test_batch_outcomes(self, db_session: AsyncSession, local_server: Server):
        """Each item reports what it did."""
        results = await batch_custom_service_names(
            db_session,
            "local",
            [
                {"action": "set", "host_ip": "10.0.0.1", "host_port": 80, "protocol": "tcp", "custom_name": "A"},
                {"action": "set", "host_ip": "10.0.0.1", "host_port": 80, "protocol": "tcp", "custom_name": "B"},
                {"action": "delete", "host_ip": "10.0.0.1", "host_port": 80, "protocol": "tcp"},
                {"action": "delete", "host_ip": "10.0.0.1", "host_port": 80, "protocol": "tcp"},
            ],
        )

        assert [r["action"] for r in results] == ["created", "updated", "deleted", "not_found"]
        assert all(r["success"] for r in results)

    async def test_set_without_name_fails_alone(
        self, db_session: AsyncSession, local_server: Server
    ):
        """A ``set`` without custom_name fails with its field; the rest apply."""
        results = await batch_custom_service_names(
            db_session,
            "local",
            [
                {"action": "set", "host_ip": "10.0.0.1", "host_port": 80, "protocol": "tcp"},
                {"action": "set", "host_ip": "10.0.0.1", "host_port": 81, "protocol": "udp", "custom_name": "DNS"},
                {"action": "set", "host_ip": "10.0.0.1", "host_port": 82, "protocol": "icmp", "custom_name": "X"},
            ],
        )

        assert results[0]["success"] is False
        assert results[0]["field"] == "custom_name"
        assert results[1]["success"] is True
        assert results[2]["field"] == "protocol"
        names = await get_custom_service_names(db_session, "local")
        assert [(n.host_port, n.protocol) for n in names] == [(81, "udp")]

    async def test_batch_set_mirrors_wildcards(
        self, db_session: AsyncSession, local_server: Server
    ):
        """Batch writes go through the same mirroring as single writes."""
        await batch_custom_service_names(
            db_session,
            "local",
            [{"action": "set", "host_ip": "::", "host_port": 9000, "protocol": "tcp", "custom_name": "Portainer"}],
        )

        assert await get_custom_service_name(db_session, identity("0.0.0.0", 9000)) is not None

    async def test_commit_failure_fails_only_that_item(
        self,
        db_session: AsyncSession,
        local_server: Server,
        monkeypatch: pytest.MonkeyPatch,
    ):
        """A commit that fails mid-batch is reported and the batch carries on."""
        fail_commit_on_call(db_session, monkeypatch, failing_call=2)

        results = await batch_custom_service_names(
            db_session,
            "local",
            [
                {"action": "set", "host_ip": "10.0.0.1", "host_port": 80, "protocol": "tcp", "custom_name": "A"},
                {"action": "set", "host_ip": "10.0.0.1", "host_port": 81, "protocol": "tcp", "custom_name": "B"},
                {"action": "set", "host_ip": "10.0.0.1", "host_port": 82, "protocol": "tcp", "custom_name": "C"},
            ],
        )

        assert [r["success"] for r in results] == [True, False, True]
        assert results[1]["error"] == "database is locked"
        names = await get_custom_service_names(db_session, "local")
        assert [n.host_port for n in names] == [80, 82]


class TestCustomServiceNameRouter:
    """Tests for custom service name router endpoints."""

    PAYLOAD = {"server_id": "local", "host_ip": "0.0.0.0", "host_port": 8096, "protocol": "tcp"}

    async def test_save_list_delete(self, client: AsyncClient, local_server: Server):
        """A wildcard rename shows up on both addresses and is removed from both."""
        response = await client.post(
            "/api/custom-service-names", json={**self.PAYLOAD, "custom_name": "Jellyfin"}
        )
        assert response.status_code == 200
        assert response.json()["action"] == "created"

        response = await client.get("/api/custom-service-names", params={"server_id": "local"})
        assert sorted(item["host_ip"] for item in response.json()) == ["0.0.0.0", "::"]

        response = await client.request("DELETE", "/api/custom-service-names", json=self.PAYLOAD)
        assert response.status_code == 200

        response = await client.get("/api/custom-service-names", params={"server_id": "local"})
        assert response.json() == []

    async def test_delete_missing(self, client: AsyncClient, local_server: Server):
        response = await client.request("DELETE", "/api/custom-service-names", json=self.PAYLOAD)

        assert response.status_code == 404
        assert response.json()["error"] == "Custom service name not found"

    async def test_blank_name_is_rejected(self, client: AsyncClient, local_server: Server):
        response = await client.post(
            "/api/custom-service-names", json={**self.PAYLOAD, "custom_name": "   "}
        )

        assert response.status_code == 400
        assert response.json()["field"] == "custom_name"

    async def test_batch(self, client: AsyncClient, local_server: Server):
        response = await client.post(
            "/api/custom-service-names/batch",
            json={
                "server_id": "local",
                "operations": [
                    {**self.PAYLOAD, "action": "set", "custom_name": "Jellyfin"},
                    {**self.PAYLOAD, "action": "set"},
                ],
            },
        )

        assert response.status_code == 200
        results = response.json()["results"]
        assert results[0]["action"] == "created"
        assert results[1]["field"] == "custom_name"

    async def test_batch_requires_operations(self, client: AsyncClient, local_server: Server):
        response = await client.post(
            "/api/custom-service-names/batch", json={"server_id": "local", "operations": []}
        )

        assert response.status_code == 400
        assert response.json()["field"] == "operations"
