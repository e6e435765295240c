"""Tests for the ignored-port service."""

from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from portracker.core.cache import PORTS_CACHE_KEY, TTLCache
from portracker.models.server import Server
from portracker.services.ignores import get_ignores, is_ignored, set_ignore
from portracker.services.port_identity import PortIdentity

SSH = PortIdentity(server_id="local", host_ip="0.0.0.0", host_port=22)


class TestIgnoreService:
    """Tests for ignore service functions."""

    async def test_ignore_port(self, db_session: AsyncSession, local_server: Server):
        """Ignoring a port stores a marker row."""
        changed = await set_ignore(db_session, SSH, True)

        assert changed is True
        assert await is_ignored(db_session, SSH)

    async def test_ignore_is_idempotent(self, db_session: AsyncSession, local_server: Server):
        """Ignoring twice keeps one row and reports no change."""
        await set_ignore(db_session, SSH, True)
        changed = await set_ignore(db_session, SSH, True)

        assert changed is False
        assert len(await get_ignores(db_session, "local")) == 1

    async def test_unignore_port(self, db_session: AsyncSession, local_server: Server):
        """Un-ignoring removes the marker row."""
        await set_ignore(db_session, SSH, True)

        assert await set_ignore(db_session, SSH, False) is True
        assert not await is_ignored(db_session, SSH)
        assert await get_ignores(db_session, "local") == []

    async def test_unignore_when_not_ignored(self, db_session: AsyncSession, local_server: Server):
        """Un-ignoring an unknown port is a no-op."""
        assert await set_ignore(db_session, SSH, False) is False

    async def test_container_identity_is_separate(
        self, db_session: AsyncSession, local_server: Server
    ):
        """Ignoring the host binding leaves the container binding visible."""
        container = PortIdentity(
            server_id="local", host_ip="0.0.0.0", host_port=22, container_id="abc123"
        )
        await set_ignore(db_session, SSH, True)

        assert not await is_ignored(db_session, container)

    async def test_cache_invalidated_only_on_change(
        self, db_session: AsyncSession, local_server: Server, response_cache: TTLCache
    ):
        """Only a real change drops the cached port list."""
        await set_ignore(db_session, SSH, True)
        response_cache.set(PORTS_CACHE_KEY, ["cached"], ttl_ms=60000)

        await set_ignore(db_session, SSH, True, cache=response_cache)
        assert response_cache.get(PORTS_CACHE_KEY) == ["cached"]

        await set_ignore(db_session, SSH, False, cache=response_cache)
        assert response_cache.get(PORTS_CACHE_KEY) is None


class TestIgnoreRouter:
    """Tests for ignore router endpoints."""

    async def test_toggle_ignore(self, client: AsyncClient, local_server: Server):
        """Ignoring twice reports the second call as unchanged."""
        payload = {
            "server_id": "local",
            "host_ip": "0.0.0.0",
            "host_port": 22,
            "protocol": "tcp",
            "ignored": True,
        }

        first = await client.post("/api/ignores", json=payload)
        second = await client.post("/api/ignores", json=payload)

        assert first.json()["action"] == "changed"
        assert second.json()["action"] == "unchanged"

        response = await client.get("/api/ignores", params={"server_id": "local"})
        data = response.json()
        assert len(data) == 1
        assert data[0]["ignored"] is True
        assert data[0]["host_port"] == 22

    async def test_ignored_must_be_boolean(self, client: AsyncClient, local_server: Server):
        response = await client.post(
            "/api/ignores",
            json={
                "server_id": "local",
                "host_ip": "0.0.0.0",
                "host_port": 22,
                "protocol": "tcp",
                "ignored": "true",
            },
        )

        assert response.status_code == 400
        assert response.json()["field"] == "ignored"
