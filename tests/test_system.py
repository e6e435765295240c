"""Tests for health, version and application setup."""

import logging

import pytest
from fastapi import FastAPI
from httpx import AsyncClient

from portracker.core.cache import TTLCache
from portracker.core.logging import normalize_log_level
from portracker.core.version import get_version
from portracker.main import init_app_state
from portracker.services.reachability import ReachabilityProbe


class TestSystemRouter:
    """Tests for system router endpoints."""

    async def test_health(self, client: AsyncClient):
        response = await client.get("/api/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["database"] == "connected"

    async def test_version(self, client: AsyncClient, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("APP_VERSION", "1.2.3")

        response = await client.get("/api/version")

        assert response.status_code == 200
        assert response.json()["version"] == "1.2.3"
        assert response.json()["name"] == "portracker"


class TestGetVersion:
    """Tests for version lookup."""

    def test_env_overrides_metadata(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("APP_VERSION", " 2.0.0 ")

        assert get_version() == "2.0.0"

    def test_falls_back_to_metadata_or_unknown(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.delenv("APP_VERSION", raising=False)

        assert get_version()


class TestAppSetup:
    """Tests for logging and shared state setup."""

    @pytest.mark.parametrize(
        ("name", "level"),
        [
            ("debug", logging.DEBUG),
            ("INFO", logging.INFO),
            ("warn", logging.WARNING),
            ("critical", logging.ERROR),
            ("verbose", logging.INFO),
        ],
    )
    def test_normalize_log_level(self, name, level):
        assert normalize_log_level(name) == level

    def test_init_app_state(self):
        app = FastAPI()

        init_app_state(app)

        assert isinstance(app.state.response_cache, TTLCache)
        assert [c.platform for c in app.state.collectors] == ["docker", "system"]
        assert app.state.collectors[0] is app.state.docker_collector
        assert isinstance(app.state.probe, ReachabilityProbe)
