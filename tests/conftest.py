"""Pytest configuration and fixtures for backend tests."""

import os
from collections.abc import AsyncGenerator, Callable

import httpx
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# Keep the application engine off the on-disk default database
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from portracker.collectors.base import BaseCollector, PortObservation  # noqa: E402
from portracker.collectors.docker import DockerCollector  # noqa: E402
from portracker.core.cache import TTLCache  # noqa: E402
from portracker.models import Base, Server  # noqa: E402
from portracker.models.server import LOCAL_SERVER_ID  # noqa: E402
from portracker.services.reachability import ReachabilityProbe  # noqa: E402

# Test database URL - use SQLite for fast, isolated tests
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class StaticCollector(BaseCollector):
    """Collector returning a fixed list and counting calls."""

    def __init__(self, ports: list[PortObservation], platform: str = "static") -> None:
        super().__init__()
        self.platform = platform
        self.ports = ports
        self.calls = 0

    async def get_ports(self) -> list[PortObservation]:
        self.calls += 1
        return list(self.ports)


def mock_transport(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.MockTransport:
    return httpx.MockTransport(handler)


def fail_commit_on_call(
    db_session: AsyncSession, monkeypatch: pytest.MonkeyPatch, failing_call: int
) -> None:
    """Make the given (1-based) commit on the session raise "database is locked"."""
    real_commit = db_session.commit
    calls = {"count": 0}

    async def flaky_commit() -> None:
        calls["count"] += 1
        if calls["count"] == failing_call:
            raise OperationalError("COMMIT", {}, Exception("database is locked"))
        await real_commit()

    monkeypatch.setattr(db_session, "commit", flaky_commit)


@pytest.fixture
async def engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
    )

    # Enable foreign keys for SQLite
    @event.listens_for(engine.sync_engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
async def db_session(engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async_session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
async def local_server(db_session: AsyncSession) -> Server:
    """Create the local server row annotations hang off."""
    server = Server(
        id=LOCAL_SERVER_ID,
        label="Local Server",
        url="http://localhost:3000",
        type="local",
        platform_type="unknown",
        unreachable=False,
    )
    db_session.add(server)
    await db_session.commit()
    await db_session.refresh(server)
    return server


@pytest.fixture
async def peer_server(db_session: AsyncSession, local_server: Server) -> Server:
    """Create a reachable peer server."""
    server = Server(
        id="peer-1",
        label="Peer One",
        url="http://peer.example:3000",
        type="peer",
        platform_type="docker",
        unreachable=False,
    )
    db_session.add(server)
    await db_session.commit()
    await db_session.refresh(server)
    return server


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def response_cache(clock: FakeClock) -> TTLCache:
    """An isolated response cache driven by the fake clock."""
    return TTLCache(clock=clock)


@pytest.fixture
def collector() -> StaticCollector:
    return StaticCollector(
        [
            PortObservation("0.0.0.0", 8080, "tcp", owner="nginx", pid=10, source="system"),
            PortObservation("0.0.0.0", 8080, "tcp", owner="caddy", pid=11, source="system"),
            PortObservation("127.0.0.1", 5432, "tcp", owner="postgres", pid=20, source="system"),
        ]
    )


@pytest.fixture
def docker_collector() -> DockerCollector:
    """Docker collector talking to a fake Engine API."""

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/containers/abc123/json":
            return httpx.Response(
                200, json={"State": {"Status": "running", "Health": {"Status": "healthy"}}}
            )
        if request.url.path == "/containers/json":
            return httpx.Response(200, json=[])
        return httpx.Response(404, json={"message": "No such container"})

    return DockerCollector(transport=mock_transport(handler))


@pytest.fixture
def probe() -> ReachabilityProbe:
    """Probe whose every request answers 200."""
    return ReachabilityProbe(
        timeout_ms=500,
        transport=mock_transport(lambda request: httpx.Response(200)),
    )


@pytest.fixture
async def client(
    engine,
    db_session: AsyncSession,
    response_cache: TTLCache,
    collector: StaticCollector,
    docker_collector: DockerCollector,
    probe: ReachabilityProbe,
) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client with dependency overrides."""
    from portracker.core import deps
    from portracker.core.database import get_db
    from portracker.main import app

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[deps.get_response_cache] = lambda: response_cache
    app.dependency_overrides[deps.get_collectors] = lambda: [collector]
    app.dependency_overrides[deps.get_docker_collector] = lambda: docker_collector
    app.dependency_overrides[deps.get_probe] = lambda: probe

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client

    app.dependency_overrides.clear()
