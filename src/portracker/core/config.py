"""Application configuration using pydantic-settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Database
    database_url: str = "sqlite+aiosqlite:///./data/portracker.db"

    # HTTP server (used for the URL of the local server row)
    port: int = 3000

    # Reachability probing
    ping_timeout_ms: int = 2000
    probe_user_agent: str = "PortTracker/1.0"
    # Retry HTTPS probes without certificate verification for self-signed services
    allow_insecure_tls_fallback: bool = True

    # Response cache for GET /api/ports
    endpoint_cache_ports_ttl_ms: int = 3000
    disable_cache: bool = False

    # Docker
    docker_socket: str = "/var/run/docker.sock"
    running_in_docker: bool = False
    docker_desktop: bool = False
    docker_host_ip: str | None = None

    # Peer servers
    peer_timeout_seconds: float = 10.0

    # CORS
    cors_origins: list[str] = ["http://localhost:5173", "http://127.0.0.1:5173"]

    # Application
    debug: bool = False
    log_level: str = "info"


settings = Settings()
