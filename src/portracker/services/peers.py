"""HTTP calls from this server to registered peer servers."""

import logging
from collections.abc import Mapping
from typing import Any

import httpx

from portracker.core.config import settings
from portracker.core.errors import PeerUnavailableError

logger = logging.getLogger(__name__)


async def fetch_from_peer(
    server_url: str,
    path: str,
    params: Mapping[str, str] | None = None,
    action: str = "request",
    timeout: float | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> tuple[int, Any]:
    """GET ``path`` on a peer and return its status code and decoded body.

    The body is the parsed JSON when the peer sent JSON, else its text.
    Raises PeerUnavailableError (408 on timeout, 502 otherwise) when the peer
    cannot be reached.
    """
    url = f"{server_url.rstrip('/')}{path}"
    try:
        async with httpx.AsyncClient(
            transport=transport,
            timeout=timeout if timeout is not None else settings.peer_timeout_seconds,
        ) as client:
            response = await client.get(
                url, params=dict(params or {}), headers={"Accept": "application/json"}
            )
    except httpx.TimeoutException as e:
        logger.error(f"Peer {action} to {url} timed out: {e}")
        raise PeerUnavailableError(
            "Peer server timed out", details=str(e) or "timeout", status_code=408
        ) from e
    except httpx.HTTPError as e:
        logger.error(f"Peer {action} to {url} failed: {e}")
        raise PeerUnavailableError(f"failed to proxy {action}", details=str(e)) from e

    try:
        body: Any = response.json()
    except ValueError:
        body = response.text
    return response.status_code, body
