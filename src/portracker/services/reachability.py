"""HTTP/HTTPS liveness probing for open ports.

A probe walks a cascade of requests and stops at the first usable answer:

1. ``HEAD /`` - any status below 500 other than 404 counts.
2. ``GET /`` without following redirects - any status below 500 counts. A 404
   body is inspected for single-page-app markers, because client-side routers
   often answer unknown paths with a 404 that still serves the app shell.
3. HTTPS only, when the GET raised (self-signed certificate, TLS mismatch):
   a GET with certificate verification disabled.

Every stage carries its own timeout, so a hung stage costs at most one
timeout and the next stage still runs. ``probe`` never raises.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any

import httpx

from portracker.core.config import settings

logger = logging.getLogger(__name__)

SPA_MIN_BODY_LENGTH = 100
SPA_ROOT_MARKERS = ('id="root"', "id='root'", 'id="app"', "id='app'")

PROBE_ERRORS = (httpx.HTTPError, httpx.InvalidURL, asyncio.TimeoutError, OSError)


@dataclass(frozen=True)
class ProbeResult:
    """Outcome of probing one scheme on one port."""

    reachable: bool
    protocol: str
    status_code: int | None = None
    method: str | None = None
    response_time_ms: int | None = None
    is_spa: bool = False
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "reachable": self.reachable,
            "protocol": self.protocol,
            "statusCode": self.status_code,
            "method": self.method,
            "responseTime": self.response_time_ms,
            "isSPA": self.is_spa,
            "error": self.error,
        }


def unreachable(protocol: str, error: str) -> ProbeResult:
    return ProbeResult(reachable=False, protocol=protocol, error=error)


def looks_like_spa(body: str, content_type: str) -> bool:
    """Heuristic for a 404 response that is really a client-routed web app."""
    if "text/html" not in content_type.lower() or len(body) <= SPA_MIN_BODY_LENGTH:
        return False
    lowered = body.lower()
    has_document = "<!doctype html>" in lowered or "<html" in lowered
    has_script = "<script" in lowered
    has_meta = "<meta" in lowered
    has_app_root = any(marker in body for marker in SPA_ROOT_MARKERS)
    return has_document and has_script and (has_app_root or has_meta)


def build_probe_url(scheme: str, host: str, port: int, path: str = "/") -> str:
    if ":" in host and not host.startswith("["):
        host = f"[{host}]"
    if not path.startswith("/"):
        path = f"/{path}"
    return f"{scheme}://{host}:{port}{path}"


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


def _describe_error(exc: BaseException) -> str:
    if isinstance(exc, asyncio.TimeoutError):
        return "timeout"
    return str(exc) or type(exc).__name__


class ReachabilityProbe:
    """Probes a host:port over HTTP or HTTPS.

    ``transport`` and ``insecure_transport`` exist so tests can substitute an
    ``httpx.MockTransport``; in production httpx opens real connections.
    """

    def __init__(
        self,
        timeout_ms: int | None = None,
        user_agent: str | None = None,
        allow_insecure_tls_fallback: bool | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        insecure_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.timeout_ms = timeout_ms if timeout_ms is not None else settings.ping_timeout_ms
        self.user_agent = user_agent or settings.probe_user_agent
        self.allow_insecure_tls_fallback = (
            settings.allow_insecure_tls_fallback
            if allow_insecure_tls_fallback is None
            else allow_insecure_tls_fallback
        )
        self._transport = transport
        self._insecure_transport = insecure_transport or transport

    def _client(self, timeout_s: float, verify: bool = True) -> httpx.AsyncClient:
        transport = self._transport if verify else self._insecure_transport
        return httpx.AsyncClient(
            transport=transport,
            verify=verify,
            timeout=httpx.Timeout(timeout_s),
            follow_redirects=False,
            headers={"User-Agent": self.user_agent},
        )

    async def probe(
        self,
        scheme: str,
        host: str,
        port: int,
        path: str = "/",
        timeout_ms: int | None = None,
    ) -> ProbeResult:
        """Run the HEAD -> GET -> permissive-TLS cascade against one URL."""
        timeout_s = (timeout_ms if timeout_ms is not None else self.timeout_ms) / 1000.0
        try:
            url = build_probe_url(scheme, host, port, path)
            async with self._client(timeout_s) as client:
                result = await self._head(client, scheme, url, timeout_s)
                if result is not None:
                    return result

                result, get_failed = await self._get(client, scheme, url, timeout_s)
                if result is not None:
                    return result

            if get_failed and scheme == "https" and self.allow_insecure_tls_fallback:
                result = await self._permissive_tls_get(url, timeout_s)
                if result is not None:
                    return result

            return unreachable(scheme, "No successful response")
        except Exception as exc:
            logger.debug("Probe %s://%s:%s failed unexpectedly: %s", scheme, host, port, exc)
            return unreachable(scheme, _describe_error(exc))

    async def _head(
        self, client: httpx.AsyncClient, scheme: str, url: str, timeout_s: float
    ) -> ProbeResult | None:
        started = time.monotonic()
        try:
            response = await asyncio.wait_for(client.head(url), timeout=timeout_s)
        except PROBE_ERRORS as exc:
            logger.debug("HEAD %s failed: %s", url, _describe_error(exc))
            return None

        duration = _elapsed_ms(started)
        logger.debug("HEAD %s -> %s (%dms)", url, response.status_code, duration)
        if response.status_code < 500 and response.status_code != 404:
            return ProbeResult(
                reachable=True,
                protocol=scheme,
                status_code=response.status_code,
                method="HEAD",
                response_time_ms=duration,
            )
        return None

    async def _get(
        self, client: httpx.AsyncClient, scheme: str, url: str, timeout_s: float
    ) -> tuple[ProbeResult | None, bool]:
        """Return (result, failed); failed is True when the request raised."""
        started = time.monotonic()
        try:
            status_code, is_spa = await asyncio.wait_for(
                self._send_get(client, url), timeout=timeout_s
            )
        except PROBE_ERRORS as exc:
            logger.debug("GET %s failed: %s", url, _describe_error(exc))
            return None, True

        duration = _elapsed_ms(started)
        logger.debug("GET %s -> %s (%dms)", url, status_code, duration)
        if status_code < 500:
            return (
                ProbeResult(
                    reachable=True,
                    protocol=scheme,
                    status_code=status_code,
                    method="GET",
                    response_time_ms=duration,
                    is_spa=is_spa,
                ),
                False,
            )
        return None, False

    async def _send_get(self, client: httpx.AsyncClient, url: str) -> tuple[int, bool]:
        request = client.build_request("GET", url)
        response = await client.send(request, stream=True)
        try:
            is_spa = False
            # Only a 404 body is worth downloading
            if response.status_code == 404:
                try:
                    await response.aread()
                    content_type = response.headers.get("content-type", "")
                    is_spa = looks_like_spa(response.text, content_type)
                except httpx.HTTPError as exc:
                    logger.debug("Failed to read body for SPA detection at %s: %s", url, exc)
                if is_spa:
                    logger.debug("Detected SPA pattern in 404 response for %s", url)
            return response.status_code, is_spa
        finally:
            await response.aclose()

    async def _permissive_tls_get(self, url: str, timeout_s: float) -> ProbeResult | None:
        """GET with certificate verification disabled.

        Self-hosted services commonly present self-signed certificates. This
        stage trades certificate checking for fewer false "unreachable"
        results and can be switched off with ALLOW_INSECURE_TLS_FALLBACK=false.
        """
        started = time.monotonic()
        try:
            async with self._client(timeout_s, verify=False) as client:
                status_code, _ = await asyncio.wait_for(
                    self._send_status_only(client, url), timeout=timeout_s
                )
        except PROBE_ERRORS as exc:
            logger.debug("Permissive HTTPS GET %s failed: %s", url, _describe_error(exc))
            return None

        duration = _elapsed_ms(started)
        logger.debug("Permissive HTTPS GET %s -> %s (%dms)", url, status_code, duration)
        if status_code < 500:
            return ProbeResult(
                reachable=True,
                protocol="https",
                status_code=status_code,
                method="GET",
                response_time_ms=duration,
            )
        return None

    async def _send_status_only(self, client: httpx.AsyncClient, url: str) -> tuple[int, bool]:
        request = client.build_request("GET", url)
        response = await client.send(request, stream=True)
        await response.aclose()
        return response.status_code, False
