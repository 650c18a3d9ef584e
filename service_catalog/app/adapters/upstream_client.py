"""
Async HTTP client shared by the upstream catalog adapters.
"""

from __future__ import annotations

import time
from typing import Any, Dict, Mapping, Optional, TYPE_CHECKING

import httpx

from shared.logging import get_logger
from shared.errors import RequestSetupError, UpstreamHTTPError, UpstreamUnreachableError

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector
    from ..ratelimit.token_bucket import UpstreamThrottle


MAX_LOGGED_BODY = 2048


class UpstreamClient:
    """Issues GET requests to one upstream and classifies failures.

    Every request goes through the upstream's throttle. No retries are
    attempted; callers decide how a failure degrades.
    """

    def __init__(
        self,
        name: str,
        base_url: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        timeout: float = 10.0,
        throttle: Optional["UpstreamThrottle"] = None,
        metrics: Optional["MetricsCollector"] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.name = name
        self.base_url = base_url.rstrip("/")
        self.throttle = throttle
        self.metrics = metrics
        self.logger = get_logger(f"catalog.{name}")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={"accept": "application/json", **(headers or {})},
            timeout=timeout,
            transport=transport,
        )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    @staticmethod
    def _encode_params(params: Optional[Mapping[str, Any]]) -> Dict[str, str]:
        encoded: Dict[str, str] = {}
        for key, value in (params or {}).items():
            if value is None or value is False:
                continue
            encoded[key] = "true" if value is True else str(value)
        return encoded

    async def get_json(self, path: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        """GET ``path`` and return the decoded JSON body.

        Raises ``RequestSetupError`` when the request cannot be built,
        ``UpstreamUnreachableError`` when no response arrives and
        ``UpstreamHTTPError`` for a non-2xx status.
        """
        try:
            request = self._client.build_request("GET", "/" + path.lstrip("/"), params=self._encode_params(params))
        except (httpx.InvalidURL, TypeError, ValueError) as exc:
            self.logger.error("Upstream request setup failed", path=path, error=str(exc))
            raise RequestSetupError(self.name, str(exc), {"path": path}) from exc

        start_time = time.time()
        try:
            if self.throttle is not None:
                async with self.throttle:
                    response = await self._client.send(request)
            else:
                response = await self._client.send(request)
        except httpx.TransportError as exc:
            self._record(start_time, "unreachable")
            self.logger.error("No response received from upstream", url=str(request.url), error=str(exc))
            raise UpstreamUnreachableError(self.name, str(exc) or type(exc).__name__, {"url": str(request.url)}) from exc

        if not response.is_success:
            self._record(start_time, "http_error")
            body = response.text[:MAX_LOGGED_BODY]
            self.logger.warning(
                "Upstream returned error status",
                url=str(request.url),
                status_code=response.status_code,
                body=body,
            )
            raise UpstreamHTTPError(self.name, response.status_code, body, {"url": str(request.url)})

        try:
            payload = response.json()
        except ValueError as exc:
            self._record(start_time, "invalid_body")
            self.logger.error("Upstream returned a non-JSON body", url=str(request.url), error=str(exc))
            raise UpstreamHTTPError(self.name, 502, response.text[:MAX_LOGGED_BODY], {"url": str(request.url)}) from exc

        self._record(start_time, "ok")
        self.logger.debug("Upstream response received", url=str(request.url), status_code=response.status_code)
        return payload

    async def get_bytes(self, url: str) -> bytes:
        """GET an absolute URL and return the raw body (used for artwork)."""
        start_time = time.time()
        try:
            if self.throttle is not None:
                async with self.throttle:
                    response = await self._client.get(url)
            else:
                response = await self._client.get(url)
        except httpx.TransportError as exc:
            self._record(start_time, "unreachable")
            raise UpstreamUnreachableError(self.name, str(exc) or type(exc).__name__, {"url": url}) from exc

        if not response.is_success:
            self._record(start_time, "http_error")
            raise UpstreamHTTPError(self.name, response.status_code, "", {"url": url})

        self._record(start_time, "ok")
        return response.content

    def _record(self, start_time: float, outcome: str) -> None:
        if not self.metrics:
            return
        self.metrics.increment_counter("upstream_requests_total", service=self.name, outcome=outcome)
        self.metrics.observe_histogram(
            "upstream_request_duration_seconds", time.time() - start_time, service=self.name
        )
