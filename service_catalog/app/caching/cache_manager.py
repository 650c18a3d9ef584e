"""
Gateway cache manager for shaped catalog responses.
"""

import json
from typing import Any, Dict, Mapping, Optional, Sequence, TYPE_CHECKING
from urllib.parse import quote

from shared.logging import get_logger
from .cache_store import CacheStore

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


DEFAULT_TTL_SECONDS = 3600
KEY_PREFIX = "catalog"


class CacheManager:
    """Stores shaped responses under deterministic keys."""

    def __init__(
        self,
        store: CacheStore,
        *,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.store = store
        self.ttl_seconds = ttl_seconds
        self.metrics = metrics
        self.logger = get_logger("catalog.cache_manager")

    @staticmethod
    def build_key(endpoint: str, params: Mapping[str, Any], order: Sequence[str]) -> str:
        """Build the cache key for one logical request.

        ``params`` must already be normalised. Each present parameter is
        appended in the endpoint's declared ``order``; absent parameters are
        skipped. Values are percent-encoded so a value can never forge a
        separator, which keeps the key injective.
        """
        parts = [KEY_PREFIX, endpoint]
        for name in order:
            value = params.get(name)
            if value is None:
                continue
            if value is True:
                encoded = "1"
            else:
                encoded = quote(str(value), safe="")
            parts.append(f"{name}={encoded}")
        return ":".join(parts)

    def _deserialize_json(self, payload: Any) -> Optional[Any]:
        """Deserialize cached JSON payloads."""
        if payload is None:
            return None
        try:
            return json.loads(payload)
        except (TypeError, ValueError) as exc:
            self.logger.warning("Cached payload could not be decoded", error=str(exc))
            return None

    async def get_json(self, endpoint: str, key: str) -> Optional[Any]:
        """Return the cached body for ``key`` or ``None`` on a miss."""
        cached = self._deserialize_json(await self.store.get(key))

        if cached is not None:
            self.logger.info("Cache hit", endpoint=endpoint, key=key)
            if self.metrics:
                self.metrics.increment_counter("cache_hits_total", endpoint=endpoint)
            return cached

        self.logger.debug("Cache miss", endpoint=endpoint, key=key)
        if self.metrics:
            self.metrics.increment_counter("cache_misses_total", endpoint=endpoint)
        return None

    async def set_json(self, endpoint: str, key: str, body: Any) -> bool:
        """Store a shaped body; a failed write is logged by the store and ignored."""
        stored = await self.store.set(key, json.dumps(body, separators=(",", ":")), self.ttl_seconds)
        if stored:
            self.logger.debug("Cached response", endpoint=endpoint, key=key, ttl=self.ttl_seconds)
        return stored

    async def get_cache_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        return {
            "backend": type(self.store).__name__,
            "ttl_seconds": self.ttl_seconds,
            "reachable": await self.store.ping(),
        }
