"""
Catalog Gateway service for the Media Catalog Gateway.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import Request, Response
from fastapi.responses import HTMLResponse, JSONResponse

from shared.base_service import BaseService
from shared.config import ServiceConfig
from shared.errors import RateLimitError
from service_catalog.app.adapters.jikan_client import JikanClient
from service_catalog.app.adapters.palette import PaletteExtractor
from service_catalog.app.adapters.tmdb_client import TMDBClient
from service_catalog.app.adapters.upstream_client import UpstreamClient
from service_catalog.app.aggregation.fan_out import FanOutAggregator
from service_catalog.app.caching.cache_manager import CacheManager
from service_catalog.app.caching.cache_store import CacheStore, MemoryCacheStore, RedisCacheStore
from service_catalog.app.domain.catalog import ENDPOINTS, EndpointSpec
from service_catalog.app.domain.pipeline import CatalogPipeline
from service_catalog.app.ratelimit.token_bucket import UpstreamThrottle
from service_catalog.app.ratelimit.window_limiter import (
    Admission,
    InMemoryWindowStore,
    RateLimitMiddleware,
    RedisWindowStore,
    WindowRateLimiter,
    default_policies,
)


NOT_FOUND_PAGE = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>Page not found</title>
</head>
<body>
  <h1>404</h1>
  <p>The page you are looking for does not exist.</p>
</body>
</html>
"""


class CatalogService(BaseService):
    """Catalog gateway service implementation."""

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        *,
        tmdb_client: Optional[TMDBClient] = None,
        jikan_client: Optional[JikanClient] = None,
        palette: Optional[PaletteExtractor] = None,
        cache_store: Optional[CacheStore] = None,
        window_store=None,
    ):
        super().__init__("catalog", config)
        cfg = self.config

        self.tmdb_throttle = UpstreamThrottle(
            "tmdb", cfg.tmdb_throttle_rate, cfg.tmdb_throttle_burst, cfg.tmdb_max_concurrency
        )
        self.jikan_throttle = UpstreamThrottle(
            "jikan", cfg.jikan_throttle_rate, cfg.jikan_throttle_burst, cfg.jikan_max_concurrency
        )

        self.tmdb_client = tmdb_client or TMDBClient.create(
            cfg.tmdb_base_url,
            cfg.auth_token,
            timeout=cfg.upstream_timeout_seconds,
            throttle=self.tmdb_throttle,
            metrics=self.metrics,
        )
        self.jikan_client = jikan_client or JikanClient.create(
            cfg.jikan_base_url,
            timeout=cfg.upstream_timeout_seconds,
            throttle=self.jikan_throttle,
            metrics=self.metrics,
        )
        self.palette = palette or PaletteExtractor(
            UpstreamClient(
                "tmdb_images",
                cfg.tmdb_image_base_url,
                timeout=cfg.upstream_timeout_seconds,
                metrics=self.metrics,
            ),
            enabled=cfg.palette_enabled,
        )

        self.cache_store = cache_store or self._build_cache_store()
        self.cache_manager = CacheManager(
            self.cache_store,
            ttl_seconds=cfg.cache_ttl_seconds,
            metrics=self.metrics,
        )

        self.rate_limiter = WindowRateLimiter(
            default_policies(cfg),
            window_store or self._build_window_store(),
            metrics=self.metrics,
        )
        self.rate_limit_middleware = RateLimitMiddleware(self.rate_limiter)

        self.aggregator = FanOutAggregator(metrics=self.metrics)
        self.pipeline = CatalogPipeline(
            self.tmdb_client,
            self.jikan_client,
            self.cache_manager,
            self.aggregator,
            self.palette,
            image_base_url=cfg.tmdb_image_base_url,
        )

        @self.app.on_event("startup")
        async def _startup():
            self.logger.info("Catalog gateway listening", port=cfg.port, cache_backend=cfg.cache_backend)

        @self.app.on_event("shutdown")
        async def _shutdown():
            await self.tmdb_client.close()
            await self.jikan_client.close()
            await self.palette.close()
            await self.cache_store.close()
            await self.rate_limiter.close()

        self._setup_catalog_routes()
        self._setup_fallback_route()

        # Expose service instance via app state for introspection/testing
        self.app.state.catalog_service = self

    def _build_cache_store(self) -> CacheStore:
        if self.config.cache_backend == "memory":
            return MemoryCacheStore()
        return RedisCacheStore(self.config.redis_url)

    def _build_window_store(self):
        if self.config.rate_limit_backend == "redis":
            return RedisWindowStore(self.config.redis_url)
        return InMemoryWindowStore()

    async def _enforce_rate_limit(self, request: Request, dependency: str) -> Admission:
        """Check the window limiter for the caller before any other work."""
        admission = await self.rate_limit_middleware.check_request(request, dependency)

        if not admission.allowed:
            raise RateLimitError(
                self.rate_limit_middleware.message_for(dependency),
                {
                    "dependency": dependency,
                    "limit": admission.limit,
                    "retry_after": admission.retry_after,
                },
            )
        return admission

    def _set_rate_limit_headers(self, response: Response, admission: Admission) -> None:
        """Propagate rate limiting metadata via standard headers."""
        response.headers["RateLimit-Limit"] = str(admission.limit)
        response.headers["RateLimit-Remaining"] = str(admission.remaining)
        response.headers["RateLimit-Reset"] = str(admission.reset_in_seconds)

    async def _serve(self, request: Request, endpoint: EndpointSpec) -> JSONResponse:
        admission = await self._enforce_rate_limit(request, endpoint.dependency)
        body = await self.pipeline.run(endpoint, request.query_params, request.path_params)
        response = JSONResponse(content=body)
        self._set_rate_limit_headers(response, admission)
        return response

    def _setup_catalog_routes(self):
        """Set up catalog routes."""

        @self.app.get("/healthz")
        async def healthz():
            """Lightweight liveness endpoint with dependency status."""
            dependencies = await self._check_dependencies()
            status = "ok" if all(value == "ok" for value in dependencies.values()) else "error"
            return {
                "service": self.service_name,
                "status": status,
                "dependencies": dependencies,
                "cache": await self.cache_manager.get_cache_stats(),
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }

        @self.app.get("/")
        async def root():
            """Service index."""
            return {
                "service": self.service_name,
                "status": "ok",
                "endpoints": sorted(
                    route.path for route in self.app.routes
                    if getattr(route, "path", "").startswith(("/trending", "/popular", "/upcoming", "/search", "/images"))
                ),
            }

        # Movies
        @self.app.get("/trending/movies")
        @self.app.get("/trending/movies/{time_window}")
        async def trending_movies(request: Request):
            return await self._serve(request, ENDPOINTS["trending_movies"])

        @self.app.get("/popular/movies")
        async def popular_movies(request: Request):
            return await self._serve(request, ENDPOINTS["popular_movies"])

        @self.app.get("/upcoming/movies")
        async def upcoming_movies(request: Request):
            return await self._serve(request, ENDPOINTS["upcoming_movies"])

        @self.app.get("/search/movies")
        async def search_movies(request: Request):
            return await self._serve(request, ENDPOINTS["search_movies"])

        @self.app.get("/images/movie/{id}")
        async def movie_images(request: Request):
            return await self._serve(request, ENDPOINTS["movie_images"])

        # TV
        @self.app.get("/trending/tv")
        @self.app.get("/trending/tv/{time_window}")
        async def trending_tv(request: Request):
            return await self._serve(request, ENDPOINTS["trending_tv"])

        @self.app.get("/popular/tv")
        async def popular_tv(request: Request):
            return await self._serve(request, ENDPOINTS["popular_tv"])

        @self.app.get("/search/tv")
        async def search_tv(request: Request):
            return await self._serve(request, ENDPOINTS["search_tv"])

        @self.app.get("/images/tv/{id}")
        async def tv_images(request: Request):
            return await self._serve(request, ENDPOINTS["tv_images"])

        # Anime
        @self.app.get("/trending/anime")
        async def trending_anime(request: Request):
            return await self._serve(request, ENDPOINTS["trending_anime"])

        @self.app.get("/popular/anime")
        async def popular_anime(request: Request):
            return await self._serve(request, ENDPOINTS["popular_anime"])

        @self.app.get("/upcoming/anime")
        async def upcoming_anime(request: Request):
            return await self._serve(request, ENDPOINTS["upcoming_anime"])

        @self.app.get("/search/anime")
        async def search_anime(request: Request):
            return await self._serve(request, ENDPOINTS["search_anime"])

        @self.app.get("/search/anime/{id}")
        async def anime_details(request: Request):
            return await self._serve(request, ENDPOINTS["anime_details"])

    def _setup_fallback_route(self):
        """Unmatched paths get the static not-found page. Must be registered last."""

        @self.app.get("/{full_path:path}", include_in_schema=False)
        async def not_found(full_path: str):
            return HTMLResponse(NOT_FOUND_PAGE, status_code=200)

    async def _check_dependencies(self) -> Dict[str, Any]:
        """Check catalog dependencies."""
        stats = await self.cache_manager.get_cache_stats()
        return {"cache": "ok" if stats["reachable"] else "error"}


def create_app(config: Optional[ServiceConfig] = None, **overrides):
    """Create FastAPI application."""
    service = CatalogService(config, **overrides)
    return service.app


if __name__ == "__main__":
    service = CatalogService()
    service.run()
