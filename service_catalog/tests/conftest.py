"""
Shared fixtures for the catalog gateway tests.
"""

from typing import Any, Dict, List

import httpx
import pytest
from fastapi.testclient import TestClient

from shared.config import ServiceConfig
from service_catalog.app.adapters.jikan_client import JikanClient
from service_catalog.app.adapters.tmdb_client import TMDBClient
from service_catalog.app.caching.cache_store import MemoryCacheStore
from service_catalog.app.main import CatalogService
from service_catalog.app.ratelimit.window_limiter import InMemoryWindowStore


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class DummyMetrics:
    """Minimal metrics collector stub."""

    def __init__(self):
        self.counters = []
        self.histograms = []

    def increment_counter(self, metric_name: str, **labels):
        self.counters.append((metric_name, labels))

    def observe_histogram(self, metric_name: str, value: float, **labels):
        self.histograms.append((metric_name, value, labels))

    def count(self, metric_name: str, **labels) -> int:
        return sum(
            1 for name, recorded in self.counters
            if name == metric_name and all(recorded.get(k) == v for k, v in labels.items())
        )


class FakeUpstream:
    """Serves canned JSON by request path through an httpx mock transport."""

    def __init__(self):
        self.routes: Dict[str, Any] = {}
        self.calls: List[httpx.Request] = []

    def add(self, path: str, payload: Any, status: int = 200) -> None:
        self.routes[path] = (status, payload)

    def fail(self, path: str, status: int = 500, body: Any = None) -> None:
        self.routes[path] = (status, body or {"status": status, "message": "upstream failure"})

    def unreachable(self, path: str) -> None:
        self.routes[path] = httpx.ConnectError("connection refused")

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        route = self.routes.get(request.url.path)
        if route is None:
            return httpx.Response(404, json={"status": 404, "message": "Resource does not exist"})
        if isinstance(route, Exception):
            raise route
        status, payload = route
        return httpx.Response(status, json=payload)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def count(self, path: str) -> int:
        return sum(1 for request in self.calls if request.url.path == path)

    def last_params(self, path: str) -> Dict[str, str]:
        for request in reversed(self.calls):
            if request.url.path == path:
                return dict(request.url.params)
        return {}


def tmdb_page(results: List[Dict[str, Any]], page: int = 1, total_pages: int = 3) -> Dict[str, Any]:
    return {
        "page": page,
        "results": results,
        "total_pages": total_pages,
        "total_results": total_pages * 20,
    }


def jikan_page(data: List[Dict[str, Any]], last_visible_page: int = 2) -> Dict[str, Any]:
    return {
        "pagination": {
            "last_visible_page": last_visible_page,
            "has_next_page": last_visible_page > 1,
            "current_page": 1,
            "items": {"count": len(data), "total": 40, "per_page": 25},
        },
        "data": data,
    }


def anime_record(mal_id: int, title: str = "Frieren") -> Dict[str, Any]:
    return {
        "mal_id": mal_id,
        "url": f"https://myanimelist.net/anime/{mal_id}",
        "images": {"jpg": {"image_url": f"https://cdn.test/{mal_id}.jpg", "large_image_url": f"https://cdn.test/{mal_id}l.jpg"}},
        "trailer": {"youtube_id": "abc", "url": "https://youtube.test/abc", "embed_url": None, "images": {}},
        "title": title,
        "title_japanese": "葬送のフリーレン",
        "title_english": title,
        "episodes": 28,
        "rating": "PG-13",
        "type": "TV",
        "source": "Manga",
        "status": "Finished Airing",
        "score": 9.3,
        "rank": 1,
        "popularity": 150,
        "synopsis": "An elf mage outlives her party.",
        "background": None,
        "season": "fall",
        "year": 2023,
        "genres": [{"mal_id": 2, "name": "Adventure"}, {"mal_id": 8, "name": "Drama"}],
        "themes": [],
        "demographics": [{"name": "Shounen"}],
        "explicit_genres": [],
        "studios": [{"name": "Madhouse"}],
    }


def movie_record(movie_id: int) -> Dict[str, Any]:
    return {
        "id": movie_id,
        "title": f"Movie {movie_id}",
        "poster_path": f"/poster{movie_id}.jpg",
        "backdrop_path": None,
        "release_date": "2024-03-01",
    }


def register_movie(upstream: FakeUpstream, movie_id: int) -> None:
    upstream.add(f"/movie/{movie_id}", {"id": movie_id, "runtime": 120, "tagline": "Tag", "genres": [{"name": "Drama"}]})
    upstream.add(f"/movie/{movie_id}/credits", {
        "cast": [{"name": f"Actor {n}", "character": f"Role {n}", "profile_path": None, "order": n} for n in range(8)],
        "crew": [{"name": "Director One", "job": "Director"}],
    })


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def dummy_metrics():
    return DummyMetrics()


@pytest.fixture
def test_config():
    return ServiceConfig(
        auth_token="test-token",
        env="test",
        cache_backend="memory",
        rate_limit_backend="memory",
        tmdb_base_url="https://tmdb.test",
        jikan_base_url="https://jikan.test",
        tmdb_image_base_url="https://img.test/w500",
        tmdb_rate_limit_per_second=5,
        jikan_rate_limit_per_second=2,
        jikan_rate_limit_per_minute=3,
        palette_enabled=False,
    )


@pytest.fixture
def tmdb_upstream():
    return FakeUpstream()


@pytest.fixture
def jikan_upstream():
    return FakeUpstream()


@pytest.fixture
def service(test_config, tmdb_upstream, jikan_upstream, fake_clock):
    tmdb = TMDBClient.create(
        test_config.tmdb_base_url, test_config.auth_token, transport=tmdb_upstream.transport()
    )
    jikan = JikanClient.create(test_config.jikan_base_url, transport=jikan_upstream.transport())
    return CatalogService(
        test_config,
        tmdb_client=tmdb,
        jikan_client=jikan,
        cache_store=MemoryCacheStore(clock=fake_clock),
        window_store=InMemoryWindowStore(clock=fake_clock),
    )


@pytest.fixture
def client(service):
    with TestClient(service.app, raise_server_exceptions=False) as test_client:
        yield test_client


@pytest.fixture
def upstream_builders():
    """Payload builders shared across test modules."""
    return {
        "tmdb_page": tmdb_page,
        "jikan_page": jikan_page,
        "anime_record": anime_record,
        "movie_record": movie_record,
        "register_movie": register_movie,
    }
