"""
TMDB (movie/TV catalog) adapter.
"""

from typing import Any, Dict, Mapping, Optional

from .upstream_client import UpstreamClient


class TMDBClient:
    """Thin wrapper issuing TMDB v3 requests with bearer auth."""

    LANGUAGE = "en-US"

    def __init__(self, upstream: UpstreamClient):
        self.upstream = upstream

    @classmethod
    def create(cls, base_url: str, auth_token: str, **kwargs) -> "TMDBClient":
        """Build the client with the fixed authorization header."""
        upstream = UpstreamClient(
            "tmdb",
            base_url,
            headers={"Authorization": f"Bearer {auth_token}"},
            **kwargs,
        )
        return cls(upstream)

    async def get(self, path: str, params: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        """Issue a request with the fixed language parameter."""
        query = {"language": self.LANGUAGE}
        query.update(params or {})
        return await self.upstream.get_json(path, query)

    async def details(self, media: str, media_id: int) -> Dict[str, Any]:
        return await self.get(f"{media}/{media_id}")

    async def credits(self, media: str, media_id: int) -> Dict[str, Any]:
        return await self.get(f"{media}/{media_id}/credits")

    async def images(self, media: str, media_id: int) -> Dict[str, Any]:
        # Image metadata is always restricted to English
        return await self.upstream.get_json(
            f"{media}/{media_id}/images", {"include_image_language": "en"}
        )

    async def close(self) -> None:
        await self.upstream.close()
