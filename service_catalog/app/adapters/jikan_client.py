"""
Jikan (anime catalog) adapter. Jikan is unauthenticated.
"""

from typing import Any, Dict, Mapping, Optional

from .upstream_client import UpstreamClient


class JikanClient:
    """Thin wrapper issuing Jikan v4 requests."""

    def __init__(self, upstream: UpstreamClient):
        self.upstream = upstream

    @classmethod
    def create(cls, base_url: str, **kwargs) -> "JikanClient":
        return cls(UpstreamClient("jikan", base_url, **kwargs))

    async def get(self, path: str, params: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        return await self.upstream.get_json(path, params)

    async def anime(self, anime_id: int) -> Dict[str, Any]:
        return await self.get(f"anime/{anime_id}")

    async def pictures(self, anime_id: int) -> Dict[str, Any]:
        return await self.get(f"anime/{anime_id}/pictures")

    async def videos(self, anime_id: int) -> Dict[str, Any]:
        return await self.get(f"anime/{anime_id}/videos")

    async def staff(self, anime_id: int) -> Dict[str, Any]:
        return await self.get(f"anime/{anime_id}/staff")

    async def close(self) -> None:
        await self.upstream.close()
