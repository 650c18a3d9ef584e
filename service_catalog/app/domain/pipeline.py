"""
Generic request pipeline: validate, look up the cache, resolve, store.
"""

import asyncio
from functools import partial
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Tuple

from shared.errors import UpstreamHTTPError
from shared.logging import get_logger

from ..adapters.jikan_client import JikanClient
from ..adapters.palette import PaletteExtractor
from ..adapters.tmdb_client import TMDBClient
from ..aggregation.fan_out import FanOutAggregator, SubFetch
from ..caching.cache_manager import CacheManager
from ..shaping import shaper
from .catalog import (
    JIKAN_DETAIL,
    JIKAN_LIST,
    MEDIA_ENRICHMENT,
    STAFF_ENRICHMENT,
    TMDB_IMAGES,
    TMDB_LIST,
    EndpointSpec,
)
from .validation import validate_params


# (body, complete) where an incomplete body is served but not cached
Resolution = Tuple[Any, bool]


class CatalogPipeline:
    """Serves any endpoint of the catalog table."""

    def __init__(
        self,
        tmdb: TMDBClient,
        jikan: JikanClient,
        cache: CacheManager,
        aggregator: FanOutAggregator,
        palette: PaletteExtractor,
        *,
        image_base_url: str = shaper.DEFAULT_IMAGE_BASE_URL,
    ):
        self.tmdb = tmdb
        self.jikan = jikan
        self.cache = cache
        self.aggregator = aggregator
        self.palette = palette
        self.image_base_url = image_base_url
        self.logger = get_logger("catalog.pipeline")
        self._resolvers: Dict[str, Callable[[EndpointSpec, Dict[str, Any]], Awaitable[Resolution]]] = {
            TMDB_LIST: self._resolve_tmdb_list,
            TMDB_IMAGES: self._resolve_tmdb_images,
            JIKAN_LIST: self._resolve_jikan_list,
            JIKAN_DETAIL: self._resolve_jikan_detail,
        }

    async def run(
        self,
        endpoint: EndpointSpec,
        query: Mapping[str, str],
        path: Optional[Mapping[str, str]] = None,
    ) -> Any:
        params = validate_params(endpoint.params, query, path)
        key = self.cache.build_key(endpoint.name, params, endpoint.key_order)

        cached = await self.cache.get_json(endpoint.name, key)
        if cached is not None:
            return cached

        body, complete = await self._resolvers[endpoint.kind](endpoint, params)

        if complete:
            await self.cache.set_json(endpoint.name, key, body)
        else:
            self.logger.info("Serving partial response without caching", endpoint=endpoint.name, key=key)

        self.logger.info("Fetched catalog data", endpoint=endpoint.name, params=params)
        return body

    # TMDB ------------------------------------------------------------------

    async def _resolve_tmdb_list(self, endpoint: EndpointSpec, params: Dict[str, Any]) -> Resolution:
        payload = await self.tmdb.get(endpoint.path_for(params), endpoint.upstream_params(params))

        page = params.get("page", 1)
        shaper.ensure_page_in_range(
            page,
            payload.get("total_pages"),
            shaper.tmdb_overflow_pagination(page, payload),
        )

        records = payload.get("results") or []
        complete = True
        if endpoint.enrichment == MEDIA_ENRICHMENT:
            result = await self.aggregator.enrich_items(
                records,
                partial(self._enrich_media, endpoint.media),
                endpoint=endpoint.name,
            )
            items = result.items
            complete = result.dropped == 0
        else:
            items = [shaper.shape_tmdb_media(record, self.image_base_url) for record in records]

        return {"pagination": shaper.tmdb_pagination(payload), endpoint.result_key: items}, complete

    async def _enrich_media(self, media: str, record: Dict[str, Any]) -> Dict[str, Any]:
        media_id = record["id"]
        poster_url = shaper.image_url(record.get("poster_path"), self.image_base_url)
        details, credits, palette = await asyncio.gather(
            self.tmdb.details(media, media_id),
            self.tmdb.credits(media, media_id),
            self.palette.palette_for(poster_url),
        )
        return shaper.shape_enriched_media(
            record, details, credits, palette, media=media, image_base=self.image_base_url
        )

    async def _resolve_tmdb_images(self, endpoint: EndpointSpec, params: Dict[str, Any]) -> Resolution:
        payload = await self.tmdb.images(endpoint.media, params["id"])
        return shaper.shape_tmdb_images(payload, self.image_base_url), True

    # Jikan -----------------------------------------------------------------

    async def _resolve_jikan_list(self, endpoint: EndpointSpec, params: Dict[str, Any]) -> Resolution:
        payload = await self.jikan.get(endpoint.path_for(params), endpoint.upstream_params(params))

        page = params["page"]
        limit = params["limit"]
        shaper.ensure_page_in_range(
            page,
            (payload.get("pagination") or {}).get("last_visible_page"),
            shaper.jikan_overflow_pagination(page, limit, payload),
        )

        records = (payload.get("data") or [])[:limit]
        complete = True
        if endpoint.enrichment == STAFF_ENRICHMENT:
            result = await self.aggregator.enrich_items(records, self._enrich_staff, endpoint=endpoint.name)
            items = result.items
            complete = result.dropped == 0
        else:
            items = [shaper.shape_anime(record) for record in records]

        return {"pagination": shaper.jikan_pagination(payload, page, limit), endpoint.result_key: items}, complete

    async def _enrich_staff(self, record: Dict[str, Any]) -> Dict[str, Any]:
        try:
            staff = shaper.shape_anime_staff(await self.jikan.staff(record["mal_id"]))
        except UpstreamHTTPError as exc:
            # Jikan answers 404 for titles without staff listings
            if exc.status_code != 404:
                raise
            staff = {"directors": [], "producers": []}
        return {**shaper.shape_anime(record), **staff}

    async def _resolve_jikan_detail(self, endpoint: EndpointSpec, params: Dict[str, Any]) -> Resolution:
        anime_id = params["id"]
        result = await self.aggregator.gather_entity(
            SubFetch(
                "anime",
                partial(self.jikan.anime, anime_id),
                shape=lambda payload: shaper.shape_anime(payload.get("data") or {}),
                error_message="Can't fetch anime data",
            ),
            [
                SubFetch(
                    "images_data",
                    partial(self.jikan.pictures, anime_id),
                    shape=shaper.shape_anime_pictures,
                    error_message="Can't fetch images",
                ),
                SubFetch(
                    "videos",
                    partial(self.jikan.videos, anime_id),
                    shape=shaper.shape_anime_videos,
                    error_message="Can't fetch videos",
                ),
            ],
        )
        return result.payload, not result.degraded
