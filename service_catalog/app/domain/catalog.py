"""
Declarative endpoint table.

Each entry describes one gateway endpoint: the upstream it gates on, how
its result is resolved, its accepted parameters (which also fix the order
of the cache key) and the key its results are published under.
"""

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple

from ..ratelimit.window_limiter import JIKAN, TMDB
from .validation import CHOICE, FLAG, INTEGER, PATH, TEXT, ParamSpec


# Resolver kinds
TMDB_LIST = "tmdb_list"
TMDB_IMAGES = "tmdb_images"
JIKAN_LIST = "jikan_list"
JIKAN_DETAIL = "jikan_detail"

# List enrichments
MEDIA_ENRICHMENT = "media"
STAFF_ENRICHMENT = "staff"


@dataclass(frozen=True)
class EndpointSpec:
    name: str
    dependency: str
    kind: str
    upstream_path: str
    params: Tuple[ParamSpec, ...]
    result_key: str = "results"
    media: Optional[str] = None
    enrichment: Optional[str] = None

    @property
    def key_order(self) -> Tuple[str, ...]:
        return tuple(spec.name for spec in self.params)

    def path_for(self, params: Mapping[str, Any]) -> str:
        return self.upstream_path.format(**params)

    def upstream_params(self, params: Mapping[str, Any]) -> Dict[str, Any]:
        """Query parameters forwarded upstream (path parameters excluded)."""
        return {
            spec.name: params[spec.name]
            for spec in self.params
            if spec.location != PATH and spec.name in params
        }


ANIME_SEASON_FILTERS = ("tv", "movie", "ova", "special", "ona", "music")
ANIME_TYPES = ("tv", "movie", "ova", "special", "ona", "music", "cm", "pv", "tv_special")
ANIME_TOP_FILTERS = ("airing", "upcoming", "bypopularity", "favorite")
ANIME_RATINGS = ("g", "pg", "pg13", "r17", "r", "rx")
ANIME_STATUSES = ("airing", "complete", "upcoming")
ANIME_ORDER_BY = (
    "mal_id", "title", "start_date", "end_date", "episodes", "score",
    "scored_by", "rank", "popularity", "members", "favorites",
)
SORT_DIRECTIONS = ("desc", "asc")
TIME_WINDOWS = ("week", "day")

PAGE = ParamSpec("page", INTEGER, default=1)
LIMIT = ParamSpec("limit", INTEGER, default=25, maximum=25)
TIME_WINDOW = ParamSpec("time_window", CHOICE, choices=TIME_WINDOWS, default="week", location=PATH)
ENTITY_ID = ParamSpec("id", INTEGER, required=True, location=PATH)
SEARCH_QUERY = ParamSpec("query", TEXT, required=True)
SFW = ParamSpec("sfw", FLAG)
UNAPPROVED = ParamSpec("unapproved", FLAG)
CONTINUING = ParamSpec("continuing", FLAG)


ENDPOINTS: Dict[str, EndpointSpec] = {
    spec.name: spec
    for spec in (
        # TMDB movies
        EndpointSpec(
            "trending_movies", TMDB, TMDB_LIST, "trending/movie/{time_window}",
            (TIME_WINDOW, PAGE),
            media="movie", enrichment=MEDIA_ENRICHMENT,
        ),
        EndpointSpec(
            "popular_movies", TMDB, TMDB_LIST, "movie/popular",
            (PAGE,),
            result_key="popular_movies", media="movie", enrichment=MEDIA_ENRICHMENT,
        ),
        EndpointSpec(
            "upcoming_movies", TMDB, TMDB_LIST, "movie/upcoming",
            (PAGE,),
            result_key="upcoming_movies", media="movie", enrichment=MEDIA_ENRICHMENT,
        ),
        EndpointSpec(
            "search_movies", TMDB, TMDB_LIST, "search/movie",
            (
                SEARCH_QUERY, PAGE,
                ParamSpec("primary_release_year", INTEGER),
                ParamSpec("region", TEXT),
                ParamSpec("year", INTEGER),
                ParamSpec("include_adult", FLAG),
            ),
            result_key="search_result", media="movie",
        ),
        EndpointSpec(
            "movie_images", TMDB, TMDB_IMAGES, "movie/{id}/images",
            (ENTITY_ID,),
            media="movie",
        ),
        # TMDB TV
        EndpointSpec(
            "trending_tv", TMDB, TMDB_LIST, "trending/tv/{time_window}",
            (TIME_WINDOW, PAGE),
            media="tv", enrichment=MEDIA_ENRICHMENT,
        ),
        EndpointSpec(
            "popular_tv", TMDB, TMDB_LIST, "tv/top_rated",
            (PAGE,),
            result_key="popular_tv_shows", media="tv", enrichment=MEDIA_ENRICHMENT,
        ),
        EndpointSpec(
            "search_tv", TMDB, TMDB_LIST, "search/tv",
            (
                SEARCH_QUERY, PAGE,
                ParamSpec("first_air_date_year", INTEGER),
                ParamSpec("region", TEXT),
                ParamSpec("year", INTEGER),
                ParamSpec("include_adult", FLAG),
            ),
            result_key="search_result", media="tv",
        ),
        EndpointSpec(
            "tv_images", TMDB, TMDB_IMAGES, "tv/{id}/images",
            (ENTITY_ID,),
            media="tv",
        ),
        # Jikan anime
        EndpointSpec(
            "trending_anime", JIKAN, JIKAN_LIST, "seasons/now",
            (
                PAGE, LIMIT,
                ParamSpec("filter", CHOICE, choices=ANIME_SEASON_FILTERS),
                SFW, UNAPPROVED, CONTINUING,
            ),
            enrichment=STAFF_ENRICHMENT,
        ),
        EndpointSpec(
            "popular_anime", JIKAN, JIKAN_LIST, "top/anime",
            (
                PAGE, LIMIT,
                ParamSpec("type", CHOICE, choices=ANIME_TYPES),
                ParamSpec("filter", CHOICE, choices=ANIME_TOP_FILTERS),
                ParamSpec("rating", CHOICE, choices=ANIME_RATINGS),
                SFW,
            ),
        ),
        EndpointSpec(
            "upcoming_anime", JIKAN, JIKAN_LIST, "seasons/upcoming",
            (
                PAGE, LIMIT,
                ParamSpec("filter", CHOICE, choices=ANIME_SEASON_FILTERS),
                SFW, UNAPPROVED, CONTINUING,
            ),
        ),
        EndpointSpec(
            "search_anime", JIKAN, JIKAN_LIST, "anime",
            (
                PAGE, LIMIT,
                ParamSpec("q", TEXT),
                ParamSpec("type", CHOICE, choices=ANIME_TYPES),
                ParamSpec("score", TEXT),
                ParamSpec("min_score", TEXT),
                ParamSpec("max_score", TEXT),
                ParamSpec("status", CHOICE, choices=ANIME_STATUSES),
                ParamSpec("rating", CHOICE, choices=ANIME_RATINGS),
                SFW,
                ParamSpec("genres", TEXT),
                ParamSpec("genres_exclude", TEXT),
                ParamSpec("order_by", CHOICE, choices=ANIME_ORDER_BY),
                ParamSpec("sort", CHOICE, choices=SORT_DIRECTIONS, default="desc"),
                ParamSpec("letter", TEXT),
                ParamSpec("producers", TEXT),
                ParamSpec("start_date", TEXT),
                ParamSpec("end_date", TEXT),
                UNAPPROVED,
            ),
        ),
        EndpointSpec(
            "anime_details", JIKAN, JIKAN_DETAIL, "anime/{id}",
            (ENTITY_ID,),
        ),
    )
}
