"""
Response shaping for catalog payloads.

Every function here is a pure mapping from an upstream record (or
envelope) to the gateway's output schema. Relative image paths are
prefixed with the image base URL; a missing path maps to ``None`` rather
than a dangling prefix.
"""

from typing import Any, Dict, Iterable, List, Mapping, Optional

from shared.errors import PageOutOfRangeError


DEFAULT_IMAGE_BASE_URL = "https://image.tmdb.org/t/p/w500"
TOP_CAST_SIZE = 6

DATE_FIELDS = {
    "movie": "release_date",
    "tv": "first_air_date",
}


def image_url(path: Optional[str], image_base: str = DEFAULT_IMAGE_BASE_URL) -> Optional[str]:
    if not path:
        return None
    return image_base + path


def names(entries: Optional[Iterable[Mapping[str, Any]]]) -> List[str]:
    """Flatten ``[{"name": ...}]`` into a list of bare names."""
    return [entry["name"] for entry in entries or [] if entry and entry.get("name")]


def release_year(date_value: Optional[str]) -> Optional[int]:
    """Year component of an ISO ``YYYY-MM-DD`` date, or ``None``."""
    if not date_value or not isinstance(date_value, str):
        return None
    year = date_value.split("-", 1)[0]
    if len(year) != 4 or not year.isdigit():
        return None
    return int(year)


# TMDB ----------------------------------------------------------------------

def shape_tmdb_media(record: Mapping[str, Any], image_base: str = DEFAULT_IMAGE_BASE_URL) -> Dict[str, Any]:
    shaped = dict(record)
    shaped["backdrop_path"] = image_url(record.get("backdrop_path"), image_base)
    shaped["poster_path"] = image_url(record.get("poster_path"), image_base)
    return shaped


def shape_cast(credits: Mapping[str, Any], image_base: str = DEFAULT_IMAGE_BASE_URL) -> List[Dict[str, Any]]:
    cast = sorted(credits.get("cast") or [], key=lambda member: member.get("order", 0))
    return [
        {
            "name": member.get("name"),
            "character": member.get("character"),
            "profile_path": image_url(member.get("profile_path"), image_base),
        }
        for member in cast[:TOP_CAST_SIZE]
    ]


def shape_enriched_media(
    record: Mapping[str, Any],
    details: Mapping[str, Any],
    credits: Mapping[str, Any],
    palette: Optional[List[str]],
    *,
    media: str,
    image_base: str = DEFAULT_IMAGE_BASE_URL,
) -> Dict[str, Any]:
    """Merge one list item with its details, credits and poster palette."""
    date_field = DATE_FIELDS[media]
    shaped = shape_tmdb_media(record, image_base)
    shaped["release_year"] = release_year(record.get(date_field) or details.get(date_field))
    shaped["genres"] = names(details.get("genres"))
    shaped["tagline"] = details.get("tagline") or None
    shaped["cast"] = shape_cast(credits, image_base)
    shaped["palette"] = palette

    if media == "movie":
        shaped["runtime"] = details.get("runtime")
        shaped["directors"] = [
            member.get("name")
            for member in credits.get("crew") or []
            if member.get("job") == "Director"
        ]
    else:
        shaped["number_of_seasons"] = details.get("number_of_seasons")
        shaped["directors"] = names(details.get("created_by"))
    return shaped


def _image_entry(image: Mapping[str, Any], image_base: str) -> Dict[str, Any]:
    return {
        "aspect_ratio": image.get("aspect_ratio"),
        "height": image.get("height"),
        "width": image.get("width"),
        "file_path": image_url(image.get("file_path"), image_base),
    }


def shape_tmdb_images(payload: Mapping[str, Any], image_base: str = DEFAULT_IMAGE_BASE_URL) -> Dict[str, Any]:
    return {
        "backdrops": [_image_entry(image, image_base) for image in payload.get("backdrops") or []],
        "posters": [_image_entry(image, image_base) for image in payload.get("posters") or []],
    }


def tmdb_pagination(payload: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "current_page": payload.get("page"),
        "total_pages": payload.get("total_pages"),
        "total_results": payload.get("total_results"),
    }


def tmdb_overflow_pagination(page: int, payload: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "current_page": page,
        "last_visible_page": payload.get("total_pages"),
        "has_next_page": False,
        "items": {
            "total_pages": payload.get("total_pages"),
            "total_results": payload.get("total_results"),
        },
    }


# Jikan ---------------------------------------------------------------------

def shape_anime(record: Mapping[str, Any]) -> Dict[str, Any]:
    images = (record.get("images") or {}).get("jpg") or {}
    trailer = record.get("trailer") or {}
    trailer_images = trailer.get("images") or {}

    return {
        "mal_id": record.get("mal_id"),
        "mal_url": record.get("url"),
        "images": [
            images.get("image_url"),
            images.get("large_image_url"),
            trailer_images.get("maximum_image_url"),
        ],
        "trailer": {
            "yt_id": trailer.get("youtube_id"),
            "yt_url": trailer.get("url"),
            "embed_url": trailer.get("embed_url"),
        },
        "titles": {
            "default_title": record.get("title"),
            "japanese_title": record.get("title_japanese"),
            "english_title": record.get("title_english"),
        },
        "episodes": record.get("episodes"),
        "rating": record.get("rating"),
        "type": record.get("type"),
        "source": record.get("source"),
        "status": record.get("status"),
        "score": record.get("score"),
        "rank": record.get("rank"),
        "popularity": record.get("popularity"),
        "synopsis": record.get("synopsis"),
        "background": record.get("background"),
        "season": record.get("season"),
        "year": record.get("year"),
        "genres": names(record.get("genres")),
        "themes": names(record.get("themes")),
        "demographics": names(record.get("demographics")),
        "explicit_genres": names(record.get("explicit_genres")),
        "studios": names(record.get("studios")),
    }


def _picture_variant(picture: Mapping[str, Any], variant: str) -> Dict[str, Any]:
    urls = picture.get(variant) or {}
    return {
        "image_url": urls.get("image_url"),
        "small_image_url": urls.get("small_image_url"),
        "large_image_url": urls.get("large_image_url"),
    }


def shape_anime_pictures(payload: Mapping[str, Any]) -> Dict[str, Any]:
    pictures = payload.get("data") or []
    return {
        "isFetched": True,
        "jpgs": [_picture_variant(picture, "jpg") for picture in pictures],
        "webp": [_picture_variant(picture, "webp") for picture in pictures],
    }


def shape_anime_videos(payload: Mapping[str, Any]) -> Dict[str, Any]:
    return {"isFetched": True, "data": payload.get("data")}


def shape_anime_staff(payload: Mapping[str, Any]) -> Dict[str, List[str]]:
    staff = payload.get("data") or []

    def with_position(position: str) -> List[str]:
        return [
            (member.get("person") or {}).get("name")
            for member in staff
            if position in (member.get("positions") or [])
        ]

    return {"directors": with_position("Director"), "producers": with_position("Producer")}


def jikan_pagination(payload: Mapping[str, Any], page: int, limit: int) -> Dict[str, Any]:
    pagination = payload.get("pagination") or {}
    items = pagination.get("items") or {}
    return {
        "current_page": page,
        "last_visible_page": pagination.get("last_visible_page"),
        "has_next_page": pagination.get("has_next_page", False),
        "items": {
            "count": items.get("count"),
            "total": items.get("total"),
            "per_page": limit,
        },
    }


def jikan_overflow_pagination(page: int, limit: int, payload: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "current_page": page,
        "last_visible_page": (payload.get("pagination") or {}).get("last_visible_page"),
        "has_next_page": False,
        "items": {"count": 0, "total": 0, "per_page": limit},
    }


# Pagination boundary -------------------------------------------------------

def ensure_page_in_range(page: int, last_page: Optional[int], overflow_pagination: Dict[str, Any]) -> None:
    """Raise ``PageOutOfRangeError`` when ``page`` lies past ``last_page``.

    An upstream that reports no last page is trusted as-is.
    """
    if last_page is None:
        return
    if page > last_page:
        raise PageOutOfRangeError(overflow_pagination)
