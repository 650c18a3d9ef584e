"""
Unit tests for response shaping.
"""

import pytest

from shared.errors import PageOutOfRangeError
from service_catalog.app.shaping import shaper


BASE = "https://img.test/w500"


class TestHelpers:
    """Test shaping helpers."""

    def test_image_url_prefixes_path(self):
        assert shaper.image_url("/a.jpg", BASE) == "https://img.test/w500/a.jpg"

    @pytest.mark.parametrize("path", [None, ""])
    def test_image_url_missing_path(self, path):
        assert shaper.image_url(path, BASE) is None

    @pytest.mark.parametrize("value,expected", [
        ("2024-03-01", 2024),
        ("1999", 1999),
        ("", None),
        (None, None),
        ("soon", None),
    ])
    def test_release_year(self, value, expected):
        assert shaper.release_year(value) == expected

    def test_names_skips_empty_entries(self):
        assert shaper.names([{"name": "A"}, {}, None, {"name": "B"}]) == ["A", "B"]


class TestTmdbShaping:
    """Test TMDB payload shaping."""

    def test_shape_cast_orders_and_truncates(self):
        credits = {"cast": [
            {"name": f"Actor {n}", "character": f"C{n}", "profile_path": f"/p{n}.jpg", "order": n}
            for n in reversed(range(9))
        ]}

        cast = shaper.shape_cast(credits, BASE)

        assert [member["name"] for member in cast] == [f"Actor {n}" for n in range(6)]
        assert cast[0] == {"name": "Actor 0", "character": "C0", "profile_path": "https://img.test/w500/p0.jpg"}

    def test_enriched_tv_uses_creators_and_first_air_date(self):
        record = {"id": 1, "name": "Show", "poster_path": None, "backdrop_path": "/b.jpg", "first_air_date": "2019-09-01"}
        details = {"number_of_seasons": 3, "created_by": [{"name": "Creator"}], "genres": [{"name": "Crime"}], "tagline": ""}

        shaped = shaper.shape_enriched_media(record, details, {"cast": []}, ["#000000"], media="tv", image_base=BASE)

        assert shaped["release_year"] == 2019
        assert shaped["number_of_seasons"] == 3
        assert shaped["directors"] == ["Creator"]
        assert shaped["tagline"] is None
        assert shaped["poster_path"] is None
        assert shaped["backdrop_path"] == "https://img.test/w500/b.jpg"
        assert shaped["palette"] == ["#000000"]
        assert "runtime" not in shaped

    def test_enriched_movie_falls_back_to_details_date(self):
        shaped = shaper.shape_enriched_media(
            {"id": 1}, {"release_date": "2001-12-19", "runtime": 178}, {"crew": []}, None, media="movie"
        )

        assert shaped["release_year"] == 2001
        assert shaped["runtime"] == 178
        assert shaped["directors"] == []

    def test_shape_images_keeps_dimensions(self):
        payload = {"posters": [{"aspect_ratio": 0.67, "height": 750, "width": 500, "file_path": "/p.jpg", "vote_count": 3}]}

        shaped = shaper.shape_tmdb_images(payload, BASE)

        assert shaped == {
            "backdrops": [],
            "posters": [{"aspect_ratio": 0.67, "height": 750, "width": 500, "file_path": "https://img.test/w500/p.jpg"}],
        }


class TestJikanShaping:
    """Test Jikan payload shaping."""

    def test_shape_anime(self, upstream_builders):
        shaped = shaper.shape_anime(upstream_builders["anime_record"](52991))

        assert shaped["mal_id"] == 52991
        assert shaped["mal_url"] == "https://myanimelist.net/anime/52991"
        assert shaped["images"] == ["https://cdn.test/52991.jpg", "https://cdn.test/52991l.jpg", None]
        assert shaped["trailer"] == {"yt_id": "abc", "yt_url": "https://youtube.test/abc", "embed_url": None}
        assert shaped["titles"]["japanese_title"] == "葬送のフリーレン"
        assert shaped["demographics"] == ["Shounen"]
        assert shaped["studios"] == ["Madhouse"]
        assert "background" in shaped

    def test_shape_anime_tolerates_sparse_record(self):
        shaped = shaper.shape_anime({"mal_id": 1})

        assert shaped["images"] == [None, None, None]
        assert shaped["genres"] == []

    def test_shape_staff_by_position(self):
        payload = {"data": [
            {"person": {"name": "A"}, "positions": ["Director", "Producer"]},
            {"person": {"name": "B"}, "positions": ["Producer"]},
            {"person": {"name": "C"}, "positions": ["Music"]},
        ]}

        assert shaper.shape_anime_staff(payload) == {"directors": ["A"], "producers": ["A", "B"]}

    def test_jikan_pagination_reports_requested_limit(self, upstream_builders):
        payload = upstream_builders["jikan_page"]([{}, {}], last_visible_page=4)

        assert shaper.jikan_pagination(payload, 2, 10) == {
            "current_page": 2,
            "last_visible_page": 4,
            "has_next_page": True,
            "items": {"count": 2, "total": 40, "per_page": 10},
        }


class TestPageBoundary:
    """Test the overflow check."""

    def test_page_within_range(self):
        shaper.ensure_page_in_range(3, 3, {})

    def test_page_past_last(self):
        with pytest.raises(PageOutOfRangeError) as exc_info:
            shaper.ensure_page_in_range(4, 3, {"current_page": 4})

        assert exc_info.value.to_body() == {
            "pagination": {"current_page": 4},
            "results": [],
            "message": "No results found for the requested page.",
        }

    def test_unknown_last_page_is_trusted(self):
        shaper.ensure_page_in_range(99, None, {})
