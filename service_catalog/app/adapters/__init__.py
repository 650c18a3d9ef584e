"""
Adapters package for the Catalog Gateway.

Contains HTTP client wrappers for the upstream catalogs and the poster
palette deriver. These adapters encapsulate:

- Base URLs, auth headers and request shapes
- Outbound throttling shared by every call to one upstream
- Error handling that maps to shared errors

Keep adapters thin and side-effect free outside of explicit calls.
"""

from .upstream_client import UpstreamClient
from .tmdb_client import TMDBClient
from .jikan_client import JikanClient
from .palette import PaletteExtractor

__all__ = [
    "UpstreamClient",
    "TMDBClient",
    "JikanClient",
    "PaletteExtractor",
]
