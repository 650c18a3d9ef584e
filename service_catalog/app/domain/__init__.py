"""
Domain utilities for the Catalog Gateway.

Includes the declarative endpoint table, parameter validation and the
generic request pipeline that ties caching, fan-out and shaping together.
"""

from .pipeline import CatalogPipeline

__all__ = [
    "CatalogPipeline",
]
