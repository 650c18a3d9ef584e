"""
Catalog Gateway Service package for the Media Catalog Gateway.

The gateway fronts the movie/TV catalog (TMDB) and the anime catalog
(Jikan), enforcing:
- Rate limiting: stacked fixed windows per upstream, keyed by caller IP
- Caching: shaped responses stored with a TTL
- Fan-out aggregation with partial-failure tolerance

Structure:
- app.main: FastAPI app, routes, and middleware wiring.
- app.adapters: HTTP clients for the upstream catalogs and artwork.
- app.caching: Cache stores and the cache manager.
- app.ratelimit: Inbound window limiter and outbound throttle.
- app.aggregation: Concurrent sub-fetch merging.
- app.shaping: Upstream-to-output field mapping.
- app.domain: Endpoint table, parameter validation and the request pipeline.
"""
