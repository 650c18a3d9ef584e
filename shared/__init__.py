"""
Shared utilities for the Media Catalog Gateway.

This package aggregates common building blocks consumed by the service:

- config: Service configuration via pydantic-settings
- logging: Structured logging with request correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- base_service: FastAPI application scaffolding

Any cross-cutting logic should live here to avoid import cycles across
service packages. Do not import from service_* packages into shared/.
"""
