"""
Shared error handling for the Media Catalog Gateway.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response format."""

    code: str
    message: str
    details: Dict[str, Any] = {}


class CatalogException(Exception):
    """Base exception for catalog gateway errors."""

    status_code: int = 500

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            code=self.code,
            message=self.message,
            details=self.details
        )


class ValidationError(CatalogException):
    """A caller-supplied parameter is outside its allow-list."""

    status_code = 400

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class MissingQueryError(ValidationError):
    """Search endpoint called without its required query."""

    def __init__(self, details: Optional[Dict[str, Any]] = None):
        super().__init__("No query provided!", details)


class PageOutOfRangeError(CatalogException):
    """Requested page lies past the upstream's last valid page."""

    status_code = 404
    MESSAGE = "No results found for the requested page."

    def __init__(self, pagination: Dict[str, Any]):
        super().__init__("PAGE_OUT_OF_RANGE", self.MESSAGE, {"pagination": pagination})
        self.pagination = pagination

    def to_body(self) -> Dict[str, Any]:
        """Body returned to the caller in place of an out-of-range page."""
        return {"pagination": self.pagination, "results": [], "message": self.message}


class RateLimitError(CatalogException):
    """Rate limiting errors."""

    status_code = 429

    def __init__(self, message: str = "Rate limit exceeded", details: Optional[Dict[str, Any]] = None):
        super().__init__("RATE_LIMIT_ERROR", message, details)


class ExternalServiceError(CatalogException):
    """Base class for failures talking to an upstream catalog."""

    def __init__(self, service: str, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(code, f"{service}: {message}", details)
        self.service = service


class UpstreamHTTPError(ExternalServiceError):
    """Upstream answered with a non-2xx status."""

    def __init__(self, service: str, status_code: int, body: str = "", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            service,
            "UPSTREAM_HTTP_ERROR",
            f"Unexpected status {status_code}",
            {"status_code": status_code, "body": body, **(details or {})},
        )
        self.status_code = status_code
        self.body = body


class UpstreamUnreachableError(ExternalServiceError):
    """No response was received from the upstream (network error or timeout)."""

    status_code = 500

    def __init__(self, service: str, message: str = "No response received", details: Optional[Dict[str, Any]] = None):
        super().__init__(service, "UPSTREAM_UNREACHABLE", message, details)


class RequestSetupError(ExternalServiceError):
    """The upstream request could not be built before dispatch."""

    status_code = 500

    def __init__(self, service: str, message: str = "Malformed upstream request", details: Optional[Dict[str, Any]] = None):
        super().__init__(service, "REQUEST_SETUP_ERROR", message, details)
