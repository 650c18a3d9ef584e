"""
Base service class for the Media Catalog Gateway.
"""

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from typing import Dict, Optional
import time
import os

from shared.config import ServiceConfig, get_config
from shared.logging import configure_logging, get_logger, set_request_id, set_client_ip, clear_context
from shared.metrics import get_metrics_collector
from shared.errors import (
    CatalogException,
    ValidationError,
    PageOutOfRangeError,
    RateLimitError,
    UpstreamHTTPError,
    UpstreamUnreachableError,
    RequestSetupError,
)


class BaseService:
    """Base service class with common functionality."""

    def __init__(self, service_name: str, config: Optional[ServiceConfig] = None):
        self.service_name = service_name
        self.config = config or get_config(service_name)
        self.port = self.config.port
        self.logger = get_logger(service_name)
        self.metrics = get_metrics_collector(service_name)
        self._start_time = time.time()

        # Configure logging
        configure_logging(service_name, self.config.log_level)

        # Create FastAPI app
        self.app = self._create_app()

        # Set up middleware
        self._setup_middleware()

        # Set up routes
        self._setup_routes()

    def _create_app(self) -> FastAPI:
        """Create FastAPI application."""
        return FastAPI(
            title=f"{self.service_name.title()} Service",
            description=f"Media Catalog Gateway - {self.service_name.title()} Service",
            version="1.0.0",
            docs_url="/docs" if self.config.env == "local" else None,
            redoc_url="/redoc" if self.config.env == "local" else None,
        )

    def _setup_middleware(self):
        """Set up middleware."""

        # CORS middleware
        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=self.config.cors_origins,
            allow_credentials=False,
            allow_methods=["GET", "OPTIONS"],
            allow_headers=["*"],
            expose_headers=["RateLimit-Limit", "RateLimit-Remaining", "RateLimit-Reset", "Retry-After"],
        )

        # Request timing middleware
        @self.app.middleware("http")
        async def add_request_timing(request: Request, call_next):
            start_time = time.time()
            request_id = set_request_id(request.headers.get("X-Request-ID"))
            set_client_ip(self._get_client_ip(request))

            try:
                response = await call_next(request)

                duration = time.time() - start_time

                self.metrics.record_http_request(
                    method=request.method,
                    endpoint=request.url.path,
                    status_code=response.status_code,
                    duration=duration
                )

                self.logger.info(
                    "HTTP request",
                    method=request.method,
                    path=request.url.path,
                    status_code=response.status_code,
                    duration_ms=round(duration * 1000, 2)
                )

                response.headers["X-Request-ID"] = request_id
                return response
            finally:
                clear_context()

    def _setup_routes(self):
        """Set up common routes."""

        @self.app.get("/health")
        async def health_check():
            """Health check endpoint."""
            try:
                dependencies = await self._check_dependencies()

                self.metrics.record_health_check("ok")

                return {
                    "service": self.service_name,
                    "status": "ok",
                    "uptime_seconds": self._get_uptime(),
                    "dependencies": dependencies,
                    "version": "1.0.0",
                    "commit": os.getenv("GIT_COMMIT", "unknown")
                }
            except Exception as e:
                self.logger.error("Health check failed", error=str(e))
                self.metrics.record_health_check("error")
                return JSONResponse(
                    status_code=503,
                    content={
                        "service": self.service_name,
                        "status": "error",
                        "error": str(e)
                    }
                )

        @self.app.get("/metrics")
        async def metrics_endpoint():
            """Prometheus metrics endpoint."""
            from prometheus_client import CONTENT_TYPE_LATEST
            return Response(
                content=self.metrics.export(),
                media_type=CONTENT_TYPE_LATEST
            )

        # Error handlers
        @self.app.exception_handler(ValidationError)
        async def validation_exception_handler(request: Request, exc: ValidationError):
            """Reject invalid caller input before any upstream call."""
            self.logger.warning("Validation error", message=exc.message, details=exc.details)
            self.metrics.record_error(exc.code)
            return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

        @self.app.exception_handler(PageOutOfRangeError)
        async def page_out_of_range_handler(request: Request, exc: PageOutOfRangeError):
            """Answer an overflowing page with an empty result set."""
            self.logger.info("Requested page out of range", pagination=exc.pagination)
            return JSONResponse(status_code=exc.status_code, content=exc.to_body())

        @self.app.exception_handler(RateLimitError)
        async def rate_limit_exception_handler(request: Request, exc: RateLimitError):
            """Reject callers that exhausted a rate limit window."""
            headers = {}
            retry_after = exc.details.get("retry_after")
            if retry_after is not None:
                headers["Retry-After"] = str(retry_after)
            return PlainTextResponse(exc.message, status_code=exc.status_code, headers=headers)

        @self.app.exception_handler(UpstreamHTTPError)
        async def upstream_http_exception_handler(request: Request, exc: UpstreamHTTPError):
            """Propagate the upstream status with a generic message."""
            self.logger.error(
                "API error",
                service=exc.service,
                status_code=exc.status_code,
                body=exc.body,
            )
            self.metrics.record_error(exc.code, exc.service)
            return PlainTextResponse("Error fetching data from API.", status_code=exc.status_code)

        @self.app.exception_handler(UpstreamUnreachableError)
        async def upstream_unreachable_handler(request: Request, exc: UpstreamUnreachableError):
            """Upstream never answered."""
            self.logger.error("No response received from API", message=exc.message, details=exc.details)
            self.metrics.record_error(exc.code, exc.service)
            return PlainTextResponse("No response received from API.", status_code=500)

        @self.app.exception_handler(RequestSetupError)
        async def request_setup_exception_handler(request: Request, exc: RequestSetupError):
            """Upstream request could not be built."""
            self.logger.error("Upstream request setup failed", message=exc.message, details=exc.details)
            self.metrics.record_error(exc.code, exc.service)
            return PlainTextResponse("Internal Server Error.", status_code=500)

        @self.app.exception_handler(CatalogException)
        async def catalog_exception_handler(request: Request, exc: CatalogException):
            """Handle any other CatalogException."""
            self.logger.error(
                "Catalog error",
                code=exc.code,
                message=exc.message,
                details=exc.details
            )
            self.metrics.record_error(exc.code)
            return JSONResponse(
                status_code=exc.status_code,
                content=exc.to_response().model_dump()
            )

        @self.app.exception_handler(Exception)
        async def general_exception_handler(request: Request, exc: Exception):
            """Handle general exceptions."""
            self.logger.error("Unhandled exception", error=str(exc), exc_info=True)
            self.metrics.record_error("INTERNAL_ERROR")
            return PlainTextResponse("Internal Server Error.", status_code=500)

    def _get_client_ip(self, request: Request) -> str:
        """Extract the caller IP from standard headers."""
        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()
        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            return real_ip
        if request.client:
            return request.client.host
        return "unknown"

    async def _check_dependencies(self) -> Dict[str, str]:
        """Check service dependencies. Override in subclasses."""
        return {}

    def _get_uptime(self) -> float:
        """Get service uptime in seconds."""
        return time.time() - self._start_time

    def run(self):
        """Run the service."""
        import uvicorn
        uvicorn.run(
            self.app,
            host=self.config.host,
            port=self.config.port,
            log_level=self.config.log_level.lower()
        )
