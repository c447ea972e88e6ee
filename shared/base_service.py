"""
FastAPI service skeleton shared by Static Token Gate services.
"""

import os
import time
from typing import Any, Dict, Optional, Type

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST

from shared.config import ServiceConfig, get_config
from shared.errors import (
    AccessLayerException,
    AuthenticationError,
    AuthorizationError,
    ConfigurationError,
    ExternalServiceError,
)
from shared.logging import configure_logging, get_logger
from shared.metrics import get_metrics_collector

SERVICE_VERSION = "1.0.0"

# Checked in order; the first matching base class decides the status.
ERROR_STATUS_CODES: Dict[Type[AccessLayerException], int] = {
    AuthenticationError: 401,
    AuthorizationError: 403,
    ExternalServiceError: 502,
    ConfigurationError: 500,
}


def status_code_for(exc: AccessLayerException) -> int:
    for error_type, status_code in ERROR_STATUS_CODES.items():
        if isinstance(exc, error_type):
            return status_code
    return 400


class BaseService:
    """Owns the FastAPI app, logging, metrics and the common routes."""

    def __init__(self, service_name: str, port: int, config: Optional[ServiceConfig] = None):
        self.service_name = service_name
        self.port = port
        self.config = config or get_config(service_name, port)

        configure_logging(service_name, self.config.log_level)
        self.logger = get_logger(service_name)
        self.metrics = get_metrics_collector(service_name)
        self._started_at = time.monotonic()

        self.app = self._create_app()
        self._setup_middleware()
        self._setup_routes()

    def _create_app(self) -> FastAPI:
        local = self.config.env == "local"
        return FastAPI(
            title=f"{self.service_name.replace('_', ' ').title()} Service",
            version=SERVICE_VERSION,
            docs_url="/docs" if local else None,
            redoc_url="/redoc" if local else None,
        )

    def _setup_middleware(self):
        """Record duration and status of every request that reaches the app."""

        @self.app.middleware("http")
        async def record_request(request: Request, call_next):
            started = time.perf_counter()
            response = await call_next(request)
            duration = time.perf_counter() - started

            self.metrics.record_http_request(
                method=request.method,
                endpoint=request.url.path,
                status_code=response.status_code,
                duration=duration,
            )
            self.logger.info(
                "HTTP request",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round(duration * 1000, 2),
            )
            return response

    def _setup_routes(self):
        """Set up /health, /metrics and the error handler."""

        @self.app.get("/health")
        async def health_check():
            try:
                dependencies = await self._check_dependencies()
            except Exception as e:
                self.logger.error("Health check failed", error=str(e))
                self.metrics.record_health_check("error")
                return JSONResponse(
                    status_code=503,
                    content={"service": self.service_name, "status": "error", "error": str(e)},
                )

            self.metrics.record_health_check("ok")
            return self._health_payload(dependencies)

        @self.app.get("/metrics")
        async def metrics_endpoint():
            return Response(content=self.metrics.export(), media_type=CONTENT_TYPE_LATEST)

        @self.app.exception_handler(AccessLayerException)
        async def access_layer_exception_handler(request: Request, exc: AccessLayerException):
            status_code = status_code_for(exc)
            log = self.logger.error if status_code >= 500 else self.logger.warning
            log(
                "Request failed",
                path=request.url.path,
                code=exc.code,
                message=exc.message,
                status_code=status_code,
            )
            self.metrics.record_error(exc.code)
            return JSONResponse(status_code=status_code, content=exc.to_response().model_dump())

    def _health_payload(self, dependencies: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "service": self.service_name,
            "status": "ok",
            "uptime_seconds": round(time.monotonic() - self._started_at, 3),
            "dependencies": dependencies,
            "version": SERVICE_VERSION,
            "commit": os.getenv("GIT_COMMIT", "unknown"),
        }

    async def _check_dependencies(self) -> Dict[str, Any]:
        """Report dependency status for /health. Override in subclasses."""
        return {}

    def run(self):
        """Serve the app with uvicorn."""
        import uvicorn

        uvicorn.run(
            self.app,
            host=self.config.host,
            port=self.config.port,
            log_level=self.config.log_level.lower(),
        )
