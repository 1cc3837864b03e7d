"""FastAPI application entry point."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api.routes import health, stations
from .config import settings
from .errors import (
    FuelScoutError,
    HarvestError,
    InvalidOriginError,
    QueryTimeoutError,
    UpstreamUnavailableError,
)

logger = logging.getLogger(__name__)


def _status_for(exc: FuelScoutError) -> int:
    if isinstance(exc, InvalidOriginError):
        return status.HTTP_400_BAD_REQUEST
    if isinstance(exc, QueryTimeoutError):
        return status.HTTP_504_GATEWAY_TIMEOUT
    if isinstance(exc, (HarvestError, UpstreamUnavailableError)):
        return status.HTTP_503_SERVICE_UNAVAILABLE
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def fuelscout_error_handler(request: Request, exc: FuelScoutError) -> JSONResponse:
    status_code = _status_for(exc)
    if status_code >= 500:
        logger.warning(f"{request.url.path} failed: {exc}")
    # Internal causes stay in the logs; callers get the message and remediation only.
    error = f"{exc.message} {exc.remediation}".strip()
    return JSONResponse(status_code=status_code, content={"success": False, "error": error})


def create_app() -> FastAPI:
    app = FastAPI(title=settings.app_name, root_path="")
    if settings.frontend_allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(settings.frontend_allowed_origins),
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
    app.add_exception_handler(FuelScoutError, fuelscout_error_handler)

    # Root endpoint for diagnostics
    @app.get("/")
    def root():
        return {
            "service": settings.app_name,
            "status": "running",
            "api_prefix": settings.api_prefix,
            "health": f"{settings.api_prefix}/health",
            "docs": "/docs",
        }

    app.include_router(health.router, prefix=settings.api_prefix)
    app.include_router(stations.router, prefix=settings.api_prefix)
    return app


app = create_app()
