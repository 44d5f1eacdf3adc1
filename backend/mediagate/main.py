from __future__ import annotations
"""MediaGate: FastAPI application entry point.

Builds the shared HTTP client, credential resolver and provider registry on
startup, mounts the API routes and maps gateway errors to JSON responses.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from mediagate.api.router import api_router
from mediagate.config import get_settings
from mediagate.services.credentials import CredentialResolver
from mediagate.services.errors import (
    ConfigurationError,
    GatewayError,
    ProviderRejectionError,
    TransportError,
    UnexpectedResponseShapeError,
    ValidationError,
)
from mediagate.services.gateway import GenerationGateway
from mediagate.services.http_client import HttpClient
from mediagate.services.registry import build_registry

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: tuple[tuple[type[GatewayError], int], ...] = (
    (ValidationError, 400),
    (ConfigurationError, 500),
    (ProviderRejectionError, 502),
    (UnexpectedResponseShapeError, 502),
    (TransportError, 504),
)


def http_status_for(exc: GatewayError) -> int:
    for error_cls, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_cls):
            return status_code
    return 500


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Wire resolver, HTTP client and registry once; close the client on shutdown."""
    logger.info("%s starting up...", settings.APP_NAME)
    http = HttpClient()
    resolver = CredentialResolver.from_settings(settings)
    app.state.http = http
    app.state.resolver = resolver
    app.state.gateway = GenerationGateway(build_registry(resolver, http))

    yield

    await http.aclose()
    logger.info("%s shut down", settings.APP_NAME)


app = FastAPI(
    title="MediaGate API",
    description="Unified gateway for image and video generation providers",
    version="0.1.0",
    lifespan=lifespan,
    redirect_slashes=False,
)


@app.exception_handler(GatewayError)
async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
    status_code = http_status_for(exc)
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.to_dict())
    else:
        logger.info("%s %s rejected: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status_code,
        content={"code": status_code, "message": exc.summary, "detail": exc.to_dict()},
    )


# Mount API routes
app.include_router(api_router)


@app.get("/")
async def root():
    return {"service": settings.APP_NAME, "status": "running"}
