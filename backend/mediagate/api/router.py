from __future__ import annotations
"""Master API router: mounts all sub-routers."""

from fastapi import APIRouter

from mediagate.api.generate import router as generate_router
from mediagate.api.models import router as models_router
from mediagate.api.system import router as system_router

api_router = APIRouter(prefix="/api", redirect_slashes=False)

api_router.include_router(generate_router, prefix="/v1", tags=["Generation"])
api_router.include_router(system_router, tags=["System"])
api_router.include_router(models_router, tags=["Models"])
