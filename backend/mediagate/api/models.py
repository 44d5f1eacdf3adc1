"""Model catalog API."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter

from mediagate.schemas.generation import ProviderId
from mediagate.services.model_catalog import MODEL_CATALOG

router = APIRouter()


@router.get("/models")
async def list_models(provider: ProviderId | None = None) -> dict[str, Any]:
    """List supported models, optionally for one provider."""
    models = MODEL_CATALOG.to_dict_list(provider)
    return {
        "models": models,
        "providers": MODEL_CATALOG.list_providers(),
        "total": len(models),
    }
