"""Unified generation API: submit a task, check its status."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends

from mediagate.api.deps import get_gateway
from mediagate.services.gateway import GenerationGateway, parse_generation_request, parse_status_query

logger = logging.getLogger(__name__)

router = APIRouter()


def _envelope(data: Any) -> dict[str, Any]:
    return {"code": 0, "message": "Success", "data": data}


@router.post("/generate")
async def generate(
    payload: dict[str, Any] = Body(...),
    gateway: GenerationGateway = Depends(get_gateway),
) -> dict[str, Any]:
    """Submit a generation request to the selected provider.

    Synchronous providers answer COMPLETED with images right away; the
    others answer QUEUED with a ``pollingContext`` to pass back to
    ``/status``.
    """
    request = parse_generation_request(payload)
    submission = await gateway.submit(request)
    return _envelope(submission.model_dump(by_alias=True, exclude_none=True))


@router.post("/status")
async def check_status(
    payload: dict[str, Any] = Body(...),
    gateway: GenerationGateway = Depends(get_gateway),
) -> dict[str, Any]:
    query = parse_status_query(payload)
    outcome = await gateway.check_status(query.provider_id, query.task_id, query.polling_context)
    return _envelope(outcome.model_dump(by_alias=True, exclude_none=True))
