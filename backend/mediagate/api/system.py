"""Health endpoint: credential status per provider, optional live probe."""

from __future__ import annotations

import logging
import time
from typing import Any

import redis
from fastapi import APIRouter, Depends

from mediagate.api.deps import get_gateway, get_resolver
from mediagate.config import get_settings
from mediagate.schemas.generation import GenerationRequest, ProviderId
from mediagate.services.credentials import CredentialResolver
from mediagate.services.errors import GatewayError
from mediagate.services.gateway import GenerationGateway

logger = logging.getLogger(__name__)

router = APIRouter()

# Providers whose submit only enqueues a task, so probing them is cheap.
PROBE_PROVIDERS = (ProviderId.KLING, ProviderId.JIMENG)


def _check_redis() -> dict[str, Any]:
    """Check Redis (Celery broker) connectivity."""
    settings = get_settings()
    t0 = time.time()
    try:
        r = redis.Redis.from_url(settings.REDIS_URL, socket_timeout=3)
        ping = r.ping()
        return {
            "ok": bool(ping),
            "latency_ms": round((time.time() - t0) * 1000, 1),
        }
    except redis.RedisError as e:
        return {"ok": False, "message": str(e)}


async def _probe(gateway: GenerationGateway, provider: ProviderId) -> dict[str, Any]:
    request = GenerationRequest(provider_id=provider, prompt="test", aspect_ratio="1:1")
    try:
        submission = await gateway.submit(request)
    except GatewayError as e:
        logger.warning("Health probe for %s failed: %s", provider.value, e)
        return {"ok": False, "message": e.summary, "detail": e.to_dict()}
    return {"ok": True, "message": "submit ok", "requestId": submission.task_id}


@router.get("/health")
async def health(
    probe: bool = False,
    resolver: CredentialResolver = Depends(get_resolver),
    gateway: GenerationGateway = Depends(get_gateway),
) -> dict[str, Any]:
    """Report which providers are configured.

    With ``probe=true``, configured task-based providers also get a real
    test submission.
    """
    status = resolver.status()
    if probe:
        for provider in PROBE_PROVIDERS:
            if status[provider.value]["ok"]:
                status[provider.value] = await _probe(gateway, provider)
        status["redis"] = _check_redis()
    return {"probe": probe, "status": status}
