from __future__ import annotations
"""Celery tasks for background generation.

``submit_generation_task`` submits a request and, for task-based providers,
hands the task to ``poll_generation_task``. Each poll invocation checks the
status once and re-schedules itself with a countdown until the task is
terminal or the wait budget is spent. All state travels in the task
arguments (JSON), so polling survives worker restarts.
"""

import logging
import time
from functools import lru_cache
from typing import Any

from celery import shared_task

from mediagate.config import get_settings
from mediagate.schemas.generation import Outcome, ProviderId
from mediagate.services.credentials import CredentialResolver
from mediagate.services.gateway import GenerationGateway, parse_generation_request
from mediagate.services.http_client import HttpClient
from mediagate.services.polling import default_max_wait
from mediagate.services.registry import build_registry
from mediagate.tasks import run_async

logger = logging.getLogger(__name__)
settings = get_settings()


@lru_cache
def get_worker_gateway() -> GenerationGateway:
    """One gateway per worker process, bound to the worker's event loop."""
    http = HttpClient()
    return GenerationGateway(build_registry(CredentialResolver.from_settings(settings), http))


async def _poll_once(
    gateway: GenerationGateway,
    provider_id: str,
    task_id: str,
    polling_context: dict[str, Any] | None,
) -> Outcome:
    return await gateway.check_status(provider_id, task_id, polling_context)


@shared_task(bind=True, max_retries=0)
def submit_generation_task(self, request_payload: dict[str, Any]) -> dict[str, Any]:
    """Submit a request; schedule background polling when the provider is task-based."""
    request = parse_generation_request(request_payload)
    submission = run_async(get_worker_gateway().submit(request))
    logger.info(
        "Background submission %s task=%s status=%s",
        request.provider_id.value, submission.task_id, submission.status.value,
    )
    if submission.needs_polling:
        poll_generation_task.apply_async(
            kwargs={
                "provider_id": request.provider_id.value,
                "task_id": submission.task_id,
                "polling_context": submission.polling_context,
                "started_at": time.time(),
                "max_wait": default_max_wait(request.provider_id, request.model_id),
            },
            countdown=settings.POLL_INTERVAL,
        )
    return submission.model_dump(mode="json", by_alias=True, exclude_none=True)


@shared_task(bind=True, max_retries=0)
def poll_generation_task(
    self,
    provider_id: str,
    task_id: str,
    polling_context: dict[str, Any] | None = None,
    started_at: float | None = None,
    max_wait: float | None = None,
) -> dict[str, Any]:
    """Check one task once; re-schedule until COMPLETED, FAILED or out of time."""
    started_at = started_at if started_at is not None else time.time()
    max_wait = max_wait if max_wait is not None else default_max_wait(ProviderId(provider_id))

    outcome = run_async(_poll_once(get_worker_gateway(), provider_id, task_id, polling_context))
    result = outcome.model_dump(mode="json", by_alias=True, exclude_none=True)

    if outcome.status.is_terminal:
        logger.info("Background poll %s task=%s finished %s", provider_id, task_id, outcome.status.value)
        return result

    elapsed = time.time() - started_at
    if elapsed >= max_wait:
        logger.warning(
            "Background poll %s task=%s still %s after %.0fs, giving up",
            provider_id, task_id, outcome.status.value, elapsed,
        )
        return {**result, "timedOut": True}

    poll_generation_task.apply_async(
        kwargs={
            "provider_id": provider_id,
            "task_id": task_id,
            "polling_context": polling_context,
            "started_at": started_at,
            "max_wait": max_wait,
        },
        countdown=settings.POLL_INTERVAL,
    )
    return {**result, "rescheduled": True}
