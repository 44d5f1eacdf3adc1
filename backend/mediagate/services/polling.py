"""Caller-side poll loop.

Polls ``check_status`` on a fixed interval until the task reaches a
terminal status or the wall-clock budget runs out. Synchronous
submissions return immediately without a single status call.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

from mediagate.config import get_settings
from mediagate.schemas.generation import Outcome, ProviderId, Submission, TaskStatus
from mediagate.services.gateway import GenerationGateway
from mediagate.services.model_catalog import MEDIA_VIDEO, MODEL_CATALOG

logger = logging.getLogger(__name__)


def outcome_from_submission(submission: Submission) -> Outcome:
    return Outcome(
        task_id=submission.task_id,
        status=submission.status,
        images=list(submission.images),
        videos=list(submission.videos),
        error=submission.error,
    )


def default_max_wait(provider_id: ProviderId | str, model_id: str | None = None) -> float:
    """Wait budget for the media type of the submitted model."""
    settings = get_settings()
    spec = MODEL_CATALOG.resolve(ProviderId(provider_id), model_id)
    if spec.media == MEDIA_VIDEO:
        return settings.POLL_MAX_WAIT_VIDEO
    return settings.POLL_MAX_WAIT_IMAGE


def advance(current: TaskStatus, reported: TaskStatus) -> TaskStatus:
    """Apply a reported status, ignoring any backwards move."""
    if current.can_transition_to(reported):
        return reported
    logger.debug("Ignoring status regression %s -> %s", current.value, reported.value)
    return current


async def poll_until_terminal(
    gateway: GenerationGateway,
    provider_id: ProviderId | str,
    submission: Submission,
    *,
    model_id: str | None = None,
    interval: float | None = None,
    max_wait: float | None = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> Outcome:
    """Poll until COMPLETED or FAILED.

    Returns the terminal outcome, or the last non-terminal one when
    ``max_wait`` seconds elapse first. Callers check ``status.is_terminal``.
    Without ``max_wait`` the budget follows the media type of ``model_id``.
    """
    if not submission.needs_polling:
        return outcome_from_submission(submission)

    provider = ProviderId(provider_id)

    interval = interval if interval is not None else get_settings().POLL_INTERVAL
    max_wait = max_wait if max_wait is not None else default_max_wait(provider, model_id)
    deadline = clock() + max_wait

    status = submission.status
    outcome = outcome_from_submission(submission)
    polls = 0
    while True:
        if clock() >= deadline:
            logger.warning(
                "Gave up polling %s task=%s after %.0fs (%d polls, last status %s)",
                provider.value, submission.task_id, max_wait, polls, status.value,
            )
            return outcome.model_copy(update={"status": status})

        await sleep(interval)
        outcome = await gateway.check_status(provider, submission.task_id, submission.polling_context)
        polls += 1
        status = advance(status, outcome.status)
        if status.is_terminal:
            logger.info(
                "%s task=%s finished %s after %d poll(s)",
                provider.value, submission.task_id, status.value, polls,
            )
            return outcome
