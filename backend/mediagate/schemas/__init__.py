"""Pydantic v2 schemas package."""

from mediagate.schemas.generation import (
    SYNC_TASK_ID,
    GenerationMode,
    GenerationRequest,
    MediaRef,
    Outcome,
    ProviderId,
    StatusQuery,
    Submission,
    TaskStatus,
)

__all__ = [
    "SYNC_TASK_ID",
    "GenerationMode",
    "GenerationRequest",
    "MediaRef",
    "Outcome",
    "ProviderId",
    "StatusQuery",
    "Submission",
    "TaskStatus",
]
