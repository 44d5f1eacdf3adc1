from __future__ import annotations
"""Pydantic v2 schemas for the unified generation contract."""

import enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

SYNC_TASK_ID = "sync-response"


class ProviderId(str, enum.Enum):
    FAL = "FAL"
    KLING = "KLING"
    JIMENG = "JIMENG"
    ARK = "ARK"
    ARK_VIDEO = "ARK_VIDEO"


class GenerationMode(str, enum.Enum):
    TEXT_TO_IMAGE = "text-to-image"
    IMAGE_TO_IMAGE = "image-to-image"
    INPAINTING = "inpainting"


class TaskStatus(str, enum.Enum):
    """Unified task lifecycle: QUEUED -> IN_PROGRESS -> COMPLETED | FAILED."""

    QUEUED = "QUEUED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.COMPLETED, TaskStatus.FAILED)

    def can_transition_to(self, new: TaskStatus) -> bool:
        if self.is_terminal:
            return new == self
        return _STATUS_RANK[new] >= _STATUS_RANK[self]


_STATUS_RANK = {
    TaskStatus.QUEUED: 0,
    TaskStatus.IN_PROGRESS: 1,
    TaskStatus.COMPLETED: 2,
    TaskStatus.FAILED: 2,
}


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MediaRef(_CamelModel):
    """A generated image or video, always by URL."""

    url: str


class GenerationRequest(_CamelModel):
    """Provider-agnostic generation request. Immutable once issued."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    prompt: str
    provider_id: ProviderId
    model_id: str = ""
    mode: GenerationMode = GenerationMode.TEXT_TO_IMAGE
    aspect_ratio: str | None = None
    reference_images: tuple[str, ...] = ()
    mask_image: str | None = None
    strength: float | None = Field(default=None, ge=0.0, le=1.0)
    batch_size: int = Field(default=1, ge=1, le=9)
    duration: int | None = Field(default=None, ge=1, le=60)

    @field_validator("prompt")
    @classmethod
    def _prompt_not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("prompt must not be empty")
        return v

    @field_validator("reference_images", mode="before")
    @classmethod
    def _drop_blank_refs(cls, v: Any) -> Any:
        if v is None:
            return ()
        return tuple(item for item in v if item)

    @model_validator(mode="after")
    def _mask_for_inpainting(self) -> GenerationRequest:
        if self.mode == GenerationMode.INPAINTING:
            if not self.mask_image:
                raise ValueError("inpainting mode requires maskImage")
            if not self.reference_images:
                raise ValueError("inpainting mode requires a source image in referenceImages")
        return self


class Submission(_CamelModel):
    """Adapter output of ``generate``."""

    task_id: str
    status: TaskStatus
    polling_context: dict[str, Any] | None = None
    images: list[MediaRef] = Field(default_factory=list)
    videos: list[MediaRef] = Field(default_factory=list)
    error: str | None = None

    @property
    def needs_polling(self) -> bool:
        return not self.status.is_terminal


class Outcome(_CamelModel):
    """Adapter output of ``check_status``."""

    task_id: str
    status: TaskStatus
    images: list[MediaRef] = Field(default_factory=list)
    videos: list[MediaRef] = Field(default_factory=list)
    error: str | None = None
    diagnostics: dict[str, Any] | None = None


class StatusQuery(_CamelModel):
    """Body of ``POST /api/v1/status``."""

    provider_id: ProviderId
    task_id: str = Field(min_length=1)
    polling_context: dict[str, Any] | None = None
