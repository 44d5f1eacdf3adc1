"""Provider adapter contract.

Every adapter implements two coroutines:

    generate(request)                      -> Submission
    check_status(task_id, polling_context) -> Outcome

``generate`` raises taxonomy errors. ``check_status`` raises only for caller
mistakes (missing credentials, malformed polling context); provider and
transport failures come back as a FAILED outcome carrying the structured
diagnostics. Adapters hold no per-task state: whatever they need to resume
polling goes into ``polling_context``.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from typing import Any, ClassVar
from urllib.parse import urlsplit

from mediagate.config import Settings, get_settings
from mediagate.schemas.generation import (
    SYNC_TASK_ID,
    GenerationMode,
    GenerationRequest,
    MediaRef,
    Outcome,
    ProviderId,
    Submission,
    TaskStatus,
)
from mediagate.services.credentials import CredentialResolver
from mediagate.services.errors import (
    ProviderRejectionError,
    TransportError,
    UnexpectedResponseShapeError,
    ValidationError,
)
from mediagate.services.http_client import CallContext, HttpClient
from mediagate.services.model_catalog import MEDIA_VIDEO, MODEL_CATALOG, ModelCatalog, ModelSpec
from mediagate.services.normalizer import validate_image_ref
from mediagate.services.redaction import redact_payload

logger = logging.getLogger(__name__)

_SUMMARY_MAX_CHARS = 200


def map_native_status(
    native: str | None,
    completed: Iterable[str],
    failed: Iterable[str],
) -> TaskStatus:
    """Map a provider status word onto the unified vocabulary.

    Anything that is neither a completed nor a failed variant is IN_PROGRESS.
    """
    if native in completed:
        return TaskStatus.COMPLETED
    if native in failed:
        return TaskStatus.FAILED
    return TaskStatus.IN_PROGRESS


def summarize_payload(payload: dict[str, Any]) -> dict[str, Any]:
    """Key fields of a request payload, safe to put in an error or a log line."""
    summary: dict[str, Any] = {}
    for key, value in redact_payload(payload).items():
        if isinstance(value, str) and len(value) > _SUMMARY_MAX_CHARS:
            value = value[:_SUMMARY_MAX_CHARS] + "..."
        summary[key] = value
    return summary


def _origin(url: str) -> tuple[str, str, int | None]:
    parts = urlsplit(url)
    try:
        port = parts.port
    except ValueError:
        port = -1
    return parts.scheme.lower(), (parts.hostname or "").lower(), port


def require_field(
    data: Any,
    path: str,
    *,
    provider: str,
    stage: str,
    endpoint: str | None = None,
    raw: Any = None,
) -> Any:
    """Walk a dotted path through nested dicts, raising if any step is absent."""
    current = data
    for part in path.split("."):
        if not isinstance(current, dict) or current.get(part) in (None, ""):
            raise UnexpectedResponseShapeError(
                provider, stage, path, endpoint=endpoint, raw=raw if raw is not None else data
            )
        current = current[part]
    return current


class ProviderAdapter(ABC):
    """Base class for all provider adapters."""

    provider_id: ClassVar[ProviderId]
    # Image-to-image strength used when the request leaves it unset.
    # None means the provider has no strength parameter.
    default_strength: ClassVar[float | None] = None
    max_reference_images: ClassVar[int] = 1

    def __init__(
        self,
        credentials: CredentialResolver,
        http: HttpClient,
        *,
        catalog: ModelCatalog | None = None,
        settings: Settings | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self._credentials = credentials.resolve(self.provider_id.value)
        self._http = http
        self._catalog = catalog or MODEL_CATALOG
        self._settings = settings or get_settings()
        self._clock = clock

    @property
    def name(self) -> str:
        return self.provider_id.value

    @property
    def configured(self) -> bool:
        return self._credentials.complete

    # ------------------------------------------------------------------
    # Public contract
    # ------------------------------------------------------------------

    async def generate(self, request: GenerationRequest) -> Submission:
        self._credentials.require()
        spec = self._validate(request)
        submission = await self._submit(request, spec)
        logger.info(
            "%s submission: task=%s status=%s images=%d (model=%s mode=%s)",
            self.name, submission.task_id, submission.status.value,
            len(submission.images) + len(submission.videos),
            spec.model_id, request.mode.value,
        )
        return submission

    async def check_status(
        self,
        task_id: str,
        polling_context: dict[str, Any] | None = None,
    ) -> Outcome:
        self._credentials.require()
        if not task_id:
            raise ValidationError("taskId is required", field="taskId", provider=self.name)
        if task_id == SYNC_TASK_ID:
            raise ValidationError(
                "Synchronous submissions are already complete; there is nothing to poll",
                field="taskId",
                provider=self.name,
            )
        try:
            outcome = await self._poll(task_id, dict(polling_context or {}))
        except (ProviderRejectionError, UnexpectedResponseShapeError, TransportError) as e:
            logger.warning("%s status check for task=%s failed: %s", self.name, task_id, e)
            return Outcome(
                task_id=task_id,
                status=TaskStatus.FAILED,
                error=e.summary,
                diagnostics=e.to_dict(),
            )
        logger.debug("%s task=%s status=%s", self.name, task_id, outcome.status.value)
        return outcome

    # ------------------------------------------------------------------
    # Provider hooks
    # ------------------------------------------------------------------

    @abstractmethod
    async def _submit(self, request: GenerationRequest, spec: ModelSpec) -> Submission:
        ...

    @abstractmethod
    async def _poll(self, task_id: str, polling_context: dict[str, Any]) -> Outcome:
        ...

    # ------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------

    def _validate(self, request: GenerationRequest) -> ModelSpec:
        if request.provider_id != self.provider_id:
            raise ValidationError(
                f"Request for {request.provider_id.value} sent to {self.name} adapter",
                field="providerId",
                provider=self.name,
            )
        spec = self._catalog.resolve(self.provider_id, request.model_id)
        spec.route_for(request.mode)
        for ref in request.reference_images:
            validate_image_ref(ref)
        if request.mask_image:
            validate_image_ref(request.mask_image, field="maskImage")
        if request.mode != GenerationMode.TEXT_TO_IMAGE and not request.reference_images:
            raise ValidationError(
                f"{request.mode.value} mode requires at least one reference image",
                field="referenceImages",
                provider=self.name,
            )
        return spec

    def _strength(self, request: GenerationRequest) -> float | None:
        return request.strength if request.strength is not None else self.default_strength

    def _trusted_url(self, url: str, base: str) -> str:
        """Return ``url`` if it targets the same origin as ``base``.

        Polling URLs come back from the caller, and the request that follows
        carries the provider credential.
        """
        if _origin(url) != _origin(base):
            logger.warning("%s rejected polling URL outside %s", self.name, _origin(base)[1])
            raise ValidationError(
                f"pollingContext URL does not point at the configured {self.name} endpoint",
                field="pollingContext",
                provider=self.name,
            )
        return url

    def _context(self, stage: str, credential: str, payload: dict[str, Any] | None = None) -> CallContext:
        return CallContext(
            provider=self.name,
            stage=stage,
            credential=credential,
            payload=summarize_payload(payload) if payload else None,
        )

    def _media(
        self,
        urls: list[str],
        *,
        stage: str,
        field: str,
        endpoint: str | None,
        raw: Any,
    ) -> list[MediaRef]:
        """Media references for a completed result; empty means a malformed response."""
        if not urls:
            raise UnexpectedResponseShapeError(self.name, stage, field, endpoint=endpoint, raw=raw)
        return [MediaRef(url=u) for u in urls]

    def _completed_outcome(self, task_id: str, media: list[MediaRef], spec_media: str = "image") -> Outcome:
        if spec_media == MEDIA_VIDEO:
            return Outcome(task_id=task_id, status=TaskStatus.COMPLETED, videos=media)
        return Outcome(task_id=task_id, status=TaskStatus.COMPLETED, images=media)

    def _rejection(
        self,
        message: str,
        *,
        stage: str,
        endpoint: str,
        http_status: int,
        credential: str,
        payload: dict[str, Any] | None,
        raw: Any,
    ) -> ProviderRejectionError:
        """Build a rejection for an embedded (2xx body) failure code."""
        return ProviderRejectionError(
            message,
            provider=self.name,
            stage=stage,
            endpoint=endpoint,
            http_status=http_status,
            credential=credential,
            payload=summarize_payload(payload) if payload else None,
            raw=raw,
        )
