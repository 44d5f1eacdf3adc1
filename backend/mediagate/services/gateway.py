"""Single entry point for callers: parse, dispatch, submit, check status."""

from __future__ import annotations

import logging
from typing import Any

import pydantic

from mediagate.schemas.generation import GenerationRequest, Outcome, ProviderId, StatusQuery, Submission
from mediagate.services.errors import ValidationError
from mediagate.services.redaction import describe_image_ref
from mediagate.services.registry import ProviderRegistry

logger = logging.getLogger(__name__)


def _field_name(loc: tuple[Any, ...]) -> str | None:
    return ".".join(str(part) for part in loc) if loc else None


def _convert(exc: pydantic.ValidationError) -> ValidationError:
    first = exc.errors()[0]
    message = first.get("msg", "invalid request")
    if message.startswith("Value error, "):
        message = message[len("Value error, "):]
    return ValidationError(message, field=_field_name(tuple(first.get("loc", ()))))


def parse_generation_request(data: dict[str, Any]) -> GenerationRequest:
    """Build a request from wire JSON, raising the gateway ValidationError."""
    try:
        return GenerationRequest.model_validate(data)
    except pydantic.ValidationError as e:
        raise _convert(e) from None


def parse_status_query(data: dict[str, Any]) -> StatusQuery:
    try:
        return StatusQuery.model_validate(data)
    except pydantic.ValidationError as e:
        raise _convert(e) from None


class GenerationGateway:
    """Routes requests to the adapter registered for their provider."""

    def __init__(self, registry: ProviderRegistry):
        self.registry = registry

    async def submit(self, request: GenerationRequest | dict[str, Any]) -> Submission:
        if not isinstance(request, GenerationRequest):
            request = parse_generation_request(request)
        adapter = self.registry.get(request.provider_id)
        logger.info(
            "Generate request: provider=%s model=%s mode=%s refs=%s",
            request.provider_id.value, request.model_id or "<default>",
            request.mode.value, [describe_image_ref(r) for r in request.reference_images],
        )
        return await adapter.generate(request)

    async def check_status(
        self,
        provider_id: ProviderId | str,
        task_id: str,
        polling_context: dict[str, Any] | None = None,
    ) -> Outcome:
        adapter = self.registry.get(provider_id)
        return await adapter.check_status(task_id, polling_context)
