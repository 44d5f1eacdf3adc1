"""Volcengine Ark (Doubao Seedream) image provider.

Synchronous: the submit call returns the final image URLs, so the
submission is COMPLETED with the ``sync-response`` task id and there is
nothing to poll. Batches use sequential generation; items that failed are
dropped and the rest returned (partial success).
"""

from __future__ import annotations

import logging
from typing import Any

from mediagate.schemas.generation import (
    SYNC_TASK_ID,
    GenerationRequest,
    Outcome,
    ProviderId,
    Submission,
    TaskStatus,
)
from mediagate.services.errors import ValidationError
from mediagate.services.model_catalog import ModelSpec
from mediagate.services.normalizer import cap_references, pixel_size
from mediagate.services.providers.base import ProviderAdapter
from mediagate.services.signing import SignableRequest, StaticKeySigner

logger = logging.getLogger(__name__)


class ArkImageAdapter(ProviderAdapter):
    provider_id = ProviderId.ARK
    default_strength = 0.65
    max_reference_images = 3

    def __init__(self, credentials, http, **kwargs: Any):
        super().__init__(credentials, http, **kwargs)
        self._signer = StaticKeySigner(self._credentials.values.get("ARK_API_KEY", ""))

    def build_payload(self, request: GenerationRequest, spec: ModelSpec) -> dict[str, Any]:
        width, height = pixel_size(request.aspect_ratio)
        payload: dict[str, Any] = {
            "model": spec.native_model,
            "prompt": request.prompt,
            "size": f"{width}x{height}",
            "response_format": "url",
            "watermark": False,
        }
        refs = cap_references(request.reference_images, self.max_reference_images, provider=self.name)
        if refs:
            payload["image"] = refs[0] if len(refs) == 1 else refs
            payload["strength"] = self._strength(request)
        if request.batch_size > 1:
            payload["sequential_image_generation"] = "auto"
            payload["sequential_image_generation_options"] = {"max_images": request.batch_size}
        else:
            payload["sequential_image_generation"] = "disabled"
        return payload

    async def _submit(self, request: GenerationRequest, spec: ModelSpec) -> Submission:
        endpoint = f"{self._settings.ARK_ENDPOINT.rstrip('/')}/{spec.route_for(request.mode)}"
        payload = self.build_payload(request, spec)
        resp = await self._http.post(
            endpoint,
            context=self._context("submit", self._signer.identity(), payload),
            headers={
                "Content-Type": "application/json",
                **self._signer.sign(SignableRequest.from_url("POST", endpoint)),
            },
            json_body=payload,
            timeout=self._settings.ARK_IMAGE_TIMEOUT,
            retries=self._settings.SUBMIT_RETRIES,
        )
        body = resp.data
        items = body.get("data") if isinstance(body.get("data"), list) else []
        urls = [item["url"] for item in items if isinstance(item, dict) and item.get("url")]
        failed = [item["error"] for item in items if isinstance(item, dict) and item.get("error")]

        if not urls and failed:
            raise self._rejection(
                f"Ark image generation failed: {failed[0].get('message') or failed[0]}",
                stage="submit",
                endpoint=endpoint,
                http_status=resp.status_code,
                credential=self._signer.identity(),
                payload=payload,
                raw=body,
            )
        if failed:
            logger.warning(
                "Ark returned %d image(s), %d failed (requested %d)",
                len(urls), len(failed), request.batch_size,
            )

        return Submission(
            task_id=SYNC_TASK_ID,
            status=TaskStatus.COMPLETED,
            images=self._media(urls, stage="submit", field="data[].url", endpoint=endpoint, raw=body),
        )

    async def _poll(self, task_id: str, polling_context: dict[str, Any]) -> Outcome:
        raise ValidationError(
            "Ark image generation is synchronous; there is no task to poll",
            field="taskId",
            provider=self.name,
        )
