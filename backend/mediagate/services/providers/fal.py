"""Fal queue provider (Flux / SDXL).

Submissions go to ``{FAL_QUEUE_BASE}/{endpoint}``; the endpoint depends on
model and mode. The queue answers with ``status_url`` and ``response_url``,
which travel in the polling context.
"""

from __future__ import annotations

import logging
from typing import Any

from mediagate.schemas.generation import (
    SYNC_TASK_ID,
    GenerationMode,
    GenerationRequest,
    Outcome,
    ProviderId,
    Submission,
    TaskStatus,
)
from mediagate.services.errors import ValidationError
from mediagate.services.model_catalog import ModelSpec
from mediagate.services.normalizer import size_bucket
from mediagate.services.providers.base import ProviderAdapter, map_native_status, require_field
from mediagate.services.signing import SignableRequest, StaticKeySigner

logger = logging.getLogger(__name__)

COMPLETED_STATES = ("COMPLETED",)
FAILED_STATES = ("FAILED", "ERROR")

# Inference defaults per model family
_FAMILY_DEFAULTS: dict[str, dict[str, Any]] = {
    "flux": {"num_inference_steps": 28, "guidance_scale": 3.5},
    "sdxl": {"num_inference_steps": 30, "guidance_scale": 7.5},
}


def extract_image_urls(data: Any) -> list[str]:
    """Image URLs from a Fal result payload (``images``, ``image`` or ``output``)."""
    if not isinstance(data, dict):
        return []
    for key in ("images", "image", "output"):
        item = data.get(key)
        if isinstance(item, dict):
            item = [item]
        if isinstance(item, list):
            urls = [img["url"] for img in item if isinstance(img, dict) and img.get("url")]
            if urls:
                return urls
    return []


class FalAdapter(ProviderAdapter):
    provider_id = ProviderId.FAL
    default_strength = 0.85
    max_reference_images = 1

    def __init__(self, credentials, http, **kwargs: Any):
        super().__init__(credentials, http, **kwargs)
        self._signer = StaticKeySigner(self._credentials.values.get("FAL_KEY", ""), scheme="Key")

    def _headers(self, method: str, url: str) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            **self._signer.sign(SignableRequest.from_url(method, url)),
        }

    def build_payload(self, request: GenerationRequest, spec: ModelSpec) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "prompt": request.prompt,
            "image_size": size_bucket(request.aspect_ratio),
            "enable_safety_checker": False,
            **_FAMILY_DEFAULTS.get(spec.native_model, {}),
        }
        if request.batch_size > 1:
            payload["num_images"] = request.batch_size
        if request.mode == GenerationMode.IMAGE_TO_IMAGE:
            payload["image_url"] = request.reference_images[0]
            payload["strength"] = self._strength(request)
        elif request.mode == GenerationMode.INPAINTING:
            payload["image_url"] = request.reference_images[0]
            payload["mask_url"] = request.mask_image
        return payload

    async def _submit(self, request: GenerationRequest, spec: ModelSpec) -> Submission:
        endpoint = f"{self._settings.FAL_QUEUE_BASE.rstrip('/')}/{spec.route_for(request.mode)}"
        payload = self.build_payload(request, spec)
        context = self._context("submit", self._signer.identity(), payload)

        resp = await self._http.post(
            endpoint,
            context=context,
            headers=self._headers("POST", endpoint),
            json_body=payload,
            timeout=self._settings.FAL_SUBMIT_TIMEOUT,
            retries=self._settings.SUBMIT_RETRIES,
        )
        data = resp.data

        # Some endpoints answer synchronously with the result itself
        urls = extract_image_urls(data)
        if urls:
            task_id = data.get("request_id") or SYNC_TASK_ID
            return Submission(
                task_id=str(task_id),
                status=TaskStatus.COMPLETED,
                images=self._media(urls, stage="submit", field="images", endpoint=endpoint, raw=data),
            )

        request_id = require_field(data, "request_id", provider=self.name, stage="submit", endpoint=endpoint)
        status_url = require_field(data, "status_url", provider=self.name, stage="submit", endpoint=endpoint)
        return Submission(
            task_id=str(request_id),
            status=TaskStatus.QUEUED,
            polling_context={
                "status_url": status_url,
                "response_url": data.get("response_url"),
                "endpoint": endpoint,
            },
        )

    async def _poll(self, task_id: str, polling_context: dict[str, Any]) -> Outcome:
        status_url = polling_context.get("status_url")
        if not status_url:
            if not self._settings.FAL_LEGACY_STATUS_PROBE:
                raise ValidationError(
                    "pollingContext.status_url is required to check a Fal task",
                    field="pollingContext",
                    provider=self.name,
                )
            return await self._legacy_probe_status(task_id)

        queue_base = self._settings.FAL_QUEUE_BASE
        status_url = self._trusted_url(status_url, queue_base)
        if polling_context.get("response_url"):
            self._trusted_url(polling_context["response_url"], queue_base)
        resp = await self._http.get(
            status_url,
            context=self._context("status", self._signer.identity()),
            headers=self._headers("GET", status_url),
            retries=self._settings.STATUS_RETRIES,
        )
        data = resp.data
        native = require_field(data, "status", provider=self.name, stage="status", endpoint=status_url)
        status = map_native_status(native, COMPLETED_STATES, FAILED_STATES)

        if status == TaskStatus.FAILED:
            return Outcome(
                task_id=task_id,
                status=TaskStatus.FAILED,
                error=f"Fal task {native}: {data.get('error') or 'no detail'}",
                diagnostics={"provider": self.name, "endpoint": status_url, "raw": data},
            )
        if status != TaskStatus.COMPLETED:
            return Outcome(task_id=task_id, status=TaskStatus.IN_PROGRESS)

        # The status payload rarely includes the images; the result lives at response_url.
        urls = extract_image_urls(data)
        result_url = data.get("response_url") or polling_context.get("response_url")
        if not urls and result_url:
            result_url = self._trusted_url(result_url, queue_base)
            result = await self._http.get(
                result_url,
                context=self._context("result", self._signer.identity()),
                headers=self._headers("GET", result_url),
                retries=self._settings.STATUS_RETRIES,
            )
            data = result.body
            status_url = result_url
        urls = extract_image_urls(data)
        return self._completed_outcome(
            task_id,
            self._media(urls, stage="result", field="images", endpoint=status_url, raw=data),
        )

    # ------------------------------------------------------------------
    # Legacy compatibility
    # ------------------------------------------------------------------

    async def _legacy_probe_status(self, task_id: str) -> Outcome:
        """LEGACY: callers that lost the polling context.

        Probes the generic queue status URL. Enabled only through
        FAL_LEGACY_STATUS_PROBE.
        """
        base = self._settings.FAL_QUEUE_BASE.rstrip("/")
        logger.warning("Fal legacy status probe for task=%s (no polling context)", task_id)
        return await self._poll(
            task_id,
            {
                "status_url": f"{base}/requests/{task_id}/status",
                "response_url": f"{base}/requests/{task_id}",
            },
        )
