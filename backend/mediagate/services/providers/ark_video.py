"""Volcengine Ark (Doubao Seedance) video provider.

Async task API at ``{ARK_ENDPOINT}/contents/generations/tasks``. Reference
images become the first (and optionally last) frame, inline-encoded as
data URIs. Results come back as ``content.video_url``.
"""

from __future__ import annotations

import logging
from typing import Any

from mediagate.schemas.generation import GenerationRequest, Outcome, ProviderId, Submission, TaskStatus
from mediagate.services.model_catalog import MEDIA_VIDEO, ModelSpec
from mediagate.services.normalizer import cap_references, to_data_url
from mediagate.services.providers.base import ProviderAdapter, map_native_status, require_field
from mediagate.services.signing import SignableRequest, StaticKeySigner

logger = logging.getLogger(__name__)

COMPLETED_STATES = ("succeeded",)
FAILED_STATES = ("failed", "expired", "cancelled")

DEFAULT_DURATION = 5
_FRAME_ROLES = ("first_frame", "last_frame")


class ArkVideoAdapter(ProviderAdapter):
    provider_id = ProviderId.ARK_VIDEO
    max_reference_images = 2

    def __init__(self, credentials, http, **kwargs: Any):
        super().__init__(credentials, http, **kwargs)
        self._signer = StaticKeySigner(self._credentials.values.get("ARK_API_KEY", ""))

    def _headers(self, method: str, url: str) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            **self._signer.sign(SignableRequest.from_url(method, url)),
        }

    async def build_payload(self, request: GenerationRequest, spec: ModelSpec) -> dict[str, Any]:
        content: list[dict[str, Any]] = [{"type": "text", "text": request.prompt}]
        frames = cap_references(request.reference_images, self.max_reference_images, provider=self.name)
        for role, ref in zip(_FRAME_ROLES, frames):
            content.append({
                "type": "image_url",
                "image_url": {"url": await to_data_url(ref, self._http)},
                "role": role,
            })
        return {
            "model": spec.native_model,
            "content": content,
            "ratio": request.aspect_ratio or "adaptive",
            "duration": request.duration or DEFAULT_DURATION,
            "watermark": False,
        }

    async def _submit(self, request: GenerationRequest, spec: ModelSpec) -> Submission:
        endpoint = f"{self._settings.ARK_ENDPOINT.rstrip('/')}/{spec.route_for(request.mode)}"
        payload = await self.build_payload(request, spec)
        resp = await self._http.post(
            endpoint,
            context=self._context("submit", self._signer.identity(), payload),
            headers=self._headers("POST", endpoint),
            json_body=payload,
            retries=self._settings.SUBMIT_RETRIES,
        )
        task_id = require_field(resp.data, "id", provider=self.name, stage="submit", endpoint=endpoint)
        return Submission(
            task_id=str(task_id),
            status=TaskStatus.QUEUED,
            polling_context={"status_url": f"{endpoint}/{task_id}"},
        )

    async def _poll(self, task_id: str, polling_context: dict[str, Any]) -> Outcome:
        base = self._settings.ARK_ENDPOINT
        status_url = self._trusted_url(
            polling_context.get("status_url") or f"{base.rstrip('/')}/contents/generations/tasks/{task_id}",
            base,
        )
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
            error = data.get("error") or {}
            detail = error.get("message") if isinstance(error, dict) else str(error)
            return Outcome(
                task_id=task_id,
                status=TaskStatus.FAILED,
                error=f"Seedance task {native}: {detail or 'no detail'}",
                diagnostics={"provider": self.name, "endpoint": status_url, "raw": data},
            )
        if status != TaskStatus.COMPLETED:
            return Outcome(task_id=task_id, status=TaskStatus.IN_PROGRESS)

        video_url = (data.get("content") or {}).get("video_url")
        return self._completed_outcome(
            task_id,
            self._media(
                [video_url] if video_url else [],
                stage="status", field="content.video_url", endpoint=status_url, raw=data,
            ),
            MEDIA_VIDEO,
        )
