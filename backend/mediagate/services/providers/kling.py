"""Kling image generation provider.

Authenticated with a short-lived JWT per request. The API wraps every
answer in ``{code, message, data}``; a non-zero ``code`` is a rejection even
on HTTP 200.
"""

from __future__ import annotations

import logging
from typing import Any

from mediagate.schemas.generation import GenerationRequest, Outcome, ProviderId, Submission, TaskStatus
from mediagate.services.model_catalog import ModelSpec
from mediagate.services.normalizer import ratio_token, to_raw_base64
from mediagate.services.providers.base import ProviderAdapter, map_native_status, require_field
from mediagate.services.signing import SignableRequest, TokenSigner

logger = logging.getLogger(__name__)

COMPLETED_STATES = ("succeed",)
FAILED_STATES = ("failed",)

_GENERATIONS_PATH = "/v1/images/generations"


class KlingAdapter(ProviderAdapter):
    provider_id = ProviderId.KLING
    # Sent as image_fidelity
    default_strength = 0.5
    max_reference_images = 1

    def __init__(self, credentials, http, **kwargs: Any):
        super().__init__(credentials, http, **kwargs)
        values = self._credentials.values
        self._signer = TokenSigner(
            values.get("KLING_ACCESS_KEY", ""),
            values.get("KLING_SECRET_KEY", ""),
            clock=self._clock,
        )

    @property
    def endpoint(self) -> str:
        return f"{self._settings.KLING_BASE_URL.rstrip('/')}{_GENERATIONS_PATH}"

    def _headers(self, method: str, url: str) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            **self._signer.sign(SignableRequest.from_url(method, url)),
        }

    def _check_code(self, data: dict[str, Any], *, stage: str, endpoint: str, http_status: int,
                    payload: dict[str, Any] | None = None) -> None:
        code = data.get("code")
        if code != 0:
            raise self._rejection(
                f"Kling {stage} rejected: code={code} ({data.get('message') or 'no message'})",
                stage=stage,
                endpoint=endpoint,
                http_status=http_status,
                credential=self._signer.identity(),
                payload=payload,
                raw=data,
            )

    async def build_payload(self, request: GenerationRequest, spec: ModelSpec) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model_name": spec.route_for(request.mode),
            "prompt": request.prompt,
            "aspect_ratio": ratio_token(request.aspect_ratio),
            "n": request.batch_size,
        }
        if request.reference_images:
            # Kling wants the bare base64 body, without the data: prefix
            payload["image"] = await to_raw_base64(request.reference_images[0], self._http)
            payload["image_fidelity"] = self._strength(request)
        return payload

    async def _submit(self, request: GenerationRequest, spec: ModelSpec) -> Submission:
        endpoint = self.endpoint
        payload = await self.build_payload(request, spec)
        resp = await self._http.post(
            endpoint,
            context=self._context("submit", self._signer.identity(), payload),
            headers=self._headers("POST", endpoint),
            json_body=payload,
            timeout=self._settings.KLING_SUBMIT_TIMEOUT,
            retries=self._settings.SUBMIT_RETRIES,
        )
        data = resp.data
        self._check_code(data, stage="submit", endpoint=endpoint, http_status=resp.status_code, payload=payload)
        task_id = require_field(data, "data.task_id", provider=self.name, stage="submit", endpoint=endpoint)

        return Submission(
            task_id=str(task_id),
            status=TaskStatus.QUEUED,
            polling_context={"status_url": f"{endpoint}/{task_id}"},
        )

    async def _poll(self, task_id: str, polling_context: dict[str, Any]) -> Outcome:
        status_url = self._trusted_url(
            polling_context.get("status_url") or f"{self.endpoint}/{task_id}", self.endpoint,
        )
        resp = await self._http.get(
            status_url,
            context=self._context("status", self._signer.identity()),
            headers=self._headers("GET", status_url),
            retries=self._settings.STATUS_RETRIES,
        )
        data = resp.data
        self._check_code(data, stage="status", endpoint=status_url, http_status=resp.status_code)
        task = require_field(data, "data", provider=self.name, stage="status", endpoint=status_url)
        native = require_field(task, "task_status", provider=self.name, stage="status",
                               endpoint=status_url, raw=data)
        status = map_native_status(native, COMPLETED_STATES, FAILED_STATES)

        if status == TaskStatus.FAILED:
            return Outcome(
                task_id=task_id,
                status=TaskStatus.FAILED,
                error=f"Kling task failed: {task.get('task_status_msg') or 'no detail'}",
                diagnostics={"provider": self.name, "endpoint": status_url, "raw": data},
            )
        if status != TaskStatus.COMPLETED:
            return Outcome(task_id=task_id, status=TaskStatus.IN_PROGRESS)

        images = (task.get("task_result") or {}).get("images") or []
        urls = [img["url"] for img in images if isinstance(img, dict) and img.get("url")]
        return self._completed_outcome(
            task_id,
            self._media(urls, stage="status", field="data.task_result.images", endpoint=status_url, raw=data),
        )
