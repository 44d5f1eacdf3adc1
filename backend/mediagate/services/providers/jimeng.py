"""Jimeng (即梦) image provider on the Volcengine visual API.

Every call is a signed POST to ``https://{host}/?Action=...&Version=...``.
Submission uses ``CVSync2AsyncSubmitTask``, polling ``CVSync2AsyncGetResult``.
The body carries ``code`` (10000 means success) and ``data``.

The signing parameters (host, region, service, version) and the model
``req_key`` are stored in the polling context so a status check signs
exactly like the submission did.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from mediagate.schemas.generation import GenerationRequest, Outcome, ProviderId, Submission, TaskStatus
from mediagate.services.model_catalog import ModelSpec
from mediagate.services.normalizer import cap_references, is_data_url, pixel_size, strip_data_url
from mediagate.services.providers.base import ProviderAdapter, map_native_status, require_field
from mediagate.services.signing import CanonicalRequestSigner, SignableRequest

logger = logging.getLogger(__name__)

COMPLETED_STATES = ("done",)
FAILED_STATES = ("not_found", "expired", "failed")

SUCCESS_CODE = 10000
SUBMIT_ACTION = "CVSync2AsyncSubmitTask"
RESULT_ACTION = "CVSync2AsyncGetResult"


class JimengAdapter(ProviderAdapter):
    provider_id = ProviderId.JIMENG
    # Sent as scale
    default_strength = 0.5
    max_reference_images = 10

    def _signing_context(self, req_key: str) -> dict[str, str]:
        s = self._settings
        return {
            "host": s.JIMENG_HOST,
            "region": s.JIMENG_REGION,
            "service": s.JIMENG_SERVICE,
            "version": s.JIMENG_API_VERSION,
            "req_key": req_key,
        }

    def _signer(self, ctx: dict[str, str]) -> CanonicalRequestSigner:
        values = self._credentials.values
        return CanonicalRequestSigner(
            values.get("JIMENG_AK", ""),
            values.get("JIMENG_SK", ""),
            service=ctx["service"],
            region=ctx["region"],
            clock=self._clock,
        )

    async def _call(
        self,
        action: str,
        body: dict[str, Any],
        ctx: dict[str, str],
        *,
        stage: str,
        retries: int,
        idempotent: bool | None = None,
    ) -> dict[str, Any]:
        content = json.dumps(body, ensure_ascii=False, separators=(",", ":")).encode("utf-8")
        signable = SignableRequest(
            method="POST",
            host=ctx["host"],
            path="/",
            query={"Action": action, "Version": ctx["version"]},
            body=content,
        )
        signer = self._signer(ctx)
        resp = await self._http.post(
            signable.url,
            context=self._context(stage, signer.identity(), body),
            headers=signer.sign(signable),
            content=content,
            retries=retries,
            idempotent=idempotent,
        )
        data = resp.data
        code = data.get("code")
        if code != SUCCESS_CODE:
            raise self._rejection(
                f"Jimeng {stage} rejected: code={code} ({data.get('message') or 'no message'})",
                stage=stage,
                endpoint=signable.url,
                http_status=resp.status_code,
                credential=signer.identity(),
                payload=body,
                raw=data,
            )
        return data

    def build_payload(self, request: GenerationRequest, spec: ModelSpec) -> dict[str, Any]:
        width, height = pixel_size(request.aspect_ratio)
        payload: dict[str, Any] = {
            "req_key": spec.route_for(request.mode),
            "prompt": request.prompt,
            "width": width,
            "height": height,
            "force_single": request.batch_size == 1,
            "logo_info": {"add_logo": False},
        }
        refs = cap_references(request.reference_images, self.max_reference_images, provider=self.name)
        if refs:
            inline = [strip_data_url(ref) for ref in refs if is_data_url(ref)]
            urls = [ref for ref in refs if not is_data_url(ref)]
            if inline:
                payload["binary_data_base64"] = inline
            if urls:
                payload["image_urls"] = urls
            payload["scale"] = self._strength(request)
        return payload

    async def _submit(self, request: GenerationRequest, spec: ModelSpec) -> Submission:
        payload = self.build_payload(request, spec)
        ctx = self._signing_context(payload["req_key"])
        data = await self._call(
            SUBMIT_ACTION, payload, ctx, stage="submit", retries=self._settings.SUBMIT_RETRIES,
        )
        task_id = require_field(data, "data.task_id", provider=self.name, stage="submit")
        return Submission(task_id=str(task_id), status=TaskStatus.QUEUED, polling_context=ctx)

    async def _poll(self, task_id: str, polling_context: dict[str, Any]) -> Outcome:
        ctx = {**self._signing_context(""), **polling_context}
        self._trusted_url(f"https://{ctx['host']}/", f"https://{self._settings.JIMENG_HOST}/")
        if not ctx.get("req_key"):
            ctx["req_key"] = self._catalog.resolve(self.provider_id, None).native_model
        body = {
            "req_key": ctx["req_key"],
            "task_id": task_id,
            "req_json": json.dumps({"return_url": True}),
        }
        # Reading a result has no side effects, so network errors are retried too
        data = await self._call(
            RESULT_ACTION, body, ctx, stage="status",
            retries=self._settings.STATUS_RETRIES, idempotent=True,
        )
        result = require_field(data, "data", provider=self.name, stage="status")
        native = require_field(result, "status", provider=self.name, stage="status", raw=data)
        status = map_native_status(native, COMPLETED_STATES, FAILED_STATES)

        if status == TaskStatus.FAILED:
            return Outcome(
                task_id=task_id,
                status=TaskStatus.FAILED,
                error=f"Jimeng task {native}",
                diagnostics={"provider": self.name, "raw": data},
            )
        if status != TaskStatus.COMPLETED:
            return Outcome(task_id=task_id, status=TaskStatus.IN_PROGRESS)

        urls = [u for u in result.get("image_urls") or [] if u]
        return self._completed_outcome(
            task_id,
            self._media(urls, stage="status", field="data.image_urls", endpoint=None, raw=data),
        )
