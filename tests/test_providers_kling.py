"""Tests for the Kling adapter."""

import base64
import json

import httpx
import jwt
import pytest

from conftest import Recorder
from mediagate.schemas.generation import GenerationMode, GenerationRequest, ProviderId, TaskStatus
from mediagate.services.errors import ProviderRejectionError, UnexpectedResponseShapeError, ValidationError
from mediagate.services.providers.kling import KlingAdapter

ENDPOINT = "https://api-beijing.klingai.com/v1/images/generations"
CONTEXT = {"status_url": f"{ENDPOINT}/task-1"}


def _request(**kwargs):
    fields = {"provider_id": ProviderId.KLING, "prompt": "a cat", "aspect_ratio": "1:1"}
    fields.update(kwargs)
    return GenerationRequest(**fields)


def _task(status, **extra):
    return {"code": 0, "message": "SUCCEED", "data": {"task_id": "task-1", "task_status": status, **extra}}


async def test_submit_signs_with_jwt(resolver, make_http, credentials):
    recorder = Recorder(httpx.Response(200, json=_task("submitted")))
    adapter = KlingAdapter(resolver, make_http(recorder), clock=lambda: 1_735_689_600.0)
    submission = await adapter.generate(_request(batch_size=4))

    assert submission.status == TaskStatus.QUEUED
    assert submission.task_id == "task-1"
    assert submission.polling_context == CONTEXT

    sent = recorder.requests[0]
    assert str(sent.url) == ENDPOINT
    token = sent.headers["Authorization"].removeprefix("Bearer ")
    claims = jwt.decode(
        token, credentials["KLING_SECRET_KEY"], algorithms=["HS256"],
        options={"verify_exp": False, "verify_nbf": False},
    )
    assert claims["iss"] == credentials["KLING_ACCESS_KEY"]
    body = json.loads(sent.content)
    assert body == {"model_name": "kling-v1", "prompt": "a cat", "aspect_ratio": "1:1", "n": 4}


async def test_image_reference_sent_as_raw_base64(resolver, make_http):
    def handler(request):
        if request.url.host == "cdn.example.com":
            return httpx.Response(200, content=b"IMG", headers={"content-type": "image/png"})
        return httpx.Response(200, json=_task("submitted"))

    recorder = Recorder(handler)
    await KlingAdapter(resolver, make_http(recorder)).generate(_request(
        mode=GenerationMode.IMAGE_TO_IMAGE,
        reference_images=["https://cdn.example.com/ref.png"],
    ))
    body = json.loads(recorder.requests[-1].content)
    assert body["image"] == base64.b64encode(b"IMG").decode()
    assert body["image_fidelity"] == 0.5


async def test_data_url_reference_is_stripped(resolver, make_http):
    recorder = Recorder(httpx.Response(200, json=_task("submitted")))
    await KlingAdapter(resolver, make_http(recorder)).generate(_request(
        mode=GenerationMode.IMAGE_TO_IMAGE,
        reference_images=["data:image/jpeg;base64,QUJD"],
        strength=0.3,
    ))
    body = json.loads(recorder.requests[0].content)
    assert body["image"] == "QUJD"
    assert body["image_fidelity"] == 0.3


async def test_nonzero_code_is_rejection(resolver, make_http):
    recorder = Recorder(httpx.Response(200, json={"code": 1102, "message": "balance not enough"}))
    with pytest.raises(ProviderRejectionError) as exc_info:
        await KlingAdapter(resolver, make_http(recorder)).generate(_request())
    err = exc_info.value
    assert err.stage == "submit"
    assert err.http_status == 200
    assert "balance not enough" in str(err)
    assert err.credential == "klin****6789"
    assert recorder.calls == 1


async def test_missing_task_id_is_shape_error(resolver, make_http):
    recorder = Recorder(httpx.Response(200, json={"code": 0, "data": {}}))
    with pytest.raises(UnexpectedResponseShapeError) as exc_info:
        await KlingAdapter(resolver, make_http(recorder)).generate(_request())
    assert exc_info.value.missing == "data.task_id"


async def test_succeed_maps_to_completed(resolver, make_http):
    recorder = Recorder(httpx.Response(200, json=_task(
        "succeed", task_result={"images": [{"index": 0, "url": "https://kling.cdn/a.png"}]},
    )))
    outcome = await KlingAdapter(resolver, make_http(recorder)).check_status("task-1", CONTEXT)
    assert outcome.status == TaskStatus.COMPLETED
    assert [img.url for img in outcome.images] == ["https://kling.cdn/a.png"]
    assert str(recorder.requests[0].url) == f"{ENDPOINT}/task-1"


@pytest.mark.parametrize("native", ["submitted", "processing"])
async def test_pending_states(resolver, make_http, native):
    recorder = Recorder(httpx.Response(200, json=_task(native)))
    outcome = await KlingAdapter(resolver, make_http(recorder)).check_status("task-1", CONTEXT)
    assert outcome.status == TaskStatus.IN_PROGRESS


async def test_failed_state_carries_message(resolver, make_http):
    recorder = Recorder(httpx.Response(200, json=_task("failed", task_status_msg="content risk")))
    outcome = await KlingAdapter(resolver, make_http(recorder)).check_status("task-1", CONTEXT)
    assert outcome.status == TaskStatus.FAILED
    assert "content risk" in outcome.error


async def test_status_rejection_becomes_failed_outcome(resolver, make_http):
    recorder = Recorder(httpx.Response(200, json={"code": 1201, "message": "task not found"}))
    outcome = await KlingAdapter(resolver, make_http(recorder)).check_status("task-1", CONTEXT)
    assert outcome.status == TaskStatus.FAILED
    assert "task not found" in outcome.error
    assert outcome.diagnostics["kind"] == "provider_rejection"


async def test_status_url_on_another_host_is_rejected(resolver, make_http):
    recorder = Recorder(httpx.Response(200, json=_task("succeed")))
    adapter = KlingAdapter(resolver, make_http(recorder))
    with pytest.raises(ValidationError) as exc_info:
        await adapter.check_status("task-1", {"status_url": "https://attacker.example/v1/images/generations/task-1"})
    assert exc_info.value.field == "pollingContext"
    assert recorder.calls == 0
