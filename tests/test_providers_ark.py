"""Tests for the Ark Seedream (synchronous image) adapter."""

import json

import httpx
import pytest

from conftest import Recorder
from mediagate.schemas.generation import SYNC_TASK_ID, GenerationMode, GenerationRequest, ProviderId, TaskStatus
from mediagate.services.errors import ProviderRejectionError, UnexpectedResponseShapeError, ValidationError
from mediagate.services.providers.ark import ArkImageAdapter

ENDPOINT = "https://ark.cn-beijing.volces.com/api/v3/images/generations"


def _request(**kwargs):
    fields = {"provider_id": ProviderId.ARK, "prompt": "a cat", "aspect_ratio": "1:1"}
    fields.update(kwargs)
    return GenerationRequest(**fields)


async def test_sync_completion(resolver, make_http):
    recorder = Recorder(httpx.Response(200, json={"data": [{"url": "https://ark.cdn/a.png", "size": "2048x2048"}]}))
    submission = await ArkImageAdapter(resolver, make_http(recorder)).generate(_request())

    assert submission.status == TaskStatus.COMPLETED
    assert submission.task_id == SYNC_TASK_ID
    assert not submission.needs_polling
    assert [img.url for img in submission.images] == ["https://ark.cdn/a.png"]

    sent = recorder.requests[0]
    assert str(sent.url) == ENDPOINT
    assert sent.headers["Authorization"] == "Bearer ark-key-0123456789abcdef"
    body = json.loads(sent.content)
    assert body["model"] == "doubao-seedream-4-5-251128"
    assert body["size"] == "2048x2048"
    assert body["sequential_image_generation"] == "disabled"
    assert "image" not in body


async def test_references_capped_at_three(resolver, make_http):
    recorder = Recorder(httpx.Response(200, json={"data": [{"url": "https://ark.cdn/a.png"}]}))
    refs = [f"https://cdn.example.com/{i}.png" for i in range(5)]
    await ArkImageAdapter(resolver, make_http(recorder)).generate(_request(
        mode=GenerationMode.IMAGE_TO_IMAGE, reference_images=refs,
    ))
    body = json.loads(recorder.requests[0].content)
    assert body["image"] == refs[:3]
    assert body["strength"] == 0.65


async def test_batch_partial_success(resolver, make_http):
    recorder = Recorder(httpx.Response(200, json={"data": [
        {"url": "https://ark.cdn/a.png"},
        {"error": {"code": "OutputImageSensitiveContentDetected", "message": "sensitive"}},
        {"url": "https://ark.cdn/c.png"},
    ]}))
    submission = await ArkImageAdapter(resolver, make_http(recorder)).generate(_request(batch_size=3))
    assert submission.status == TaskStatus.COMPLETED
    assert len(submission.images) == 2

    body = json.loads(recorder.requests[0].content)
    assert body["sequential_image_generation"] == "auto"
    assert body["sequential_image_generation_options"] == {"max_images": 3}


async def test_all_items_failed_is_rejection(resolver, make_http):
    recorder = Recorder(httpx.Response(200, json={"data": [{"error": {"message": "sensitive"}}]}))
    with pytest.raises(ProviderRejectionError) as exc_info:
        await ArkImageAdapter(resolver, make_http(recorder)).generate(_request())
    assert "sensitive" in str(exc_info.value)


async def test_empty_data_is_shape_error(resolver, make_http):
    recorder = Recorder(httpx.Response(200, json={"data": []}))
    with pytest.raises(UnexpectedResponseShapeError):
        await ArkImageAdapter(resolver, make_http(recorder)).generate(_request())


async def test_http_error_surfaces_on_submit(resolver, make_http):
    recorder = Recorder(httpx.Response(401, json={"error": {"code": "AuthenticationError", "message": "invalid key"}}))
    with pytest.raises(ProviderRejectionError) as exc_info:
        await ArkImageAdapter(resolver, make_http(recorder)).generate(_request())
    assert exc_info.value.http_status == 401
    assert "invalid key" in str(exc_info.value)


async def test_nothing_to_poll(resolver, make_http):
    adapter = ArkImageAdapter(resolver, make_http(Recorder(httpx.Response(200))))
    with pytest.raises(ValidationError):
        await adapter.check_status(SYNC_TASK_ID)
    with pytest.raises(ValidationError):
        await adapter.check_status("some-task")
