"""Pytest configuration helpers.

This conftest ensures the ``backend`` directory is on `sys.path` so tests can
import the `mediagate` package without installing it, and provides fake
credentials plus an HTTP client wired to ``httpx.MockTransport``.
"""
import os
import sys

import httpx
import pytest

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "backend"))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from mediagate.services.credentials import CredentialResolver  # noqa: E402
from mediagate.services.http_client import HttpClient  # noqa: E402

FAKE_CREDENTIALS = {
    "FAL_KEY": "fal-key-0123456789abcdef",
    "KLING_ACCESS_KEY": "kling-access-0123456789",
    "KLING_SECRET_KEY": "kling-secret-0123456789abcdef0123456789",
    "JIMENG_AK": "AKLTjimeng0123456789",
    "JIMENG_SK": "jimeng-secret-0123456789abcdef",
    "ARK_API_KEY": "ark-key-0123456789abcdef",
}


class Recorder:
    """Mock transport handler that records requests and replays scripted responses.

    ``responses`` is a list of ``httpx.Response`` objects (or callables taking
    the request) consumed in order; the last one repeats.
    """

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        index = min(len(self.requests), len(self.responses)) - 1
        response = self.responses[index]
        if callable(response):
            response = response(request)
        if isinstance(response, Exception):
            raise response
        # Fresh copy so one scripted response can be served many times
        return httpx.Response(response.status_code, headers=response.headers, content=response.content)

    @property
    def calls(self) -> int:
        return len(self.requests)


async def _no_sleep(_seconds: float) -> None:
    return None


@pytest.fixture
def credentials() -> dict[str, str]:
    return dict(FAKE_CREDENTIALS)


@pytest.fixture
def resolver(credentials) -> CredentialResolver:
    return CredentialResolver(credentials)


@pytest.fixture
def make_http():
    """Factory: HttpClient whose transport is the given handler."""
    clients: list[HttpClient] = []

    def _make(handler, **kwargs) -> HttpClient:
        kwargs.setdefault("timeout", 5.0)
        kwargs.setdefault("max_backoff", 30.0)
        kwargs.setdefault("debug", False)
        kwargs.setdefault("sleep", _no_sleep)
        client = HttpClient(transport=httpx.MockTransport(handler), **kwargs)
        clients.append(client)
        return client

    return _make


@pytest.fixture
def no_sleep():
    return _no_sleep
