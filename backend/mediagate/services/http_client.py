"""Retrying HTTP transport shared by all provider adapters.

- Every attempt is bounded by ``timeout`` seconds. The httpx timeout covers
  each I/O phase and ``asyncio.wait_for`` cancels the in-flight request, which
  aborts the underlying connection.
- Retries with exponential backoff (``2 ** attempt`` seconds, capped) on
  HTTP 5xx and 429. Network failures are retried for idempotent methods; for
  POST only when the connection was never established.
- Every other non-2xx response becomes a ``ProviderRejectionError`` carrying
  provider, stage, endpoint, masked credential, payload summary and raw body.
- Request/response pairs are logged at DEBUG with secrets masked, only when
  ``API_DEBUG`` is on.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

import httpx

from mediagate.config import get_settings
from mediagate.services.errors import ImageFetchError, ProviderRejectionError, TransportError
from mediagate.services.redaction import mask_headers, redact_payload

logger = logging.getLogger(__name__)

_IDEMPOTENT_METHODS = {"GET", "HEAD", "OPTIONS"}
_DEFAULT_IMAGE_TYPE = "image/jpeg"
_MAX_IMAGE_BYTES = 20 * 1024 * 1024


@dataclass(frozen=True)
class CallContext:
    """Who is calling and why, for diagnostics on failure."""

    provider: str
    stage: str
    credential: str | None = None
    payload: dict[str, Any] | None = None


@dataclass
class ApiResponse:
    status_code: int
    body: Any
    endpoint: str
    attempts: int = 1
    elapsed_ms: int = 0
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def data(self) -> dict[str, Any]:
        """Body as a dict; non-object bodies read as empty."""
        return self.body if isinstance(self.body, dict) else {}


def is_retriable_status(status_code: int) -> bool:
    return status_code == 429 or status_code >= 500


def _is_retriable_exception(idempotent: bool, exc: BaseException) -> bool:
    if idempotent:
        return True
    # The request never reached the provider, so a POST cannot have been accepted.
    return isinstance(exc, (httpx.ConnectError, httpx.ConnectTimeout))


def _parse_body(response: httpx.Response) -> Any:
    content_type = response.headers.get("content-type", "")
    if "json" in content_type:
        try:
            return response.json()
        except ValueError:
            return response.text
    text = response.text
    if text[:1] in ("{", "["):
        try:
            return json.loads(text)
        except ValueError:
            pass
    return text


def _provider_message(body: Any) -> str | None:
    if isinstance(body, dict):
        for key in ("message", "detail", "error", "msg"):
            value = body.get(key)
            if isinstance(value, dict):
                value = value.get("message")
            if value:
                return str(value)[:300]
    elif isinstance(body, str) and body:
        return body[:300]
    return None


def _loggable_body(json_body: Any, content: bytes | None) -> Any:
    if json_body is not None:
        return redact_payload(json_body)
    if content:
        try:
            return redact_payload(json.loads(content))
        except ValueError:
            return f"<{len(content)} bytes>"
    return None


class HttpClient:
    """Async HTTP client with bounded retries and per-call timeouts."""

    def __init__(
        self,
        *,
        timeout: float | None = None,
        max_backoff: float | None = None,
        debug: bool | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        settings = get_settings()
        self.timeout = timeout if timeout is not None else settings.HTTP_TIMEOUT
        self.max_backoff = max_backoff if max_backoff is not None else settings.HTTP_MAX_BACKOFF
        self.debug = settings.API_DEBUG if debug is None else debug
        self._sleep = sleep
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()

    async def __aenter__(self) -> HttpClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    def backoff_delay(self, attempt: int) -> float:
        return float(min(2 ** attempt, self.max_backoff))

    async def request(
        self,
        method: str,
        url: str,
        *,
        context: CallContext,
        headers: dict[str, str] | None = None,
        json_body: Any = None,
        content: bytes | None = None,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
        retries: int = 1,
        idempotent: bool | None = None,
    ) -> ApiResponse:
        method = method.upper()
        if idempotent is None:
            idempotent = method in _IDEMPOTENT_METHODS
        timeout = timeout if timeout is not None else self.timeout
        attempts = max(retries, 0) + 1
        req_id = uuid.uuid4().hex[:8]
        client = self._get_client()

        if self.debug:
            logger.debug(
                "API request [%s] %s %s %s/%s headers=%s body=%s",
                req_id, method, url, context.provider, context.stage,
                mask_headers(headers), _loggable_body(json_body, content),
            )

        for attempt in range(attempts):
            last_attempt = attempt == attempts - 1
            start = time.monotonic()
            try:
                response = await asyncio.wait_for(
                    client.request(
                        method,
                        url,
                        headers=headers,
                        json=json_body,
                        content=content,
                        params=params,
                        timeout=httpx.Timeout(timeout),
                    ),
                    timeout=timeout,
                )
            except (asyncio.TimeoutError, httpx.TimeoutException) as e:
                retriable = _is_retriable_exception(idempotent, e)
                logger.warning(
                    "[%s] %s %s timed out after %.1fs (attempt %d/%d)",
                    context.provider, method, url, timeout, attempt + 1, attempts,
                )
                if retriable and not last_attempt:
                    await self._sleep(self.backoff_delay(attempt))
                    continue
                raise TransportError(
                    f"{context.provider} {context.stage} request timed out after {timeout}s",
                    endpoint=url,
                    attempts=attempt + 1,
                    timed_out=True,
                    provider=context.provider,
                    stage=context.stage,
                ) from e
            except httpx.TransportError as e:
                retriable = _is_retriable_exception(idempotent, e)
                logger.warning(
                    "[%s] %s %s network error: %s (attempt %d/%d)",
                    context.provider, method, url, e, attempt + 1, attempts,
                )
                if retriable and not last_attempt:
                    await self._sleep(self.backoff_delay(attempt))
                    continue
                raise TransportError(
                    f"{context.provider} {context.stage} network error: {e}",
                    endpoint=url,
                    attempts=attempt + 1,
                    provider=context.provider,
                    stage=context.stage,
                ) from e

            elapsed_ms = int((time.monotonic() - start) * 1000)
            body = _parse_body(response)

            if self.debug:
                logger.debug(
                    "API response [%s] HTTP %d in %dms body=%s",
                    req_id, response.status_code, elapsed_ms, redact_payload(body),
                )

            if response.is_success:
                return ApiResponse(
                    status_code=response.status_code,
                    body=body,
                    endpoint=url,
                    attempts=attempt + 1,
                    elapsed_ms=elapsed_ms,
                    headers=dict(response.headers),
                )

            if is_retriable_status(response.status_code) and not last_attempt:
                backoff = self.backoff_delay(attempt)
                logger.warning(
                    "[%s] HTTP %d (retriable), backing off %.0fs... (attempt %d/%d)",
                    context.provider, response.status_code, backoff, attempt + 1, attempts,
                )
                await self._sleep(backoff)
                continue

            detail = _provider_message(body)
            raise ProviderRejectionError(
                f"{context.provider} {context.stage} failed: HTTP {response.status_code}"
                + (f" ({detail})" if detail else ""),
                provider=context.provider,
                stage=context.stage,
                endpoint=url,
                http_status=response.status_code,
                credential=context.credential,
                payload=context.payload,
                raw=body,
                attempts=attempt + 1,
            )

        # range(attempts) always returns or raises above
        raise AssertionError("unreachable")

    async def get(self, url: str, **kwargs: Any) -> ApiResponse:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> ApiResponse:
        return await self.request("POST", url, **kwargs)

    async def download(
        self,
        url: str,
        *,
        timeout: float | None = None,
        max_bytes: int = _MAX_IMAGE_BYTES,
    ) -> tuple[bytes, str]:
        """Stream a remote image into memory. Returns (bytes, content_type)."""
        timeout = timeout if timeout is not None else self.timeout
        client = self._get_client()

        async def _fetch() -> tuple[bytes, str]:
            async with client.stream("GET", url, timeout=httpx.Timeout(timeout)) as response:
                if not response.is_success:
                    raise ImageFetchError(
                        url, f"HTTP {response.status_code}", http_status=response.status_code
                    )
                chunks: list[bytes] = []
                size = 0
                async for chunk in response.aiter_bytes():
                    size += len(chunk)
                    if size > max_bytes:
                        raise ImageFetchError(url, f"image larger than {max_bytes} bytes")
                    chunks.append(chunk)
                content_type = response.headers.get("content-type", "").split(";")[0].strip()
                return b"".join(chunks), content_type or _DEFAULT_IMAGE_TYPE

        try:
            return await asyncio.wait_for(_fetch(), timeout=timeout)
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise ImageFetchError(url, f"timed out after {timeout}s") from e
        except httpx.HTTPError as e:
            raise ImageFetchError(url, str(e) or e.__class__.__name__) from e
