"""Error taxonomy for the generation gateway.

Every error carries a short human-readable summary (``str(err)``) plus a
structured diagnostic payload (``err.to_dict()``) meant for logs and API
responses. Nothing here ever includes a full secret.
"""

from __future__ import annotations

from typing import Any


class GatewayError(Exception):
    """Base class for all gateway errors."""

    kind = "gateway_error"
    retriable = False

    def __init__(self, message: str, **detail: Any):
        super().__init__(message)
        self.summary = message
        self.detail = {k: v for k, v in detail.items() if v is not None}

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "message": self.summary, **self.detail}


class ConfigurationError(GatewayError):
    """A required credential or environment value is missing."""

    kind = "configuration_error"

    def __init__(self, provider: str, missing: list[str]):
        super().__init__(
            f"{provider}: missing configuration {', '.join(missing)}",
            provider=provider,
            missing=list(missing),
        )
        self.provider = provider
        self.missing = list(missing)


class ValidationError(GatewayError):
    """Malformed caller input, rejected before any network call."""

    kind = "validation_error"

    def __init__(self, message: str, *, field: str | None = None, provider: str | None = None):
        super().__init__(message, field=field, provider=provider)
        self.field = field
        self.provider = provider


class TransportError(GatewayError):
    """Network failure or timeout, raised after the retry budget is spent."""

    kind = "transport_error"
    retriable = True

    def __init__(
        self,
        message: str,
        *,
        endpoint: str | None = None,
        attempts: int = 1,
        timed_out: bool = False,
        provider: str | None = None,
        stage: str | None = None,
    ):
        super().__init__(
            message,
            endpoint=endpoint,
            attempts=attempts,
            timed_out=timed_out,
            provider=provider,
            stage=stage,
        )
        self.endpoint = endpoint
        self.attempts = attempts
        self.timed_out = timed_out
        self.provider = provider
        self.stage = stage


class ImageFetchError(TransportError):
    """A reference image URL could not be downloaded for re-encoding."""

    kind = "image_fetch_error"

    def __init__(self, url: str, reason: str, *, http_status: int | None = None):
        super().__init__(f"Failed to fetch reference image: {reason}", endpoint=url)
        self.url = url
        self.http_status = http_status
        if http_status is not None:
            self.detail["http_status"] = http_status


class ProviderRejectionError(GatewayError):
    """Provider answered with a non-2xx status or an embedded failure code."""

    kind = "provider_rejection"

    def __init__(
        self,
        message: str,
        *,
        provider: str,
        stage: str,
        endpoint: str,
        http_status: int | None = None,
        credential: str | None = None,
        payload: dict[str, Any] | None = None,
        raw: Any = None,
        attempts: int = 1,
    ):
        super().__init__(
            message,
            provider=provider,
            stage=stage,
            endpoint=endpoint,
            http_status=http_status,
            credential=credential,
            payload=payload,
            raw=raw,
            attempts=attempts,
        )
        self.provider = provider
        self.stage = stage
        self.endpoint = endpoint
        self.http_status = http_status
        self.credential = credential
        self.payload = payload
        self.raw = raw
        self.attempts = attempts


class UnexpectedResponseShapeError(GatewayError):
    """Provider returned 2xx but a required field is absent."""

    kind = "unexpected_response_shape"

    def __init__(
        self,
        provider: str,
        stage: str,
        missing: str,
        *,
        endpoint: str | None = None,
        raw: Any = None,
    ):
        super().__init__(
            f"{provider} {stage} response is missing '{missing}'",
            provider=provider,
            stage=stage,
            missing=missing,
            endpoint=endpoint,
            raw=raw,
        )
        self.provider = provider
        self.stage = stage
        self.missing = missing
        self.endpoint = endpoint
        self.raw = raw
