"""Secret masking for logs and error diagnostics."""

from __future__ import annotations

import re
from typing import Any

REDACTION_MARKER = "****"

_SENSITIVE_HEADERS = {"authorization", "cookie", "x-api-key", "x-security-token"}
_SENSITIVE_FIELDS = {"api_key", "secret", "secret_key", "token", "password"}
_DATA_URL_RE = re.compile(r"^data:([^;,]+)?(;base64)?,", re.IGNORECASE)
_BASE64_RE = re.compile(r"^[A-Za-z0-9+/_-]+={0,2}$")
_INLINE_PREVIEW = 32
_RAW_BASE64_MIN = 512


def mask_secret(value: str | None) -> str:
    """Mask a secret for safe logging: show first 4 and last 4 chars."""
    if not value:
        return ""
    if len(value) <= 8:
        return REDACTION_MARKER
    return f"{value[:4]}{REDACTION_MARKER}{value[-4:]}"


def mask_headers(headers: dict[str, str] | None) -> dict[str, str]:
    if not headers:
        return {}
    return {
        k: mask_secret(v) if k.lower() in _SENSITIVE_HEADERS else v
        for k, v in headers.items()
    }


def _shorten_inline(value: str) -> str:
    match = _DATA_URL_RE.match(value)
    if match:
        return f"{match.group(0)}<{len(value) - match.end()} chars>"
    if len(value) >= _RAW_BASE64_MIN and _BASE64_RE.match(value):
        # Raw base64 payloads (Kling image, Jimeng binary_data_base64)
        return f"{value[:_INLINE_PREVIEW]}...<{len(value)} chars>"
    return value


def redact_payload(body: Any) -> Any:
    """Deep-copy a JSON-like body with secrets masked and inline images shortened."""
    if isinstance(body, dict):
        return {
            k: mask_secret(v) if k.lower() in _SENSITIVE_FIELDS and isinstance(v, str)
            else redact_payload(v)
            for k, v in body.items()
        }
    if isinstance(body, list):
        return [redact_payload(item) for item in body]
    if isinstance(body, str):
        return _shorten_inline(body)
    return body


def describe_image_ref(value: str | None) -> str | None:
    """Classify an image reference without echoing its content."""
    if not value:
        return None
    if value.startswith("data:"):
        return "data"
    if value.startswith(("http://", "https://")):
        return "http"
    return "other"
