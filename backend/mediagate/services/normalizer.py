"""Request normalization: provider-agnostic request -> provider payload pieces.

Size tables, reference-image representation (URL vs data URI vs raw
base64) and per-provider reference caps live here. Adapters compose these
helpers; they do not re-implement them.
"""

from __future__ import annotations

import base64
import logging
import re
from collections.abc import Sequence

from mediagate.services.errors import ValidationError
from mediagate.services.http_client import HttpClient

logger = logging.getLogger(__name__)

# Named size buckets (Fal).
DEFAULT_SIZE_BUCKET = "landscape_16_9"
SIZE_BUCKETS: dict[str, str] = {
    "16:9": "landscape_16_9",
    "9:16": "portrait_16_9",
    "1:1": "square_hd",
    "4:3": "landscape_4_3",
    "3:4": "portrait_4_3",
}

# Explicit pixel pairs (Jimeng / Ark Seedream recommended 2K sizes).
DEFAULT_PIXEL_SIZE = (2048, 2048)
PIXEL_SIZES: dict[str, tuple[int, int]] = {
    "1:1": (2048, 2048),
    "16:9": (2560, 1440),
    "9:16": (1440, 2560),
    "4:3": (2304, 1728),
    "3:4": (1728, 2304),
    "3:2": (2496, 1664),
    "2:3": (1664, 2496),
    "21:9": (3024, 1296),
}

# Ratio tokens passed through verbatim (Kling).
DEFAULT_RATIO_TOKEN = "16:9"
RATIO_TOKENS = ("16:9", "9:16", "1:1", "4:3", "3:4", "3:2", "2:3", "21:9")

_DATA_URL_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?P<b64>;base64)?,", re.IGNORECASE)


def size_bucket(aspect_ratio: str | None) -> str:
    if aspect_ratio and aspect_ratio not in SIZE_BUCKETS:
        logger.warning("Unsupported aspect ratio %r for size buckets, using %s", aspect_ratio, DEFAULT_SIZE_BUCKET)
    return SIZE_BUCKETS.get(aspect_ratio or "", DEFAULT_SIZE_BUCKET)


def pixel_size(aspect_ratio: str | None) -> tuple[int, int]:
    if aspect_ratio and aspect_ratio not in PIXEL_SIZES:
        logger.warning("Unsupported aspect ratio %r for pixel sizes, using %dx%d", aspect_ratio, *DEFAULT_PIXEL_SIZE)
    return PIXEL_SIZES.get(aspect_ratio or "", DEFAULT_PIXEL_SIZE)


def ratio_token(aspect_ratio: str | None) -> str:
    if aspect_ratio in RATIO_TOKENS:
        return aspect_ratio
    return DEFAULT_RATIO_TOKEN


def is_data_url(ref: str) -> bool:
    return bool(_DATA_URL_RE.match(ref))


def is_remote_url(ref: str) -> bool:
    return ref.startswith(("http://", "https://"))


def validate_image_ref(ref: str, *, field: str = "referenceImages") -> str:
    if is_data_url(ref) or is_remote_url(ref):
        return ref
    raise ValidationError(
        "image reference must be an http(s) URL or a data: URI", field=field
    )


def cap_references(refs: Sequence[str], cap: int, *, provider: str) -> list[str]:
    """Drop images beyond the provider cap (never an error)."""
    refs = list(refs)
    if len(refs) > cap:
        logger.info(
            "%s accepts at most %d reference image(s); dropping %d",
            provider, cap, len(refs) - cap,
        )
    return refs[:cap]


def strip_data_url(ref: str) -> str:
    """Raw base64 payload of a data URI (unchanged if not a data URI)."""
    match = _DATA_URL_RE.match(ref)
    return ref[match.end():] if match else ref


def encode_data_url(data: bytes, content_type: str) -> str:
    return f"data:{content_type};base64,{base64.b64encode(data).decode('ascii')}"


async def to_data_url(ref: str, http: HttpClient, *, timeout: float | None = None) -> str:
    """Inline-encode a reference, downloading it first if it is a URL."""
    validate_image_ref(ref)
    if is_data_url(ref):
        return ref
    data, content_type = await http.download(ref, timeout=timeout)
    logger.debug("Fetched reference image %s (%d bytes, %s)", ref[:80], len(data), content_type)
    return encode_data_url(data, content_type)


async def to_raw_base64(ref: str, http: HttpClient, *, timeout: float | None = None) -> str:
    return strip_data_url(await to_data_url(ref, http, timeout=timeout))
