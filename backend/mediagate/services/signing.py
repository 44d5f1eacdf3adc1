"""Request signing strategies.

Three strategies cover every provider:

- ``CanonicalRequestSigner``: Volcengine HMAC-SHA256 canonical request
  signing (SigV4 family). The signature covers method, path, query, a fixed
  set of headers and the body hash, and embeds the request time.
- ``TokenSigner``: short-lived HS256 JWT bearer token (Kling).
- ``StaticKeySigner``: fixed key in the Authorization header (Fal, Ark).

Signers are stateless apart from their keys and clock: every call to
``sign`` produces fresh material, nothing is cached between requests.
"""

from __future__ import annotations

import hashlib
import hmac
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from urllib.parse import parse_qsl, quote, urlsplit

import jwt

from mediagate.services.redaction import mask_secret

Clock = Callable[[], float]


@dataclass(frozen=True)
class SignableRequest:
    """Everything a signer may need to know about an outgoing request."""

    method: str
    host: str
    path: str = "/"
    query: Mapping[str, str] = field(default_factory=dict)
    body: bytes = b""
    content_type: str = "application/json"

    @classmethod
    def from_url(
        cls,
        method: str,
        url: str,
        body: bytes = b"",
        content_type: str = "application/json",
    ) -> SignableRequest:
        parts = urlsplit(url)
        return cls(
            method=method,
            host=parts.netloc,
            path=parts.path or "/",
            query=dict(parse_qsl(parts.query)),
            body=body,
            content_type=content_type,
        )

    @property
    def canonical_query(self) -> str:
        return canonical_query_string(self.query)

    @property
    def url(self) -> str:
        qs = self.canonical_query
        return f"https://{self.host}{self.path}" + (f"?{qs}" if qs else "")


def canonical_query_string(query: Mapping[str, str]) -> str:
    """Sorted, RFC 3986 encoded query string."""
    return "&".join(
        f"{quote(str(k), safe='-_.~')}={quote(str(v), safe='-_.~')}"
        for k, v in sorted(query.items())
    )


class RequestSigner(ABC):
    """Produces the authentication headers for one outgoing request."""

    @abstractmethod
    def sign(self, request: SignableRequest) -> dict[str, str]:
        ...

    @abstractmethod
    def identity(self) -> str:
        """Masked credential identity for diagnostics."""
        ...


class StaticKeySigner(RequestSigner):
    """Static key header, e.g. ``Authorization: Bearer <key>``."""

    def __init__(self, key: str, scheme: str = "Bearer", header: str = "Authorization"):
        self._key = key
        self.scheme = scheme
        self.header = header

    def sign(self, request: SignableRequest) -> dict[str, str]:
        value = f"{self.scheme} {self._key}" if self.scheme else self._key
        return {self.header: value}

    def identity(self) -> str:
        return mask_secret(self._key)


class TokenSigner(RequestSigner):
    """HS256 JWT bearer tokens, one per request.

    Claims: ``iss`` = access key, ``iat`` = now, ``exp`` = now + ttl,
    ``nbf`` = now - skew. The access key also travels as the ``kid`` header.
    """

    def __init__(
        self,
        access_key: str,
        secret_key: str,
        *,
        ttl: int = 1800,
        skew: int = 5,
        clock: Clock = time.time,
    ):
        self._access_key = access_key
        self._secret_key = secret_key
        self.ttl = ttl
        self.skew = skew
        self._clock = clock

    def build_token(self, now: float | None = None) -> str:
        issued = int(self._clock() if now is None else now)
        claims = {
            "iss": self._access_key,
            "iat": issued,
            "exp": issued + self.ttl,
            "nbf": issued - self.skew,
        }
        return jwt.encode(
            claims,
            self._secret_key,
            algorithm="HS256",
            headers={"kid": self._access_key},
        )

    def sign(self, request: SignableRequest) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.build_token()}"}

    def identity(self) -> str:
        return mask_secret(self._access_key)


class CanonicalRequestSigner(RequestSigner):
    """Volcengine canonical request signing (HMAC-SHA256, SigV4 family)."""

    ALGORITHM = "HMAC-SHA256"
    SIGNED_HEADERS = ("content-type", "host", "x-content-sha256", "x-date")

    def __init__(
        self,
        access_key: str,
        secret_key: str,
        *,
        service: str,
        region: str,
        clock: Clock = time.time,
    ):
        self._access_key = access_key
        self._secret_key = secret_key
        self.service = service
        self.region = region
        self._clock = clock

    @staticmethod
    def _hmac(key: bytes, msg: str) -> bytes:
        return hmac.new(key, msg.encode("utf-8"), hashlib.sha256).digest()

    def _signing_key(self, date_stamp: str) -> bytes:
        k_date = self._hmac(self._secret_key.encode("utf-8"), date_stamp)
        k_region = self._hmac(k_date, self.region)
        k_service = self._hmac(k_region, self.service)
        return self._hmac(k_service, "request")

    def canonical_request(self, request: SignableRequest, x_date: str, payload_hash: str) -> str:
        header_values = {
            "content-type": request.content_type,
            "host": request.host,
            "x-content-sha256": payload_hash,
            "x-date": x_date,
        }
        canonical_headers = "".join(
            f"{name}:{header_values[name].strip()}\n" for name in self.SIGNED_HEADERS
        )
        return "\n".join([
            request.method.upper(),
            request.path or "/",
            request.canonical_query,
            canonical_headers,
            ";".join(self.SIGNED_HEADERS),
            payload_hash,
        ])

    def sign(self, request: SignableRequest) -> dict[str, str]:
        now = datetime.fromtimestamp(self._clock(), tz=timezone.utc)
        x_date = now.strftime("%Y%m%dT%H%M%SZ")
        date_stamp = now.strftime("%Y%m%d")
        payload_hash = hashlib.sha256(request.body).hexdigest()

        canonical = self.canonical_request(request, x_date, payload_hash)
        scope = f"{date_stamp}/{self.region}/{self.service}/request"
        string_to_sign = "\n".join([
            self.ALGORITHM,
            x_date,
            scope,
            hashlib.sha256(canonical.encode("utf-8")).hexdigest(),
        ])
        signature = hmac.new(
            self._signing_key(date_stamp), string_to_sign.encode("utf-8"), hashlib.sha256
        ).hexdigest()

        return {
            "Content-Type": request.content_type,
            "Host": request.host,
            "X-Date": x_date,
            "X-Content-Sha256": payload_hash,
            "Authorization": (
                f"{self.ALGORITHM} Credential={self._access_key}/{scope}, "
                f"SignedHeaders={';'.join(self.SIGNED_HEADERS)}, Signature={signature}"
            ),
        }

    def identity(self) -> str:
        return mask_secret(self._access_key)
