"""Credential resolution, done once per adapter construction.

Adapters never read the environment themselves. They receive a
CredentialResolver, look up the names they need, and hold either a complete
credential set or the list of what is missing.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from mediagate.config import Settings
from mediagate.services.errors import ConfigurationError
from mediagate.services.redaction import mask_secret

logger = logging.getLogger(__name__)

# Credential names per provider, in the order they are reported when missing.
PROVIDER_CREDENTIALS: dict[str, tuple[str, ...]] = {
    "FAL": ("FAL_KEY",),
    "KLING": ("KLING_ACCESS_KEY", "KLING_SECRET_KEY"),
    "JIMENG": ("JIMENG_AK", "JIMENG_SK"),
    "ARK": ("ARK_API_KEY",),
    "ARK_VIDEO": ("ARK_API_KEY",),
}


@dataclass(frozen=True)
class CredentialSet:
    """Resolved credentials for one provider: all present, or a list of gaps."""

    provider: str
    values: Mapping[str, str] = field(default_factory=dict)
    missing: tuple[str, ...] = ()

    @property
    def complete(self) -> bool:
        return not self.missing

    def require(self) -> Mapping[str, str]:
        """Return the values or raise ConfigurationError. Never touches the network."""
        if self.missing:
            raise ConfigurationError(self.provider, list(self.missing))
        return self.values

    def masked(self) -> dict[str, str]:
        return {name: mask_secret(value) for name, value in self.values.items()}


class CredentialResolver:
    """Read-only lookup of credential values by environment-style name."""

    def __init__(self, source: Mapping[str, str | None]):
        cleaned = {k: v.strip() for k, v in source.items() if isinstance(v, str) and v.strip()}
        self._source = MappingProxyType(cleaned)

    @classmethod
    def from_settings(cls, settings: Settings) -> CredentialResolver:
        names = {name for names in PROVIDER_CREDENTIALS.values() for name in names}
        return cls({name: getattr(settings, name, "") for name in names})

    def get(self, name: str) -> str | None:
        return self._source.get(name)

    def resolve(self, provider: str, names: tuple[str, ...] | None = None) -> CredentialSet:
        wanted = names if names is not None else PROVIDER_CREDENTIALS.get(provider, ())
        values = {n: self._source[n] for n in wanted if n in self._source}
        missing = tuple(n for n in wanted if n not in self._source)
        if missing:
            logger.debug("Credentials for %s incomplete, missing=%s", provider, missing)
        return CredentialSet(provider=provider, values=MappingProxyType(values), missing=missing)

    def status(self) -> dict[str, dict[str, object]]:
        """Per-provider configured/missing summary for health checks."""
        report: dict[str, dict[str, object]] = {}
        for provider in PROVIDER_CREDENTIALS:
            creds = self.resolve(provider)
            report[provider] = {
                "ok": creds.complete,
                "message": "configured" if creds.complete else f"missing {'/'.join(creds.missing)}",
            }
        return report
