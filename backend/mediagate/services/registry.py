"""Provider id -> adapter dispatch."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from mediagate.schemas.generation import ProviderId
from mediagate.services.credentials import CredentialResolver
from mediagate.services.errors import ValidationError
from mediagate.services.http_client import HttpClient
from mediagate.services.providers import DEFAULT_ADAPTERS, ProviderAdapter

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """Holds one adapter instance per provider id."""

    def __init__(self) -> None:
        self._adapters: dict[ProviderId, ProviderAdapter] = {}

    def register(self, provider_id: ProviderId, adapter: ProviderAdapter) -> None:
        if provider_id in self._adapters:
            logger.warning("Replacing adapter for %s", provider_id.value)
        self._adapters[provider_id] = adapter

    def get(self, provider_id: ProviderId | str) -> ProviderAdapter:
        try:
            key = ProviderId(provider_id)
        except ValueError:
            raise ValidationError(
                f"Unknown provider '{provider_id}'", field="providerId"
            ) from None
        adapter = self._adapters.get(key)
        if adapter is None:
            raise ValidationError(f"No adapter registered for {key.value}", field="providerId")
        return adapter

    def providers(self) -> list[ProviderId]:
        return list(self._adapters)

    def __contains__(self, provider_id: object) -> bool:
        return provider_id in self._adapters


def build_registry(
    resolver: CredentialResolver,
    http: HttpClient,
    adapters: Iterable[type[ProviderAdapter]] = DEFAULT_ADAPTERS,
    **adapter_kwargs,
) -> ProviderRegistry:
    """Instantiate and register the adapters. Credentials resolve here, once."""
    registry = ProviderRegistry()
    for adapter_cls in adapters:
        adapter = adapter_cls(resolver, http, **adapter_kwargs)
        registry.register(adapter_cls.provider_id, adapter)
        logger.info(
            "Registered provider %s (%s)",
            adapter.name, "configured" if adapter.configured else "not configured",
        )
    return registry
