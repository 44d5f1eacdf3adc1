"""Declarative model catalog.

One entry per (provider, model id) with the media it produces, the modes it
accepts and the provider-native identifiers (endpoint paths, req keys) the
adapters need. Unknown or unsupported combinations are rejected here, before
any network call.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from mediagate.schemas.generation import GenerationMode, ProviderId
from mediagate.services.errors import ValidationError

logger = logging.getLogger(__name__)

MEDIA_IMAGE = "image"
MEDIA_VIDEO = "video"

T2I = GenerationMode.TEXT_TO_IMAGE
I2I = GenerationMode.IMAGE_TO_IMAGE
INPAINT = GenerationMode.INPAINTING


@dataclass(frozen=True)
class ModelSpec:
    """Capability descriptor for a single model."""

    provider: ProviderId
    model_id: str
    name: str
    native_model: str
    media: str = MEDIA_IMAGE
    # mode -> provider endpoint path (Fal) or native model override
    routes: Mapping[GenerationMode, str] = field(default_factory=dict)
    default: bool = False

    @property
    def modes(self) -> tuple[GenerationMode, ...]:
        return tuple(self.routes)

    def route_for(self, mode: GenerationMode) -> str:
        route = self.routes.get(mode)
        if route is None:
            raise ValidationError(
                f"{self.model_id} does not support mode '{mode.value}'",
                field="mode",
                provider=self.provider.value,
            )
        return route


class ModelCatalog:
    """In-memory catalog of all supported models."""

    def __init__(self) -> None:
        self._models: dict[tuple[ProviderId, str], ModelSpec] = {}
        self._by_provider: dict[ProviderId, list[ModelSpec]] = {}

    def register(self, spec: ModelSpec) -> None:
        self._models[(spec.provider, spec.model_id)] = spec
        self._by_provider.setdefault(spec.provider, []).append(spec)

    def resolve(self, provider: ProviderId, model_id: str | None) -> ModelSpec:
        """Look up a model, falling back to the provider default when no id is given."""
        if not model_id:
            specs = self._by_provider.get(provider, [])
            for spec in specs:
                if spec.default:
                    return spec
            if specs:
                return specs[0]
            raise ValidationError(f"No models registered for {provider.value}", provider=provider.value)
        spec = self._models.get((provider, model_id))
        if spec is None:
            raise ValidationError(
                f"Unknown model '{model_id}' for provider {provider.value}",
                field="modelId",
                provider=provider.value,
            )
        return spec

    def list_models(self, provider: ProviderId | None = None) -> list[ModelSpec]:
        if provider:
            return list(self._by_provider.get(provider, []))
        return list(self._models.values())

    def list_providers(self) -> list[str]:
        return sorted(p.value for p in self._by_provider)

    def to_dict_list(self, provider: ProviderId | None = None) -> list[dict[str, Any]]:
        return [
            {
                "provider": spec.provider.value,
                "model": spec.model_id,
                "name": spec.name,
                "media": spec.media,
                "modes": [m.value for m in spec.modes],
                "default": spec.default,
            }
            for spec in self.list_models(provider)
        ]


# ---------------------------------------------------------------------------
# Build the global catalog
# ---------------------------------------------------------------------------

MODEL_CATALOG = ModelCatalog()

# Fal: each mode is a different queue endpoint
MODEL_CATALOG.register(ModelSpec(
    ProviderId.FAL, "fal-flux-pro-v1.1", "Flux Pro 1.1 (Fal)", "flux",
    routes={
        T2I: "fal-ai/flux-pro/v1.1",
        I2I: "fal-ai/flux-general/image-to-image",
        INPAINT: "fal-ai/flux-general/inpainting",
    },
    default=True,
))
MODEL_CATALOG.register(ModelSpec(
    ProviderId.FAL, "fal-flux-dev", "Flux Dev (Fal)", "flux",
    routes={
        T2I: "fal-ai/flux/dev",
        I2I: "fal-ai/flux/dev/image-to-image",
        INPAINT: "fal-ai/flux-general/inpainting",
    },
))
MODEL_CATALOG.register(ModelSpec(
    ProviderId.FAL, "fal-flux-schnell", "Flux Schnell (Fal)", "flux",
    routes={
        T2I: "fal-ai/flux/schnell",
        I2I: "fal-ai/flux-general/image-to-image",
    },
))
MODEL_CATALOG.register(ModelSpec(
    ProviderId.FAL, "fal-fast-sdxl", "Fast SDXL (Fal)", "sdxl",
    routes={
        T2I: "fal-ai/fast-sdxl",
        I2I: "fal-ai/fast-sdxl/image-to-image",
        INPAINT: "fal-ai/fast-sdxl/inpainting",
    },
))

# 可灵
for _kling_model, _kling_name in (
    ("kling-v1", "Kling 1.0"),
    ("kling-v1-5", "Kling 1.5"),
    ("kling-v2", "Kling 2.0"),
):
    MODEL_CATALOG.register(ModelSpec(
        ProviderId.KLING, _kling_model, _kling_name, _kling_model,
        routes={T2I: _kling_model, I2I: _kling_model},
        default=_kling_model == "kling-v1",
    ))

# 即梦 (Volcengine visual API, req_key per model)
MODEL_CATALOG.register(ModelSpec(
    ProviderId.JIMENG, "jimeng-v40", "Jimeng 4.0", "jimeng_t2i_v40",
    routes={T2I: "jimeng_t2i_v40", I2I: "jimeng_t2i_v40"},
    default=True,
))
MODEL_CATALOG.register(ModelSpec(
    ProviderId.JIMENG, "jimeng-v31", "Jimeng 3.1", "jimeng_t2i_v31",
    routes={T2I: "jimeng_t2i_v31"},
))

# 火山方舟 Seedream (synchronous)
MODEL_CATALOG.register(ModelSpec(
    ProviderId.ARK, "doubao-seedream-4-5-251128", "Seedream 4.5", "doubao-seedream-4-5-251128",
    routes={T2I: "images/generations", I2I: "images/generations"},
    default=True,
))
MODEL_CATALOG.register(ModelSpec(
    ProviderId.ARK, "doubao-seedream-4-0-250828", "Seedream 4.0", "doubao-seedream-4-0-250828",
    routes={T2I: "images/generations", I2I: "images/generations"},
))

# 火山方舟 Seedance (video tasks). Text-only prompts are text-to-video,
# image-conditioned requests use the references as first/last frames.
MODEL_CATALOG.register(ModelSpec(
    ProviderId.ARK_VIDEO, "doubao-seedance-1-5-pro-251215", "Seedance 1.5 Pro", "doubao-seedance-1-5-pro-251215",
    media=MEDIA_VIDEO,
    routes={T2I: "contents/generations/tasks", I2I: "contents/generations/tasks"},
    default=True,
))
MODEL_CATALOG.register(ModelSpec(
    ProviderId.ARK_VIDEO, "doubao-seedance-1-0-lite-i2v-250428", "Seedance 1.0 Lite I2V", "doubao-seedance-1-0-lite-i2v-250428",
    media=MEDIA_VIDEO,
    routes={I2I: "contents/generations/tasks"},
))


logger.debug(
    "Model catalog initialized: %d models from %d providers",
    len(MODEL_CATALOG._models),
    len(MODEL_CATALOG._by_provider),
)
