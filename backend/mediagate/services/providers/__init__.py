"""Provider adapter implementations.

Each adapter implements the same two-step contract:
  generate(request) -> Submission, check_status(task_id, context) -> Outcome
"""

from mediagate.services.providers.ark import ArkImageAdapter
from mediagate.services.providers.ark_video import ArkVideoAdapter
from mediagate.services.providers.base import ProviderAdapter
from mediagate.services.providers.fal import FalAdapter
from mediagate.services.providers.jimeng import JimengAdapter
from mediagate.services.providers.kling import KlingAdapter

DEFAULT_ADAPTERS: tuple[type[ProviderAdapter], ...] = (
    FalAdapter,
    KlingAdapter,
    JimengAdapter,
    ArkImageAdapter,
    ArkVideoAdapter,
)

__all__ = [
    "ArkImageAdapter",
    "ArkVideoAdapter",
    "DEFAULT_ADAPTERS",
    "FalAdapter",
    "JimengAdapter",
    "KlingAdapter",
    "ProviderAdapter",
]
