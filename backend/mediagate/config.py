from __future__ import annotations
"""Application configuration using Pydantic Settings."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """MediaGate settings.

    Loaded from environment variables or .env file. Read-only after startup;
    adapters receive credentials through CredentialResolver, never from here
    directly.
    """

    # --- Application ---
    APP_NAME: str = "MediaGate"
    DEBUG: bool = False
    # Transport-level request/response dumps (masked). Off in production.
    API_DEBUG: bool = False

    # --- Redis / Celery ---
    REDIS_URL: str = "redis://localhost:6379/0"

    # --- HTTP transport ---
    HTTP_TIMEOUT: float = 5.0
    HTTP_MAX_BACKOFF: float = 30.0
    SUBMIT_RETRIES: int = 1
    STATUS_RETRIES: int = 3

    # --- Caller-side polling ---
    POLL_INTERVAL: float = 3.0
    POLL_MAX_WAIT_IMAGE: float = 180.0
    POLL_MAX_WAIT_VIDEO: float = 900.0

    # --- Fal (queue API) ---
    FAL_KEY: str = ""
    FAL_QUEUE_BASE: str = "https://queue.fal.run"
    FAL_SUBMIT_TIMEOUT: float = 60.0
    # Probe the generic queue status URL when a caller lost the polling context.
    FAL_LEGACY_STATUS_PROBE: bool = False

    # --- Kling (JWT signed) ---
    KLING_ACCESS_KEY: str = ""
    KLING_SECRET_KEY: str = ""
    KLING_BASE_URL: str = "https://api-beijing.klingai.com"
    KLING_SUBMIT_TIMEOUT: float = 30.0

    # --- Jimeng (Volcengine visual API, canonical signing) ---
    JIMENG_AK: str = ""
    JIMENG_SK: str = ""
    JIMENG_HOST: str = "visual.volcengineapi.com"
    JIMENG_REGION: str = "cn-north-1"
    JIMENG_SERVICE: str = "cv"
    JIMENG_API_VERSION: str = "2022-08-31"

    # --- Volcengine Ark (Seedream images, Seedance video) ---
    ARK_API_KEY: str = ""
    ARK_ENDPOINT: str = "https://ark.cn-beijing.volces.com/api/v3"
    ARK_IMAGE_TIMEOUT: float = 120.0

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings singleton."""
    return Settings()
