"""Core application utilities and infrastructure."""
from .config import Settings, get_settings
from .redis_manager import (
    DEFAULT_NAMESPACE,
    DEFAULT_PROGRESS_TTL_SECONDS,
    ProgressManager,
    create_redis_client,
)

__all__ = [
    "Settings",
    "get_settings",
    "ProgressManager",
    "create_redis_client",
    "DEFAULT_NAMESPACE",
    "DEFAULT_PROGRESS_TTL_SECONDS",
]
