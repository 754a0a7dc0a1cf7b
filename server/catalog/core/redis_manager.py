"""Redis progress tracking for background bulk jobs.

Workers write a progress snapshot to a hash and publish the same payload on a
pub/sub channel; the SSE endpoint reads both through ``ProgressManager``.
"""
from __future__ import annotations

from datetime import datetime, timezone
import json
from typing import Any, Mapping
from uuid import UUID

from redis.asyncio import Redis, from_url

from catalog.core.config import get_settings

DEFAULT_PROGRESS_TTL_SECONDS = 60 * 60  # keep hashes for 1 hour after completion
DEFAULT_NAMESPACE = "job_progress"
TERMINAL_STATUSES = frozenset({"done", "failed"})


def hash_key(job_id: str | UUID, namespace: str = DEFAULT_NAMESPACE) -> str:
    return f"{namespace}:hash:{job_id}"


def channel_name(job_id: str | UUID, namespace: str = DEFAULT_NAMESPACE) -> str:
    return f"{namespace}:channel:{job_id}"


def is_terminal(payload: Mapping[str, Any]) -> bool:
    """True when a progress payload reports a finished job."""
    return payload.get("status") in TERMINAL_STATUSES


def json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.astimezone(timezone.utc).isoformat()
    if isinstance(value, UUID):
        return str(value)
    raise TypeError(f"Object of type {type(value)} is not JSON serializable")


def create_redis_client(url: str, *, decode_responses: bool = False) -> Redis:
    """Return a configured Redis asyncio client instance."""

    kwargs: dict[str, Any] = {
        "decode_responses": decode_responses,
        "health_check_interval": 30,
    }
    if decode_responses:
        kwargs["encoding"] = "utf-8"

    return from_url(url, **kwargs)


def get_redis_client(*, decode_responses: bool = False) -> Redis:
    """Return a Redis client configured from application settings."""
    settings = get_settings()
    return create_redis_client(settings.redis_url, decode_responses=decode_responses)


class ProgressManager:
    """Reads and writes job progress snapshots and fans them out over pub/sub."""

    def __init__(
        self,
        redis: Redis,
        *,
        namespace: str = DEFAULT_NAMESPACE,
        ttl_seconds: int = DEFAULT_PROGRESS_TTL_SECONDS,
    ) -> None:
        self._redis = redis
        self._namespace = namespace
        self._ttl_seconds = ttl_seconds

    def channel(self, job_id: str | UUID) -> str:
        return channel_name(job_id, self._namespace)

    async def set_progress(
        self,
        job_id: str | UUID,
        data: Mapping[str, Any],
        *,
        ttl_seconds: int | None = None,
    ) -> Mapping[str, Any]:
        """Persist the latest progress snapshot to a Redis hash."""

        payload = dict(data)
        payload.setdefault("updated_at", datetime.now(timezone.utc).isoformat())
        serialized = {key: json.dumps(value, default=json_default) for key, value in payload.items()}

        key = hash_key(job_id, self._namespace)
        await self._redis.hset(key, mapping=serialized)
        await self._redis.expire(key, ttl_seconds or self._ttl_seconds)
        return payload

    async def get_progress(self, job_id: str | UUID) -> Mapping[str, Any] | None:
        """Return the stored progress state for the given job, if present."""

        raw = await self._redis.hgetall(hash_key(job_id, self._namespace))
        if not raw:
            return None
        return {_as_text(key): _decode_value(value) for key, value in raw.items()}

    async def publish_update(
        self,
        job_id: str | UUID,
        data: Mapping[str, Any],
        *,
        ensure_timestamp: bool = True,
    ) -> int:
        """Publish an update message to Redis pub/sub listeners.

        Returns the number of clients that received the message.
        """

        payload = dict(data)
        if ensure_timestamp:
            payload.setdefault("updated_at", datetime.now(timezone.utc).isoformat())

        message = json.dumps(payload, default=json_default)
        return await self._redis.publish(self.channel(job_id), message)


def _as_text(value: str | bytes) -> str:
    if isinstance(value, (bytes, bytearray)):
        return value.decode("utf-8")
    return value


def _decode_value(value: str | bytes) -> Any:
    text = _as_text(value)
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return text
