"""Server-Sent Events endpoint for real-time bulk job progress tracking."""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, AsyncIterator, Mapping
from uuid import UUID

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from redis.asyncio import Redis
from sqlalchemy.orm import Session

from catalog.core.config import get_settings
from catalog.core.db import get_session
from catalog.core.exceptions import JobNotFoundError
from catalog.core.redis_manager import ProgressManager, create_redis_client, is_terminal, json_default
from catalog.schemas.bulk_job import BulkJobResponse
from catalog.services.job_service import BulkJobService

logger = logging.getLogger(__name__)
settings = get_settings()

router = APIRouter(prefix="/progress", tags=["progress"])

POLL_INTERVAL_SECONDS = 2.5


async def get_redis_client() -> AsyncIterator[Redis]:
    """FastAPI dependency that provides a Redis client for progress tracking."""
    redis = create_redis_client(settings.redis_url, decode_responses=True)
    try:
        yield redis
    finally:
        await redis.aclose()


@router.get(
    "/{job_id}",
    summary="Stream job progress via SSE",
    description=(
        "Opens a Server-Sent Events stream that pushes progress updates for the "
        "specified bulk job. The stream closes when the job is done or failed."
    ),
    responses={
        200: {
            "description": "SSE stream of progress updates",
            "content": {
                "text/event-stream": {
                    "example": 'data: {"status":"running","processed":45,"total":100,"progress":45.0}\n\n'
                }
            },
        },
        404: {"description": "Job not found"},
    },
)
async def stream_progress(
    job_id: UUID,
    session: Session = Depends(get_session),
    redis: Redis = Depends(get_redis_client),
) -> StreamingResponse:
    """
    Stream progress updates for a bulk job.

    The endpoint:
    1. Validates that the job exists
    2. Sends the stored snapshot, or the job row when the worker has not reported yet
    3. Relays pub/sub messages, polling the hash when the channel is quiet
    4. Closes after a terminal status
    """
    job = BulkJobService(session).get_job(job_id)
    if not job:
        raise JobNotFoundError()

    logger.info(f"SSE client connected for job_id: {job_id}")
    return StreamingResponse(
        progress_events(job, ProgressManager(redis), redis),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


async def progress_events(job: BulkJobResponse, progress_manager: ProgressManager, redis: Redis) -> AsyncIterator[str]:
    """Yield SSE-formatted progress events until the job finishes."""
    job_id = job.id
    pubsub = redis.pubsub()
    channel = progress_manager.channel(job_id)

    try:
        await pubsub.subscribe(channel)

        initial = await progress_manager.get_progress(job_id) or _snapshot_from_job(job)
        yield format_sse_event(initial)
        finished = is_terminal(initial)

        loop = asyncio.get_running_loop()
        last_poll_time = loop.time()

        while not finished:
            try:
                message = await asyncio.wait_for(
                    pubsub.get_message(ignore_subscribe_messages=True),
                    timeout=1.0,
                )
                if message and message["type"] == "message":
                    data = json.loads(message["data"])
                    yield format_sse_event(data)
                    finished = is_terminal(data)
            except asyncio.TimeoutError:
                pass

            if not finished and loop.time() - last_poll_time >= POLL_INTERVAL_SECONDS:
                progress = await progress_manager.get_progress(job_id)
                if progress:
                    yield format_sse_event(progress)
                    finished = is_terminal(progress)
                last_poll_time = loop.time()

            if not finished:
                yield ": heartbeat\n\n"
                await asyncio.sleep(0.1)

        logger.info(f"Closing SSE stream for job {job_id}")
        yield format_sse_event({"event": "close", "job_id": str(job_id)})

    except asyncio.CancelledError:
        logger.info(f"SSE client disconnected for job {job_id}")
        raise

    except Exception as e:
        logger.exception(f"Error in SSE stream for job {job_id}: {e}")
        yield format_sse_event({
            "event": "error",
            "job_id": str(job_id),
            "message": "Internal server error during progress streaming",
        })
        raise

    finally:
        try:
            await pubsub.unsubscribe(channel)
            await pubsub.aclose()
        except Exception as e:
            logger.error(f"Error cleaning up Redis subscription: {e}")


def _snapshot_from_job(job: BulkJobResponse) -> dict[str, Any]:
    snapshot: dict[str, Any] = {
        "job_id": str(job.id),
        "operation": job.operation.value,
        "status": job.status.value,
        "processed": job.attempted,
        "total": job.attempted,
        "progress": 100.0 if is_terminal({"status": job.status.value}) else 0.0,
    }
    if job.error_message:
        snapshot["error_message"] = job.error_message
    return snapshot


def format_sse_event(data: Mapping[str, Any]) -> str:
    """Format a mapping as a single ``data:`` Server-Sent Events message."""
    return f"data: {json.dumps(dict(data), default=json_default)}\n\n"
