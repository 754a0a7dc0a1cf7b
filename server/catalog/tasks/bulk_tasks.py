"""Celery task running CSV imports and AI bulk operations in the background.

The task executes exactly the code behind the synchronous endpoints; it only
adds job bookkeeping in the database and progress fan-out through Redis.
"""
from __future__ import annotations

import asyncio
import json
import logging
import time
from pathlib import Path
from typing import Any
from uuid import UUID

from redis import Redis

from catalog.core.config import get_settings
from catalog.core.db import session_scope
from catalog.core.exceptions import CatalogError
from catalog.core.redis_manager import (
    DEFAULT_PROGRESS_TTL_SECONDS,
    channel_name,
    hash_key,
)
from catalog.models.bulk_job import JobOperation, JobStatus
from catalog.services.bulk_operations import BulkOperations
from catalog.services.category_resolver import CategoryResolver
from catalog.services.import_service import CSVImportService
from catalog.services.inference import InferenceService
from catalog.services.job_service import BulkJobRepository
from catalog.services.product_repository import ProductRepository
from catalog.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)

PROGRESS_UPDATE_INTERVAL = 2.0  # seconds between non-forced updates


class ProgressTracker:
    """Publishes job progress to the Redis hash and pub/sub channel read by SSE clients."""

    def __init__(self, redis_client: Redis, job_id: str, operation: str):
        self._redis = redis_client
        self._job_id = job_id
        self._operation = operation
        self._last_update_time = 0.0

    def update(
        self,
        status: str,
        processed: int,
        total: int,
        *,
        error_message: str | None = None,
        force: bool = False,
    ) -> None:
        """Write a progress snapshot unless one was sent less than an interval ago.

        Redis failures are logged and swallowed: progress is advisory and must
        not fail the job.
        """
        current_time = time.time()
        if not force and current_time - self._last_update_time < PROGRESS_UPDATE_INTERVAL:
            return

        progress_pct = (processed / total * 100) if total > 0 else 0
        payload: dict[str, Any] = {
            "job_id": self._job_id,
            "operation": self._operation,
            "status": status,
            "processed": processed,
            "total": total,
            "progress": round(progress_pct, 2),
            "updated_at": current_time,
        }
        if error_message:
            payload["error_message"] = error_message

        try:
            key = hash_key(self._job_id)
            self._redis.hset(key, mapping={k: json.dumps(v) for k, v in payload.items()})
            self._redis.expire(key, DEFAULT_PROGRESS_TTL_SECONDS)
            self._redis.publish(channel_name(self._job_id), json.dumps(payload))
            self._last_update_time = current_time
        except Exception as e:
            logger.warning(f"Failed to publish progress update for job {self._job_id}: {e}")


async def execute_operation(
    operation: JobOperation,
    params: dict[str, Any],
    repository: ProductRepository,
    inference: InferenceService,
    tracker: ProgressTracker,
) -> dict[str, Any]:
    """Run one bulk operation and return its report as plain JSON data."""

    def on_progress(processed: int, total: int) -> None:
        tracker.update(JobStatus.RUNNING.value, processed, total)

    if operation is JobOperation.IMPORT:
        file_path = Path(params["file_path"])
        service = CSVImportService(repository, CategoryResolver(inference))
        summary = await service.import_csv(file_path.read_bytes(), on_progress=on_progress)
        return {
            "attempted": summary.created + summary.updated + len(summary.errors),
            "created": summary.created,
            "updated": summary.updated,
            "errors": summary.errors,
        }

    operations = BulkOperations(repository, inference)
    limit = params.get("limit")
    if operation is JobOperation.GENERATE_SUMMARIES:
        result = await operations.generate_summaries(limit, on_progress=on_progress)
    elif operation is JobOperation.TRANSLATE:
        result = await operations.translate_products(params["lang"], limit, on_progress=on_progress)
    elif operation is JobOperation.ENSURE_CATEGORIES:
        result = await operations.ensure_categories(limit, on_progress=on_progress)
    elif operation is JobOperation.INFER_CATEGORIES:
        result = await operations.infer_categories(limit, on_progress=on_progress)
    else:
        raise ValueError(f"Unsupported bulk operation: {operation}")

    return {"attempted": result.attempted, "created": 0, "updated": result.updated, "errors": result.errors}


@celery_app.task(
    name="run_bulk_job",
    bind=True,
    acks_late=True,
    reject_on_worker_lost=True,
)
def run_bulk_job(self, job_id: str) -> dict:
    """Process a queued bulk job.

    Task Flow:
    1. Load the job and mark it running
    2. Run the import or AI operation, publishing per-record progress
    3. Store the report on the job row and mark it done
    4. On a domain error (precondition, bad payload) mark the job failed and
       return normally; on anything else mark it failed and re-raise
    """
    settings = get_settings()
    redis_client = Redis.from_url(settings.redis_url, decode_responses=False, socket_keepalive=True)

    with session_scope() as session:
        job = BulkJobRepository(session).get_by_id(UUID(job_id))
        if not job:
            error_msg = f"Bulk job {job_id} not found in database"
            logger.error(error_msg)
            redis_client.close()
            return {"status": "failed", "error": error_msg}
        operation = job.operation
        params = dict(job.params or {})

    tracker = ProgressTracker(redis_client, job_id, operation.value)
    logger.info(f"Starting bulk job {job_id} ({operation.value})")

    with session_scope() as session:
        BulkJobRepository(session).update_status(UUID(job_id), JobStatus.RUNNING)
    tracker.update(JobStatus.RUNNING.value, 0, 0, force=True)

    try:
        with session_scope() as session:
            report = asyncio.run(
                execute_operation(operation, params, ProductRepository(session), InferenceService(), tracker)
            )

        with session_scope() as session:
            BulkJobRepository(session).record_result(UUID(job_id), **report)

        tracker.update(JobStatus.DONE.value, report["attempted"], report["attempted"], force=True)
        logger.info(
            f"Bulk job {job_id} finished: {report['updated']} updated, "
            f"{report['created']} created, {len(report['errors'])} errors"
        )
        return {"status": JobStatus.DONE.value, "job_id": job_id, **report}

    except CatalogError as e:
        logger.warning(f"Bulk job {job_id} rejected: {e}")
        _mark_failed(job_id, str(e), tracker)
        return {"status": JobStatus.FAILED.value, "job_id": job_id, "error": str(e)}

    except Exception as e:
        logger.error(f"Bulk job {job_id} crashed: {e}", exc_info=True)
        _mark_failed(job_id, f"{type(e).__name__}: {e}", tracker)
        raise

    finally:
        if operation is JobOperation.IMPORT:
            _cleanup_upload(params.get("file_path"))
        redis_client.close()


def _mark_failed(job_id: str, error_message: str, tracker: ProgressTracker) -> None:
    try:
        with session_scope() as session:
            BulkJobRepository(session).update_status(
                UUID(job_id),
                JobStatus.FAILED,
                error_message=error_message,
            )
    except Exception as e:
        logger.error(f"Job {job_id}: Failed to update job status to FAILED: {e}")
    tracker.update(JobStatus.FAILED.value, 0, 0, error_message=error_message, force=True)


def _cleanup_upload(file_path: str | None) -> None:
    if not file_path:
        return
    try:
        Path(file_path).unlink(missing_ok=True)
    except OSError as e:
        logger.warning(f"Failed to delete uploaded file {file_path}: {e}")
