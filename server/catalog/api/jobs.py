"""Endpoints that queue imports and AI bulk operations as background jobs."""
from __future__ import annotations

import logging
from pathlib import Path
from uuid import UUID, uuid4

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from catalog.api.products import read_upload
from catalog.core.config import get_settings
from catalog.core.db import get_session
from catalog.core.exceptions import CatalogError, EmptyPayloadError, JobNotFoundError
from catalog.models.bulk_job import JobOperation
from catalog.schemas.bulk_job import BulkJobAccepted, BulkJobResponse
from catalog.services.bulk_operations import validate_language
from catalog.services.csv_codec import decode_records
from catalog.services.job_service import BulkJobService

logger = logging.getLogger(__name__)
settings = get_settings()

router = APIRouter(prefix="/jobs", tags=["jobs"])

OPERATION_ROUTES = {
    "generate-summaries": JobOperation.GENERATE_SUMMARIES,
    "translate-all": JobOperation.TRANSLATE,
    "generate-categories": JobOperation.ENSURE_CATEGORIES,
    "infer-categories": JobOperation.INFER_CATEGORIES,
}


class BulkJobRequest(BaseModel):
    """Arguments of a queued AI bulk operation."""

    limit: int | None = Field(default=None, ge=1)
    lang: str | None = None


def get_job_service(session: Session = Depends(get_session)) -> BulkJobService:
    return BulkJobService(session)


def _accepted(service: BulkJobService, job: BulkJobResponse, message: str) -> BulkJobAccepted:
    task_id = service.enqueue(job.id)
    logger.info(f"Task enqueued successfully - job_id: {job.id}, task_id: {task_id}")
    return BulkJobAccepted(
        job_id=str(job.id),
        sse_url=f"{settings.api_prefix}/progress/{job.id}",
        message=message,
    )


@router.post(
    "/import",
    response_model=BulkJobAccepted,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Queue a CSV import",
    description=(
        "Checks that the CSV is well formed, stores it and enqueues the import. "
        "Returns immediately with job_id and SSE URL for progress tracking."
    ),
)
async def queue_import(
    file: UploadFile | None = File(default=None, description="CSV file to import"),
    service: BulkJobService = Depends(get_job_service),
) -> BulkJobAccepted:
    """
    Queue a CSV import for background processing.

    Steps:
    1. Read the upload and reject empty or malformed CSV
    2. Save it to the upload directory
    3. Create the job record and enqueue the Celery task
    """
    filename = file.filename if file is not None else None
    raw = await read_upload(file)
    if not raw:
        raise EmptyPayloadError()
    rows = sum(1 for _ in decode_records(raw))

    upload_dir = Path(settings.upload_tmp_dir)
    upload_dir.mkdir(parents=True, exist_ok=True)
    temp_file_path = upload_dir / f"{uuid4()}.csv"
    temp_file_path.write_bytes(raw)
    logger.info(f"Saved upload {filename} to {temp_file_path} ({rows} rows)")

    try:
        job = service.create_job(
            JobOperation.IMPORT,
            {"file_path": str(temp_file_path), "filename": filename, "rows": rows},
        )
        return _accepted(service, job, f"CSV upload accepted. Processing {rows} rows in background.")
    except Exception:
        temp_file_path.unlink(missing_ok=True)
        raise


@router.post(
    "/{operation}",
    response_model=BulkJobAccepted,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Queue an AI bulk operation",
    description=(
        "Queues one of `generate-summaries`, `translate-all` (requires `lang`), "
        "`generate-categories` or `infer-categories`."
    ),
)
async def queue_operation(
    operation: str,
    body: BulkJobRequest | None = None,
    service: BulkJobService = Depends(get_job_service),
) -> BulkJobAccepted:
    job_operation = OPERATION_ROUTES.get(operation)
    if job_operation is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown bulk operation: {operation}",
        )

    body = body or BulkJobRequest()
    params: dict = {"limit": body.limit}
    if job_operation is JobOperation.TRANSLATE:
        if not body.lang:
            raise CatalogError("lang is required", status_code=status.HTTP_400_BAD_REQUEST)
        params["lang"] = validate_language(body.lang)

    job = service.create_job(job_operation, params)
    return _accepted(service, job, f"{operation} queued. Products will be processed in the background.")


@router.get(
    "",
    response_model=list[BulkJobResponse],
    summary="List recent jobs",
)
async def list_jobs(
    limit: int = Query(default=20, ge=1, le=100),
    service: BulkJobService = Depends(get_job_service),
) -> list[BulkJobResponse]:
    return service.list_recent_jobs(limit=limit)


@router.get(
    "/{job_id}",
    response_model=BulkJobResponse,
    summary="Get a job and its report",
)
async def get_job(
    job_id: UUID,
    service: BulkJobService = Depends(get_job_service),
) -> BulkJobResponse:
    job = service.get_job(job_id)
    if job is None:
        raise JobNotFoundError()
    return job
