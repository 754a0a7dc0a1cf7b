"""Service layer for managing the background bulk job lifecycle."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from catalog.models.bulk_job import BulkJob, JobOperation, JobStatus
from catalog.schemas.bulk_job import BulkJobResponse


class BulkJobRepository:
    """Handles CRUD operations for BulkJob entities."""

    def __init__(self, session: Session) -> None:
        """Initialize repository with a SQLAlchemy session.

        Args:
            session: Active database session for executing queries
        """
        self._session = session

    def create(self, operation: JobOperation, params: dict[str, Any] | None = None) -> BulkJob:
        """Create a queued job record.

        Args:
            operation: Bulk operation the job will run
            params: JSON-serializable arguments for the operation

        Returns:
            Newly created BulkJob instance with generated ID
        """
        job = BulkJob(operation=operation, params=dict(params or {}), status=JobStatus.QUEUED, errors=[])
        self._session.add(job)
        self._session.commit()
        self._session.refresh(job)
        return job

    def get_by_id(self, job_id: UUID) -> BulkJob | None:
        return self._session.get(BulkJob, job_id)

    def update_status(
        self,
        job_id: UUID,
        status: JobStatus,
        *,
        error_message: str | None = None,
    ) -> BulkJob | None:
        """Update job status and optional error message.

        Returns:
            Updated BulkJob instance, or None if not found
        """
        job = self.get_by_id(job_id)
        if not job:
            return None

        job.status = status
        if error_message is not None:
            job.error_message = error_message

        job.updated_at = datetime.now(timezone.utc)
        self._session.commit()
        self._session.refresh(job)
        return job

    def record_result(
        self,
        job_id: UUID,
        *,
        attempted: int = 0,
        updated: int = 0,
        created: int = 0,
        errors: Sequence[str] = (),
    ) -> BulkJob | None:
        """Store the final report of a job and mark it done."""
        job = self.get_by_id(job_id)
        if not job:
            return None

        job.attempted = attempted
        job.updated = updated
        job.created = created
        job.errors = list(errors)
        job.status = JobStatus.DONE
        job.updated_at = datetime.now(timezone.utc)
        self._session.commit()
        self._session.refresh(job)
        return job

    def get_recent(self, limit: int = 50) -> list[BulkJob]:
        """Fetch recent jobs ordered by creation time."""
        return (
            self._session.query(BulkJob)
            .order_by(BulkJob.created_at.desc())
            .limit(limit)
            .all()
        )


class BulkJobService:
    """High-level service coordinating job creation and task enqueueing."""

    def __init__(self, session: Session) -> None:
        self._session = session
        self._repository = BulkJobRepository(session)

    def create_job(self, operation: JobOperation, params: dict[str, Any] | None = None) -> BulkJobResponse:
        job = self._repository.create(operation, params)
        return BulkJobResponse.model_validate(job)

    def enqueue(self, job_id: UUID) -> str:
        """Publish the job to the Celery broker and return the task id.

        The job id doubles as the task id for easier correlation.
        """
        # Lazy import to avoid circular dependencies and allow testing without a broker
        from catalog.tasks.bulk_tasks import run_bulk_job

        task = run_bulk_job.apply_async(args=[str(job_id)], task_id=str(job_id))
        return task.id

    def get_job(self, job_id: UUID) -> BulkJobResponse | None:
        job = self._repository.get_by_id(job_id)
        if not job:
            return None
        return BulkJobResponse.model_validate(job)

    def list_recent_jobs(self, limit: int = 50) -> list[BulkJobResponse]:
        jobs = self._repository.get_recent(limit=limit)
        return [BulkJobResponse.model_validate(job) for job in jobs]
