"""Bulk job model definition."""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import JSON, DateTime, Enum as SAEnum, Index, Integer, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class JobStatus(str, Enum):
    """Enumerates the lifecycle states a bulk job can be in."""

    QUEUED = "queued"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"


class JobOperation(str, Enum):
    """Enumerates the bulk operations that can run in the background."""

    IMPORT = "import"
    GENERATE_SUMMARIES = "generate_summaries"
    TRANSLATE = "translate"
    ENSURE_CATEGORIES = "ensure_categories"
    INFER_CATEGORIES = "infer_categories"


class BulkJob(Base):
    """Tracks a background import or AI batch operation and its final report."""

    __tablename__ = "bulk_jobs"
    __table_args__ = (Index("idx_bulk_jobs_created_at", "created_at"),)

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    operation: Mapped[JobOperation] = mapped_column(
        SAEnum(JobOperation, name="bulk_job_operation", values_callable=lambda x: [e.value for e in x]),
        nullable=False,
    )
    status: Mapped[JobStatus] = mapped_column(
        SAEnum(JobStatus, name="bulk_job_status", values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        default=JobStatus.QUEUED,
        server_default=JobStatus.QUEUED.value,
    )
    params: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    attempted: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    updated: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    created: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    errors: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
