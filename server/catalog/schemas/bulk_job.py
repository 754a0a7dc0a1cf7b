"""Pydantic schemas describing background bulk job payloads."""
from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from catalog.models.bulk_job import JobOperation, JobStatus


class BulkJobResponse(BaseModel):
    """Full representation of a bulk job and, once finished, its report."""

    id: UUID
    operation: JobOperation
    status: JobStatus
    params: dict[str, Any] = Field(default_factory=dict)
    attempted: int = Field(default=0, ge=0)
    updated: int = Field(default=0, ge=0)
    created: int = Field(default=0, ge=0)
    errors: list[str] = Field(default_factory=list)
    error_message: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class BulkJobAccepted(BaseModel):
    """Response payload after a bulk job has been queued."""

    job_id: str
    sse_url: str
    message: str
