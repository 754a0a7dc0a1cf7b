"""Tasks module for background job processing."""
from __future__ import annotations

from .bulk_tasks import run_bulk_job
from .celery_app import celery_app, get_celery_app

__all__ = [
    "celery_app",
    "get_celery_app",
    "run_bulk_job",
]
