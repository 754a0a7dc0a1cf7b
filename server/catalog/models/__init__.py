"""ORM models exposed for external modules."""
from .base import Base
from .bulk_job import BulkJob, JobOperation, JobStatus
from .product import Product

__all__ = [
    "Base",
    "BulkJob",
    "JobOperation",
    "JobStatus",
    "Product",
]
