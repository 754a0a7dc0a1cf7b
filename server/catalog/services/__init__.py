"""Services module for business logic."""
from __future__ import annotations

from .batch_runner import BatchMutationRunner, BatchOutcome
from .bulk_operations import BulkOperations
from .category_resolver import CategoryCache, CategoryResolver
from .import_service import CSVImportService
from .inference import InferenceService
from .job_service import BulkJobRepository, BulkJobService
from .product_repository import ProductRepository
from .product_service import ProductService

__all__ = [
    "BatchMutationRunner",
    "BatchOutcome",
    "BulkOperations",
    "CategoryCache",
    "CategoryResolver",
    "CSVImportService",
    "InferenceService",
    "BulkJobRepository",
    "BulkJobService",
    "ProductRepository",
    "ProductService",
]
