"""Public schema exports."""

from .bulk_job import BulkJobAccepted, BulkJobResponse
from .product import (
    BatchResult,
    BulkLimitRequest,
    BulkTranslateRequest,
    ImportRow,
    ImportSummary,
    ProductCreate,
    ProductFilter,
    ProductListResponse,
    ProductResponse,
    ProductUpdate,
    SummaryRequest,
    SummaryResponse,
    TranslateRequest,
)

__all__ = [
    "BatchResult",
    "BulkJobAccepted",
    "BulkJobResponse",
    "BulkLimitRequest",
    "BulkTranslateRequest",
    "ImportRow",
    "ImportSummary",
    "ProductCreate",
    "ProductFilter",
    "ProductListResponse",
    "ProductResponse",
    "ProductUpdate",
    "SummaryRequest",
    "SummaryResponse",
    "TranslateRequest",
]
