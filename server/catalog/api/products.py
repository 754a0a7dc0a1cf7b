"""Product management, CSV import and AI bulk operation endpoints."""
from __future__ import annotations

import logging
from functools import lru_cache

from fastapi import APIRouter, Depends, File, HTTPException, Response, UploadFile, status
from sqlalchemy.orm import Session

from catalog.core.config import get_settings
from catalog.core.db import get_session
from catalog.core.exceptions import EmptyPayloadError
from catalog.schemas.product import (
    BatchResult,
    BulkLimitRequest,
    BulkTranslateRequest,
    ImportSummary,
    ProductCreate,
    ProductResponse,
    ProductUpdate,
    TranslateRequest,
)
from catalog.services.bulk_operations import BulkOperations
from catalog.services.category_resolver import CategoryResolver
from catalog.services.import_service import CSVImportService
from catalog.services.inference import InferenceService
from catalog.services.product_repository import ProductRepository
from catalog.services.product_service import ProductService

logger = logging.getLogger(__name__)
settings = get_settings()

router = APIRouter(prefix="/products", tags=["products"])


@lru_cache
def get_inference_service() -> InferenceService:
    """Shared inference client built from settings."""
    return InferenceService()


def get_product_repository(session: Session = Depends(get_session)) -> ProductRepository:
    """Dependency to get ProductRepository instance."""
    return ProductRepository(session)


def get_product_service(
    repository: ProductRepository = Depends(get_product_repository),
    inference: InferenceService = Depends(get_inference_service),
) -> ProductService:
    return ProductService(repository, inference)


def get_bulk_operations(
    repository: ProductRepository = Depends(get_product_repository),
    inference: InferenceService = Depends(get_inference_service),
) -> BulkOperations:
    return BulkOperations(repository, inference)


async def read_upload(file: UploadFile | None) -> bytes:
    """Read an uploaded CSV into memory, enforcing the configured size limit."""
    if file is None:
        raise EmptyPayloadError()
    try:
        raw = await file.read()
    finally:
        await file.close()

    size_mb = len(raw) / (1024 * 1024)
    if size_mb > settings.max_upload_size_mb:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File size ({size_mb:.2f} MB) exceeds maximum allowed size ({settings.max_upload_size_mb} MB)",
        )
    return raw


@router.post(
    "/import",
    response_model=ImportSummary,
    status_code=status.HTTP_200_OK,
    summary="Import products from a CSV file",
    description=(
        "Creates or updates products row by row. Rows are matched by extId, then by id. "
        "Invalid rows are reported in `errors` and do not stop the import."
    ),
)
async def import_products(
    file: UploadFile | None = File(default=None, description="CSV file to import"),
    repository: ProductRepository = Depends(get_product_repository),
    inference: InferenceService = Depends(get_inference_service),
) -> ImportSummary:
    raw = await read_upload(file)
    service = CSVImportService(repository, CategoryResolver(inference))
    summary = await service.import_csv(raw)
    logger.info(f"CSV import finished: {summary.created} created, {summary.updated} updated, {len(summary.errors)} errors")
    return summary


@router.post(
    "/generate-summaries",
    response_model=BatchResult,
    summary="Generate AI summaries",
    description="Writes an AI summary for every product, or for the first `limit` products by id.",
)
async def generate_summaries(
    body: BulkLimitRequest | None = None,
    operations: BulkOperations = Depends(get_bulk_operations),
) -> BatchResult:
    limit = body.limit if body else None
    return await operations.generate_summaries(limit)


@router.post(
    "/translate-all",
    response_model=BatchResult,
    summary="Translate products",
    description="Translates title and description of every product, or of the first `limit` products by id.",
)
async def translate_all(
    body: BulkTranslateRequest,
    operations: BulkOperations = Depends(get_bulk_operations),
) -> BatchResult:
    return await operations.translate_products(body.lang, body.limit)


@router.post(
    "/generate-categories",
    response_model=BatchResult,
    summary="Fill in missing categories",
    description="Infers a category for products whose category is blank, choosing among existing categories.",
)
async def generate_categories(
    body: BulkLimitRequest | None = None,
    operations: BulkOperations = Depends(get_bulk_operations),
) -> BatchResult:
    limit = body.limit if body else None
    return await operations.ensure_categories(limit)


@router.post(
    "/infer-categories",
    response_model=BatchResult,
    summary="Re-infer categories",
    description="Re-infers the category of every product, or of the first `limit` products by id.",
)
async def infer_categories(
    body: BulkLimitRequest | None = None,
    operations: BulkOperations = Depends(get_bulk_operations),
) -> BatchResult:
    limit = body.limit if body else None
    return await operations.infer_categories(limit)


@router.post(
    "",
    response_model=ProductResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new product",
    description=(
        "Create a single product. extId is generated when omitted and must be unique; "
        "a blank category is inferred from the existing ones."
    ),
)
async def create_product(
    product: ProductCreate,
    service: ProductService = Depends(get_product_service),
) -> ProductResponse:
    created = await service.create_product(product)
    return ProductResponse.model_validate(created)


@router.get(
    "/{product_id}",
    response_model=ProductResponse,
    summary="Get product by ID",
)
async def get_product(
    product_id: int,
    service: ProductService = Depends(get_product_service),
) -> ProductResponse:
    return ProductResponse.model_validate(service.get_product(product_id))


@router.put(
    "/{product_id}",
    response_model=ProductResponse,
    summary="Update a product",
    description="Only provided fields are updated. Sending `category` re-resolves it.",
)
@router.patch(
    "/{product_id}",
    response_model=ProductResponse,
    summary="Partially update a product",
)
async def update_product(
    product_id: int,
    product: ProductUpdate,
    service: ProductService = Depends(get_product_service),
) -> ProductResponse:
    updated = await service.update_product(product_id, product)
    return ProductResponse.model_validate(updated)


@router.delete(
    "/{product_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a product by ID",
)
async def delete_product(
    product_id: int,
    service: ProductService = Depends(get_product_service),
) -> Response:
    service.delete_product(product_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{product_id}/translate",
    response_model=ProductResponse,
    summary="Translate one product",
)
async def translate_product(
    product_id: int,
    body: TranslateRequest,
    service: ProductService = Depends(get_product_service),
) -> ProductResponse:
    translated = await service.translate_product(product_id, body.lang)
    return ProductResponse.model_validate(translated)


@router.post(
    "/{product_id}/generate-summary",
    response_model=ProductResponse,
    summary="Generate an AI summary for one product",
)
async def generate_summary(
    product_id: int,
    service: ProductService = Depends(get_product_service),
) -> ProductResponse:
    return ProductResponse.model_validate(await service.generate_summary(product_id))


@router.post(
    "/{product_id}/infer-category",
    response_model=ProductResponse,
    summary="Infer the category of one product",
)
async def infer_category(
    product_id: int,
    service: ProductService = Depends(get_product_service),
) -> ProductResponse:
    return ProductResponse.model_validate(await service.infer_category(product_id))
