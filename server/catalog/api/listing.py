"""Catalog listing, CSV export and external feed sync endpoints."""
from __future__ import annotations

import logging
from typing import Literal

from fastapi import APIRouter, Depends, Query, Response

from catalog.api.products import get_product_service
from catalog.schemas.product import ProductFilter, ProductListResponse, ProductResponse
from catalog.services.product_service import ProductService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["catalog"])


def get_product_filter(
    q: str | None = Query(default=None, description="Search in title or description (case-insensitive)"),
    category: str | None = Query(default=None, description="Exact category"),
    price_min: float | None = Query(default=None, alias="priceMin", ge=0),
    price_max: float | None = Query(default=None, alias="priceMax", gt=0),
    sort_by: Literal["id", "price", "title", "createdAt"] = Query(default="id", alias="sortBy"),
    order: Literal["ASC", "DESC", "asc", "desc"] = Query(default="ASC"),
) -> ProductFilter:
    return ProductFilter(
        q=q.strip() if q and q.strip() else None,
        category=category.strip() if category and category.strip() else None,
        price_min=price_min,
        price_max=price_max,
        sort_by=sort_by,
        order=order.upper(),
    )


@router.get(
    "/data",
    response_model=ProductListResponse,
    summary="List products with filtering, sorting and pagination",
    description="Returns one page of products and the number of products per category.",
)
async def list_products(
    filter_params: ProductFilter = Depends(get_product_filter),
    page: int = Query(default=1, ge=1, description="Page number (1-indexed)"),
    size: int = Query(default=10, ge=1, le=100, description="Items per page (max 100)"),
    service: ProductService = Depends(get_product_service),
) -> ProductListResponse:
    return service.list_products(filter_params, page=page, size=size)


@router.get(
    "/export-csv",
    summary="Export the catalog as CSV",
    description="Uses the same filters as `/data`; the columns match the import format.",
    response_class=Response,
)
async def export_csv(
    filter_params: ProductFilter = Depends(get_product_filter),
    service: ProductService = Depends(get_product_service),
) -> Response:
    content = service.export_csv(filter_params)
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": 'attachment; filename="products.csv"'},
    )


@router.post(
    "/external-data",
    response_model=list[ProductResponse],
    summary="Sync products from the external feed",
    description="Fetches the configured external API and upserts its products by extId.",
)
async def sync_external_data(
    summary_limit: int | None = Query(default=None, alias="summaryLimit", ge=0),
    service: ProductService = Depends(get_product_service),
) -> list[ProductResponse]:
    products = await service.sync_external(summary_limit)
    logger.info(f"External sync returned {len(products)} products")
    return [ProductResponse.model_validate(product) for product in products]
