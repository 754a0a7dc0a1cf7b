"""Single-product operations, catalog listing, export and external sync."""
from __future__ import annotations

import logging
import math
import threading
import time
from typing import Any, Callable

import httpx
from sqlalchemy.exc import IntegrityError

from catalog.core.config import get_settings
from catalog.core.exceptions import (
    DuplicateExtIdError,
    ExternalFeedError,
    InferenceNotConfiguredError,
    InvalidQueryError,
    NoCategoriesError,
    NoChangesError,
    ProductNotFoundError,
)
from catalog.models.product import Product
from catalog.schemas.product import (
    Pagination,
    ProductCreate,
    ProductFilter,
    ProductListResponse,
    ProductResponse,
    ProductStats,
    ProductUpdate,
)
from catalog.services.bulk_operations import validate_language
from catalog.services.category_resolver import CategoryResolver
from catalog.services.csv_codec import encode_records
from catalog.services.import_service import normalize_price
from catalog.services.inference import InferenceService
from catalog.services.product_repository import ProductRepository

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = ("id", "extId", "title", "description", "price", "category", "image", "aiSummary", "createdAt")


class ExtIdAllocator:
    """Hands out synthetic extIds based on the current Unix time.

    Starting from ``int(time.time())``, the candidate is bumped until it is
    neither reserved by an in-flight creation in this process nor stored.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._reserved: set[int] = set()
        self._lock = threading.Lock()

    def allocate(self, exists: Callable[[int], bool]) -> int:
        with self._lock:
            candidate = int(self._clock())
            while candidate in self._reserved or exists(candidate):
                candidate += 1
            self._reserved.add(candidate)
            return candidate

    def release(self, ext_id: int) -> None:
        with self._lock:
            self._reserved.discard(ext_id)


ext_id_allocator = ExtIdAllocator()


class ProductService:
    """Coordinates single-product writes with category resolution and inference."""

    def __init__(
        self,
        repository: ProductRepository,
        inference: InferenceService,
        *,
        allocator: ExtIdAllocator | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._repository = repository
        self._inference = inference
        self._resolver = CategoryResolver(inference)
        self._allocator = allocator or ext_id_allocator
        self._http_client = http_client

    def get_product(self, product_id: int) -> Product:
        product = self._repository.get_by_id(product_id)
        if product is None:
            raise ProductNotFoundError()
        return product

    async def create_product(self, data: ProductCreate) -> Product:
        """Create a product, resolving its category and generating an extId if needed.

        Raises:
            NoCategoriesError: If no category is given and none exist to infer from
            DuplicateExtIdError: If the extId is already taken
        """
        category = await self._resolver.resolve(
            data.category, data.title, data.description, self._repository.distinct_categories()
        )

        generated = data.ext_id is None
        ext_id = self._allocator.allocate(self._repository.exists_by_ext_id) if generated else data.ext_id

        try:
            return self._repository.create(
                {
                    "ext_id": ext_id,
                    "title": data.title,
                    "description": data.description,
                    "price": normalize_price(data.price),
                    "category": category,
                    "image": data.image,
                    "ai_summary": data.ai_summary,
                }
            )
        except IntegrityError as exc:
            self._repository.rollback()
            logger.warning(f"Duplicate extId {ext_id} rejected on create")
            raise DuplicateExtIdError(original_error=exc) from exc
        finally:
            if generated:
                self._allocator.release(ext_id)

    async def update_product(self, product_id: int, data: ProductUpdate) -> Product:
        """Apply the fields present in ``data``; a category key re-resolves the category."""
        provided = data.model_fields_set
        if not provided:
            raise NoChangesError()

        product = self.get_product(product_id)

        if "title" in provided and data.title is not None:
            product.title = data.title
        if "description" in provided and data.description is not None:
            product.description = data.description
        if "price" in provided and data.price is not None:
            product.price = normalize_price(data.price)
        if "image" in provided and data.image is not None:
            product.image = data.image
        if "ai_summary" in provided:
            product.ai_summary = data.ai_summary
        if "category" in provided:
            product.category = await self._resolver.resolve(
                data.category, product.title, product.description, self._repository.distinct_categories()
            )

        return self._repository.save(product)

    def delete_product(self, product_id: int) -> None:
        self._repository.delete(self.get_product(product_id))

    async def translate_product(self, product_id: int, lang: str) -> Product:
        lang = validate_language(lang)
        product = self.get_product(product_id)
        translation = await self._inference.translate(product.title, product.description, lang)
        product.title = translation.title
        product.description = translation.description
        return self._repository.save(product)

    async def generate_summary(self, product_id: int) -> Product:
        if not self._inference.is_configured():
            raise InferenceNotConfiguredError()
        product = self.get_product(product_id)
        product.ai_summary = await self._inference.summarize(product.description)
        return self._repository.save(product)

    async def infer_category(self, product_id: int) -> Product:
        product = self.get_product(product_id)
        categories = self._repository.distinct_categories()
        if not categories:
            raise NoCategoriesError()
        product.category = await self._resolver.resolve(None, product.title, product.description, categories)
        return self._repository.save(product)

    def list_products(self, filter_params: ProductFilter, page: int = 1, size: int = 10) -> ProductListResponse:
        """Return one page of the filtered catalog plus per-category counts."""
        self._check_price_range(filter_params)
        products, total = self._repository.list_with_filters(filter_params, page=page, page_size=size)
        return ProductListResponse(
            data=[ProductResponse.model_validate(product) for product in products],
            pagination=Pagination(page=page, size=size, total=total, total_pages=math.ceil(total / size) or 1),
            stats=ProductStats(by_category=self._repository.category_counts()),
        )

    def export_csv(self, filter_params: ProductFilter | None = None) -> str:
        """Render the filtered catalog as CSV using the import column names."""
        filter_params = filter_params or ProductFilter()
        self._check_price_range(filter_params)
        products, _ = self._repository.list_with_filters(filter_params)
        rows = [
            ProductResponse.model_validate(product).model_dump(by_alias=True, mode="json")
            for product in products
        ]
        return encode_records(rows, EXPORT_COLUMNS)

    async def sync_external(self, summary_limit: int | None = None) -> list[Product]:
        """Pull the external product feed and upsert it by extId.

        The first ``summary_limit`` items get an AI summary when inference is
        configured; a failed summary leaves the field empty.
        """
        settings = get_settings()
        limit = settings.summary_limit if summary_limit is None else max(0, summary_limit)
        payload = await self._fetch_external(settings.external_api)

        rows: list[dict[str, Any]] = []
        for index, item in enumerate(payload):
            ai_summary = None
            if index < limit and self._inference.is_configured():
                try:
                    ai_summary = await self._inference.summarize(item["description"])
                except Exception as exc:
                    logger.warning(f"Summary failed for external product {item.get('id')}: {exc}")

            rows.append(
                {
                    "ext_id": int(item["id"]),
                    "title": item["title"],
                    "description": item["description"],
                    "price": normalize_price(item["price"]),
                    "category": item.get("category") or "",
                    "image": item["image"],
                    "ai_summary": ai_summary,
                }
            )

        affected = self._repository.upsert_by_ext_id(rows)
        logger.info(f"External sync upserted {affected} products")
        return self._repository.list_by_ext_ids([row["ext_id"] for row in rows])

    async def _fetch_external(self, url: str) -> list[dict[str, Any]]:
        try:
            if self._http_client is not None:
                response = await self._http_client.get(url)
            else:
                async with httpx.AsyncClient(timeout=30, follow_redirects=True) as client:
                    response = await client.get(url)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise ExternalFeedError(f"Failed to fetch external data: {exc}", original_error=exc) from exc

        payload = response.json()
        if not isinstance(payload, list):
            raise ExternalFeedError("External API returned an unexpected payload")
        return payload

    @staticmethod
    def _check_price_range(filter_params: ProductFilter) -> None:
        if (
            filter_params.price_min is not None
            and filter_params.price_max is not None
            and filter_params.price_min > filter_params.price_max
        ):
            raise InvalidQueryError("priceMin cannot be greater than priceMax")
