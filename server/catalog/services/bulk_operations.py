"""AI-assisted bulk operations: summaries, translations and categories."""
from __future__ import annotations

import logging
import re

from catalog.core.exceptions import CatalogError, InferenceNotConfiguredError, NoCategoriesError
from catalog.models.product import Product
from catalog.schemas.product import BatchResult, ProductResponse
from catalog.services.batch_runner import BatchMutationRunner, BatchOutcome, ProgressCallback
from catalog.services.category_resolver import CategoryCache, CategoryResolver
from catalog.services.inference import InferenceService
from catalog.services.product_repository import ProductRepository

logger = logging.getLogger(__name__)

LANGUAGE_CODE = re.compile(r"^[a-z]{2}(-[A-Z]{2})?$")


def validate_language(lang: str) -> str:
    """Return ``lang`` stripped, or raise if it is not an ISO code like ``es`` or ``en-US``."""
    lang = lang.strip()
    if not LANGUAGE_CODE.match(lang):
        raise CatalogError("lang must be a valid ISO code, e.g., es or en-US", status_code=400)
    return lang


def to_batch_result(outcome: BatchOutcome) -> BatchResult:
    return BatchResult(
        attempted=outcome.attempted,
        updated=outcome.updated,
        errors=outcome.errors,
        products=[ProductResponse.model_validate(product) for product in outcome.mutated],
    )


class BulkOperations:
    """Runs AI mutations over an ordered, optionally limited slice of the catalog.

    Preconditions are checked before anything is selected, so a call that
    cannot run touches no records.
    """

    def __init__(
        self,
        repository: ProductRepository,
        inference: InferenceService,
        resolver: CategoryResolver | None = None,
    ) -> None:
        self._repository = repository
        self._inference = inference
        self._resolver = resolver or CategoryResolver(inference)
        self._runner = BatchMutationRunner(
            persist=repository.save_all,
            discard=repository.discard_changes,
        )

    def _require_inference(self) -> None:
        if not self._inference.is_configured():
            raise InferenceNotConfiguredError()

    def _require_categories(self) -> CategoryCache:
        cache = CategoryCache(self._repository.distinct_categories())
        if not cache:
            raise NoCategoriesError()
        return cache

    async def generate_summaries(
        self,
        limit: int | None = None,
        *,
        on_progress: ProgressCallback | None = None,
    ) -> BatchResult:
        """Write an AI summary for the first ``limit`` products by id."""
        self._require_inference()
        products = self._repository.list_ordered(limit)

        async def summarize(product: Product) -> None:
            product.ai_summary = await self._inference.summarize(product.description)

        outcome = await self._runner.run(products, summarize, on_progress=on_progress)
        return to_batch_result(outcome)

    async def translate_products(
        self,
        lang: str,
        limit: int | None = None,
        *,
        on_progress: ProgressCallback | None = None,
    ) -> BatchResult:
        """Translate title and description of the first ``limit`` products by id."""
        self._require_inference()
        lang = validate_language(lang)
        products = self._repository.list_ordered(limit)

        async def translate(product: Product) -> None:
            translation = await self._inference.translate(product.title, product.description, lang)
            product.title = translation.title
            product.description = translation.description

        outcome = await self._runner.run(products, translate, on_progress=on_progress)
        return to_batch_result(outcome)

    async def ensure_categories(
        self,
        limit: int | None = None,
        *,
        on_progress: ProgressCallback | None = None,
    ) -> BatchResult:
        """Fill in the category of products that have none."""
        cache = self._require_categories()
        products = self._repository.list_missing_category(limit)
        outcome = await self._runner.run(products, self._categorizer(cache), on_progress=on_progress)
        return to_batch_result(outcome)

    async def infer_categories(
        self,
        limit: int | None = None,
        *,
        on_progress: ProgressCallback | None = None,
    ) -> BatchResult:
        """Re-infer the category of the first ``limit`` products by id, whatever it is now."""
        cache = self._require_categories()
        products = self._repository.list_ordered(limit)
        outcome = await self._runner.run(products, self._categorizer(cache), on_progress=on_progress)
        return to_batch_result(outcome)

    def _categorizer(self, cache: CategoryCache):
        async def categorize(product: Product) -> None:
            category = await self._resolver.resolve(None, product.title, product.description, cache.as_list())
            cache.add(category)
            product.category = category

        return categorize
