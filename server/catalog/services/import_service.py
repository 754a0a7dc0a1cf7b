"""CSV import: decode, validate, resolve categories and upsert into the catalog."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Callable

from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError

from catalog.core.exceptions import DuplicateExtIdError, EmptyPayloadError
from catalog.models.product import Product
from catalog.schemas.product import ImportRow, ImportSummary
from catalog.services.category_resolver import CategoryCache, CategoryResolver
from catalog.services.csv_codec import decode_records
from catalog.services.product_repository import ProductRepository

logger = logging.getLogger(__name__)

IMPORT_COLUMNS = ("id", "extId", "title", "description", "price", "category", "image", "aiSummary")

# Data row i (0-based) sits on line i + 2 of the file, after the header.
HEADER_OFFSET = 2

ProgressCallback = Callable[[int, int], None]


def normalize_price(value: float | Decimal | str) -> Decimal:
    """Round a price to two decimals the way it is stored."""
    return Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def format_validation_error(exc: ValidationError) -> str:
    """Flatten pydantic errors into ``field: message`` pairs."""
    parts = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error["loc"]) or "row"
        parts.append(f"{field}: {error['msg']}")
    return ", ".join(parts)


class MatchKind(str, Enum):
    """How an import row was matched to an existing product."""

    BY_EXT_ID = "ext_id"
    BY_ID = "id"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class Lookup:
    """Result of locating the product an import row refers to."""

    kind: MatchKind
    product: Product | None = None


class RowOutcome(str, Enum):
    CREATED = "created"
    UPDATED = "updated"


class CSVImportService:
    """Merges CSV rows into the catalog without duplicating or losing records."""

    def __init__(self, repository: ProductRepository, resolver: CategoryResolver) -> None:
        self._repository = repository
        self._resolver = resolver

    async def import_csv(self, raw: bytes, *, on_progress: ProgressCallback | None = None) -> ImportSummary:
        """Import a CSV payload and report what happened to every row.

        The payload is decoded in full before any row is touched, so a
        structural error aborts the import with nothing written.

        Args:
            raw: CSV bytes with a header row using ``IMPORT_COLUMNS`` names
            on_progress: Optional callback receiving (processed_rows, total_rows)

        Returns:
            ImportSummary with created/updated counts and per-row errors

        Raises:
            EmptyPayloadError: If ``raw`` is empty
            CSVDecodeError: If the payload has unbalanced quotes or bad encoding
        """
        if not raw:
            raise EmptyPayloadError()

        records = list(decode_records(raw))
        summary = ImportSummary()
        if not records:
            return summary

        logger.info(f"Importing {len(records)} CSV rows")

        cache = CategoryCache(self._repository.distinct_categories())

        for index, record in enumerate(records):
            row_number = index + HEADER_OFFSET
            present = {key: value for key, value in record.items() if value != ""}

            try:
                row = ImportRow.model_validate(present)
            except ValidationError as exc:
                summary.errors.append(f"row {row_number}: {format_validation_error(exc)}")
            else:
                try:
                    outcome = await self._upsert_row(row, cache)
                except IntegrityError as exc:
                    self._repository.rollback()
                    logger.warning(f"Row {row_number} rejected by storage: {exc.orig}")
                    summary.errors.append(f"row {row_number}: {DuplicateExtIdError().message}")
                except Exception as exc:
                    self._repository.rollback()
                    logger.warning(f"Row {row_number} failed: {exc}")
                    summary.errors.append(f"row {row_number}: {exc}")
                else:
                    if outcome is RowOutcome.CREATED:
                        summary.created += 1
                    else:
                        summary.updated += 1

            if on_progress is not None:
                on_progress(index + 1, len(records))

        logger.info(
            f"CSV import finished: {summary.created} created, {summary.updated} updated, "
            f"{len(summary.errors)} errors"
        )
        return summary

    def locate(self, row: ImportRow) -> Lookup:
        """Find the product a row refers to: by extId first, then by internal id."""
        if row.ext_id is not None:
            product = self._repository.get_by_ext_id(row.ext_id)
            if product is not None:
                return Lookup(MatchKind.BY_EXT_ID, product)
        if row.id is not None:
            product = self._repository.get_by_id(row.id)
            if product is not None:
                return Lookup(MatchKind.BY_ID, product)
        return Lookup(MatchKind.NOT_FOUND)

    async def _upsert_row(self, row: ImportRow, cache: CategoryCache) -> RowOutcome:
        lookup = self.locate(row)
        product = lookup.product

        category = await self._resolver.resolve(row.category, row.title, row.description, cache.as_list())
        cache.add(category)

        ext_id = product.ext_id if product is not None else row.ext_id
        if ext_id is None:
            raise ValueError("extId is required to create new products from a bulk feed")

        fields = {
            "ext_id": ext_id,
            "title": row.title,
            "description": row.description,
            "price": normalize_price(row.price),
            "category": category,
            "image": row.image,
            "ai_summary": row.ai_summary,
        }

        if product is not None:
            for key, value in fields.items():
                setattr(product, key, value)
            self._repository.save(product)
            return RowOutcome.UPDATED

        self._repository.create(fields)
        return RowOutcome.CREATED
