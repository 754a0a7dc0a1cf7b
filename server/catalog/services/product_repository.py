"""Product repository for catalog lookups, batch writes and upserts."""
from __future__ import annotations

from typing import Any, Mapping, Sequence

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from catalog.models.product import Product
from catalog.schemas.product import ProductFilter

_SORT_COLUMNS = {
    "id": Product.id,
    "price": Product.price,
    "title": Product.title,
    "createdAt": Product.created_at,
}

_UPSERT_COLUMNS = ("title", "description", "price", "category", "image", "ai_summary")


class ProductRepository:
    """Handles database operations for Product entities."""

    def __init__(self, session: Session) -> None:
        """Initialize repository with a SQLAlchemy session.

        Args:
            session: Active database session for executing queries
        """
        self._session = session

    def get_by_id(self, product_id: int) -> Product | None:
        """Fetch a product by its database ID."""
        return self._session.get(Product, product_id)

    def get_by_ext_id(self, ext_id: int) -> Product | None:
        """Fetch a product by its external identifier."""
        return self._session.execute(select(Product).where(Product.ext_id == ext_id)).scalar_one_or_none()

    def exists_by_ext_id(self, ext_id: int) -> bool:
        """Return True if a product already uses ``ext_id``."""
        stmt = select(Product.id).where(Product.ext_id == ext_id).limit(1)
        return self._session.execute(stmt).first() is not None

    def list_ordered(self, limit: int | None = None) -> list[Product]:
        """Fetch products by ascending id, optionally capped at ``limit``."""
        stmt = select(Product).order_by(Product.id.asc())
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(self._session.execute(stmt).scalars())

    def list_by_ext_ids(self, ext_ids: Sequence[int]) -> list[Product]:
        """Fetch the products matching ``ext_ids`` by ascending id."""
        if not ext_ids:
            return []
        stmt = select(Product).where(Product.ext_id.in_(ext_ids)).order_by(Product.id.asc())
        # rows were rewritten by a bulk statement; refresh any instances already loaded
        stmt = stmt.execution_options(populate_existing=True)
        return list(self._session.execute(stmt).scalars())

    def list_missing_category(self, limit: int | None = None) -> list[Product]:
        """Fetch products whose category is blank or whitespace, by ascending id.

        SQL ``trim`` only strips spaces, so tabs and newlines are checked here
        with ``str.strip`` and ``limit`` applies to the filtered list.
        """
        stmt = select(Product).order_by(Product.id.asc())
        missing = [product for product in self._session.execute(stmt).scalars() if not (product.category or "").strip()]
        if limit is not None:
            missing = missing[:limit]
        return missing

    def distinct_categories(self) -> list[str]:
        """Return the distinct non-empty categories, sorted by string comparison."""
        stmt = select(Product.category).distinct().order_by(Product.category.asc())
        return [category for category in self._session.execute(stmt).scalars() if category and category.strip()]

    def category_counts(self) -> dict[str, int]:
        """Return the number of products per category."""
        stmt = select(Product.category, func.count(Product.id)).group_by(Product.category)
        return {category: count for category, count in self._session.execute(stmt).all()}

    def list_with_filters(
        self,
        filter_params: ProductFilter,
        *,
        page: int | None = None,
        page_size: int | None = None,
    ) -> tuple[list[Product], int]:
        """Fetch products with filtering, sorting and optional pagination.

        Returns:
            Tuple of (products, total count before pagination)
        """
        stmt = select(Product)

        if filter_params.q:
            pattern = f"%{filter_params.q}%"
            stmt = stmt.where(Product.title.ilike(pattern) | Product.description.ilike(pattern))
        if filter_params.category:
            stmt = stmt.where(Product.category == filter_params.category)
        if filter_params.price_min is not None:
            stmt = stmt.where(Product.price >= filter_params.price_min)
        if filter_params.price_max is not None:
            stmt = stmt.where(Product.price <= filter_params.price_max)

        total = self._session.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()

        column = _SORT_COLUMNS.get(filter_params.sort_by, Product.id)
        stmt = stmt.order_by(column.desc() if filter_params.order == "DESC" else column.asc())

        if page is not None and page_size is not None:
            stmt = stmt.offset((page - 1) * page_size).limit(page_size)

        return list(self._session.execute(stmt).scalars()), total

    def create(self, fields: Mapping[str, Any]) -> Product:
        """Insert a new product.

        Raises:
            IntegrityError: If ``ext_id`` is already taken
        """
        product = Product(**fields)
        self._session.add(product)
        self._session.commit()
        self._session.refresh(product)
        return product

    def save(self, product: Product) -> Product:
        """Persist in-place changes to a single product."""
        self._session.add(product)
        self._session.commit()
        self._session.refresh(product)
        return product

    def save_all(self, products: Sequence[Product]) -> None:
        """Persist in-place changes to many products in one write."""
        if not products:
            return
        self._session.add_all(products)
        self._session.commit()

    def delete(self, product: Product) -> None:
        """Remove a product."""
        self._session.delete(product)
        self._session.commit()

    def discard_changes(self, product: Product) -> None:
        """Drop pending in-memory changes to ``product`` by reloading it."""
        self._session.refresh(product)

    def rollback(self) -> None:
        """Roll back the current transaction after a failed write."""
        self._session.rollback()

    def upsert_by_ext_id(self, rows: Sequence[Mapping[str, Any]]) -> int:
        """Bulk insert or update products keyed on ``ext_id``.

        Uses the dialect's ``INSERT ... ON CONFLICT`` against the unique
        ``ext_id`` index. Later rows win when the batch repeats an ``ext_id``.

        Returns:
            Number of rows affected (inserted or updated)
        """
        if not rows:
            return 0

        deduplicated: dict[int, dict[str, Any]] = {}
        for row in rows:
            deduplicated[row["ext_id"]] = dict(row)

        dialect = self._session.get_bind().dialect.name
        insert = pg_insert if dialect == "postgresql" else sqlite_insert

        stmt = insert(Product).values(list(deduplicated.values()))
        stmt = stmt.on_conflict_do_update(
            index_elements=[Product.ext_id],
            set_={column: getattr(stmt.excluded, column) for column in _UPSERT_COLUMNS},
        )

        result = self._session.execute(stmt)
        self._session.commit()
        return result.rowcount
