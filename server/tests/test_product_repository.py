"""Tests for ProductRepository queries and writes."""
from __future__ import annotations

from decimal import Decimal

from sqlalchemy.orm import Session

from catalog.services.product_repository import ProductRepository


def upsert_row(ext_id: int, title: str, **overrides) -> dict:
    row = {
        "ext_id": ext_id,
        "title": title,
        "description": f"{title} description",
        "price": Decimal("5.00"),
        "category": "General",
        "image": "https://example.com/x.png",
        "ai_summary": None,
    }
    row.update(overrides)
    return row


def test_distinct_categories_are_sorted_and_skip_blanks(db_session: Session, make_product):
    make_product(category="Toys")
    make_product(category="Books")
    make_product(category="Books")
    make_product(category="")

    assert ProductRepository(db_session).distinct_categories() == ["Books", "Toys"]


def test_list_missing_category_respects_limit(db_session: Session, make_product):
    first = make_product(category="")
    make_product(category=" ")
    make_product(category="Books")

    missing = ProductRepository(db_session).list_missing_category(limit=1)

    assert [product.id for product in missing] == [first.id]


def test_upsert_inserts_and_updates_by_ext_id(db_session: Session, make_product):
    existing = make_product(ext_id=1, title="Old")
    repository = ProductRepository(db_session)

    repository.upsert_by_ext_id([upsert_row(1, "New"), upsert_row(2, "Fresh")])

    products = repository.list_by_ext_ids([1, 2])
    assert [product.title for product in products] == ["New", "Fresh"]
    assert products[0].id == existing.id


def test_upsert_keeps_last_duplicate_in_batch(db_session: Session):
    repository = ProductRepository(db_session)

    repository.upsert_by_ext_id([upsert_row(3, "First"), upsert_row(3, "Second")])

    products = repository.list_by_ext_ids([3])
    assert len(products) == 1
    assert products[0].title == "Second"


def test_upsert_with_no_rows_is_a_no_op(db_session: Session):
    assert ProductRepository(db_session).upsert_by_ext_id([]) == 0


def test_discard_changes_reverts_unsaved_edits(db_session: Session, make_product):
    product = make_product(title="Saved")
    product.title = "Unsaved"

    ProductRepository(db_session).discard_changes(product)

    assert product.title == "Saved"
