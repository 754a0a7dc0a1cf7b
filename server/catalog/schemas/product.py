"""Pydantic schemas for product resources."""
from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


NonEmptyStr = Annotated[str, Field(min_length=1, max_length=255)]
LanguageCode = Annotated[str, Field(pattern=r"^[a-z]{2}(-[A-Z]{2})?$", description="ISO code, e.g. es or en-US")]
Price = Annotated[float, Field(ge=0, allow_inf_nan=False, description="Non-negative price")]


def _ensure_absolute_url(value: str) -> str:
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        msg = "image must be an absolute http(s) URL"
        raise ValueError(msg)
    return value


class CamelModel(BaseModel):
    """Base model exposing camelCase field names on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ProductCreate(CamelModel):
    """Payload used when creating a single product."""

    ext_id: int | None = Field(default=None, gt=0, description="External identifier; generated when omitted")
    title: NonEmptyStr = Field(description="Display title")
    description: str = Field(min_length=1, description="Marketing copy")
    price: Price
    category: str | None = Field(default=None, max_length=255, description="Category; inferred when blank")
    image: str = Field(description="Absolute image URL")
    ai_summary: str | None = Field(default=None, description="Optional precomputed summary")

    @field_validator("title", "category", mode="before")
    @classmethod
    def strip_whitespace(cls, value: str | None) -> str | None:
        if isinstance(value, str):
            value = value.strip()
        return value

    @field_validator("description")
    @classmethod
    def ensure_description(cls, value: str) -> str:
        if not value.strip():
            msg = "description cannot be blank"
            raise ValueError(msg)
        return value

    @field_validator("image")
    @classmethod
    def ensure_image_url(cls, value: str) -> str:
        return _ensure_absolute_url(value)


class ProductUpdate(CamelModel):
    """Payload used when updating a product (all fields optional)."""

    title: NonEmptyStr | None = None
    description: str | None = Field(default=None, min_length=1)
    price: Price | None = None
    category: str | None = Field(default=None, max_length=255)
    image: str | None = None
    ai_summary: str | None = None

    @field_validator("title", "category", mode="before")
    @classmethod
    def strip_whitespace(cls, value: str | None) -> str | None:
        if isinstance(value, str):
            value = value.strip()
        return value

    @field_validator("image")
    @classmethod
    def ensure_image_url(cls, value: str | None) -> str | None:
        if value is None:
            return value
        return _ensure_absolute_url(value)


class ImportRow(CamelModel):
    """One decoded CSV row after validation.

    Blank cells are removed before validation, so optional columns are simply
    absent and required ones report ``Field required``.
    """

    id: int | None = Field(default=None, ge=1)
    ext_id: int | None = None
    title: NonEmptyStr
    description: str = Field(min_length=1)
    price: Price
    category: str | None = Field(default=None, max_length=255)
    image: str
    ai_summary: str | None = None

    @field_validator("title", "category", mode="before")
    @classmethod
    def strip_whitespace(cls, value: str | None) -> str | None:
        if isinstance(value, str):
            value = value.strip()
        return value

    @field_validator("image")
    @classmethod
    def ensure_image_url(cls, value: str) -> str:
        return _ensure_absolute_url(value)


class ProductResponse(CamelModel):
    """Response model returned by API endpoints."""

    id: int
    ext_id: int
    title: str
    description: str
    price: float
    category: str
    image: str
    ai_summary: str | None = None
    created_at: datetime | None = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class ProductFilter(CamelModel):
    """Query parameters for filtering and sorting the catalog."""

    q: str | None = Field(default=None, description="Case-insensitive match on title or description")
    category: str | None = Field(default=None, description="Exact category")
    price_min: float | None = Field(default=None, ge=0)
    price_max: float | None = Field(default=None, gt=0)
    sort_by: Literal["id", "price", "title", "createdAt"] = "id"
    order: Literal["ASC", "DESC"] = "ASC"


class Pagination(CamelModel):
    """Pagination block of a product listing."""

    page: int
    size: int
    total: int
    total_pages: int


class ProductStats(CamelModel):
    """Aggregate counters returned alongside a listing."""

    by_category: dict[str, int]


class ProductListResponse(BaseModel):
    """Paginated response wrapper for product lists."""

    data: list[ProductResponse]
    pagination: Pagination
    stats: ProductStats


class TranslateRequest(BaseModel):
    """Body of a single-product translation request."""

    lang: LanguageCode

    @field_validator("lang", mode="before")
    @classmethod
    def strip_lang(cls, value: str) -> str:
        if isinstance(value, str):
            value = value.strip()
        return value


class BulkLimitRequest(BaseModel):
    """Optional cap on how many products a bulk operation selects."""

    limit: int | None = Field(default=None, ge=1, description="Process only the first N products by id")


class BulkTranslateRequest(BulkLimitRequest):
    """Body of a bulk translation request."""

    lang: LanguageCode

    @field_validator("lang", mode="before")
    @classmethod
    def strip_lang(cls, value: str) -> str:
        if isinstance(value, str):
            value = value.strip()
        return value


class SummaryRequest(BaseModel):
    """Free text to summarise."""

    text: str = Field(min_length=1, max_length=4000)

    @field_validator("text")
    @classmethod
    def reject_blank_text(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("text must not be empty")
        return value


class SummaryResponse(BaseModel):
    summary: str


class ImportSummary(BaseModel):
    """Outcome of a CSV import."""

    created: int = 0
    updated: int = 0
    errors: list[str] = Field(default_factory=list)


class BatchResult(BaseModel):
    """Outcome of a bulk AI mutation."""

    attempted: int = 0
    updated: int = 0
    errors: list[str] = Field(default_factory=list)
    products: list[ProductResponse] = Field(default_factory=list)
