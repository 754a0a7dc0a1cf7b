"""Domain exceptions shared by the service layer and the API.

Every error carries the HTTP status code the API should answer with, so the
routers can translate service failures without inspecting messages.
"""
from __future__ import annotations


class CatalogError(Exception):
    """Base exception for all catalog domain errors."""

    status_code: int = 500

    def __init__(self, message: str, *, status_code: int | None = None, original_error: Exception | None = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error
        if status_code is not None:
            self.status_code = status_code

    def __str__(self) -> str:
        return self.message


class EmptyPayloadError(CatalogError):
    """Raised when an import receives no bytes at all."""

    status_code = 400

    def __init__(self, message: str = "CSV file is required", **kwargs):
        super().__init__(message, **kwargs)


class CSVDecodeError(CatalogError):
    """Raised when the tabular payload is structurally malformed."""

    status_code = 400

    def __init__(self, message: str = "Invalid CSV format: mismatched quotes", **kwargs):
        super().__init__(message, **kwargs)


class NoCategoriesError(CatalogError):
    """Raised when a category must be inferred but none exist yet."""

    status_code = 400

    def __init__(self, message: str = "No categories available to infer", **kwargs):
        super().__init__(message, **kwargs)


class InferenceNotConfiguredError(CatalogError):
    """Raised when an operation needs the inference provider and no API key is set."""

    status_code = 500

    def __init__(self, message: str = "OpenAI API key is not configured", **kwargs):
        super().__init__(message, **kwargs)


class InferenceError(CatalogError):
    """Raised when the inference provider fails or returns an unusable answer."""

    status_code = 502


class ProductNotFoundError(CatalogError):
    """Raised when a product id does not exist."""

    status_code = 404

    def __init__(self, message: str = "Product not found", **kwargs):
        super().__init__(message, **kwargs)


class DuplicateExtIdError(CatalogError):
    """Raised when the unique extId index rejects a write."""

    status_code = 409

    def __init__(self, message: str = "A product with the same extId already exists", **kwargs):
        super().__init__(message, **kwargs)


class NoChangesError(CatalogError):
    """Raised when an update request carries no fields."""

    status_code = 400

    def __init__(self, message: str = "No fields provided for update", **kwargs):
        super().__init__(message, **kwargs)


class InvalidQueryError(CatalogError):
    """Raised when listing filters contradict each other."""

    status_code = 400


class ExternalFeedError(CatalogError):
    """Raised when the external product feed cannot be consumed."""

    status_code = 502


class JobNotFoundError(CatalogError):
    """Raised when a background job id does not exist."""

    status_code = 404

    def __init__(self, message: str = "Job not found", **kwargs):
        super().__init__(message, **kwargs)
