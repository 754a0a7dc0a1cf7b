"""Category resolution against the set of categories already in the catalog."""
from __future__ import annotations

import logging
from typing import Iterable, Sequence

from catalog.core.exceptions import InferenceNotConfiguredError, NoCategoriesError
from catalog.services.inference import InferenceService

logger = logging.getLogger(__name__)

_QUOTES = "'\""


def _normalize(text: str) -> str:
    """Lowercase ``text`` without surrounding whitespace or quotes.

    A leading quote and a trailing quote are each dropped on their own, so an
    unbalanced ``"Toys`` still normalises to ``toys``.
    """
    cleaned = text.strip()
    if cleaned.startswith(tuple(_QUOTES)):
        cleaned = cleaned[1:]
    if cleaned.endswith(tuple(_QUOTES)):
        cleaned = cleaned[:-1]
    return cleaned.strip().lower()


def best_match(text: str, categories: Sequence[str]) -> str | None:
    """Return the category ``text`` names, or ``None`` when nothing matches.

    An exact case-insensitive match wins; otherwise the first category that
    appears as a substring of ``text`` (e.g. ``"I choose Electronics."``).
    """
    cleaned = _normalize(text)
    if not cleaned:
        return None

    for category in categories:
        if category.lower() == cleaned:
            return category

    for category in categories:
        if category.lower() in cleaned:
            return category

    return None


class CategoryCache:
    """Categories known during a single import or bulk call.

    Seeded from storage once, then extended with every category the call
    introduces, so a category assigned by one row is visible to later rows.
    """

    def __init__(self, categories: Iterable[str] = ()) -> None:
        self._categories: set[str] = {category for category in categories if category and category.strip()}

    def add(self, category: str) -> None:
        if category and category.strip():
            self._categories.add(category)

    def as_list(self) -> list[str]:
        return sorted(self._categories)

    def __contains__(self, category: object) -> bool:
        return category in self._categories

    def __len__(self) -> int:
        return len(self._categories)


class CategoryResolver:
    """Turns an optional candidate category into a definitive one."""

    def __init__(self, inference: InferenceService) -> None:
        self._inference = inference

    async def resolve(
        self,
        candidate: str | None,
        title: str,
        description: str,
        known: Sequence[str],
    ) -> str:
        """Return the category to store for a product.

        Raises:
            NoCategoriesError: If no candidate is given and ``known`` is empty
        """
        trimmed = (candidate or "").strip()
        if trimmed:
            return trimmed

        if not known:
            raise NoCategoriesError()

        try:
            suggestion = await self._inference.infer_category(title, description, known)
        except InferenceNotConfiguredError:
            return self._local_fallback(title, description, known)
        except Exception as exc:
            logger.warning(f"Category inference failed, using local match: {exc}")
            return self._local_fallback(title, description, known)

        return best_match(suggestion, known) or known[0]

    @staticmethod
    def _local_fallback(title: str, description: str, known: Sequence[str]) -> str:
        return best_match(f"{title} {description}", known) or known[0]
