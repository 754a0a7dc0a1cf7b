"""Sequential select-mutate-persist loop shared by all AI bulk operations."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Sequence

from catalog.models.product import Product

logger = logging.getLogger(__name__)

Mutation = Callable[[Product], Awaitable[None]]
ProgressCallback = Callable[[int, int], None]


def describe_error(exc: Exception) -> str:
    return str(exc) or type(exc).__name__


@dataclass
class BatchOutcome:
    """Raw result of a runner pass, before it is shaped for the API."""

    attempted: int = 0
    errors: list[str] = field(default_factory=list)
    mutated: list[Product] = field(default_factory=list)

    @property
    def updated(self) -> int:
        return len(self.mutated)


class BatchMutationRunner:
    """Applies a mutation to records one at a time and persists the successes.

    A single worker walks the selection in order: the mutation of record
    ``i + 1`` starts only after record ``i`` has settled. Failed records are
    reported and left out of the final write.
    """

    def __init__(
        self,
        persist: Callable[[Sequence[Product]], None],
        discard: Callable[[Product], None] | None = None,
    ) -> None:
        self._persist = persist
        self._discard = discard

    async def run(
        self,
        records: Sequence[Product],
        mutate: Mutation,
        *,
        on_progress: ProgressCallback | None = None,
    ) -> BatchOutcome:
        outcome = BatchOutcome(attempted=len(records))

        for position, record in enumerate(records, start=1):
            try:
                await mutate(record)
            except Exception as exc:
                logger.warning(f"Mutation failed for product {record.id}: {exc}")
                outcome.errors.append(f"product {record.id}: {describe_error(exc)}")
                if self._discard is not None:
                    self._discard(record)
            else:
                outcome.mutated.append(record)

            if on_progress is not None:
                on_progress(position, outcome.attempted)

        if outcome.mutated:
            self._persist(outcome.mutated)
            logger.info(f"Persisted {outcome.updated}/{outcome.attempted} mutated products")

        return outcome
