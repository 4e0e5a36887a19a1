"""FIFO matching of returned quantities against supply batches.

Both the stock ledger (which site a return leaves) and the rental
allocator (which transfer a returned unit is billed against) consume
returns through ``consume_fifo`` so the two derivations always agree.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, Optional

from rentledger.models.records import Number


@dataclass
class Batch:
    """A transferred quantity still open for matching, in supply order."""

    key: Any
    quantity: Number
    started_at: Optional[datetime]
    remaining: Number = field(init=False)

    def __post_init__(self) -> None:
        self.remaining = self.quantity


def sort_batches(batches: Iterable[Batch]) -> list[Batch]:
    """Oldest first; undated batches last. Ties keep input order."""
    return sorted(
        batches,
        key=lambda b: (b.started_at is None, b.started_at or datetime.min),
    )


def consume_fifo(
    batches: list[Batch], quantity: Number
) -> tuple[list[tuple[Batch, Number]], Number]:
    """Takes ``quantity`` from the oldest batches first.

    Returns the ``(batch, taken)`` pairs and whatever could not be matched.
    Batches are updated in place.
    """
    taken_from: list[tuple[Batch, Number]] = []
    left = quantity
    for batch in batches:
        if left <= 0:
            break
        if batch.remaining <= 0:
            continue
        take = min(left, batch.remaining)
        batch.remaining -= take
        left -= take
        taken_from.append((batch, take))
    return taken_from, max(left, 0)
