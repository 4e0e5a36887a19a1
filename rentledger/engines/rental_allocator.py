"""FIFO Rental Allocator - time-weighted rental billing over a period.

Per (customer, product):
1. active (``Rented``) transfer lines are ordered by rental start date
2. the customer's total returned quantity is matched to them oldest first
3. each line splits into a returned portion, billed up to the latest
   rental end date of the customer's returns for that product, and a
   still-on-rent portion, billed up to the period end (or ``as_of``)
4. both portions are clipped to the billing period and charged
   ``quantity * rate * days`` with ``days = ceil(|end - start| / 1 day)``
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Optional

from rentledger.engines.fifo import Batch, consume_fifo, sort_batches
from rentledger.engines.rate_resolver import RateResolver
from rentledger.models.normalizer import (
    normalize_many,
    normalize_rental_order,
    normalize_return,
    normalize_transfer,
    to_datetime,
)
from rentledger.models.records import (
    AllocationResult,
    BillingLine,
    Number,
    TransferLine,
    TransferRecord,
)

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


def days_between(start: datetime, end: datetime) -> int:
    """Whole days, rounded up; the same instant gives 0."""
    return math.ceil(abs((end - start).total_seconds()) / SECONDS_PER_DAY)


@dataclass
class _ReturnTotals:
    quantity: Number = 0
    latest_end: Optional[datetime] = None


@dataclass(frozen=True)
class _SupplyKey:
    transfer: TransferRecord
    line: TransferLine
    rate: Number


def _group_returns(returns: list, customer_filter: Optional[str]) -> dict[tuple[str, str], _ReturnTotals]:
    ordered = sorted(
        (r for r in returns if not customer_filter or r.customer == customer_filter),
        key=lambda r: (r.return_date is None, r.return_date or datetime.min),
    )
    totals: dict[tuple[str, str], _ReturnTotals] = {}
    for record in ordered:
        for line in record.items:
            group = totals.setdefault((record.customer, line.product), _ReturnTotals())
            group.quantity += line.quantity
            end = record.rental_end_date
            if end and (group.latest_end is None or end > group.latest_end):
                group.latest_end = end
    return totals


def _group_transfers(
    transfers: list[TransferRecord],
    customer_filter: Optional[str],
    site_filter: Optional[str],
    resolver: RateResolver,
) -> dict[tuple[str, str], list[Batch]]:
    groups: dict[tuple[str, str], list[Batch]] = {}
    for transfer in transfers:
        if not transfer.is_active:
            continue
        if customer_filter and transfer.customer != customer_filter:
            continue
        if site_filter and transfer.site != site_filter:
            continue
        for line in transfer.items:
            rate = resolver.resolve(transfer.customer, transfer.site, line.product, line.per_day_rent)
            groups.setdefault((transfer.customer, line.product), []).append(
                Batch(
                    key=_SupplyKey(transfer, line, rate),
                    quantity=line.quantity,
                    started_at=transfer.rental_start_date,
                )
            )
    return {key: sort_batches(batches) for key, batches in groups.items()}


def allocate(
    customer_filter: Optional[str],
    site_filter: Optional[str],
    period_start: Any,
    period_end: Any,
    transfers: Iterable[Any],
    returns: Iterable[Any],
    rental_orders: Iterable[Any] = (),
    as_of: Any = None,
) -> AllocationResult:
    """Produces the billing lines of a period.

    ``customer_filter``/``site_filter`` of ``None`` mean all. Returns carry
    no site, so with a site filter the customer's returns are matched
    against that site's transfers only. ``as_of`` cuts the
    still-on-rent portion short of ``period_end`` for running estimates.
    """
    start = to_datetime(period_start)
    end = to_datetime(period_end)
    cutoff = min(to_datetime(as_of), end) if as_of is not None else end

    resolver = RateResolver(normalize_many(rental_orders, normalize_rental_order))
    transfer_groups = _group_transfers(
        normalize_many(transfers, normalize_transfer), customer_filter, site_filter, resolver
    )
    return_groups = _group_returns(normalize_many(returns, normalize_return), customer_filter)

    result = AllocationResult()

    for (customer, product), batches in transfer_groups.items():
        returned = return_groups.get((customer, product), _ReturnTotals())
        taken, unmatched = consume_fifo(batches, returned.quantity)
        if unmatched:
            logger.debug("%s/%s: %s returned unit(s) match no active transfer", customer, product, unmatched)
        returned_by_batch = {id(batch): qty for batch, qty in taken}

        for batch in batches:
            supply: _SupplyKey = batch.key
            transfer = supply.transfer
            returned_qty = returned_by_batch.get(id(batch), 0)
            still_on_rent = batch.quantity - returned_qty
            logger.debug(
                "FIFO %s/%s %s: returned=%s still_on_rent=%s",
                customer, transfer.site, product, returned_qty, still_on_rent,
            )

            if transfer.rental_start_date is None:
                message = f"Transfer {transfer.dc_number or transfer.record_id} has no rental start date; not billed"
                logger.warning(message)
                result.warnings.append(message)
                continue

            effective_start = max(transfer.rental_start_date, start)

            if returned_qty > 0 and returned.latest_end is not None:
                effective_end = min(returned.latest_end, end)
                if effective_start <= effective_end and effective_end >= start:
                    result.lines.append(
                        _line(transfer, product, returned_qty, supply.rate, effective_start, effective_end, True)
                    )

            if still_on_rent > 0 and effective_start <= cutoff:
                result.lines.append(
                    _line(transfer, product, still_on_rent, supply.rate, effective_start, cutoff, False)
                )

    result.warnings.extend(resolver.warnings)
    return result


def _line(
    transfer: TransferRecord,
    product: str,
    quantity: Number,
    rate: Number,
    start: datetime,
    end: datetime,
    returned: bool,
) -> BillingLine:
    days = days_between(start, end)
    return BillingLine(
        customer=transfer.customer,
        site=transfer.site,
        product=product,
        quantity=quantity,
        rate_per_day=rate,
        days=days,
        amount=quantity * rate * days,
        returned=returned,
    )


def merge_lines(lines: Iterable[BillingLine]) -> list[BillingLine]:
    """Merges lines with equal (product, rate, days), sorted by (product, days)."""
    merged: dict[tuple[str, Number, int], list[BillingLine]] = {}
    for line in lines:
        merged.setdefault((line.product, line.rate_per_day, line.days), []).append(line)

    result = []
    for (product, rate, days), group in merged.items():
        quantity = sum(line.quantity for line in group)
        customers = {line.customer for line in group}
        sites = {line.site for line in group}
        result.append(
            BillingLine(
                customer=customers.pop() if len(customers) == 1 else "",
                site=sites.pop() if len(sites) == 1 else "",
                product=product,
                quantity=quantity,
                rate_per_day=rate,
                days=days,
                amount=quantity * rate * days,
                returned=all(line.returned for line in group),
            )
        )
    result.sort(key=lambda line: (line.product, line.days))
    return result
