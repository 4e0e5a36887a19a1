"""Report and dashboard assembly over the ledger, valuation and billing engines."""

from __future__ import annotations

import calendar
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Iterable, Optional, Union

from rentledger.engines.gst import calculate_gst, line_total
from rentledger.engines.rental_allocator import allocate, merge_lines
from rentledger.engines.stock_ledger import compute_stock
from rentledger.engines.valuation import inventory_rows, product_totals
from rentledger.models.normalizer import (
    normalize_gst_rates,
    normalize_many,
    normalize_purchase,
    normalize_rental_order,
    normalize_return,
    normalize_sale,
    normalize_transfer,
    to_datetime,
    utc_now,
)
from rentledger.models.records import (
    BillingLine,
    GSTBreakdown,
    LedgerSnapshot,
    Number,
    RentalOrder,
    TaxType,
)

logger = logging.getLogger(__name__)


def month_window(as_of: Any) -> tuple[datetime, datetime]:
    """Start of the first day and end (23:59:59) of the last day of ``as_of``'s month."""
    moment = to_datetime(as_of)
    last_day = calendar.monthrange(moment.year, moment.month)[1]
    return (
        datetime(moment.year, moment.month, 1),
        datetime(moment.year, moment.month, last_day, 23, 59, 59),
    )


# --- Rentals ---


def monthly_rent_summary(
    transfers: Iterable[Any],
    returns: Iterable[Any],
    rental_orders: Iterable[Any] = (),
    as_of: Any = None,
) -> list[dict]:
    """Rent accrued so far this month, per (customer, site), positive values only."""
    as_of = to_datetime(as_of) or utc_now()
    start, end = month_window(as_of)
    result = allocate(None, None, start, end, transfers, returns, rental_orders, as_of=as_of)

    summary: dict[tuple[str, str], Number] = {}
    for line in result.lines:
        key = (line.customer, line.site)
        summary[key] = summary.get(key, 0) + line.amount

    return [
        {"customer": customer, "site": site, "rental_value": value}
        for (customer, site), value in sorted(summary.items())
        if value > 0
    ]


@dataclass
class RentalReport:
    customer: str
    site: Optional[str]
    period_start: datetime
    period_end: datetime
    rows: list[BillingLine] = field(default_factory=list)
    gst: Optional[GSTBreakdown] = None
    warnings: list[str] = field(default_factory=list)

    @property
    def total(self) -> Number:
        return sum(row.amount for row in self.rows)

    def to_dict(self) -> dict:
        return {
            "customer": self.customer,
            "site": self.site,
            "periodStart": self.period_start.date().isoformat(),
            "periodEnd": self.period_end.date().isoformat(),
            "rows": [
                {
                    "product": row.product,
                    "quantity": row.quantity,
                    "ratePerDay": row.rate_per_day,
                    "days": row.days,
                    "total": round(row.amount, 2),
                }
                for row in self.rows
            ],
            "total": round(self.total, 2),
            "gst": self.gst.to_dict() if self.gst else None,
            "warnings": self.warnings,
        }


def rental_report(
    customer: str,
    site: Optional[str],
    period_start: Any,
    period_end: Any,
    transfers: Iterable[Any],
    returns: Iterable[Any],
    rental_orders: Iterable[Any] = (),
    gst_rates: Optional[Any] = None,
    tax_type: Union[TaxType, str] = TaxType.LOCAL,
) -> RentalReport:
    """Detailed billing of one customer (optionally one site) over a closed period."""
    if not customer:
        raise ValueError("A customer is required for a rental report")
    start, end = to_datetime(period_start), to_datetime(period_end)
    if start is None or end is None:
        raise ValueError("A rental report needs both period start and end")

    result = allocate(customer, site, start, end, transfers, returns, rental_orders)
    report = RentalReport(
        customer=customer,
        site=site,
        period_start=start,
        period_end=end,
        rows=merge_lines(result.lines),
        warnings=result.warnings,
    )
    if gst_rates is not None:
        report.gst = calculate_gst(report.total, tax_type, gst_rates)
    return report


# --- Inventory ---


def inventory_report(
    purchases: Iterable[Any],
    transfers: Iterable[Any],
    returns: Iterable[Any],
    sales: Iterable[Any],
) -> dict:
    """Valued per-product rows for warehouse, on-site and total stock."""
    purchases = normalize_many(purchases, normalize_purchase)
    ledger = compute_stock(purchases, transfers, returns, sales)
    report = inventory_rows(ledger.warehouse_stock, ledger.customer_stock, purchases)
    report["warnings"] = list(ledger.warnings)
    return report


def pending_rental_orders(rental_orders: Iterable[Any]) -> list[RentalOrder]:
    """Orders not yet fully delivered."""
    return [
        order
        for order in normalize_many(rental_orders, normalize_rental_order)
        if order.total_delivered < order.total_ordered
    ]


# --- Transactions ---


def _describe(items: Iterable[Any]) -> str:
    return ", ".join(f"{item.product} ({item.quantity})" for item in items)


def transactions_report(
    purchases: Iterable[Any],
    transfers: Iterable[Any],
    returns: Iterable[Any],
    sales: Iterable[Any],
    start: Any,
    end: Any,
    gst_rates: Optional[Any] = None,
) -> list[dict]:
    """All four logs in one list, newest first, limited to [start, end] (whole days)."""
    start = to_datetime(start)
    end_exclusive = to_datetime(end) + timedelta(days=1)
    rates = normalize_gst_rates(gst_rates)
    entries: list[dict] = []

    for p in normalize_many(purchases, normalize_purchase):
        gst = p.gst_breakdown or calculate_gst(line_total(p.items, "unit_price"), p.tax_type, rates)
        entries.append({
            "date": p.purchase_date,
            "type": "Purchase",
            "reference": p.invoice_number,
            "description": f"Purchase to {p.warehouse}",
            "from": "Supplier",
            "to": p.warehouse,
            "gst": gst.to_dict(),
        })
    for t in normalize_many(transfers, normalize_transfer):
        entries.append({
            "date": t.transfer_date or t.rental_start_date,
            "type": "Transfer",
            "reference": t.dc_number,
            "description": _describe(t.items),
            "from": t.from_warehouse,
            "to": f"{t.customer} ({t.site})",
            "gst": None,
        })
    for r in normalize_many(returns, normalize_return):
        entries.append({
            "date": r.return_date,
            "type": "Return",
            "reference": r.dc_number,
            "description": _describe(r.items),
            "from": r.customer,
            "to": r.return_to,
            "gst": None,
        })
    for s in normalize_many(sales, normalize_sale):
        gst = s.gst_breakdown or calculate_gst(line_total(s.items, "sale_price"), s.tax_type, rates)
        entries.append({
            "date": s.invoice_date,
            "type": "Sale",
            "reference": s.invoice_number,
            "description": f"Sale from {s.from_location}",
            "from": s.from_location,
            "to": "Sold",
            "gst": gst.to_dict(),
        })

    selected = [e for e in entries if e["date"] is not None and start <= e["date"] < end_exclusive]
    selected.sort(key=lambda e: e["date"], reverse=True)
    return selected


# --- Dashboard ---


def dashboard_summary(snapshot: LedgerSnapshot, as_of: Any = None) -> dict:
    """Headline figures: stock totals, inventory value, this month's rent, open orders."""
    as_of = to_datetime(as_of) or utc_now()
    ledger = compute_stock(snapshot.purchases, snapshot.transfers, snapshot.returns, snapshot.sales)
    valuation = inventory_rows(ledger.warehouse_stock, ledger.customer_stock, snapshot.purchases)
    rent = monthly_rent_summary(snapshot.transfers, snapshot.returns, snapshot.rental_orders, as_of)

    return {
        "as_of": as_of.isoformat(),
        "total_warehouse_stock": sum(product_totals(ledger.warehouse_stock).values()),
        "total_onsite_stock": sum(product_totals(ledger.customer_stock).values()),
        "inventory_value": sum(row["total_value"] for row in valuation["total"]),
        "monthly_rent": sum(entry["rental_value"] for entry in rent),
        "pending_rental_orders": len(pending_rental_orders(snapshot.rental_orders)),
        "warnings": list(ledger.warnings),
    }
