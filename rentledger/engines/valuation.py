"""Valuation Engine - weighted-average cost pricing of on-hand stock."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, Optional

from rentledger.models.normalizer import normalize_many, normalize_purchase
from rentledger.models.records import CustomerStock, Number, PurchaseRecord, WarehouseStock

logger = logging.getLogger(__name__)


def average_unit_cost(product: str, purchases: Iterable[Any]) -> Number:
    """sum(qty * unit price) / sum(qty) over every purchase line of ``product``."""
    total_cost: Number = 0
    total_quantity: Number = 0
    for purchase in normalize_many(purchases, normalize_purchase):
        for line in purchase.items:
            if line.product == product:
                total_cost += line.quantity * line.unit_price
                total_quantity += line.quantity
    return total_cost / total_quantity if total_quantity > 0 else 0


class Valuator:
    """Prices stock against a fixed purchase history, memoizing per product."""

    def __init__(self, purchases: Iterable[Any]) -> None:
        self._purchases: list[PurchaseRecord] = normalize_many(purchases, normalize_purchase)
        self._unit_costs: dict[str, Number] = {}

    def unit_cost(self, product: str) -> Number:
        if product not in self._unit_costs:
            self._unit_costs[product] = average_unit_cost(product, self._purchases)
        return self._unit_costs[product]

    def rows(self, quantities: Mapping[str, Number]) -> list[dict]:
        """Report rows ``{product, quantity, unit_cost, total_value}`` by product name."""
        rows = []
        for product in sorted(quantities):
            qty = quantities[product]
            if qty <= 0:
                continue
            unit_cost = self.unit_cost(product)
            rows.append(
                {
                    "product": product,
                    "quantity": qty,
                    "unit_cost": unit_cost,
                    "total_value": qty * unit_cost,
                }
            )
        return rows


def _flatten(stock: Mapping) -> Iterable[tuple[str, Number]]:
    """Yields (product, qty) leaves of a location->product or customer->site->product map."""
    for value in stock.values():
        if isinstance(value, Mapping):
            for product, qty in value.items():
                if isinstance(qty, Mapping):
                    yield from _flatten({product: qty})
                else:
                    yield product, qty


def product_totals(*stocks: Mapping) -> dict[str, Number]:
    """Positive on-hand quantities summed per product across stock maps."""
    totals: dict[str, Number] = {}
    for stock in stocks:
        for product, qty in _flatten(stock):
            if qty > 0:
                totals[product] = totals.get(product, 0) + qty
    return totals


def inventory_value(
    stock: Mapping,
    purchases: Iterable[Any],
    valuator: Optional[Valuator] = None,
) -> Number:
    """Total of qty * average unit cost over every positive (location, product) entry.

    ``stock`` may be a warehouse map or a customer->site->product map.
    """
    valuator = valuator or Valuator(purchases)
    return sum(qty * valuator.unit_cost(product) for product, qty in _flatten(stock) if qty > 0)


def inventory_rows(
    warehouse_stock: WarehouseStock,
    customer_stock: CustomerStock,
    purchases: Iterable[Any],
) -> dict[str, list[dict]]:
    """Per-product valuation rows for warehouse, on-site and combined stock."""
    valuator = Valuator(purchases)
    return {
        "warehouse": valuator.rows(product_totals(warehouse_stock)),
        "customer": valuator.rows(product_totals(customer_stock)),
        "total": valuator.rows(product_totals(warehouse_stock, customer_stock)),
    }
