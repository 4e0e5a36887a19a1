"""Ledger invariant checks.

- No location holds a negative quantity
- Stock is conserved: purchased - sold == on hand (warehouses + sites)
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Iterable, Optional

from rentledger.models.normalizer import normalize_many, normalize_purchase, normalize_sale, utc_now
from rentledger.models.records import Number, StockLedger, ValidationResult

logger = logging.getLogger(__name__)


class StockValidator:
    """Checks a derived ``StockLedger`` against the logs it came from."""

    def __init__(self, purchases: Iterable[Any] = (), sales: Iterable[Any] = ()) -> None:
        self._purchased: dict[str, Number] = {}
        self._sold: dict[str, Number] = {}
        for purchase in normalize_many(purchases, normalize_purchase):
            for line in purchase.items:
                self._purchased[line.product] = self._purchased.get(line.product, 0) + line.quantity
        for sale in normalize_many(sales, normalize_sale):
            for line in sale.items:
                self._sold[line.product] = self._sold.get(line.product, 0) + line.quantity

    def expected_total(self, product: str) -> Number:
        return self._purchased.get(product, 0) - self._sold.get(product, 0)

    def check_no_negative_stock(self, ledger: StockLedger) -> ValidationResult:
        """Every warehouse and site quantity must be >= 0."""
        errors = []
        for warehouse, stock in ledger.warehouse_stock.items():
            for product, qty in stock.items():
                if qty < 0:
                    errors.append(f"Negative stock: {warehouse}/{product} = {qty}")
        for customer, sites in ledger.customer_stock.items():
            for site, stock in sites.items():
                for product, qty in stock.items():
                    if qty < 0:
                        errors.append(f"Negative stock: {customer}/{site}/{product} = {qty}")
        return ValidationResult(is_valid=len(errors) == 0, errors=errors)

    def verify_conservation(self, ledger: StockLedger, product: str) -> ValidationResult:
        """purchased - sold must equal the product's on-hand total."""
        expected = self.expected_total(product)
        actual = ledger.total_qty(product)
        errors = []
        if expected != actual:
            errors.append(
                f"Conservation violated for {product}: expected={expected}, on hand={actual}"
            )
        return ValidationResult(is_valid=len(errors) == 0, errors=errors)

    def verify_ledger(self, ledger: StockLedger, as_of: Optional[datetime] = None) -> dict:
        """Runs every check over every product seen in the logs or the ledger."""
        products = set(self._purchased) | set(self._sold)
        for stock in ledger.warehouse_stock.values():
            products.update(stock)
        for sites in ledger.customer_stock.values():
            for stock in sites.values():
                products.update(stock)

        discrepancies = []
        for product in sorted(products):
            expected = self.expected_total(product)
            actual = ledger.total_qty(product)
            if expected != actual:
                discrepancies.append(
                    {
                        "product": product,
                        "expected": expected,
                        "actual": actual,
                        "difference": actual - expected,
                    }
                )

        negative = self.check_no_negative_stock(ledger)
        if discrepancies:
            logger.warning("Ledger conservation check: %d discrepancies", len(discrepancies))

        return {
            "verification_date": (as_of or utc_now()).isoformat(),
            "total_products_checked": len(products),
            "discrepancies_found": len(discrepancies),
            "discrepancies": discrepancies,
            "negative_stock": negative.errors,
            "ledger_warnings": list(ledger.warnings),
            "all_valid": not discrepancies and negative.is_valid,
        }
