"""Stock Ledger - folds the transaction logs into on-hand quantities.

The logs are applied in passes, one log at a time:

- Purchases add to the destination warehouse
- Transfers move stock from a warehouse to a customer site (any status)
- Returns move stock from the customer back to a warehouse; the site a
  returned unit leaves is found by FIFO over the customer's transfers
- Sales remove stock from a warehouse or a customer site for good

Record dates do not order the passes, so logs that are momentarily out of
step with each other still conserve stock. Every subtraction is clamped at
zero; nothing here raises for bad data.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Iterable

from rentledger.engines.fifo import Batch, consume_fifo, sort_batches
from rentledger.models.normalizer import (
    normalize_many,
    normalize_purchase,
    normalize_return,
    normalize_sale,
    normalize_transfer,
)
from rentledger.models.records import (
    CustomerStock,
    Number,
    PurchaseRecord,
    ReturnRecord,
    SaleRecord,
    StockLedger,
    TransferRecord,
    WarehouseStock,
)

logger = logging.getLogger(__name__)


class _LedgerBuilder:
    def __init__(self) -> None:
        self.warehouse_stock: WarehouseStock = {}
        self.customer_stock: CustomerStock = {}
        self.warnings: list[str] = []
        # Open transfer batches per (customer, product), key = site
        self._batches: dict[tuple[str, str], list[Batch]] = {}

    def _warn(self, message: str) -> None:
        logger.warning(message)
        self.warnings.append(message)

    def _add(self, stock: dict[str, Number], product: str, quantity: Number) -> None:
        stock[product] = stock.get(product, 0) + quantity

    def _subtract(
        self, stock: dict[str, Number], product: str, quantity: Number, where: str
    ) -> None:
        current = stock.get(product, 0)
        if current - quantity < 0:
            self._warn(
                f"{where}: {product} would go negative ({current} - {quantity}); clamped to 0"
            )
        if product in stock:
            stock[product] = max(current - quantity, 0)

    def _site_stock(self, customer: str, site: str) -> dict[str, Number]:
        return self.customer_stock.setdefault(customer, {}).setdefault(site, {})

    def purchase(self, record: PurchaseRecord) -> None:
        stock = self.warehouse_stock.setdefault(record.warehouse, {})
        for line in record.items:
            self._add(stock, line.product, line.quantity)

    def transfer(self, record: TransferRecord) -> None:
        source = self.warehouse_stock.setdefault(record.from_warehouse, {})
        site_stock = self._site_stock(record.customer, record.site)
        for line in record.items:
            self._subtract(source, line.product, line.quantity, record.from_warehouse)
            self._add(site_stock, line.product, line.quantity)
            self._batches.setdefault((record.customer, line.product), []).append(
                Batch(key=record.site, quantity=line.quantity, started_at=record.rental_start_date)
            )

    def order_batches(self) -> None:
        """Puts every customer's open batches in rental start order."""
        for key, batches in self._batches.items():
            self._batches[key] = sort_batches(batches)

    def return_(self, record: ReturnRecord) -> None:
        target = self.warehouse_stock.setdefault(record.return_to, {})
        for line in record.items:
            self._add(target, line.product, line.quantity)

            batches = self._batches.get((record.customer, line.product), [])
            taken, unmatched = consume_fifo(batches, line.quantity)
            for batch, quantity in taken:
                site_stock = self._site_stock(record.customer, batch.key)
                site_stock[line.product] = max(site_stock.get(line.product, 0) - quantity, 0)
            if unmatched:
                self._warn(
                    f"Return of {line.product} from {record.customer}: "
                    f"{unmatched} unit(s) match no site; ignored on customer side"
                )

    def sale(self, record: SaleRecord) -> None:
        if record.from_warehouse:
            stock = self.warehouse_stock.setdefault(record.from_warehouse, {})
            for line in record.items:
                self._subtract(stock, line.product, line.quantity, record.from_warehouse)
        elif record.from_customer and record.from_site:
            site_stock = self._site_stock(record.from_customer, record.from_site)
            where = f"{record.from_customer}/{record.from_site}"
            for line in record.items:
                self._subtract(site_stock, line.product, line.quantity, where)
        else:
            self._warn(f"Sale {record.invoice_number or record.record_id} has no source; ignored")


def compute_stock(
    purchases: Iterable[Any],
    transfers: Iterable[Any],
    returns: Iterable[Any],
    sales: Iterable[Any],
) -> StockLedger:
    """Derives warehouse and customer-site stock from the four logs.

    All purchases are applied first, then all transfers, then returns (in
    return date order), then sales. The result unpacks as
    ``warehouse_stock, customer_stock = compute_stock(...)``.
    """
    purchases = normalize_many(purchases, normalize_purchase)
    transfers = normalize_many(transfers, normalize_transfer)
    returns = sorted(
        normalize_many(returns, normalize_return),
        key=lambda r: (r.return_date is None, r.return_date or datetime.min),
    )
    sales = normalize_many(sales, normalize_sale)

    builder = _LedgerBuilder()
    for purchase in purchases:
        builder.purchase(purchase)
    for transfer in transfers:
        builder.transfer(transfer)
    builder.order_batches()
    for record in returns:
        builder.return_(record)
    for sale in sales:
        builder.sale(sale)

    logger.debug(
        "Ledger computed: %d purchases, %d transfers, %d returns, %d sales",
        len(purchases),
        len(transfers),
        len(returns),
        len(sales),
    )
    return StockLedger(
        warehouse_stock=builder.warehouse_stock,
        customer_stock=builder.customer_stock,
        warnings=builder.warnings,
    )
