"""Master data, transaction log and derived output models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Union

Number = Union[int, float]


class TransferStatus(str, Enum):
    RENTED = "Rented"
    RETURNED = "Returned"


class TaxType(str, Enum):
    LOCAL = "local"
    INTERSTATE = "interstate"


# --- Master data ---


@dataclass(frozen=True)
class Product:
    name: str
    uom: str = "Nos"


@dataclass(frozen=True)
class Warehouse:
    name: str
    location: str = ""


@dataclass(frozen=True)
class Customer:
    name: str
    sites: tuple[str, ...] = ()


# --- Transaction logs ---


@dataclass(frozen=True)
class PurchaseLine:
    product: str
    quantity: Number
    unit_price: Number = 0


@dataclass(frozen=True)
class PurchaseRecord:
    warehouse: str
    purchase_date: Optional[datetime]
    items: tuple[PurchaseLine, ...] = ()
    invoice_number: str = ""
    tax_type: TaxType = TaxType.LOCAL
    gst_breakdown: Optional[GSTBreakdown] = None
    record_id: Optional[str] = None


@dataclass(frozen=True)
class TransferLine:
    product: str
    quantity: Number
    per_day_rent: Optional[Number] = None


@dataclass(frozen=True)
class TransferRecord:
    from_warehouse: str
    customer: str
    site: str
    rental_start_date: Optional[datetime]
    status: str = TransferStatus.RENTED.value
    items: tuple[TransferLine, ...] = ()
    dc_number: str = ""
    transfer_date: Optional[datetime] = None
    rental_order_id: Optional[str] = None
    record_id: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.status == TransferStatus.RENTED.value


@dataclass(frozen=True)
class ReturnLine:
    product: str
    quantity: Number


@dataclass(frozen=True)
class ReturnRecord:
    customer: str
    return_to: str
    return_date: Optional[datetime]
    rental_end_date: Optional[datetime] = None
    items: tuple[ReturnLine, ...] = ()
    dc_number: str = ""
    record_id: Optional[str] = None


@dataclass(frozen=True)
class SaleLine:
    product: str
    quantity: Number
    sale_price: Number = 0


@dataclass(frozen=True)
class SaleRecord:
    invoice_date: Optional[datetime]
    from_warehouse: Optional[str] = None
    from_customer: Optional[str] = None
    from_site: Optional[str] = None
    items: tuple[SaleLine, ...] = ()
    invoice_number: str = ""
    tax_type: TaxType = TaxType.LOCAL
    gst_breakdown: Optional[GSTBreakdown] = None
    record_id: Optional[str] = None

    @property
    def from_location(self) -> str:
        return self.from_warehouse or self.from_customer or ""


@dataclass(frozen=True)
class RentalOrderLine:
    product: str
    quantity: Number
    per_day_rent: Optional[Number] = None
    delivered_quantity: Number = 0


@dataclass(frozen=True)
class RentalOrder:
    customer: str
    site: str
    items: tuple[RentalOrderLine, ...] = ()
    order_id: Optional[str] = None

    @property
    def total_ordered(self) -> Number:
        return sum(line.quantity for line in self.items)

    @property
    def total_delivered(self) -> Number:
        return sum(line.delivered_quantity for line in self.items)


# --- GST ---


@dataclass(frozen=True)
class GSTRates:
    enabled: bool = True
    cgst: Number = 9
    sgst: Number = 9
    igst: Number = 18


@dataclass(frozen=True)
class GSTBreakdown:
    base_amount: Number
    cgst: Number = 0
    sgst: Number = 0
    igst: Number = 0
    total_gst: Number = 0
    total_amount: Number = 0

    def to_dict(self) -> dict:
        return {
            "baseAmount": self.base_amount,
            "cgst": self.cgst,
            "sgst": self.sgst,
            "igst": self.igst,
            "totalGST": self.total_gst,
            "totalAmount": self.total_amount,
        }


# --- Derived outputs ---


@dataclass(frozen=True)
class BillingLine:
    customer: str
    site: str
    product: str
    quantity: Number
    rate_per_day: Number
    days: int
    amount: Number
    returned: bool = False

    def to_dict(self) -> dict:
        return {
            "customer": self.customer,
            "site": self.site,
            "product": self.product,
            "quantity": self.quantity,
            "ratePerDay": self.rate_per_day,
            "days": self.days,
            "amount": self.amount,
        }


@dataclass
class AllocationResult:
    lines: list[BillingLine] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def total(self) -> Number:
        return sum(line.amount for line in self.lines)


# {warehouse: {product: qty}}
WarehouseStock = dict[str, dict[str, Number]]
# {customer: {site: {product: qty}}}
CustomerStock = dict[str, dict[str, dict[str, Number]]]


@dataclass
class StockLedger:
    warehouse_stock: WarehouseStock = field(default_factory=dict)
    customer_stock: CustomerStock = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)

    def warehouse_qty(self, warehouse: str, product: str) -> Number:
        return self.warehouse_stock.get(warehouse, {}).get(product, 0)

    def site_qty(self, customer: str, site: str, product: str) -> Number:
        return self.customer_stock.get(customer, {}).get(site, {}).get(product, 0)

    def total_qty(self, product: str) -> Number:
        total = sum(stock.get(product, 0) for stock in self.warehouse_stock.values())
        for sites in self.customer_stock.values():
            total += sum(stock.get(product, 0) for stock in sites.values())
        return total

    def __iter__(self):
        # (warehouse_stock, customer_stock) unpacking
        yield self.warehouse_stock
        yield self.customer_stock


@dataclass
class ValidationResult:
    is_valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


@dataclass
class LedgerSnapshot:
    products: list[Product] = field(default_factory=list)
    warehouses: list[Warehouse] = field(default_factory=list)
    customers: list[Customer] = field(default_factory=list)
    purchases: list[PurchaseRecord] = field(default_factory=list)
    transfers: list[TransferRecord] = field(default_factory=list)
    returns: list[ReturnRecord] = field(default_factory=list)
    sales: list[SaleRecord] = field(default_factory=list)
    rental_orders: list[RentalOrder] = field(default_factory=list)
    gst_rates: GSTRates = field(default_factory=GSTRates)
