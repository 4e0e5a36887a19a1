"""Ingestion boundary: raw stored records -> canonical records.

- camelCase keys as written by the upstream workflows
- DynamoDB ``Decimal`` values -> int/float
- ISO 8601 dates (``Z`` suffix included) -> naive UTC ``datetime``
- legacy single-item records (product/quantity at top level) -> ``items``
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Iterable, Mapping, Optional, TypeVar

from rentledger.models.records import (
    Customer,
    GSTBreakdown,
    GSTRates,
    Number,
    Product,
    PurchaseLine,
    PurchaseRecord,
    RentalOrder,
    RentalOrderLine,
    ReturnLine,
    ReturnRecord,
    SaleLine,
    SaleRecord,
    TaxType,
    TransferLine,
    TransferRecord,
    Warehouse,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RecordShapeError(ValueError):
    """Raised for a record that cannot be turned into a canonical shape."""
    pass


# --- Scalars ---


def to_number(value: Any, default: Number = 0) -> Number:
    """Decimal/str/float -> int when integral, float otherwise."""
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        raise RecordShapeError(f"Not a number: {value!r}")
    if isinstance(value, int):
        return value
    try:
        number = Decimal(str(value))
    except InvalidOperation as e:
        raise RecordShapeError(f"Not a number: {value!r}") from e
    if number == number.to_integral_value():
        return int(number)
    return float(number)


def to_optional_number(value: Any) -> Optional[Number]:
    if value is None or value == "":
        return None
    return to_number(value)


def to_datetime(value: Any) -> Optional[datetime]:
    """Dates and timestamps -> naive UTC datetime. A bare date is midnight."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as e:
            raise RecordShapeError(f"Unparseable date: {value!r}") from e
    else:
        raise RecordShapeError(f"Unsupported date value: {value!r}")

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _text(raw: Mapping, *keys: str, default: str = "") -> str:
    for key in keys:
        value = raw.get(key)
        if value not in (None, ""):
            return str(value)
    return default


def _tax_type(raw: Mapping) -> TaxType:
    value = raw.get("taxType") or TaxType.LOCAL.value
    try:
        return TaxType(value)
    except ValueError:
        logger.warning("Unknown tax type %r, treating as local", value)
        return TaxType.LOCAL


def _gst_breakdown(raw: Mapping) -> Optional[GSTBreakdown]:
    data = raw.get("gstBreakdown")
    if not data:
        return None
    return GSTBreakdown(
        base_amount=to_number(data.get("baseAmount")),
        cgst=to_number(data.get("cgst")),
        sgst=to_number(data.get("sgst")),
        igst=to_number(data.get("igst")),
        total_gst=to_number(data.get("totalGST")),
        total_amount=to_number(data.get("totalAmount")),
    )


def _raw_items(raw: Mapping, legacy_keys: tuple[str, ...]) -> list[Mapping]:
    """Returns the record's line items, upgrading the legacy single-item shape."""
    items = raw.get("items")
    if isinstance(items, (list, tuple)) and items:
        return list(items)
    if raw.get("product"):
        return [{key: raw.get(key) for key in ("product", *legacy_keys)}]
    return []


def _require_mapping(raw: Any, kind: str) -> Mapping:
    if not isinstance(raw, Mapping):
        raise RecordShapeError(f"{kind} record must be a mapping, got {type(raw).__name__}")
    return raw


# --- Master data ---


def normalize_product(raw: Any) -> Product:
    if isinstance(raw, Product):
        return raw
    raw = _require_mapping(raw, "Product")
    return Product(name=_text(raw, "name"), uom=_text(raw, "uom", default="Nos"))


def normalize_warehouse(raw: Any) -> Warehouse:
    if isinstance(raw, Warehouse):
        return raw
    raw = _require_mapping(raw, "Warehouse")
    return Warehouse(name=_text(raw, "name"), location=_text(raw, "location"))


def normalize_customer(raw: Any) -> Customer:
    if isinstance(raw, Customer):
        return raw
    raw = _require_mapping(raw, "Customer")
    sites = tuple(str(s) for s in (raw.get("sites") or []) if s)
    return Customer(name=_text(raw, "name"), sites=sites)


# --- Transaction logs ---


def normalize_purchase(raw: Any) -> PurchaseRecord:
    if isinstance(raw, PurchaseRecord):
        return raw
    raw = _require_mapping(raw, "Purchase")
    items = tuple(
        PurchaseLine(
            product=str(item.get("product", "")),
            quantity=to_number(item.get("quantity")),
            unit_price=to_number(item.get("unitPrice")),
        )
        for item in _raw_items(raw, ("quantity", "unitPrice"))
    )
    return PurchaseRecord(
        warehouse=_text(raw, "warehouse"),
        purchase_date=to_datetime(raw.get("purchaseDate")),
        items=items,
        invoice_number=_text(raw, "invoiceNumber"),
        tax_type=_tax_type(raw),
        gst_breakdown=_gst_breakdown(raw),
        record_id=raw.get("id"),
    )


def normalize_transfer(raw: Any) -> TransferRecord:
    if isinstance(raw, TransferRecord):
        return raw
    raw = _require_mapping(raw, "Transfer")
    items = tuple(
        TransferLine(
            product=str(item.get("product", "")),
            quantity=to_number(item.get("quantity")),
            per_day_rent=to_optional_number(item.get("perDayRent")),
        )
        for item in _raw_items(raw, ("quantity", "perDayRent"))
    )
    transfer_date = to_datetime(raw.get("transferDate"))
    rental_start = to_datetime(raw.get("rentalStartDate")) or transfer_date
    return TransferRecord(
        from_warehouse=_text(raw, "from", "fromWarehouse"),
        customer=_text(raw, "customer"),
        site=_text(raw, "site"),
        rental_start_date=rental_start,
        status=_text(raw, "status"),
        items=items,
        dc_number=_text(raw, "dcNumber"),
        transfer_date=transfer_date,
        rental_order_id=raw.get("rentalOrderId"),
        record_id=raw.get("id"),
    )


def normalize_return(raw: Any) -> ReturnRecord:
    if isinstance(raw, ReturnRecord):
        return raw
    raw = _require_mapping(raw, "Return")
    items = tuple(
        ReturnLine(
            product=str(item.get("product", "")),
            quantity=to_number(item.get("quantity")),
        )
        for item in _raw_items(raw, ("quantity",))
    )
    return ReturnRecord(
        customer=_text(raw, "customer"),
        return_to=_text(raw, "returnTo"),
        return_date=to_datetime(raw.get("returnDate")),
        rental_end_date=to_datetime(raw.get("rentalEndDate")),
        items=items,
        dc_number=_text(raw, "dcNumber"),
        record_id=raw.get("id"),
    )


def normalize_sale(raw: Any) -> SaleRecord:
    if isinstance(raw, SaleRecord):
        return raw
    raw = _require_mapping(raw, "Sale")
    items = tuple(
        SaleLine(
            product=str(item.get("product", "")),
            quantity=to_number(item.get("quantity")),
            sale_price=to_number(item.get("salePrice")),
        )
        for item in _raw_items(raw, ("quantity", "salePrice"))
    )
    return SaleRecord(
        invoice_date=to_datetime(raw.get("invoiceDate")),
        from_warehouse=raw.get("fromWarehouse") or None,
        from_customer=raw.get("fromCustomer") or None,
        from_site=raw.get("fromSite") or None,
        items=items,
        invoice_number=_text(raw, "invoiceNumber"),
        tax_type=_tax_type(raw),
        gst_breakdown=_gst_breakdown(raw),
        record_id=raw.get("id"),
    )


def normalize_rental_order(raw: Any) -> RentalOrder:
    if isinstance(raw, RentalOrder):
        return raw
    raw = _require_mapping(raw, "RentalOrder")
    items = tuple(
        RentalOrderLine(
            product=str(item.get("product", "")),
            quantity=to_number(item.get("quantity")),
            per_day_rent=to_optional_number(item.get("perDayRent")),
            delivered_quantity=to_number(item.get("deliveredQuantity")),
        )
        for item in (raw.get("items") or [])
    )
    return RentalOrder(
        customer=_text(raw, "customerName", "customer"),
        site=_text(raw, "siteName", "site"),
        items=items,
        order_id=raw.get("id"),
    )


def normalize_gst_rates(raw: Any, default: Optional[GSTRates] = None) -> GSTRates:
    if isinstance(raw, GSTRates):
        return raw
    default = default or GSTRates()
    if not raw:
        return default
    raw = _require_mapping(raw, "GSTRates")
    return GSTRates(
        enabled=bool(raw.get("enabled", default.enabled)),
        cgst=to_number(raw.get("cgst"), default.cgst),
        sgst=to_number(raw.get("sgst"), default.sgst),
        igst=to_number(raw.get("igst"), default.igst),
    )


def normalize_many(
    records: Optional[Iterable[Any]],
    normalizer: Callable[[Any], T],
    strict: bool = True,
) -> list[T]:
    """Normalizes a whole log. With ``strict=False`` unusable records are skipped."""
    result: list[T] = []
    for raw in records or []:
        try:
            result.append(normalizer(raw))
        except RecordShapeError as e:
            if strict:
                raise
            logger.warning("Skipped record (%s): %s", normalizer.__name__, e)
    return result
