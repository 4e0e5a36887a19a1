"""GST Calculator - tax breakdown of a base amount."""

from __future__ import annotations

from typing import Any, Iterable, Optional, Union

from rentledger.models.normalizer import normalize_gst_rates
from rentledger.models.records import GSTBreakdown, GSTRates, Number, TaxType


def calculate_gst(
    base_amount: Number,
    tax_type: Union[TaxType, str] = TaxType.LOCAL,
    rates: Optional[Any] = None,
) -> GSTBreakdown:
    """Splits GST for ``base_amount``.

    Interstate supplies carry IGST only; anything else is local and carries
    CGST + SGST. With GST disabled every component is 0. Negative amounts
    are not rejected.
    """
    rates = normalize_gst_rates(rates)

    if not rates.enabled:
        return GSTBreakdown(base_amount=base_amount, total_amount=base_amount)

    if tax_type == TaxType.INTERSTATE:
        igst = base_amount * rates.igst / 100
        return GSTBreakdown(
            base_amount=base_amount,
            igst=igst,
            total_gst=igst,
            total_amount=base_amount + igst,
        )

    cgst = base_amount * rates.cgst / 100
    sgst = base_amount * rates.sgst / 100
    return GSTBreakdown(
        base_amount=base_amount,
        cgst=cgst,
        sgst=sgst,
        total_gst=cgst + sgst,
        total_amount=base_amount + cgst + sgst,
    )


def line_total(items: Iterable[Any], price_attr: str) -> Number:
    """sum(quantity * price) over a record's lines."""
    return sum(item.quantity * getattr(item, price_attr) for item in items)
