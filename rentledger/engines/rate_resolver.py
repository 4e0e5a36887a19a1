"""Per-day rental rate resolution with rental-order fallback."""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from rentledger.models.records import Number, RentalOrder

logger = logging.getLogger(__name__)


class RateResolver:
    """Resolves the per-day rate of a transfer line.

    The transfer line's own ``perDayRent`` wins when it is present and
    non-zero. Otherwise the first line of a rental order for the same
    (customer, site) with the same product and a non-zero rate is used.
    Unresolvable rates come back as 0 and are recorded in ``warnings``.
    """

    def __init__(self, rental_orders: Optional[Iterable[RentalOrder]] = None) -> None:
        # {(customer, site): {product: rate}}; first non-zero rate wins
        self._order_rates: dict[tuple[str, str], dict[str, Number]] = {}
        self.warnings: list[str] = []
        for order in rental_orders or []:
            rates = self._order_rates.setdefault((order.customer, order.site), {})
            for line in order.items:
                if line.per_day_rent and line.product not in rates:
                    rates[line.product] = line.per_day_rent

    def order_rate(self, customer: str, site: str, product: str) -> Optional[Number]:
        return self._order_rates.get((customer, site), {}).get(product)

    def resolve(
        self,
        customer: str,
        site: str,
        product: str,
        line_rate: Optional[Number] = None,
    ) -> Number:
        if line_rate:
            return line_rate

        fallback = self.order_rate(customer, site, product)
        if fallback:
            logger.debug(
                "Rate from rental order: %s/%s %s = %s", customer, site, product, fallback
            )
            return fallback

        message = f"No per-day rent for {product} at {customer}/{site}; billed at 0"
        if message not in self.warnings:
            logger.warning(message)
            self.warnings.append(message)
        return 0
