"""Rate Resolver unit tests."""

from rentledger.engines.rate_resolver import RateResolver
from rentledger.models.normalizer import normalize_rental_order


def _orders():
    return [
        normalize_rental_order({"customerName": "C", "siteName": "S", "items": [
            {"product": "P", "quantity": 10, "perDayRent": 0},
            {"product": "P", "quantity": 5, "perDayRent": 3},
            {"product": "P", "quantity": 5, "perDayRent": 4},
        ]}),
    ]


class TestRateResolver:

    def test_line_rate_wins(self):
        assert RateResolver(_orders()).resolve("C", "S", "P", 7) == 7

    def test_zero_line_rate_falls_back_to_order(self):
        assert RateResolver(_orders()).resolve("C", "S", "P", 0) == 3

    def test_missing_line_rate_falls_back_to_order(self):
        assert RateResolver(_orders()).resolve("C", "S", "P", None) == 3

    def test_fallback_is_per_site(self):
        resolver = RateResolver(_orders())
        assert resolver.resolve("C", "other", "P") == 0
        assert len(resolver.warnings) == 1

    def test_unresolved_warns_once(self):
        resolver = RateResolver([])
        resolver.resolve("C", "S", "P")
        resolver.resolve("C", "S", "P")
        assert len(resolver.warnings) == 1
