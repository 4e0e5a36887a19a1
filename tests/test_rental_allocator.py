"""FIFO Rental Allocator unit tests."""

from datetime import datetime

import pytest

from rentledger.engines.rental_allocator import allocate, days_between, merge_lines
from rentledger.models.records import BillingLine

JAN_1 = "2024-01-01"
JAN_31 = "2024-01-31"


def _transfer(qty, date, site="S", customer="C", product="P", rate=2, status="Rented"):
    return {"from": "W", "customer": customer, "site": site, "rentalStartDate": date, "status": status,
            "items": [{"product": product, "quantity": qty, "perDayRent": rate}]}


def _return(qty, return_date, end_date=None, customer="C", product="P"):
    record = {"customer": customer, "returnTo": "W", "returnDate": return_date,
              "items": [{"product": product, "quantity": qty}]}
    if end_date:
        record["rentalEndDate"] = end_date
    return record


class TestDays:

    def test_same_day_is_zero(self):
        assert days_between(datetime(2024, 1, 31), datetime(2024, 1, 31)) == 0

    def test_partial_day_rounds_up(self):
        assert days_between(datetime(2024, 1, 10), datetime(2024, 1, 10, 6)) == 1

    def test_absolute_difference(self):
        assert days_between(datetime(2024, 1, 20), datetime(2024, 1, 10)) == 10


class TestScenario:

    def test_partial_return_in_period(self):
        result = allocate(None, None, JAN_1, JAN_31,
                          [_transfer(30, "2024-01-10")],
                          [_return(10, "2024-01-21", "2024-01-20")])

        returned = [line for line in result.lines if line.returned]
        on_rent = [line for line in result.lines if not line.returned]
        assert (returned[0].quantity, returned[0].days, returned[0].amount) == (10, 10, 200)
        assert (on_rent[0].quantity, on_rent[0].days, on_rent[0].amount) == (20, 21, 840)
        assert result.total == 1040
        assert result.warnings == []


class TestFifo:

    def test_oldest_transfer_absorbs_returns(self):
        transfers = [_transfer(5, "2024-01-10"), _transfer(10, "2024-01-05")]
        result = allocate("C", None, JAN_1, JAN_31, transfers, [_return(10, "2024-01-20", "2024-01-20")])

        returned = [line for line in result.lines if line.returned]
        on_rent = [line for line in result.lines if not line.returned]
        assert [(l.quantity, l.days) for l in returned] == [(10, 15)]
        assert [(l.quantity, l.days) for l in on_rent] == [(5, 21)]

    def test_returns_split_across_batches(self):
        transfers = [_transfer(10, "2024-01-05"), _transfer(10, "2024-01-10")]
        result = allocate(None, None, JAN_1, JAN_31, transfers, [_return(15, "2024-01-20", "2024-01-20")])
        returned = sorted(l.quantity for l in result.lines if l.returned)
        on_rent = [l.quantity for l in result.lines if not l.returned]
        assert returned == [5, 10]
        assert on_rent == [5]

    def test_returns_of_other_customers_ignored(self):
        result = allocate(None, None, JAN_1, JAN_31, [_transfer(10, "2024-01-10")],
                          [_return(10, "2024-01-20", "2024-01-20", customer="Other")])
        assert [(l.quantity, l.returned) for l in result.lines] == [(10, False)]

    def test_latest_end_date_governs_group(self):
        returns = [_return(5, "2024-01-12", "2024-01-12"), _return(5, "2024-01-25", "2024-01-25")]
        result = allocate(None, None, JAN_1, JAN_31, [_transfer(10, "2024-01-10")], returns)
        assert [(l.quantity, l.days) for l in result.lines] == [(10, 15)]

    def test_more_returned_than_transferred(self):
        result = allocate(None, None, JAN_1, JAN_31, [_transfer(10, "2024-01-10")],
                          [_return(25, "2024-01-20", "2024-01-20")])
        assert [(l.quantity, l.returned) for l in result.lines] == [(10, True)]


class TestPeriodClipping:

    def test_zero_day_still_on_rent(self):
        result = allocate(None, None, JAN_1, JAN_31, [_transfer(10, JAN_31)], [])
        assert len(result.lines) == 1
        assert result.lines[0].days == 0
        assert result.lines[0].amount == 0

    def test_start_before_period_is_clipped(self):
        result = allocate(None, None, JAN_1, JAN_31, [_transfer(10, "2023-12-01")], [])
        assert result.lines[0].days == 30

    def test_transfer_after_period_not_billed(self):
        result = allocate(None, None, JAN_1, JAN_31, [_transfer(10, "2024-02-05")], [])
        assert result.lines == []

    def test_returned_before_period_not_billed(self):
        result = allocate(None, None, JAN_1, JAN_31, [_transfer(10, "2023-12-01")],
                          [_return(10, "2023-12-20", "2023-12-20")])
        assert result.lines == []

    def test_return_without_end_date_not_billed(self):
        result = allocate(None, None, JAN_1, JAN_31, [_transfer(10, "2024-01-10")], [_return(4, "2024-01-20")])
        assert [(l.quantity, l.returned) for l in result.lines] == [(6, False)]

    def test_as_of_cuts_still_on_rent(self):
        result = allocate(None, None, JAN_1, JAN_31, [_transfer(10, "2024-01-10")], [], as_of="2024-01-15")
        assert result.lines[0].days == 5
        assert result.lines[0].amount == 100


class TestFilters:

    def test_only_rented_transfers(self):
        result = allocate(None, None, JAN_1, JAN_31, [_transfer(10, "2024-01-10", status="Returned")], [])
        assert result.lines == []

    def test_customer_filter(self):
        transfers = [_transfer(10, "2024-01-10"), _transfer(3, "2024-01-10", customer="D")]
        result = allocate("D", None, JAN_1, JAN_31, transfers, [])
        assert [(l.customer, l.quantity) for l in result.lines] == [("D", 3)]

    def test_site_filter_matches_returns_against_that_site(self):
        transfers = [_transfer(10, "2024-01-05", site="S1"), _transfer(5, "2024-01-10", site="S2")]
        result = allocate("C", "S2", JAN_1, JAN_31, transfers, [_return(10, "2024-01-20", "2024-01-20")])
        assert [(l.site, l.quantity, l.returned, l.days, l.amount) for l in result.lines] == [
            ("S2", 5, True, 10, 100)
        ]


class TestRates:

    def test_rental_order_fallback(self):
        orders = [{"customerName": "C", "siteName": "S", "items": [{"product": "P", "quantity": 10, "perDayRent": 3}]}]
        result = allocate(None, None, JAN_1, JAN_31, [_transfer(10, "2024-01-21", rate=0)], [], orders)
        assert result.lines[0].rate_per_day == 3
        assert result.lines[0].amount == 10 * 3 * 10

    def test_unresolved_rate_warns_and_zeroes(self):
        result = allocate(None, None, JAN_1, JAN_31, [_transfer(10, "2024-01-21", rate=None)], [])
        assert result.lines[0].amount == 0
        assert len(result.warnings) == 1


class TestLegacyShape:

    def test_legacy_transfer_bills_the_same(self):
        legacy = {"from": "W", "customer": "C", "site": "S", "rentalStartDate": "2024-01-10",
                  "status": "Rented", "product": "P", "quantity": 5, "perDayRent": 10}
        modern = _transfer(5, "2024-01-10", rate=10)
        a = allocate(None, None, JAN_1, JAN_31, [legacy], [])
        b = allocate(None, None, JAN_1, JAN_31, [modern], [])
        assert a.lines == b.lines


class TestMergeLines:

    def test_merge_and_sort(self):
        lines = [
            BillingLine("C", "S", "Q", 2, 1, 5, 10),
            BillingLine("C", "S", "P", 3, 2, 21, 126),
            BillingLine("C", "S", "P", 4, 2, 21, 168),
            BillingLine("C", "S", "P", 1, 2, 10, 20),
        ]
        merged = merge_lines(lines)
        assert [(l.product, l.quantity, l.days) for l in merged] == [("P", 1, 10), ("P", 7, 21), ("Q", 2, 5)]
        assert merged[1].amount == pytest.approx(7 * 2 * 21)
