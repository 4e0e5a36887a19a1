"""Report and dashboard unit tests."""

from datetime import datetime

import pytest

from rentledger.engines.reports import (
    dashboard_summary,
    inventory_report,
    month_window,
    monthly_rent_summary,
    pending_rental_orders,
    rental_report,
    transactions_report,
)
from rentledger.models.records import LedgerSnapshot

PURCHASES = [{"warehouse": "W1", "purchaseDate": "2024-01-01", "invoiceNumber": "INV-1",
              "items": [{"product": "P", "quantity": 100, "unitPrice": 10}]}]
TRANSFERS = [{"from": "W1", "customer": "C", "site": "S", "rentalStartDate": "2024-01-10", "status": "Rented",
              "dcNumber": "DC-1", "items": [{"product": "P", "quantity": 30, "perDayRent": 2}]}]
RETURNS = [{"customer": "C", "returnTo": "W1", "returnDate": "2024-01-21", "rentalEndDate": "2024-01-20",
            "dcNumber": "RDC-1", "items": [{"product": "P", "quantity": 10}]}]
SALES = [{"invoiceDate": "2024-01-22", "fromWarehouse": "W1", "invoiceNumber": "S-1",
          "items": [{"product": "P", "quantity": 7, "salePrice": 20}]}]
ORDERS = [
    {"customerName": "C", "siteName": "S", "items": [{"product": "P", "quantity": 10, "deliveredQuantity": 4}]},
    {"customerName": "C", "siteName": "S2", "items": [{"product": "P", "quantity": 5, "deliveredQuantity": 5}]},
]


class TestMonthWindow:

    def test_leap_february(self):
        assert month_window("2024-02-10") == (datetime(2024, 2, 1), datetime(2024, 2, 29, 23, 59, 59))


class TestMonthlyRentSummary:

    def test_accrued_to_as_of(self):
        summary = monthly_rent_summary(TRANSFERS, RETURNS, as_of="2024-01-25")
        assert summary == [{"customer": "C", "site": "S", "rental_value": 200 + 20 * 15 * 2}]

    def test_last_day_of_month_accrues(self):
        transfers = [{"from": "W1", "customer": "C", "site": "S", "rentalStartDate": "2024-01-30",
                      "status": "Rented", "items": [{"product": "P", "quantity": 10, "perDayRent": 2}]}]
        summary = monthly_rent_summary(transfers, [], as_of="2024-01-31T12:00:00")
        assert summary[0]["rental_value"] == 10 * 2 * 2

    def test_zero_value_sites_dropped(self):
        transfers = TRANSFERS + [{"from": "W1", "customer": "D", "site": "X", "rentalStartDate": "2024-01-10",
                                  "status": "Rented", "items": [{"product": "P", "quantity": 1}]}]
        summary = monthly_rent_summary(transfers, RETURNS, as_of="2024-01-25")
        assert [entry["customer"] for entry in summary] == ["C"]


class TestRentalReport:

    def test_rows_total_and_gst(self):
        report = rental_report("C", None, "2024-01-01", "2024-01-31", TRANSFERS, RETURNS,
                               gst_rates={"enabled": True, "cgst": 9, "sgst": 9, "igst": 18})
        assert [(r.quantity, r.days) for r in report.rows] == [(10, 10), (20, 21)]
        assert report.total == 1040
        assert report.gst.total_amount == pytest.approx(1227.2)

        data = report.to_dict()
        assert data["periodStart"] == "2024-01-01"
        assert data["total"] == 1040
        assert data["gst"]["totalGST"] == pytest.approx(187.2)

    def test_without_gst(self):
        report = rental_report("C", "S", "2024-01-01", "2024-01-31", TRANSFERS, RETURNS)
        assert report.gst is None

    def test_customer_required(self):
        with pytest.raises(ValueError):
            rental_report("", None, "2024-01-01", "2024-01-31", TRANSFERS, RETURNS)

    def test_dates_required(self):
        with pytest.raises(ValueError):
            rental_report("C", None, None, "2024-01-31", TRANSFERS, RETURNS)


class TestInventoryReport:

    def test_valued_rows(self):
        report = inventory_report(PURCHASES, TRANSFERS, RETURNS, SALES)
        assert report["warehouse"] == [{"product": "P", "quantity": 73, "unit_cost": 10, "total_value": 730}]
        assert report["customer"][0]["quantity"] == 20
        assert report["total"][0]["total_value"] == 930
        assert report["warnings"] == []


class TestPendingRentalOrders:

    def test_only_undelivered(self):
        pending = pending_rental_orders(ORDERS)
        assert [order.site for order in pending] == ["S"]


class TestTransactionsReport:

    def test_window_and_order(self):
        entries = transactions_report(PURCHASES, TRANSFERS, RETURNS, SALES, "2024-01-01", "2024-01-21")
        assert [e["type"] for e in entries] == ["Return", "Transfer", "Purchase"]
        assert entries[1]["to"] == "C (S)"
        assert entries[1]["gst"] is None

    def test_purchase_gst_computed(self):
        entries = transactions_report(PURCHASES, [], [], [], "2024-01-01", "2024-01-01")
        assert entries[0]["gst"]["totalGST"] == 180

    def test_stored_breakdown_preferred(self):
        purchase = dict(PURCHASES[0], gstBreakdown={"baseAmount": 1000, "cgst": 0, "sgst": 0, "igst": 50,
                                                    "totalGST": 50, "totalAmount": 1050})
        entries = transactions_report([purchase], [], [], [], "2024-01-01", "2024-01-31")
        assert entries[0]["gst"]["totalAmount"] == 1050

    def test_sale_from_site(self):
        sale = {"invoiceDate": "2024-01-15", "fromCustomer": "C", "fromSite": "S",
                "items": [{"product": "P", "quantity": 1, "salePrice": 20}]}
        entries = transactions_report([], [], [], [sale], "2024-01-01", "2024-01-31")
        assert entries[0]["from"] == "C"


class TestDashboardSummary:

    def test_headline_figures(self):
        snapshot = LedgerSnapshot(purchases=PURCHASES, transfers=TRANSFERS, returns=RETURNS,
                                  sales=SALES, rental_orders=ORDERS)
        summary = dashboard_summary(snapshot, as_of="2024-01-25")
        assert summary["total_warehouse_stock"] == 73
        assert summary["total_onsite_stock"] == 20
        assert summary["inventory_value"] == 930
        assert summary["monthly_rent"] == 800
        assert summary["pending_rental_orders"] == 1
