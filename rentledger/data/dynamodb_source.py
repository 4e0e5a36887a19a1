"""DynamoDB loader for master data and the transaction logs.

Each call scans the tables in full (the engines recompute from complete
logs) and normalizes the items at this boundary.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

import boto3
from botocore.exceptions import ClientError

from rentledger.config import Settings, load_settings
from rentledger.models.normalizer import (
    normalize_customer,
    normalize_gst_rates,
    normalize_many,
    normalize_product,
    normalize_purchase,
    normalize_rental_order,
    normalize_return,
    normalize_sale,
    normalize_transfer,
    normalize_warehouse,
)
from rentledger.models.records import GSTRates, LedgerSnapshot

logger = logging.getLogger(__name__)

GST_CONFIG_KEY = {"config_id": "gstRates"}


class DynamoDBLedgerSource:
    """Reads every table needed by the engines."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        dynamodb_resource: Optional[Any] = None,
        strict: bool = False,
    ):
        self.settings = settings or load_settings()
        # dependency injection for tests
        self.dynamodb = dynamodb_resource or boto3.resource(
            "dynamodb", region_name=self.settings.region_name
        )
        self.strict = strict

    def _table(self, name: str) -> Any:
        return self.dynamodb.Table(self.settings.table_name(name))

    def scan_all(self, name: str) -> list[dict]:
        """Full scan following ``LastEvaluatedKey`` pages."""
        table = self._table(name)
        items: list[dict] = []
        params: dict[str, Any] = {}
        try:
            while True:
                resp = table.scan(**params)
                items.extend(resp.get("Items", []))
                if "LastEvaluatedKey" not in resp:
                    break
                params["ExclusiveStartKey"] = resp["LastEvaluatedKey"]
        except ClientError as e:
            logger.error("DynamoDB scan failed [%s]: %s", name, e)
            raise
        logger.debug("Scanned %s: %d items", name, len(items))
        return items

    def _load(self, name: str, normalizer: Callable) -> list:
        return normalize_many(self.scan_all(name), normalizer, strict=self.strict)

    def load_gst_rates(self) -> GSTRates:
        """The stored ``gstRates`` config item, or the configured defaults."""
        default = self.settings.default_gst_rates
        try:
            resp = self._table("Config").get_item(Key=GST_CONFIG_KEY)
        except ClientError as e:
            logger.warning("GST config read failed, using defaults: %s", e)
            return default
        return normalize_gst_rates(resp.get("Item"), default)

    def load_snapshot(self) -> LedgerSnapshot:
        """Loads everything the engines need in one go."""
        snapshot = LedgerSnapshot(
            products=self._load("Products", normalize_product),
            warehouses=self._load("Warehouses", normalize_warehouse),
            customers=self._load("Customers", normalize_customer),
            purchases=self._load("Purchases", normalize_purchase),
            transfers=self._load("Transfers", normalize_transfer),
            returns=self._load("Returns", normalize_return),
            sales=self._load("Sales", normalize_sale),
            rental_orders=self._load("RentalOrders", normalize_rental_order),
            gst_rates=self.load_gst_rates(),
        )
        logger.info(
            "Snapshot loaded: %d purchases, %d transfers, %d returns, %d sales",
            len(snapshot.purchases),
            len(snapshot.transfers),
            len(snapshot.returns),
            len(snapshot.sales),
        )
        return snapshot
