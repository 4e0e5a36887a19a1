"""
Rental Ledger MCP Server

Provides stock, valuation, rental billing and GST tools over the
transaction logs stored in DynamoDB. Every call recomputes from a fresh
snapshot of the tables.
"""

import json
import logging
import os
import sys
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))
import env_loader

from datetime import datetime
from typing import Dict, List, Optional

from mcp.server import Server
from mcp.types import Tool, TextContent

from rentledger.data.dynamodb_source import DynamoDBLedgerSource
from rentledger.engines.gst import calculate_gst as _calculate_gst
from rentledger.engines.reports import (
    dashboard_summary,
    inventory_report,
    monthly_rent_summary,
    rental_report,
    transactions_report,
)
from rentledger.engines.stock_ledger import compute_stock

logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(name)s] %(levelname)s: %(message)s")
logger = logging.getLogger("rental_ledger_server")
logging.getLogger("mcp").setLevel(logging.WARNING)

app = Server("rental-ledger")

_source: Optional[DynamoDBLedgerSource] = None


def _get_source() -> DynamoDBLedgerSource:
    global _source
    if _source is None:
        _source = DynamoDBLedgerSource()
    return _source


def _to_json(obj):
    """Makes datetimes inside nested dicts and lists JSON serializable."""
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, dict):
        return {k: _to_json(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_to_json(i) for i in obj]
    return obj


def _result(data):
    return [TextContent(type="text", text=json.dumps(_to_json(data), indent=2, ensure_ascii=False))]


_DATE = {"type": "string", "description": "ISO date, e.g. 2024-01-31"}


@app.list_tools()
async def list_tools() -> List[Tool]:
    return [
        Tool(name="get_stock", description="On-hand quantities per warehouse and per customer site",
             inputSchema={"type": "object", "properties": {}}),
        Tool(name="get_inventory_valuation", description="Per-product quantity, average unit cost and value",
             inputSchema={"type": "object", "properties": {}}),
        Tool(name="get_rental_report", description="FIFO rental billing for a customer (and optional site) over a period",
             inputSchema={"type": "object", "properties": {
                 "customer": {"type": "string"}, "site": {"type": "string"},
                 "period_start": _DATE, "period_end": _DATE,
                 "tax_type": {"type": "string", "enum": ["local", "interstate"], "default": "local"}},
                 "required": ["customer", "period_start", "period_end"]}),
        Tool(name="get_monthly_rent_summary", description="Rent accrued this month per customer site",
             inputSchema={"type": "object", "properties": {"as_of": _DATE}}),
        Tool(name="calculate_gst", description="GST breakdown of a base amount using the stored rates",
             inputSchema={"type": "object", "properties": {
                 "amount": {"type": "number"},
                 "tax_type": {"type": "string", "enum": ["local", "interstate"], "default": "local"}},
                 "required": ["amount"]}),
        Tool(name="get_transactions", description="All transactions between two dates, newest first",
             inputSchema={"type": "object", "properties": {"start": _DATE, "end": _DATE}, "required": ["start", "end"]}),
        Tool(name="get_dashboard_summary", description="Stock totals, inventory value, monthly rent and pending orders",
             inputSchema={"type": "object", "properties": {"as_of": _DATE}}),
    ]


@app.call_tool()
async def call_tool(name: str, arguments: dict) -> List[TextContent]:
    handlers = {
        "get_stock": lambda a: get_stock(),
        "get_inventory_valuation": lambda a: get_inventory_valuation(),
        "get_rental_report": lambda a: get_rental_report(
            a["customer"], a.get("site"), a["period_start"], a["period_end"], a.get("tax_type", "local")),
        "get_monthly_rent_summary": lambda a: get_monthly_rent_summary(a.get("as_of")),
        "calculate_gst": lambda a: calculate_gst(a["amount"], a.get("tax_type", "local")),
        "get_transactions": lambda a: get_transactions(a["start"], a["end"]),
        "get_dashboard_summary": lambda a: get_dashboard_summary(a.get("as_of")),
    }
    handler = handlers.get(name)
    if not handler:
        raise ValueError(f"Unknown tool: {name}")
    return _result(handler(arguments))


# --- Implementation ---

def get_stock() -> Dict:
    try:
        snap = _get_source().load_snapshot()
        ledger = compute_stock(snap.purchases, snap.transfers, snap.returns, snap.sales)
        return {"success": True, "warehouse_stock": ledger.warehouse_stock,
                "customer_stock": ledger.customer_stock, "warnings": ledger.warnings}
    except Exception as e:
        logger.error("get_stock failed: %s", e)
        return {"success": False, "error": str(e)}


def get_inventory_valuation() -> Dict:
    try:
        snap = _get_source().load_snapshot()
        report = inventory_report(snap.purchases, snap.transfers, snap.returns, snap.sales)
        return {"success": True, "data": report}
    except Exception as e:
        logger.error("get_inventory_valuation failed: %s", e)
        return {"success": False, "error": str(e)}


def get_rental_report(customer: str, site: Optional[str], period_start: str, period_end: str,
                      tax_type: str = "local") -> Dict:
    try:
        snap = _get_source().load_snapshot()
        report = rental_report(customer, site, period_start, period_end, snap.transfers, snap.returns,
                               snap.rental_orders, gst_rates=snap.gst_rates, tax_type=tax_type)
        return {"success": True, "data": report.to_dict()}
    except Exception as e:
        logger.error("get_rental_report failed: %s", e)
        return {"success": False, "error": str(e)}


def get_monthly_rent_summary(as_of: Optional[str] = None) -> Dict:
    try:
        snap = _get_source().load_snapshot()
        summary = monthly_rent_summary(snap.transfers, snap.returns, snap.rental_orders, as_of)
        return {"success": True, "count": len(summary), "data": summary}
    except Exception as e:
        logger.error("get_monthly_rent_summary failed: %s", e)
        return {"success": False, "error": str(e)}


def calculate_gst(amount: float, tax_type: str = "local") -> Dict:
    try:
        rates = _get_source().load_gst_rates()
        return {"success": True, "data": _calculate_gst(amount, tax_type, rates).to_dict()}
    except Exception as e:
        logger.error("calculate_gst failed: %s", e)
        return {"success": False, "error": str(e)}


def get_transactions(start: str, end: str) -> Dict:
    try:
        snap = _get_source().load_snapshot()
        rows = transactions_report(snap.purchases, snap.transfers, snap.returns, snap.sales,
                                   start, end, snap.gst_rates)
        return {"success": True, "count": len(rows), "data": rows}
    except Exception as e:
        logger.error("get_transactions failed: %s", e)
        return {"success": False, "error": str(e)}


def get_dashboard_summary(as_of: Optional[str] = None) -> Dict:
    try:
        snap = _get_source().load_snapshot()
        return {"success": True, "data": dashboard_summary(snap, as_of)}
    except Exception as e:
        logger.error("get_dashboard_summary failed: %s", e)
        return {"success": False, "error": str(e)}


if __name__ == "__main__":
    import asyncio
    from mcp.server.stdio import stdio_server

    async def run():
        async with stdio_server() as (read, write):
            await app.run(read, write, app.create_initialization_options())

    asyncio.run(run())
