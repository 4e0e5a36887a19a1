from rentledger.engines.gst import calculate_gst
from rentledger.engines.rate_resolver import RateResolver
from rentledger.engines.rental_allocator import allocate, merge_lines
from rentledger.engines.stock_ledger import compute_stock
from rentledger.engines.stock_validator import StockValidator
from rentledger.engines.valuation import average_unit_cost, inventory_value

__all__ = [
    "RateResolver",
    "StockValidator",
    "allocate",
    "average_unit_cost",
    "calculate_gst",
    "compute_stock",
    "inventory_value",
    "merge_lines",
]
