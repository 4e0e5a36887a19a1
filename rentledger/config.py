"""Settings read from the environment (see env_loader for .env support)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from rentledger.models.records import GSTRates

DEFAULT_REGION = "us-west-2"

TABLE_NAMES = (
    "Products",
    "Warehouses",
    "Customers",
    "Purchases",
    "Transfers",
    "Returns",
    "Sales",
    "RentalOrders",
    "Config",
)


class ConfigError(ValueError):
    """Invalid configuration value."""
    pass


@dataclass(frozen=True)
class Settings:
    region_name: str = DEFAULT_REGION
    table_prefix: str = ""
    default_gst_rates: GSTRates = field(default_factory=GSTRates)

    def table_name(self, name: str) -> str:
        return f"{self.table_prefix}{name}"


def _env_bool(env: Mapping[str, str], key: str, default: bool) -> bool:
    value = env.get(key)
    if value is None or value == "":
        return default
    lowered = value.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    raise ConfigError(f"{key} must be a boolean, got {value!r}")


def _env_rate(env: Mapping[str, str], key: str, default: float) -> float:
    value = env.get(key)
    if value is None or value == "":
        return default
    try:
        rate = float(value)
    except ValueError as e:
        raise ConfigError(f"{key} must be a number, got {value!r}") from e
    if rate < 0:
        raise ConfigError(f"{key} cannot be negative")
    return rate


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    env = os.environ if env is None else env
    defaults = GSTRates()
    return Settings(
        region_name=env.get("AWS_DEFAULT_REGION") or DEFAULT_REGION,
        table_prefix=env.get("RENTLEDGER_TABLE_PREFIX", ""),
        default_gst_rates=GSTRates(
            enabled=_env_bool(env, "GST_ENABLED", defaults.enabled),
            cgst=_env_rate(env, "GST_CGST", defaults.cgst),
            sgst=_env_rate(env, "GST_SGST", defaults.sgst),
            igst=_env_rate(env, "GST_IGST", defaults.igst),
        ),
    )
