"""
Preferences Loader (``compliance_config.loader``).

Responsibility
--------------
Loads a YAML preferences document and parses it into a frozen
``CompliancePreferences`` instance.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown keys  -> ``InvalidPreferenceError``.
* Out-of-range values  -> ``InvalidPreferenceError`` from the schema.
"""

from __future__ import annotations

from dataclasses import fields
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from compliance_config.schema import CompliancePreferences
from compliance_kernel.exceptions import InvalidPreferenceError

_KNOWN_KEYS = frozenset(f.name for f in fields(CompliancePreferences))


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_decimal(name: str, value: Any) -> Decimal | None:
    """Parse an optional Decimal from YAML (string, int or float)."""
    if value is None or value == "":
        return None
    try:
        # str() first so YAML floats don't carry binary noise
        return Decimal(str(value))
    except InvalidOperation:
        raise InvalidPreferenceError(name, value, "not a decimal number") from None


def _optional_str(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def parse_preferences(data: dict[str, Any]) -> CompliancePreferences:
    """
    Parse ``CompliancePreferences`` from a dict.

    Account and subsidiary ids are normalised to strings so ``17`` and
    ``"17"`` configure the same value.
    """
    unknown = set(data) - _KNOWN_KEYS
    if unknown:
        raise InvalidPreferenceError(
            "preferences", sorted(unknown), "unknown preference keys"
        )

    lead_time = data.get("lead_time_to_ship_days")

    return CompliancePreferences(
        price_tolerance=parse_decimal("price_tolerance", data.get("price_tolerance")),
        lead_time_to_ship_days=int(lead_time) if lead_time not in (None, "") else None,
        include_pending_orders_in_credit=bool(
            data.get("include_pending_orders_in_credit", False)
        ),
        tax_service_url=_optional_str(data.get("tax_service_url")),
        tax_trusted_id=_optional_str(data.get("tax_trusted_id")),
        tax_service_timeout_seconds=float(data.get("tax_service_timeout_seconds", 30.0)),
        intercompany_payable_account=_optional_str(data.get("intercompany_payable_account")),
        inventory_consignment_account=_optional_str(data.get("inventory_consignment_account")),
        sales_subsidiary_id=_optional_str(data.get("sales_subsidiary_id")),
        intercompany_discount_percent=parse_decimal(
            "intercompany_discount_percent", data.get("intercompany_discount_percent"),
        ) or Decimal("0"),
        base_price_level=str(data.get("base_price_level", "1")),
        gpl_none_code=str(data.get("gpl_none_code", "6")),
        search_page_size=int(data.get("search_page_size", 1000)),
    )


def load_preferences(path: Path) -> CompliancePreferences:
    """Load and parse a preferences YAML file."""
    return parse_preferences(load_yaml_file(path))
