"""
Tests for preference loading.

Covers:
- Schema validation and require()
- Loader (parse_preferences) -- YAML dict parsing
- End-to-end (get_preferences) -- bundled default set and custom files
"""

from __future__ import annotations

import dataclasses
from decimal import Decimal

import pytest
import yaml

from compliance_config import get_preferences
from compliance_config.loader import load_preferences, parse_decimal, parse_preferences
from compliance_config.schema import CompliancePreferences
from compliance_kernel.exceptions import (
    ConfigurationError,
    InvalidPreferenceError,
    MissingPreferenceError,
)


# =========================================================================
# 1. Schema
# =========================================================================


class TestCompliancePreferencesSchema:
    def test_defaults(self):
        prefs = CompliancePreferences()

        assert prefs.price_tolerance is None
        assert prefs.lead_time_to_ship_days is None
        assert prefs.include_pending_orders_in_credit is False
        assert prefs.gpl_none_code == "6"
        assert prefs.intercompany_discount_percent == Decimal("0")
        assert prefs.base_price_level == "1"
        assert prefs.search_page_size == 1000

    def test_frozen(self):
        prefs = CompliancePreferences()
        with pytest.raises(dataclasses.FrozenInstanceError):
            prefs.price_tolerance = Decimal("1")

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"price_tolerance": Decimal("-0.01")},
            {"lead_time_to_ship_days": -1},
            {"search_page_size": 0},
            {"tax_service_timeout_seconds": 0},
            {"intercompany_discount_percent": Decimal("100.5")},
            {"intercompany_discount_percent": Decimal("-1")},
        ],
    )
    def test_out_of_range_rejected(self, kwargs):
        with pytest.raises(InvalidPreferenceError):
            CompliancePreferences(**kwargs)

    def test_require_returns_value(self):
        prefs = CompliancePreferences(sales_subsidiary_id="17")
        assert prefs.require("sales_subsidiary_id") == "17"

    def test_require_missing(self):
        with pytest.raises(MissingPreferenceError) as exc_info:
            CompliancePreferences().require("intercompany_payable_account")

        assert exc_info.value.code == "MISSING_PREFERENCE"
        assert exc_info.value.preference == "intercompany_payable_account"
        assert isinstance(exc_info.value, ConfigurationError)


# =========================================================================
# 2. Loader
# =========================================================================


class TestParsePreferences:
    def test_full_document(self):
        prefs = parse_preferences(
            {
                "price_tolerance": "0.25",
                "lead_time_to_ship_days": 7,
                "include_pending_orders_in_credit": True,
                "intercompany_payable_account": 2100,
                "sales_subsidiary_id": 17,
                "intercompany_discount_percent": "12.5",
                "base_price_level": 2,
                "search_page_size": 250,
            }
        )

        assert prefs.price_tolerance == Decimal("0.25")
        assert prefs.lead_time_to_ship_days == 7
        assert prefs.include_pending_orders_in_credit is True
        assert prefs.intercompany_payable_account == "2100"
        assert prefs.sales_subsidiary_id == "17"
        assert prefs.intercompany_discount_percent == Decimal("12.5")
        assert prefs.base_price_level == "2"
        assert prefs.search_page_size == 250

    def test_float_tolerance_has_no_binary_noise(self):
        assert parse_decimal("price_tolerance", 0.1) == Decimal("0.1")

    def test_blank_values_are_unset(self):
        prefs = parse_preferences({"price_tolerance": "", "tax_trusted_id": ""})

        assert prefs.price_tolerance is None
        assert prefs.tax_trusted_id is None

    def test_unknown_key_rejected(self):
        with pytest.raises(InvalidPreferenceError) as exc_info:
            parse_preferences({"price_tolerence": "0.5"})

        assert exc_info.value.value == ["price_tolerence"]

    def test_bad_decimal_rejected(self):
        with pytest.raises(InvalidPreferenceError):
            parse_preferences({"price_tolerance": "half"})


# =========================================================================
# 3. End-to-end
# =========================================================================


class TestGetPreferences:
    def test_bundled_default_set(self):
        prefs = get_preferences()

        assert prefs.price_tolerance == Decimal("0.50")
        assert prefs.lead_time_to_ship_days == 5
        assert prefs.sales_subsidiary_id == "17"
        assert prefs.tax_service_url is None

    def test_custom_file(self, tmp_path):
        path = tmp_path / "prefs.yaml"
        path.write_text(yaml.safe_dump({"lead_time_to_ship_days": 10}))

        prefs = load_preferences(path)

        assert prefs.lead_time_to_ship_days == 10
        assert prefs.price_tolerance is None

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")

        assert get_preferences(path) == CompliancePreferences()

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_preferences(tmp_path / "nope.yaml")
