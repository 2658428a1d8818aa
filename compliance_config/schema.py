"""
CompliancePreferences schema.

Process-wide named configuration values resolved per execution context:
account ids, tolerance thresholds, feature toggles and lead-time days.
YAML documents are parsed into this type by ``compliance_config.loader``.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from compliance_kernel.exceptions import InvalidPreferenceError, MissingPreferenceError
from compliance_kernel.logging_config import get_logger

logger = get_logger("config.schema")


@dataclass(frozen=True)
class CompliancePreferences:
    """
    Preferences consumed by the compliance engines and services.

    Optional values are ``None`` when not configured.  Callers that need a
    value use ``require()`` so a missing preference surfaces as a typed
    ``MissingPreferenceError`` the service can log and skip.

        prefs = CompliancePreferences(
            price_tolerance=Decimal("0.50"),
            lead_time_to_ship_days=5,
        )
    """

    # Pricing
    price_tolerance: Decimal | None = None

    # Export certificates
    lead_time_to_ship_days: int | None = None

    # Credit
    include_pending_orders_in_credit: bool = False

    # Tax-area (address) validation service
    tax_service_url: str | None = None
    tax_trusted_id: str | None = None
    tax_service_timeout_seconds: float = 30.0

    # GL custom lines
    intercompany_payable_account: str | None = None
    inventory_consignment_account: str | None = None
    sales_subsidiary_id: str | None = None

    # Intercompany cost of fulfillments for customers that are not
    # Vista-owned: base price less this discount.
    intercompany_discount_percent: Decimal = Decimal("0")
    base_price_level: str = "1"

    # Sales territory
    gpl_none_code: str = "6"

    # Catalog paging
    search_page_size: int = 1000

    def __post_init__(self):
        if self.price_tolerance is not None and self.price_tolerance < 0:
            raise InvalidPreferenceError(
                "price_tolerance", self.price_tolerance, "cannot be negative"
            )
        if self.lead_time_to_ship_days is not None and self.lead_time_to_ship_days < 0:
            raise InvalidPreferenceError(
                "lead_time_to_ship_days",
                self.lead_time_to_ship_days,
                "cannot be negative",
            )
        if not Decimal("0") <= self.intercompany_discount_percent <= Decimal("100"):
            raise InvalidPreferenceError(
                "intercompany_discount_percent",
                self.intercompany_discount_percent,
                "must be between 0 and 100",
            )
        if self.search_page_size <= 0:
            raise InvalidPreferenceError(
                "search_page_size", self.search_page_size, "must be positive"
            )
        if self.tax_service_timeout_seconds <= 0:
            raise InvalidPreferenceError(
                "tax_service_timeout_seconds",
                self.tax_service_timeout_seconds,
                "must be positive",
            )
        logger.debug(
            "preferences_initialized",
            extra={
                "price_tolerance": self.price_tolerance,
                "lead_time_to_ship_days": self.lead_time_to_ship_days,
                "include_pending_orders_in_credit": self.include_pending_orders_in_credit,
                "search_page_size": self.search_page_size,
            },
        )

    def require(self, name: str) -> object:
        """Return a preference value, raising if it is not configured."""
        value = getattr(self, name)
        if value is None or value == "":
            raise MissingPreferenceError(name)
        return value
