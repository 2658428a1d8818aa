"""
compliance_services.address_validation -- Shipping address validation.

Responsibility:
    Validate a sales order's shipping address: local screening rules,
    then the tax-area lookup for US addresses, or the subsidiary-country
    and special-handling rules for foreign addresses.

Architecture position:
    Services -- composes compliance_engines.address (rules), TaxAreaClient
    (remote lookup) and, when given, RestrictionCatalog for state names.

Failure modes:
    - None raised.  A failed lookup is logged and reported as an address
      that cannot be validated.
"""

from __future__ import annotations

from compliance_engines.address import (
    UNVALIDATED_REASON,
    US,
    compare_with_tax_area,
    foreign_address_validation,
    normalize_state,
    screen_address,
)
from compliance_kernel.exceptions import RemoteServiceError
from compliance_kernel.logging_config import get_logger
from compliance_modules.orders.models import AddressValidation, SalesOrder
from compliance_services.catalog import RestrictionCatalog
from compliance_services.tax_area import TaxAreaClient

logger = get_logger("services.address_validation")


class AddressValidationService:
    """Validates shipping addresses, calling the tax-area service for US ones."""

    def __init__(
        self,
        tax_client: TaxAreaClient,
        catalog: RestrictionCatalog | None = None,
    ):
        self.tax_client = tax_client
        self.catalog = catalog

    def validate(self, order: SalesOrder) -> AddressValidation:
        address = order.shipping_address

        screened = screen_address(address, order.ship_method)
        if screened is not None:
            logger.info(
                "shipping_address_rejected",
                extra={"order_id": order.order_id, "reason": screened.reason.strip()},
            )
            return screened

        if address.country != US:
            return foreign_address_validation(
                address,
                order.subsidiary_country,
                order.reviewed_special_handling,
            )

        if self.catalog is not None and address.state:
            address = normalize_state(
                address, self.catalog.find_state(address.state, address.country),
            )

        try:
            normalized = self.tax_client.lookup(address)
        except RemoteServiceError:
            logger.exception(
                "shipping_address_lookup_failed",
                extra={"order_id": order.order_id},
            )
            return AddressValidation(is_valid=False, reason=UNVALIDATED_REASON)

        return compare_with_tax_area(address, normalized)
