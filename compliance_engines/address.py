"""
Module: compliance_engines.address
Responsibility:
    Shipping-address rules that do not need the tax-area service, and the
    comparison of an address with the service's normalized result.

Architecture position:
    Engines -- pure rule layer, zero I/O.  The remote lookup happens in
    ``compliance_services.address_validation``.

Invariants enforced:
    - An address with no street, city, state or zip cannot be validated.
    - US PO boxes cannot ship FedEx or UPS, except Smartpost.
    - US addresses must match the service's state and 5-digit zip.  A
      full state name is replaced by its short code before the lookup.
    - Foreign addresses are valid in the subsidiary's own country or once
      reviewed for special handling.
"""

from __future__ import annotations

from dataclasses import replace

from compliance_kernel.logging_config import get_logger
from compliance_modules.orders.models import (
    AddressValidation,
    ShippingAddress,
    StateRef,
    TaxAreaAddress,
)

logger = get_logger("engines.address")

US = "US"

UNVALIDATED_REASON = "Address cannot be validated against State/Zip Code combination\n"
PO_BOX_REASON = "Cannot ship FedEx or UPS to PO BOX\n"
MISMATCH_REASON = "Invalid Zip Code/State\n"
SPECIAL_HANDLING_REASON = "Review for Special Handling - {country}\n"

VALID = AddressValidation(is_valid=True)


def is_empty(address: ShippingAddress) -> bool:
    return not (address.address1 or address.city or address.state or address.zip_code)


def is_po_box(address: ShippingAddress) -> bool:
    for line in (address.address1, address.address2):
        if line and "PO BOX" in line.upper().replace(".", ""):
            return True
    return False


def is_parcel_carrier(ship_method: str | None) -> bool:
    """FedEx or UPS services other than Smartpost."""
    if not ship_method:
        return False
    return ("FedEx" in ship_method or "UPS" in ship_method) and "Smartpost" not in ship_method


def screen_address(
    address: ShippingAddress,
    ship_method: str | None,
) -> AddressValidation | None:
    """
    Rules decidable from the address alone.

    Returns:
        An invalid ``AddressValidation``, or None when the address passes
        and needs the country-specific check.
    """
    if is_empty(address):
        return AddressValidation(is_valid=False, reason=UNVALIDATED_REASON)
    if address.country == US and is_po_box(address) and is_parcel_carrier(ship_method):
        return AddressValidation(is_valid=False, reason=PO_BOX_REASON)
    return None


def normalize_state(address: ShippingAddress, state: StateRef | None) -> ShippingAddress:
    """Replace the address state with the reference short code, when found."""
    if state is None or address.state == state.short_name:
        return address
    return replace(address, state=state.short_name)


def compare_with_tax_area(
    address: ShippingAddress,
    normalized: TaxAreaAddress | None,
) -> AddressValidation:
    """Compare a US address with the tax-area service's normalized address."""
    if normalized is None:
        return AddressValidation(is_valid=False, reason=UNVALIDATED_REASON)

    service_zip = (normalized.postal_code or "").split("-")[0]
    if (address.state or "") != (normalized.main_division or "") or address.zip5 != service_zip:
        logger.info(
            "address_tax_area_mismatch",
            extra={
                "state": address.state,
                "zip": address.zip5,
                "service_state": normalized.main_division,
                "service_zip": service_zip,
            },
        )
        return AddressValidation(is_valid=False, reason=MISMATCH_REASON)
    return VALID


def foreign_address_validation(
    address: ShippingAddress,
    subsidiary_country: str | None,
    reviewed_special_handling: bool,
) -> AddressValidation:
    """Non-US addresses ship freely inside the subsidiary's country."""
    if subsidiary_country and subsidiary_country == address.country:
        return VALID
    if reviewed_special_handling:
        return VALID
    return AddressValidation(
        is_valid=False,
        reason=SPECIAL_HANDLING_REASON.format(country=address.country or ""),
    )
