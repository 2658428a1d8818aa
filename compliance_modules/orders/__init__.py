"""
Orders Module.

Sales orders, their lines, the customers and items they reference, the
restriction catalog and the export certificates that gate restricted lines.
"""

from compliance_modules.orders.models import (
    AddressValidation,
    CertificateStatus,
    CreditHoldOverride,
    CreditStatus,
    CustomerProfile,
    ExportCertificate,
    FulfilledLine,
    GLLine,
    ItemFulfillment,
    ItemLifecycle,
    LocationInventory,
    OrderLine,
    OrderStatus,
    PostingLine,
    Remediation,
    RestrictionRule,
    RestrictionType,
    RestrictionVerdict,
    SalesOrder,
    ShippingAddress,
    SubmitEvent,
    TaxAreaAddress,
    VerdictCategory,
)

__all__ = [
    "AddressValidation",
    "CertificateStatus",
    "CreditHoldOverride",
    "CreditStatus",
    "CustomerProfile",
    "ExportCertificate",
    "FulfilledLine",
    "GLLine",
    "ItemFulfillment",
    "ItemLifecycle",
    "LocationInventory",
    "OrderLine",
    "OrderStatus",
    "PostingLine",
    "Remediation",
    "RestrictionRule",
    "RestrictionType",
    "RestrictionVerdict",
    "SalesOrder",
    "ShippingAddress",
    "SubmitEvent",
    "TaxAreaAddress",
    "VerdictCategory",
]
