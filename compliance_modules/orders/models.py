"""
Order Compliance Domain Models (``compliance_modules.orders.models``).

Responsibility
--------------
Frozen dataclass value objects for the nouns of order compliance: sales
orders and their lines, restriction rules, export certificates, verdicts,
credit status, customer profiles, inventory balances and GL lines.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.  Constructed once
at the data-access boundary (``orm.py`` / services) and threaded through the
engines as typed records.

Invariants enforced
-------------------
* All models are ``frozen=True`` (immutable after construction).
* All money and quantity fields use ``Decimal`` -- NEVER ``float``.
* Storage codes ("1"/"2"/"3", "A"/"B") appear only as enum values; business
  logic compares enum members.
* ``ExportCertificate`` remaining fields are ``None`` (untracked) or a
  non-negative Decimal.  ``None`` is never coerced to zero.

Failure modes
-------------
* Construction with negative quantities or certificate balances raises
  ``ValueError``.
* Construction with an unknown storage code raises ``ValueError`` from the
  enum lookup.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from compliance_kernel.logging_config import get_logger

logger = get_logger("modules.orders.models")

ZERO = Decimal("0")


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class RestrictionType(Enum):
    """Catalog rule types, keyed by their storage code."""
    JURISDICTION_BLOCKED = "1"
    CUSTOMER_BLOCKED = "2"
    CERTIFICATE_REQUIRED = "3"

    @property
    def label(self) -> str:
        return _RESTRICTION_LABELS[self]


_RESTRICTION_LABELS = {
    RestrictionType.JURISDICTION_BLOCKED: "Sale not Permitted in Jurisdiction",
    RestrictionType.CUSTOMER_BLOCKED: "Customer Cannot Purchase this Item",
    RestrictionType.CERTIFICATE_REQUIRED: "No valid certificate for this item and quantity",
}


class CertificateStatus(Enum):
    """Export certificate states."""
    ACTIVE = "1"
    TERMINATED = "2"


class ItemLifecycle(Enum):
    """Item lifecycle states."""
    INACTIVE = "1"
    IN_DEVELOPMENT = "2"
    DISCONTINUED = "3"
    PHASE_OUT = "4"
    ACTIVE = "5"

    @property
    def is_forbidden(self) -> bool:
        """Items in these states can never be sold."""
        return self in (ItemLifecycle.INACTIVE, ItemLifecycle.IN_DEVELOPMENT)

    @property
    def is_capped(self) -> bool:
        """Items in these states sell only from existing stock."""
        return self in (ItemLifecycle.DISCONTINUED, ItemLifecycle.PHASE_OUT)

    @property
    def label(self) -> str:
        return self.name.replace("_", " ").title()


class OrderStatus(Enum):
    """Sales order workflow states."""
    PENDING_APPROVAL = "A"
    PENDING_FULFILLMENT = "B"
    PARTIALLY_FULFILLED = "E"
    CLOSED = "H"


class CreditHoldOverride(Enum):
    """Customer credit-hold override setting."""
    OFF = "OFF"
    ON = "ON"
    AUTO = "AUTO"


class VerdictCategory(Enum):
    """Disjoint restriction buckets."""
    HARD = "hard"
    SOFT = "soft"
    ADJUST = "adjust"
    PRICE = "price"
    CERT = "cert"
    GPL = "gpl"
    MAP = "map"
    LIFECYCLE = "lifecycle"
    CUSTOMER = "customer"


class Remediation(Enum):
    """What the mutation applier does about a verdict."""
    REMOVE_LINE = "remove_line"
    CLAMP_QUANTITY = "clamp_quantity"
    FLAG_ONLY = "flag_only"
    CORRECT_PRICE = "correct_price"


class SubmitEvent(Enum):
    """Record lifecycle event that triggered an evaluation."""
    CREATE = "create"
    EDIT = "edit"
    XEDIT = "xedit"
    COPY = "copy"


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ShippingAddress:
    """Ship-to address of a sales order."""
    address1: str | None = None
    address2: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    country: str | None = None

    @property
    def is_complete(self) -> bool:
        return all((self.address1, self.city, self.state, self.zip_code))

    @property
    def zip5(self) -> str:
        """Zip code without the +4 extension."""
        return (self.zip_code or "").split("-")[0]


@dataclass(frozen=True)
class OrderLine:
    """A single item line on a sales order."""
    line_key: str
    line_index: int
    item_id: str
    item_name: str
    quantity: Decimal
    rate: Decimal
    eccn: str | None = None
    quantity_committed: Decimal = ZERO
    location: str | None = None
    lifecycle: ItemLifecycle = ItemLifecycle.ACTIVE
    custom_cost: Decimal | None = None
    jurisdiction_override: bool = False
    cert_applied_on: datetime | None = None
    gpl: str | None = None
    gpl_sub_rep: str | None = None
    system_price: Decimal | None = None
    is_map_item: bool = False
    is_closed: bool = False
    quantity_fulfilled: Decimal = ZERO

    def __post_init__(self):
        if self.quantity < 0:
            logger.warning(
                "order_line_negative_quantity",
                extra={"line_key": self.line_key, "quantity": str(self.quantity)},
            )
            raise ValueError("Order line quantity cannot be negative")
        if self.quantity_committed < 0:
            raise ValueError("quantity_committed cannot be negative")

    @property
    def value(self) -> Decimal:
        return self.quantity * self.rate

    @property
    def quantity_requested(self) -> Decimal:
        """Quantity still to be sourced beyond what is already committed."""
        if self.quantity_committed > 0:
            return self.quantity - self.quantity_committed
        return self.quantity


@dataclass(frozen=True)
class SalesOrder:
    """A sales order as seen by the compliance pipeline."""
    order_id: str | None
    customer_id: str
    order_date: date
    lines: tuple[OrderLine, ...] = field(default_factory=tuple)
    subsidiary_id: str | None = None
    subsidiary_country: str | None = None
    po_number: str | None = None
    status: OrderStatus = OrderStatus.PENDING_FULFILLMENT
    total: Decimal = ZERO
    ship_method: str | None = None
    shipping_address: ShippingAddress = field(default_factory=ShippingAddress)
    not_duplicate: bool = False
    reviewed_special_handling: bool = False
    credit_limit_override: bool = False
    invalid_order_reason: str = ""
    dropped_to_boss: bool = False
    override_fill_and_kill: bool = False

    @property
    def item_ids(self) -> frozenset[str]:
        return frozenset(line.item_id for line in self.lines)

    @property
    def eccns(self) -> frozenset[str]:
        return frozenset(line.eccn for line in self.lines if line.eccn)


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RestrictionRule:
    """
    A read-only catalog entry restricting an item or ECCN.

    Matches a line by item or by ECCN; ``country``/``state``/``zip_code``
    scope jurisdiction rules to a ship-to address.
    """
    rule_id: str
    restriction_type: RestrictionType
    customer_id: str | None = None
    item_id: str | None = None
    item_name: str | None = None
    eccn: str | None = None
    country: str | None = None
    state: str | None = None
    zip_code: str | None = None
    override: bool = False

    @property
    def reason(self) -> str:
        return self.restriction_type.label


@dataclass(frozen=True)
class ExportCertificate:
    """
    A quota authorizing export of an item or ECCN to a customer.

    ``remaining_quantity`` / ``remaining_value`` are ``None`` when the
    certificate does not track that dimension.  ``version`` is the
    optimistic-concurrency token checked when the certificate is debited.
    """
    certificate_id: str
    expiration_date: date
    remaining_quantity: Decimal | None = None
    remaining_value: Decimal | None = None
    customer_id: str | None = None
    item_id: str | None = None
    eccn: str | None = None
    status: CertificateStatus = CertificateStatus.ACTIVE
    version: int = 0

    def __post_init__(self):
        if self.remaining_quantity is not None and self.remaining_quantity < 0:
            logger.warning(
                "certificate_negative_quantity",
                extra={
                    "certificate_id": self.certificate_id,
                    "remaining_quantity": str(self.remaining_quantity),
                },
            )
            raise ValueError("remaining_quantity cannot be negative")
        if self.remaining_value is not None and self.remaining_value < 0:
            logger.warning(
                "certificate_negative_value",
                extra={
                    "certificate_id": self.certificate_id,
                    "remaining_value": str(self.remaining_value),
                },
            )
            raise ValueError("remaining_value cannot be negative")

    @property
    def tracks_quantity(self) -> bool:
        return self.remaining_quantity is not None

    @property
    def tracks_value(self) -> bool:
        return self.remaining_value is not None

    @property
    def is_tracked(self) -> bool:
        """False for a certificate with both fields unset."""
        return self.tracks_quantity or self.tracks_value


# ---------------------------------------------------------------------------
# Evaluation results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RestrictionVerdict:
    """One restriction outcome for one order line."""
    line_key: str
    line_index: int
    item_id: str
    item_name: str
    category: VerdictCategory
    reason: str
    remediation: Remediation
    quantity: Decimal
    max_allowed_quantity: Decimal | None = None
    system_price: Decimal | None = None
    override: bool = False


@dataclass(frozen=True)
class CreditStatus:
    """Computed credit position of a customer for one evaluation."""
    valid: bool
    remaining_credit: Decimal | None = None
    message: str | None = None

    @property
    def reason_text(self) -> str:
        """Text stamped into the order's invalid reason when not valid."""
        if self.message:
            return self.message
        if self.remaining_credit is not None:
            return str(self.remaining_credit)
        return ""


@dataclass(frozen=True)
class CustomerProfile:
    """Customer attributes consumed by credit, MAP and fill & kill rules."""
    customer_id: str
    credit_limit: Decimal = ZERO
    credit_hold_override: CreditHoldOverride = CreditHoldOverride.AUTO
    approved_for_map: bool = False
    fill_and_kill: bool = False
    price_level: str | None = None
    vista_owned: bool = False
    intercompany_markup_percent: Decimal = ZERO


@dataclass(frozen=True)
class LocationInventory:
    """Inventory balance of one item at one location."""
    item_id: str
    location: str
    available: Decimal = ZERO
    backordered: Decimal = ZERO
    on_order: Decimal = ZERO
    location_cost: Decimal | None = None


@dataclass(frozen=True)
class StateRef:
    """A state or province from the reference table."""
    country: str
    short_name: str
    full_name: str


@dataclass(frozen=True)
class GPLConfig:
    """
    A customer's sales-territory assignment for one GPL (product line).

    A line of that GPL gets ``sub_rep`` when both ``sales_rep`` and
    ``sub_rep`` are set.
    """
    gpl: str
    sales_rep: str | None = None
    sub_rep: str | None = None
    sales_manager: str | None = None
    priority: str | None = None

    @property
    def assigns_sub_rep(self) -> bool:
        return bool(self.sales_rep and self.sub_rep)


@dataclass(frozen=True)
class AddressValidation:
    """Outcome of shipping-address validation."""
    is_valid: bool
    reason: str = ""


@dataclass(frozen=True)
class TaxAreaAddress:
    """Normalized postal address returned by the tax-area service."""
    street_address1: str | None = None
    street_address2: str | None = None
    city: str | None = None
    main_division: str | None = None
    postal_code: str | None = None
    country: str | None = None


# ---------------------------------------------------------------------------
# GL
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PostingLine:
    """A standard GL line produced by the host posting engine."""
    account_id: str | None
    debit: Decimal = ZERO
    credit: Decimal = ZERO
    is_posting: bool = True
    class_id: str | None = None
    department_id: str | None = None
    location_id: str | None = None
    entity_id: str | None = None


@dataclass(frozen=True)
class GLLine:
    """A custom GL line to add alongside the standard lines."""
    account_id: str
    debit: Decimal = ZERO
    credit: Decimal = ZERO
    class_id: str | None = None
    department_id: str | None = None
    location_id: str | None = None
    entity_id: str | None = None


@dataclass(frozen=True)
class FulfilledLine:
    """An item line on an item fulfillment."""
    item_id: str
    quantity: Decimal
    custom_cost: Decimal | None = None
    fulfilled: bool = True
    class_id: str | None = None
    department_id: str | None = None
    location_id: str | None = None


@dataclass(frozen=True)
class ItemFulfillment:
    """
    An item fulfillment as seen by the GL plugins.

    ``ship_status`` is the host's storage code; "C" means shipped.
    """
    transaction_id: str
    created_from_id: str | None
    ship_status: str | None = None
    lines: tuple[FulfilledLine, ...] = field(default_factory=tuple)

    @property
    def is_shipped(self) -> bool:
        return self.ship_status == "C"


@dataclass(frozen=True)
class ReceivedLine:
    """An item line on an item receipt."""
    item_id: str
    quantity: Decimal
    location_id: str | None = None


@dataclass(frozen=True)
class ItemReceipt:
    """An item receipt as seen by the GL plugins."""
    transaction_id: str
    created_from_id: str | None
    lines: tuple[ReceivedLine, ...] = field(default_factory=tuple)
