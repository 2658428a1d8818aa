"""
Orders ORM Models (``compliance_modules.orders.orm``).

Responsibility
--------------
SQLAlchemy persistence models for the orders module.  Maps frozen domain
dataclasses from ``models.py`` to database tables.  Enum storage codes are
written and read here and nowhere else.

Architecture position
---------------------
**Modules layer** -- persistence.  Imports from ``compliance_kernel.db.base``
and sibling ``models.py``.  MUST NOT be imported by ``compliance_kernel``
(except ``create_tables``, which imports it to register metadata).
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from compliance_kernel.db.base import TrackedBase


# ---------------------------------------------------------------------------
# 1. CustomerModel
# ---------------------------------------------------------------------------


class CustomerModel(TrackedBase):
    """
    ORM model for customers.

    Maps to the ``CustomerProfile`` frozen dataclass.

    Guarantees:
        - customer_id (the external id) is unique.
        - credit_hold_override stored as the enum value.
    """

    __tablename__ = "customers"

    __table_args__ = (
        UniqueConstraint("customer_id", name="uq_customers_customer_id"),
    )

    customer_id: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(255), default="")
    credit_limit: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    credit_hold_override: Mapped[str] = mapped_column(String(10), default="AUTO")
    approved_for_map: Mapped[bool] = mapped_column(Boolean, default=False)
    fill_and_kill: Mapped[bool] = mapped_column(Boolean, default=False)
    price_level: Mapped[str | None] = mapped_column(String(50), nullable=True)
    vista_owned: Mapped[bool] = mapped_column(Boolean, default=False)
    intercompany_markup_percent: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    is_inactive: Mapped[bool] = mapped_column(Boolean, default=False)

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from compliance_modules.orders.models import CreditHoldOverride, CustomerProfile

        return CustomerProfile(
            customer_id=self.customer_id,
            credit_limit=self.credit_limit,
            credit_hold_override=CreditHoldOverride(self.credit_hold_override),
            approved_for_map=self.approved_for_map,
            fill_and_kill=self.fill_and_kill,
            price_level=self.price_level,
            vista_owned=self.vista_owned,
            intercompany_markup_percent=self.intercompany_markup_percent,
        )

    @classmethod
    def from_dto(cls, dto, name: str = "") -> "CustomerModel":
        """Create ORM model from frozen dataclass."""
        return cls(
            customer_id=dto.customer_id,
            name=name,
            credit_limit=dto.credit_limit,
            credit_hold_override=dto.credit_hold_override.value,
            approved_for_map=dto.approved_for_map,
            fill_and_kill=dto.fill_and_kill,
            price_level=dto.price_level,
            vista_owned=dto.vista_owned,
            intercompany_markup_percent=dto.intercompany_markup_percent,
        )

    def __repr__(self) -> str:
        return f"<CustomerModel {self.customer_id}>"


# ---------------------------------------------------------------------------
# 2. ItemModel
# ---------------------------------------------------------------------------


class ItemModel(TrackedBase):
    """
    ORM model for inventory items.

    Carries the COGS (expense) account used by fulfillment impact-sale
    GL lines.
    """

    __tablename__ = "items"

    __table_args__ = (
        UniqueConstraint("item_id", name="uq_items_item_id"),
    )

    item_id: Mapped[str] = mapped_column(String(50), nullable=False)
    item_name: Mapped[str] = mapped_column(String(255), default="")
    eccn: Mapped[str | None] = mapped_column(String(50), nullable=True)
    lifecycle: Mapped[str] = mapped_column(String(2), default="5")
    is_map_item: Mapped[bool] = mapped_column(Boolean, default=False)
    cogs_account_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    is_inactive: Mapped[bool] = mapped_column(Boolean, default=False)

    def __repr__(self) -> str:
        return f"<ItemModel {self.item_id}: {self.item_name}>"


# ---------------------------------------------------------------------------
# 3. InventoryBalanceModel
# ---------------------------------------------------------------------------


class InventoryBalanceModel(TrackedBase):
    """ORM model for per-location inventory balances."""

    __tablename__ = "inventory_balances"

    __table_args__ = (
        UniqueConstraint("item_id", "location", name="uq_inventory_balances_item_location"),
        Index("idx_inventory_balances_item_id", "item_id"),
    )

    item_id: Mapped[str] = mapped_column(String(50), nullable=False)
    location: Mapped[str] = mapped_column(String(50), nullable=False)
    available: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    backordered: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    on_order: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    location_cost: Mapped[Decimal | None] = mapped_column(nullable=True)

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from compliance_modules.orders.models import LocationInventory

        return LocationInventory(
            item_id=self.item_id,
            location=self.location,
            available=self.available,
            backordered=self.backordered,
            on_order=self.on_order,
            location_cost=self.location_cost,
        )


# ---------------------------------------------------------------------------
# 4. Prices
# ---------------------------------------------------------------------------


class PriceLevelPriceModel(TrackedBase):
    """Unit price of an item at a price level."""

    __tablename__ = "price_level_prices"

    __table_args__ = (
        UniqueConstraint("item_id", "price_level", name="uq_price_level_prices_item_level"),
    )

    item_id: Mapped[str] = mapped_column(String(50), nullable=False)
    price_level: Mapped[str] = mapped_column(String(50), nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(nullable=False)


class CustomerItemPriceModel(TrackedBase):
    """Customer-specific unit price of an item.  Wins over the price level."""

    __tablename__ = "customer_item_prices"

    __table_args__ = (
        UniqueConstraint("customer_id", "item_id", name="uq_customer_item_prices_customer_item"),
    )

    customer_id: Mapped[str] = mapped_column(String(50), nullable=False)
    item_id: Mapped[str] = mapped_column(String(50), nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(nullable=False)


# ---------------------------------------------------------------------------
# 5. RestrictionRuleModel
# ---------------------------------------------------------------------------


class RestrictionRuleModel(TrackedBase):
    """
    ORM model for the restriction catalog.

    Maps to the ``RestrictionRule`` frozen dataclass.

    Guarantees:
        - restriction_type stored as the storage code ("1"/"2"/"3").
        - Inactive rules are never returned by the catalog.
    """

    __tablename__ = "restriction_rules"

    __table_args__ = (
        UniqueConstraint("rule_id", name="uq_restriction_rules_rule_id"),
        Index("idx_restriction_rules_item_id", "item_id"),
        Index("idx_restriction_rules_eccn", "eccn"),
        Index("idx_restriction_rules_customer_id", "customer_id"),
    )

    rule_id: Mapped[str] = mapped_column(String(50), nullable=False)
    restriction_type: Mapped[str] = mapped_column(String(2), nullable=False)
    customer_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    item_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    item_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    eccn: Mapped[str | None] = mapped_column(String(50), nullable=True)
    country: Mapped[str | None] = mapped_column(String(2), nullable=True)
    state: Mapped[str | None] = mapped_column(String(50), nullable=True)
    zip_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    override: Mapped[bool] = mapped_column(Boolean, default=False)
    is_inactive: Mapped[bool] = mapped_column(Boolean, default=False)

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from compliance_modules.orders.models import RestrictionRule, RestrictionType

        return RestrictionRule(
            rule_id=self.rule_id,
            restriction_type=RestrictionType(self.restriction_type),
            customer_id=self.customer_id,
            item_id=self.item_id,
            item_name=self.item_name,
            eccn=self.eccn,
            country=self.country,
            state=self.state,
            zip_code=self.zip_code,
            override=self.override,
        )

    @classmethod
    def from_dto(cls, dto) -> "RestrictionRuleModel":
        """Create ORM model from frozen dataclass."""
        return cls(
            rule_id=dto.rule_id,
            restriction_type=dto.restriction_type.value,
            customer_id=dto.customer_id,
            item_id=dto.item_id,
            item_name=dto.item_name,
            eccn=dto.eccn,
            country=dto.country,
            state=dto.state,
            zip_code=dto.zip_code,
            override=dto.override,
        )

    def __repr__(self) -> str:
        return f"<RestrictionRuleModel {self.rule_id} type={self.restriction_type}>"


# ---------------------------------------------------------------------------
# 6. ExportCertificateModel
# ---------------------------------------------------------------------------


class ExportCertificateModel(TrackedBase):
    """
    ORM model for export certificates.

    Maps to the ``ExportCertificate`` frozen dataclass.

    Guarantees:
        - remaining_quantity / remaining_value are NULL when untracked.
        - version increments on every debit; debits are conditional on the
          version read (see ``compliance_services.certificates``).
    """

    __tablename__ = "export_certificates"

    __table_args__ = (
        UniqueConstraint("certificate_id", name="uq_export_certificates_certificate_id"),
        Index("idx_export_certificates_item_id", "item_id"),
        Index("idx_export_certificates_eccn", "eccn"),
        Index("idx_export_certificates_expiration", "expiration_date"),
    )

    certificate_id: Mapped[str] = mapped_column(String(50), nullable=False)
    customer_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    item_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    eccn: Mapped[str | None] = mapped_column(String(50), nullable=True)
    expiration_date: Mapped[date] = mapped_column(Date, nullable=False)
    remaining_quantity: Mapped[Decimal | None] = mapped_column(nullable=True)
    remaining_value: Mapped[Decimal | None] = mapped_column(nullable=True)
    status: Mapped[str] = mapped_column(String(2), default="1")
    version: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_inactive: Mapped[bool] = mapped_column(Boolean, default=False)

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from compliance_modules.orders.models import CertificateStatus, ExportCertificate

        return ExportCertificate(
            certificate_id=self.certificate_id,
            expiration_date=self.expiration_date,
            remaining_quantity=self.remaining_quantity,
            remaining_value=self.remaining_value,
            customer_id=self.customer_id,
            item_id=self.item_id,
            eccn=self.eccn,
            status=CertificateStatus(self.status),
            version=self.version,
        )

    @classmethod
    def from_dto(cls, dto) -> "ExportCertificateModel":
        """Create ORM model from frozen dataclass."""
        return cls(
            certificate_id=dto.certificate_id,
            customer_id=dto.customer_id,
            item_id=dto.item_id,
            eccn=dto.eccn,
            expiration_date=dto.expiration_date,
            remaining_quantity=dto.remaining_quantity,
            remaining_value=dto.remaining_value,
            status=dto.status.value,
            version=dto.version,
        )

    def __repr__(self) -> str:
        return f"<ExportCertificateModel {self.certificate_id} v{self.version}>"


# ---------------------------------------------------------------------------
# 7. ViolationLogModel
# ---------------------------------------------------------------------------


class ViolationLogModel(TrackedBase):
    """
    Append-only log of restriction violations.

    One row per non-override verdict produced during an evaluation.
    """

    __tablename__ = "violation_logs"

    __table_args__ = (
        Index("idx_violation_logs_customer_id", "customer_id"),
        Index("idx_violation_logs_order_id", "order_id"),
    )

    order_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    customer_id: Mapped[str] = mapped_column(String(50), nullable=False)
    item_id: Mapped[str] = mapped_column(String(50), nullable=False)
    category: Mapped[str] = mapped_column(String(20), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(nullable=False)
    po_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    order_date: Mapped[date] = mapped_column(Date, nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)


# ---------------------------------------------------------------------------
# 8. SalesOrderModel / SalesOrderLineModel
# ---------------------------------------------------------------------------


class SalesOrderModel(TrackedBase):
    """
    ORM model for sales orders.

    Maps to the ``SalesOrder`` frozen dataclass.  Lines are stored in a
    separate child table via the ``lines`` relationship.

    Guarantees:
        - order_id (the external id) is unique.
        - status stored as the storage letter ("A", "B", ...).
    """

    __tablename__ = "sales_orders"

    __table_args__ = (
        UniqueConstraint("order_id", name="uq_sales_orders_order_id"),
        Index("idx_sales_orders_customer_id", "customer_id"),
        Index("idx_sales_orders_po_number", "po_number"),
        Index("idx_sales_orders_status", "status"),
    )

    order_id: Mapped[str] = mapped_column(String(50), nullable=False)
    customer_id: Mapped[str] = mapped_column(String(50), nullable=False)
    subsidiary_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    subsidiary_country: Mapped[str | None] = mapped_column(String(2), nullable=True)
    po_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    order_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(2), default="B")
    total: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    ship_method: Mapped[str | None] = mapped_column(String(100), nullable=True)
    ship_address1: Mapped[str | None] = mapped_column(String(255), nullable=True)
    ship_address2: Mapped[str | None] = mapped_column(String(255), nullable=True)
    ship_city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    ship_state: Mapped[str | None] = mapped_column(String(50), nullable=True)
    ship_zip: Mapped[str | None] = mapped_column(String(20), nullable=True)
    ship_country: Mapped[str | None] = mapped_column(String(2), nullable=True)
    not_duplicate: Mapped[bool] = mapped_column(Boolean, default=False)
    reviewed_special_handling: Mapped[bool] = mapped_column(Boolean, default=False)
    credit_limit_override: Mapped[bool] = mapped_column(Boolean, default=False)
    invalid_order_reason: Mapped[str] = mapped_column(Text, default="")
    dropped_to_boss: Mapped[bool] = mapped_column(Boolean, default=False)
    override_fill_and_kill: Mapped[bool] = mapped_column(Boolean, default=False)

    lines: Mapped[list["SalesOrderLineModel"]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="SalesOrderLineModel.line_index",
    )

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from compliance_modules.orders.models import (
            OrderStatus,
            SalesOrder,
            ShippingAddress,
        )

        return SalesOrder(
            order_id=self.order_id,
            customer_id=self.customer_id,
            order_date=self.order_date,
            lines=tuple(line.to_dto() for line in self.lines),
            subsidiary_id=self.subsidiary_id,
            subsidiary_country=self.subsidiary_country,
            po_number=self.po_number,
            status=OrderStatus(self.status),
            total=self.total,
            ship_method=self.ship_method,
            shipping_address=ShippingAddress(
                address1=self.ship_address1,
                address2=self.ship_address2,
                city=self.ship_city,
                state=self.ship_state,
                zip_code=self.ship_zip,
                country=self.ship_country,
            ),
            not_duplicate=self.not_duplicate,
            reviewed_special_handling=self.reviewed_special_handling,
            credit_limit_override=self.credit_limit_override,
            invalid_order_reason=self.invalid_order_reason,
            dropped_to_boss=self.dropped_to_boss,
            override_fill_and_kill=self.override_fill_and_kill,
        )

    @classmethod
    def from_dto(cls, dto) -> "SalesOrderModel":
        """Create ORM model from frozen dataclass."""
        address = dto.shipping_address
        model = cls(
            order_id=dto.order_id,
            customer_id=dto.customer_id,
            subsidiary_id=dto.subsidiary_id,
            subsidiary_country=dto.subsidiary_country,
            po_number=dto.po_number,
            order_date=dto.order_date,
            status=dto.status.value,
            total=dto.total,
            ship_method=dto.ship_method,
            ship_address1=address.address1,
            ship_address2=address.address2,
            ship_city=address.city,
            ship_state=address.state,
            ship_zip=address.zip_code,
            ship_country=address.country,
            not_duplicate=dto.not_duplicate,
            reviewed_special_handling=dto.reviewed_special_handling,
            credit_limit_override=dto.credit_limit_override,
            invalid_order_reason=dto.invalid_order_reason,
            dropped_to_boss=dto.dropped_to_boss,
            override_fill_and_kill=dto.override_fill_and_kill,
        )
        model.lines = [SalesOrderLineModel.from_dto(line) for line in dto.lines]
        return model

    def __repr__(self) -> str:
        return f"<SalesOrderModel {self.order_id} status={self.status}>"


class SalesOrderLineModel(TrackedBase):
    """ORM model for sales order item lines.  Maps to ``OrderLine``."""

    __tablename__ = "sales_order_lines"

    __table_args__ = (
        UniqueConstraint("order_pk", "line_key", name="uq_sales_order_lines_order_line_key"),
    )

    order_pk: Mapped[UUID] = mapped_column(ForeignKey("sales_orders.id"), nullable=False)
    line_key: Mapped[str] = mapped_column(String(50), nullable=False)
    line_index: Mapped[int] = mapped_column(Integer, nullable=False)
    item_id: Mapped[str] = mapped_column(String(50), nullable=False)
    item_name: Mapped[str] = mapped_column(String(255), default="")
    eccn: Mapped[str | None] = mapped_column(String(50), nullable=True)
    quantity: Mapped[Decimal] = mapped_column(nullable=False)
    quantity_committed: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    quantity_fulfilled: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    rate: Mapped[Decimal] = mapped_column(nullable=False)
    location: Mapped[str | None] = mapped_column(String(50), nullable=True)
    lifecycle: Mapped[str] = mapped_column(String(2), default="5")
    custom_cost: Mapped[Decimal | None] = mapped_column(nullable=True)
    jurisdiction_override: Mapped[bool] = mapped_column(Boolean, default=False)
    cert_applied_on: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    gpl: Mapped[str | None] = mapped_column(String(50), nullable=True)
    gpl_sub_rep: Mapped[str | None] = mapped_column(String(50), nullable=True)
    system_price: Mapped[Decimal | None] = mapped_column(nullable=True)
    is_map_item: Mapped[bool] = mapped_column(Boolean, default=False)
    is_closed: Mapped[bool] = mapped_column(Boolean, default=False)

    order: Mapped["SalesOrderModel"] = relationship(back_populates="lines")

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from compliance_modules.orders.models import ItemLifecycle, OrderLine

        return OrderLine(
            line_key=self.line_key,
            line_index=self.line_index,
            item_id=self.item_id,
            item_name=self.item_name,
            quantity=self.quantity,
            rate=self.rate,
            eccn=self.eccn,
            quantity_committed=self.quantity_committed,
            location=self.location,
            lifecycle=ItemLifecycle(self.lifecycle),
            custom_cost=self.custom_cost,
            jurisdiction_override=self.jurisdiction_override,
            cert_applied_on=self.cert_applied_on,
            gpl=self.gpl,
            gpl_sub_rep=self.gpl_sub_rep,
            system_price=self.system_price,
            is_map_item=self.is_map_item,
            is_closed=self.is_closed,
            quantity_fulfilled=self.quantity_fulfilled,
        )

    @classmethod
    def from_dto(cls, dto) -> "SalesOrderLineModel":
        """Create ORM model from frozen dataclass."""
        return cls(
            line_key=dto.line_key,
            line_index=dto.line_index,
            item_id=dto.item_id,
            item_name=dto.item_name,
            eccn=dto.eccn,
            quantity=dto.quantity,
            quantity_committed=dto.quantity_committed,
            quantity_fulfilled=dto.quantity_fulfilled,
            rate=dto.rate,
            location=dto.location,
            lifecycle=dto.lifecycle.value,
            custom_cost=dto.custom_cost,
            jurisdiction_override=dto.jurisdiction_override,
            cert_applied_on=dto.cert_applied_on,
            gpl=dto.gpl,
            gpl_sub_rep=dto.gpl_sub_rep,
            system_price=dto.system_price,
            is_map_item=dto.is_map_item,
            is_closed=dto.is_closed,
        )


# ---------------------------------------------------------------------------
# 9. InvoiceModel
# ---------------------------------------------------------------------------


class InvoiceModel(TrackedBase):
    """
    ORM model for customer invoices.

    Only the fields credit exposure and fill & kill need: the open
    balance and the sales order the invoice was created from.
    """

    __tablename__ = "invoices"

    __table_args__ = (
        UniqueConstraint("invoice_id", name="uq_invoices_invoice_id"),
        Index("idx_invoices_customer_id", "customer_id"),
        Index("idx_invoices_created_from", "created_from_order_id"),
    )

    invoice_id: Mapped[str] = mapped_column(String(50), nullable=False)
    customer_id: Mapped[str] = mapped_column(String(50), nullable=False)
    created_from_order_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    amount_remaining: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    is_open: Mapped[bool] = mapped_column(Boolean, default=True)
    override_fill_and_kill: Mapped[bool] = mapped_column(Boolean, default=False)


# ---------------------------------------------------------------------------
# 10. TransactionHeaderModel
# ---------------------------------------------------------------------------


class TransactionHeaderModel(TrackedBase):
    """
    Header register of every transaction a GL plugin may be created from.

    Resolves a created-from id to its record type, subsidiaries and the
    segments (department, class, location) custom lines inherit.
    """

    __tablename__ = "transaction_headers"

    __table_args__ = (
        UniqueConstraint("transaction_id", name="uq_transaction_headers_transaction_id"),
    )

    transaction_id: Mapped[str] = mapped_column(String(50), nullable=False)
    record_type: Mapped[str] = mapped_column(String(50), nullable=False)
    subsidiary_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    to_subsidiary_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    department_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    class_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    location_id: Mapped[str | None] = mapped_column(String(50), nullable=True)


# ---------------------------------------------------------------------------
# 11. StateModel
# ---------------------------------------------------------------------------


class StateModel(TrackedBase):
    """Reference table of states and provinces, by country."""

    __tablename__ = "states"

    __table_args__ = (
        UniqueConstraint("country", "short_name", name="uq_states_country_short_name"),
        Index("idx_states_full_name", "full_name"),
    )

    country: Mapped[str] = mapped_column(String(2), nullable=False)
    short_name: Mapped[str] = mapped_column(String(10), nullable=False)
    full_name: Mapped[str] = mapped_column(String(100), nullable=False)
    is_inactive: Mapped[bool] = mapped_column(Boolean, default=False)

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from compliance_modules.orders.models import StateRef

        return StateRef(
            country=self.country,
            short_name=self.short_name,
            full_name=self.full_name,
        )


# ---------------------------------------------------------------------------
# 12. CustomerGPLConfigModel
# ---------------------------------------------------------------------------


class CustomerGPLConfigModel(TrackedBase):
    """
    Per-customer sales-territory assignment for a GPL (product line).

    One active row per customer and GPL is expected; when several exist the
    last one read wins.
    """

    __tablename__ = "customer_gpl_configs"

    __table_args__ = (
        Index("idx_customer_gpl_configs_customer_id", "customer_id"),
    )

    customer_id: Mapped[str] = mapped_column(String(50), nullable=False)
    gpl: Mapped[str] = mapped_column(String(50), nullable=False)
    sales_manager: Mapped[str | None] = mapped_column(String(50), nullable=True)
    sales_rep: Mapped[str | None] = mapped_column(String(50), nullable=True)
    sub_rep: Mapped[str | None] = mapped_column(String(50), nullable=True)
    priority: Mapped[str | None] = mapped_column(String(50), nullable=True)
    is_inactive: Mapped[bool] = mapped_column(Boolean, default=False)

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from compliance_modules.orders.models import GPLConfig

        return GPLConfig(
            gpl=self.gpl,
            sales_rep=self.sales_rep,
            sub_rep=self.sub_rep,
            sales_manager=self.sales_manager,
            priority=self.priority,
        )
