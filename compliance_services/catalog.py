"""
compliance_services.catalog -- Read-only lookups over the compliance store.

Responsibility:
    Fetch restriction rules, export certificates, item attributes,
    inventory balances, location costs, customer prices, customer profiles,
    GPL assignments and state reference data for one order evaluation.
    Converts ORM rows to frozen dataclasses at the boundary; nothing above
    this module sees an ORM model.

Architecture position:
    Services -- data-access boundary.  Consumed by the evaluation,
    certificate, credit and GL services.

Invariants enforced:
    - Only active rules and certificates are returned.
    - Rule lookups match item OR ECCN; empty item and ECCN sets return
      ``[]`` without issuing a query.
    - Rules are paged in fixed-size batches and concatenated.  Result order
      is unspecified.
    - Certificates with neither quantity nor value tracked are skipped.
      Certificates are returned by expiration date, soonest first.

Failure modes:
    - CustomerNotFoundError from ``get_customer_profile`` for an unknown
      customer id.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Collection, Iterator, Sequence
from dataclasses import replace
from datetime import date
from decimal import Decimal

from sqlalchemy import Select, or_, select
from sqlalchemy.orm import Session

from compliance_kernel.exceptions import CustomerNotFoundError
from compliance_kernel.logging_config import get_logger
from compliance_modules.orders.models import (
    CertificateStatus,
    CustomerProfile,
    ExportCertificate,
    GPLConfig,
    ItemLifecycle,
    LocationInventory,
    OrderLine,
    RestrictionRule,
    RestrictionType,
    StateRef,
)
from compliance_modules.orders.orm import (
    CustomerGPLConfigModel,
    CustomerItemPriceModel,
    CustomerModel,
    ExportCertificateModel,
    InventoryBalanceModel,
    ItemModel,
    PriceLevelPriceModel,
    RestrictionRuleModel,
    StateModel,
)

logger = get_logger("services.catalog")

DEFAULT_PAGE_SIZE = 1000


class RestrictionCatalog:
    """
    Query facade for the restriction catalog and related reference data.

    Contract:
        Receives a Session via constructor injection.  Never writes.
    Guarantees:
        - ``find_rules`` returns every active rule matching item OR ECCN,
          however many pages that takes.
        - ``find_active_certificates`` returns certificates usable on
          ``as_of``, soonest expiration first.
    """

    def __init__(self, session: Session, page_size: int = DEFAULT_PAGE_SIZE):
        self.session = session
        self.page_size = page_size

    def _paged(self, stmt: Select) -> Iterator:
        offset = 0
        while True:
            page = list(
                self.session.scalars(stmt.offset(offset).limit(self.page_size))
            )
            yield from page
            if len(page) < self.page_size:
                return
            offset += self.page_size

    # =========================================================================
    # Restriction rules
    # =========================================================================

    def find_rules(
        self,
        item_ids: Collection[str],
        eccns: Collection[str],
        customer_id: str | None = None,
        restriction_types: Collection[RestrictionType] | None = None,
    ) -> list[RestrictionRule]:
        """
        Active rules whose item is in ``item_ids`` or whose ECCN is in ``eccns``.

        Args:
            item_ids: Distinct item ids on the order.
            eccns: Distinct export classification codes on the order.
            customer_id: When given, keep rules for this customer and rules
                with no customer.
            restriction_types: When given, keep only these rule types.
        """
        item_ids = sorted(set(item_ids))
        eccns = sorted({e for e in eccns if e})
        if not item_ids and not eccns:
            return []

        matchers = []
        if item_ids:
            matchers.append(RestrictionRuleModel.item_id.in_(item_ids))
        if eccns:
            matchers.append(RestrictionRuleModel.eccn.in_(eccns))

        stmt = (
            select(RestrictionRuleModel)
            .where(RestrictionRuleModel.is_inactive.is_(False))
            .where(or_(*matchers))
        )
        if customer_id is not None:
            stmt = stmt.where(
                or_(
                    RestrictionRuleModel.customer_id == customer_id,
                    RestrictionRuleModel.customer_id.is_(None),
                )
            )
        if restriction_types:
            stmt = stmt.where(
                RestrictionRuleModel.restriction_type.in_(
                    [t.value for t in restriction_types]
                )
            )
        stmt = stmt.order_by(RestrictionRuleModel.id)

        rules = [row.to_dto() for row in self._paged(stmt)]

        logger.info(
            "restriction_rules_found",
            extra={
                "item_count": len(item_ids),
                "eccn_count": len(eccns),
                "customer_id": customer_id,
                "rule_count": len(rules),
            },
        )
        return rules

    def find_customer_blocks(
        self,
        customer_id: str,
        item_ids: Collection[str],
    ) -> list[RestrictionRule]:
        """Active customer-blocked rules for ``customer_id`` on these items."""
        item_ids = sorted(set(item_ids))
        if not item_ids:
            return []

        stmt = (
            select(RestrictionRuleModel)
            .where(RestrictionRuleModel.is_inactive.is_(False))
            .where(
                RestrictionRuleModel.restriction_type
                == RestrictionType.CUSTOMER_BLOCKED.value
            )
            .where(RestrictionRuleModel.customer_id == customer_id)
            .where(RestrictionRuleModel.item_id.in_(item_ids))
            .order_by(RestrictionRuleModel.id)
        )
        return [row.to_dto() for row in self._paged(stmt)]

    # =========================================================================
    # Export certificates
    # =========================================================================

    def find_active_certificates(
        self,
        item_ids: Collection[str],
        eccns: Collection[str],
        customer_id: str | None,
        as_of: date,
    ) -> list[ExportCertificate]:
        """
        Certificates usable for shipments on or after ``as_of``.

        Active, not inactive, expiring on or after ``as_of``, matching item
        OR ECCN and, when given, owned by ``customer_id``.
        """
        item_ids = sorted(set(item_ids))
        eccns = sorted({e for e in eccns if e})
        if not item_ids and not eccns:
            return []

        matchers = []
        if item_ids:
            matchers.append(ExportCertificateModel.item_id.in_(item_ids))
        if eccns:
            matchers.append(ExportCertificateModel.eccn.in_(eccns))

        stmt = (
            select(ExportCertificateModel)
            .where(ExportCertificateModel.is_inactive.is_(False))
            .where(ExportCertificateModel.status == CertificateStatus.ACTIVE.value)
            .where(ExportCertificateModel.expiration_date >= as_of)
            .where(or_(*matchers))
        )
        if customer_id is not None:
            stmt = stmt.where(ExportCertificateModel.customer_id == customer_id)
        stmt = stmt.order_by(
            ExportCertificateModel.expiration_date.asc(),
            ExportCertificateModel.certificate_id.asc(),
        )

        certificates = []
        for row in self.session.scalars(stmt):
            certificate = row.to_dto()
            if not certificate.is_tracked:
                logger.debug(
                    "certificate_untracked_skipped",
                    extra={"certificate_id": certificate.certificate_id},
                )
                continue
            certificates.append(certificate)

        logger.info(
            "certificates_found",
            extra={
                "customer_id": customer_id,
                "as_of": as_of.isoformat(),
                "certificate_count": len(certificates),
            },
        )
        return certificates

    # =========================================================================
    # Items, inventory and prices
    # =========================================================================

    def enrich_lines(self, lines: Sequence[OrderLine]) -> tuple[OrderLine, ...]:
        """Fill ECCN, lifecycle and MAP flag on each line from the item master."""
        item_ids = {line.item_id for line in lines}
        if not item_ids:
            return tuple(lines)

        items = {
            row.item_id: row
            for row in self.session.scalars(
                select(ItemModel).where(ItemModel.item_id.in_(sorted(item_ids)))
            )
        }

        enriched = []
        for line in lines:
            item = items.get(line.item_id)
            if item is None:
                enriched.append(line)
                continue
            enriched.append(
                replace(
                    line,
                    eccn=line.eccn or item.eccn,
                    lifecycle=ItemLifecycle(item.lifecycle),
                    is_map_item=item.is_map_item,
                    item_name=line.item_name or item.item_name,
                )
            )
        return tuple(enriched)

    def inventory_balances(
        self,
        item_ids: Collection[str],
    ) -> dict[str, list[LocationInventory]]:
        """Item id -> balances across every location."""
        if not item_ids:
            return {}
        balances: dict[str, list[LocationInventory]] = defaultdict(list)
        stmt = (
            select(InventoryBalanceModel)
            .where(InventoryBalanceModel.item_id.in_(sorted(set(item_ids))))
            .order_by(InventoryBalanceModel.item_id, InventoryBalanceModel.location)
        )
        for row in self.session.scalars(stmt):
            balances[row.item_id].append(row.to_dto())
        return dict(balances)

    def system_prices(
        self,
        customer_id: str,
        price_level: str | None,
        item_ids: Collection[str],
    ) -> dict[str, Decimal]:
        """
        Item id -> expected unit price for the customer.

        A customer-specific item price wins over the customer's price level.
        """
        item_ids = sorted(set(item_ids))
        if not item_ids:
            return {}

        prices: dict[str, Decimal] = {}
        if price_level:
            stmt = (
                select(PriceLevelPriceModel)
                .where(PriceLevelPriceModel.price_level == price_level)
                .where(PriceLevelPriceModel.item_id.in_(item_ids))
            )
            for row in self.session.scalars(stmt):
                prices[row.item_id] = row.unit_price

        stmt = (
            select(CustomerItemPriceModel)
            .where(CustomerItemPriceModel.customer_id == customer_id)
            .where(CustomerItemPriceModel.item_id.in_(item_ids))
        )
        for row in self.session.scalars(stmt):
            prices[row.item_id] = row.unit_price

        return prices

    def location_costs(
        self,
        item_ids: Collection[str],
        locations: Collection[str],
    ) -> dict[tuple[str, str], Decimal]:
        """(item id, location) -> standard location cost, where one is set."""
        if not item_ids or not locations:
            return {}
        stmt = (
            select(InventoryBalanceModel)
            .where(InventoryBalanceModel.item_id.in_(sorted(set(item_ids))))
            .where(InventoryBalanceModel.location.in_(sorted(set(locations))))
        )
        return {
            (row.item_id, row.location): row.location_cost
            for row in self.session.scalars(stmt)
            if row.location_cost is not None
        }

    def price_level_prices(
        self,
        price_level: str,
        item_ids: Collection[str],
    ) -> dict[str, Decimal]:
        """Item id -> unit price at ``price_level``."""
        if not item_ids:
            return {}
        stmt = (
            select(PriceLevelPriceModel)
            .where(PriceLevelPriceModel.price_level == price_level)
            .where(PriceLevelPriceModel.item_id.in_(sorted(set(item_ids))))
        )
        return {row.item_id: row.unit_price for row in self.session.scalars(stmt)}

    def cogs_accounts(self, item_ids: Collection[str]) -> dict[str, str]:
        """Item id -> COGS (expense) account, for items that have one."""
        if not item_ids:
            return {}
        stmt = select(ItemModel).where(ItemModel.item_id.in_(sorted(set(item_ids))))
        return {
            row.item_id: row.cogs_account_id
            for row in self.session.scalars(stmt)
            if row.cogs_account_id
        }

    # =========================================================================
    # Customers
    # =========================================================================

    def get_customer_profile(self, customer_id: str) -> CustomerProfile:
        """Load a customer's profile; raises CustomerNotFoundError."""
        row = self.session.scalars(
            select(CustomerModel).where(CustomerModel.customer_id == customer_id)
        ).one_or_none()
        if row is None:
            raise CustomerNotFoundError(customer_id)
        return row.to_dto()

    def gpl_configs(self, customer_id: str) -> dict[str, GPLConfig]:
        """GPL -> the customer's active sales-territory assignment."""
        stmt = (
            select(CustomerGPLConfigModel)
            .where(CustomerGPLConfigModel.customer_id == customer_id)
            .where(CustomerGPLConfigModel.is_inactive.is_(False))
            .order_by(CustomerGPLConfigModel.created_at)
        )
        return {row.gpl: row.to_dto() for row in self.session.scalars(stmt)}

    # =========================================================================
    # Reference data
    # =========================================================================

    def find_state(self, state: str, country: str | None = None) -> StateRef | None:
        """
        Look a state up by short name (two letters or fewer) or full name.

        Returns None when no active state matches.
        """
        if not state:
            return None
        column = StateModel.full_name if len(state) > 2 else StateModel.short_name
        stmt = (
            select(StateModel)
            .where(column == state)
            .where(StateModel.is_inactive.is_(False))
        )
        if country:
            stmt = stmt.where(StateModel.country == country)
        row = self.session.scalars(stmt.limit(1)).first()
        return row.to_dto() if row is not None else None
