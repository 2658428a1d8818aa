"""
compliance_services.gl_impact -- Custom GL lines for intercompany transfers and sales.

Responsibility:
    Decide whether an item fulfillment or item receipt qualifies for each
    custom GL rule and, when it does, build the lines with
    ``compliance_engines.gl_impact``.  Also sets the intercompany custom
    cost on fulfillments when they are created.

Architecture position:
    Services -- resolves the created-from transaction through
    TransactionHeaderModel and reads preferences, customers, costs and COGS
    accounts.

Invariants enforced:
    - Cancel reversal: created from a transfer order shipped from the sales
      subsidiary to another subsidiary.
    - Consignment: created from a transfer order with both subsidiaries
      set, shipped into the sales subsidiary.
    - Impact sale: created from a sales order.
    - Every fulfillment rule requires the fulfillment to be shipped.
    - Returned receipt: created from a transfer order shipped from the
      sales subsidiary to another subsidiary.
    - Custom costs are set on CREATE only.

Failure modes:
    - None raised.  Missing preferences (ConfigurationError) and missing or
      unexpected source transactions (DataError) are logged and produce
      no lines.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import replace

from sqlalchemy import select
from sqlalchemy.orm import Session

from compliance_config.schema import CompliancePreferences
from compliance_engines.gl_impact import (
    apply_custom_costs,
    consignment_lines,
    impact_sale_lines,
    returned_receipt_lines,
    reversal_lines,
)
from compliance_kernel.exceptions import (
    ConfigurationError,
    DataError,
    MissingCreatedFromError,
    UnexpectedRecordTypeError,
)
from compliance_kernel.logging_config import get_logger
from compliance_modules.orders.models import (
    GLLine,
    ItemFulfillment,
    ItemReceipt,
    PostingLine,
    SubmitEvent,
)
from compliance_modules.orders.orm import TransactionHeaderModel
from compliance_services.catalog import RestrictionCatalog

logger = get_logger("services.gl_impact")

TRANSFER_ORDER = "transferorder"
SALES_ORDER = "salesorder"


class GLImpactService:
    """
    Builds custom GL lines for item fulfillments and item receipts.

    Contract:
        Receives Session and preferences via constructor injection.
        Never writes; the caller adds the returned lines to its posting.
    """

    def __init__(
        self,
        session: Session,
        preferences: CompliancePreferences,
        catalog: RestrictionCatalog | None = None,
    ):
        self.session = session
        self.preferences = preferences
        self.catalog = catalog or RestrictionCatalog(session, preferences.search_page_size)

    def source_transaction(
        self,
        record: ItemFulfillment | ItemReceipt,
        expected_type: str,
    ) -> TransactionHeaderModel:
        """
        The transaction the fulfillment or receipt was created from.

        Raises:
            MissingCreatedFromError: no created-from id, or no such transaction.
            UnexpectedRecordTypeError: the source is not ``expected_type``.
        """
        if not record.created_from_id:
            raise MissingCreatedFromError(record.transaction_id)

        source = self.session.scalars(
            select(TransactionHeaderModel).where(
                TransactionHeaderModel.transaction_id == record.created_from_id
            )
        ).one_or_none()
        if source is None:
            raise MissingCreatedFromError(record.transaction_id)
        if source.record_type != expected_type:
            raise UnexpectedRecordTypeError(
                record.transaction_id, expected_type, source.record_type
            )
        return source

    # =========================================================================
    # Cancel reversal
    # =========================================================================

    def cancel_reversal_lines(
        self,
        fulfillment: ItemFulfillment,
        standard_lines: Sequence[PostingLine],
    ) -> tuple[GLLine, ...]:
        """Reverse the standard lines of a cancelled outbound transfer."""
        try:
            source = self.source_transaction(fulfillment, TRANSFER_ORDER)
            sales_subsidiary = self.preferences.require("sales_subsidiary_id")
        except (DataError, ConfigurationError) as exc:
            self._log_skip("cancel_reversal", fulfillment, exc)
            return ()

        if source.subsidiary_id != sales_subsidiary:
            logger.info(
                "cancel_reversal_skipped_subsidiary",
                extra={"transaction_id": fulfillment.transaction_id,
                       "subsidiary_id": source.subsidiary_id},
            )
            return ()
        if source.to_subsidiary_id == sales_subsidiary:
            logger.info(
                "cancel_reversal_skipped_to_subsidiary",
                extra={"transaction_id": fulfillment.transaction_id,
                       "to_subsidiary_id": source.to_subsidiary_id},
            )
            return ()
        if not fulfillment.is_shipped:
            return ()

        lines = reversal_lines(standard_lines)
        self._log_built("cancel_reversal", fulfillment, lines)
        return lines

    # =========================================================================
    # Inventory consignment
    # =========================================================================

    def consignment_lines(
        self,
        fulfillment: ItemFulfillment,
        standard_lines: Sequence[PostingLine],
    ) -> tuple[GLLine, ...]:
        """Reclassify inventory shipped into the sales subsidiary as consigned."""
        try:
            source = self.source_transaction(fulfillment, TRANSFER_ORDER)
            sales_subsidiary = self.preferences.require("sales_subsidiary_id")
        except (DataError, ConfigurationError) as exc:
            self._log_skip("consignment", fulfillment, exc)
            return ()

        if not source.subsidiary_id or not source.to_subsidiary_id:
            logger.info(
                "consignment_skipped_missing_subsidiary",
                extra={"transaction_id": fulfillment.transaction_id},
            )
            return ()
        if source.to_subsidiary_id != sales_subsidiary:
            return ()
        if not fulfillment.is_shipped:
            return ()

        try:
            account = self.preferences.require("inventory_consignment_account")
        except ConfigurationError as exc:
            self._log_skip("consignment", fulfillment, exc)
            return ()

        lines = consignment_lines(standard_lines, account)
        self._log_built("consignment", fulfillment, lines)
        return lines

    # =========================================================================
    # Impact sale
    # =========================================================================

    def impact_sale_lines(self, fulfillment: ItemFulfillment) -> tuple[GLLine, ...]:
        """Book the intercompany sale cost of a shipped sales-order fulfillment."""
        try:
            self.source_transaction(fulfillment, SALES_ORDER)
        except DataError as exc:
            self._log_skip("impact_sale", fulfillment, exc)
            return ()

        if not fulfillment.is_shipped:
            return ()

        try:
            payable = self.preferences.require("intercompany_payable_account")
        except ConfigurationError as exc:
            self._log_skip("impact_sale", fulfillment, exc)
            return ()

        fulfilled = [line for line in fulfillment.lines if line.fulfilled]
        cogs_accounts = self.catalog.cogs_accounts({line.item_id for line in fulfilled})

        lines = impact_sale_lines(fulfilled, cogs_accounts, payable)
        self._log_built("impact_sale", fulfillment, lines)
        return lines

    # =========================================================================
    # Returned receipt
    # =========================================================================

    def returned_receipt_lines(self, receipt: ItemReceipt) -> tuple[GLLine, ...]:
        """
        Book goods received back from the sales subsidiary as consigned
        inventory owed to it.

        Costs are the standard location costs at the first received line's
        location.
        """
        try:
            source = self.source_transaction(receipt, TRANSFER_ORDER)
            sales_subsidiary = self.preferences.require("sales_subsidiary_id")
        except (DataError, ConfigurationError) as exc:
            self._log_skip("returned_receipt", receipt, exc)
            return ()

        if source.subsidiary_id != sales_subsidiary or source.to_subsidiary_id == sales_subsidiary:
            logger.info(
                "returned_receipt_skipped_subsidiary",
                extra={"transaction_id": receipt.transaction_id,
                       "subsidiary_id": source.subsidiary_id,
                       "to_subsidiary_id": source.to_subsidiary_id},
            )
            return ()
        if not receipt.lines:
            return ()

        try:
            consigned = self.preferences.require("inventory_consignment_account")
            payable = self.preferences.require("intercompany_payable_account")
        except ConfigurationError as exc:
            self._log_skip("returned_receipt", receipt, exc)
            return ()

        location = receipt.lines[0].location_id
        item_ids = {line.item_id for line in receipt.lines}
        costs = self.catalog.location_costs(item_ids, [location] if location else [])
        standard_costs = {item_id: cost for (item_id, _), cost in costs.items()}

        lines = returned_receipt_lines(
            receipt.lines,
            standard_costs,
            consigned,
            payable,
            class_id=source.class_id,
            department_id=source.department_id,
            location_id=source.location_id,
        )
        self._log_built("returned_receipt", receipt, lines)
        return lines

    # =========================================================================
    # Custom cost
    # =========================================================================

    def apply_custom_costs(
        self,
        fulfillment: ItemFulfillment,
        customer_id: str | None,
        event: SubmitEvent,
    ) -> ItemFulfillment:
        """
        Set the custom cost of each fulfilled line when the fulfillment is
        created.

        Vista-owned customers pay location cost plus their intercompany
        markup.  Others pay the base price level less the configured
        intercompany discount.  Transaction currency is not considered.
        """
        if event is not SubmitEvent.CREATE or not customer_id:
            return fulfillment

        try:
            customer = self.catalog.get_customer_profile(customer_id)
        except DataError as exc:
            self._log_skip("custom_cost", fulfillment, exc)
            return fulfillment

        fulfilled = [line for line in fulfillment.lines if line.fulfilled]
        item_ids = {line.item_id for line in fulfilled}
        if customer.vista_owned:
            locations = {line.location_id for line in fulfilled if line.location_id}
            location_costs = self.catalog.location_costs(item_ids, locations)
            base_prices = {}
        else:
            location_costs = {}
            base_prices = self.catalog.price_level_prices(
                self.preferences.base_price_level, item_ids,
            )

        lines = apply_custom_costs(
            fulfillment.lines,
            vista_owned=customer.vista_owned,
            markup_percent=customer.intercompany_markup_percent,
            discount_percent=self.preferences.intercompany_discount_percent,
            location_costs=location_costs,
            base_prices=base_prices,
        )
        logger.info(
            "custom_costs_applied",
            extra={
                "transaction_id": fulfillment.transaction_id,
                "customer_id": customer_id,
                "vista_owned": customer.vista_owned,
                "line_count": len(fulfilled),
            },
        )
        return replace(fulfillment, lines=lines)

    # =========================================================================
    # Logging helpers
    # =========================================================================

    def _log_skip(self, rule: str, record: ItemFulfillment | ItemReceipt, exc: Exception) -> None:
        level = logger.error if isinstance(exc, MissingCreatedFromError) else logger.warning
        level(
            "gl_impact_skipped",
            extra={
                "rule": rule,
                "transaction_id": record.transaction_id,
                "error_code": getattr(exc, "code", None),
                "error": str(exc),
            },
        )

    def _log_built(
        self,
        rule: str,
        record: ItemFulfillment | ItemReceipt,
        lines: Sequence[GLLine],
    ) -> None:
        logger.info(
            "gl_impact_lines_built",
            extra={
                "rule": rule,
                "transaction_id": record.transaction_id,
                "line_count": len(lines),
            },
        )
