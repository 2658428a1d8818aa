"""
compliance_services.evaluation -- Order compliance evaluation pipeline.

Responsibility:
    Run the checks of a sales order save in their fixed order and apply
    the outcome to the order:

    before_submit:  credit -> address -> GPL sub-reps -> restriction
                    verdicts -> duplicate PO -> violation log -> classify -> mutate
    after_submit:   certificate allocation -> stamp ``cert_applied_on``

Architecture position:
    Services -- top-level orchestrator.  Composes the catalog, credit,
    address, certificate, order and violation services with the pure
    engines.  Results accumulate in an explicit ``ValidationAccumulator``
    passed through the pipeline; there is no module-level state.

Invariants enforced:
    - An edit that clears the dropped-to-BOSS flag is not re-evaluated.
    - Credit runs on create, edit and inline edit of orders pending
      approval or fulfillment; restrictions only on create and edit.
    - Lines already stamped with ``cert_applied_on`` are never evaluated
      for restrictions or debited again.
    - Certificates are debited only after submit and only for orders that
      are not pending approval.

Failure modes:
    - AllLinesBlockedError from ``before_submit`` when every line is
      hard-blocked.  The order must not be saved.
    - CertificateConflictError from ``after_submit`` when a certificate
      changed concurrently.  Nothing is debited.
    - Data and configuration errors in a step are logged and the step
      is skipped.

Usage:
    evaluator = OrderComplianceEvaluator(session, preferences, clock=clock)
    result = evaluator.before_submit(order, SubmitEvent.CREATE)
    saved = orders.save(result.order)
    evaluator.after_submit(saved, SubmitEvent.CREATE)
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field, replace
from decimal import Decimal

from sqlalchemy.orm import Session

from compliance_config.schema import CompliancePreferences
from compliance_engines.address import VALID
from compliance_engines.certificates import AllocationResult
from compliance_engines.classifier import (
    ClassifiedRestrictions,
    assign_gpl_sub_reps,
    classify,
    gpl_verdicts,
    map_verdicts,
    price_variance_verdicts,
)
from compliance_engines.credit import (
    apply_order_checks,
    invalid_reason_for,
    order_status_for,
)
from compliance_engines.inventory import lifecycle_verdicts, quantity_cap_verdicts
from compliance_engines.mutation import MutationResult, apply_restrictions
from compliance_engines.restrictions import (
    CertificateRequirement,
    certificate_required_lines,
    customer_block_verdicts,
    jurisdiction_verdicts,
)
from compliance_kernel.domain.clock import Clock, SystemClock
from compliance_kernel.exceptions import DataError
from compliance_kernel.logging_config import LogContext, get_logger
from compliance_modules.orders.models import (
    AddressValidation,
    CreditStatus,
    CustomerProfile,
    OrderLine,
    OrderStatus,
    RestrictionType,
    RestrictionVerdict,
    SalesOrder,
    SubmitEvent,
)
from compliance_services.address_validation import AddressValidationService
from compliance_services.catalog import RestrictionCatalog
from compliance_services.certificates import CertificateAllocationService
from compliance_services.credit import CreditExposureService
from compliance_services.orders import OrderRepository
from compliance_services.tax_area import TaxAreaClient
from compliance_services.violations import ViolationLogService

logger = get_logger("services.evaluation")

CREDIT_EVENTS = frozenset({SubmitEvent.CREATE, SubmitEvent.EDIT, SubmitEvent.XEDIT})
RESTRICTION_EVENTS = frozenset({SubmitEvent.CREATE, SubmitEvent.EDIT})
CREDIT_STATUSES = frozenset({OrderStatus.PENDING_APPROVAL, OrderStatus.PENDING_FULFILLMENT})

_CATALOG_RULE_TYPES = (
    RestrictionType.JURISDICTION_BLOCKED,
    RestrictionType.CERTIFICATE_REQUIRED,
)


@dataclass
class ValidationAccumulator:
    """Findings gathered while evaluating one order."""

    verdicts: list[RestrictionVerdict] = field(default_factory=list)
    is_duplicate: bool = False
    address: AddressValidation = VALID

    def add(self, verdicts) -> None:
        self.verdicts.extend(verdicts)

    @property
    def has_findings(self) -> bool:
        return bool(self.verdicts) or self.is_duplicate or not self.address.is_valid


@dataclass(frozen=True)
class EvaluationResult:
    """Outcome of ``before_submit``.  ``order`` is what should be saved."""

    order: SalesOrder
    evaluated: bool
    credit: CreditStatus | None = None
    accumulator: ValidationAccumulator | None = None
    classified: ClassifiedRestrictions | None = None
    mutation: MutationResult | None = None


@dataclass(frozen=True)
class AllocationOutcome:
    """Outcome of ``after_submit``: the stamped order and the debits made."""

    order: SalesOrder
    allocation: AllocationResult


def _dropped_to_boss_cleared(
    order: SalesOrder,
    event: SubmitEvent,
    old_order: SalesOrder | None,
) -> bool:
    return (
        event is SubmitEvent.EDIT
        and old_order is not None
        and old_order.dropped_to_boss
        and not order.dropped_to_boss
    )


def _prior_quantities(old_order: SalesOrder | None) -> dict[str, Decimal]:
    quantities: dict[str, Decimal] = defaultdict(Decimal)
    if old_order is not None:
        for line in old_order.lines:
            quantities[line.item_id] += line.quantity
    return dict(quantities)


class OrderComplianceEvaluator:
    """
    Evaluates sales orders on save.

    Contract:
        Receives Session, preferences and optionally a Clock and
        TaxAreaClient via constructor injection.  Collaborating services
        share one RestrictionCatalog.
    Guarantees:
        - ``before_submit`` never writes certificates.
        - ``after_submit`` writes certificate debits and the stamped order,
          or raises with nothing debited.
    """

    def __init__(
        self,
        session: Session,
        preferences: CompliancePreferences,
        clock: Clock | None = None,
        tax_client: TaxAreaClient | None = None,
    ):
        self.session = session
        self.preferences = preferences
        self._clock = clock or SystemClock()

        self.catalog = RestrictionCatalog(session, preferences.search_page_size)
        self.credit = CreditExposureService(session, preferences, self.catalog)
        self.addresses = AddressValidationService(
            tax_client or TaxAreaClient(preferences), self.catalog,
        )
        self.certificates = CertificateAllocationService(
            session, preferences, self.catalog, self._clock
        )
        self.orders = OrderRepository(session)
        self.violations = ViolationLogService(session)

    # =========================================================================
    # Before submit
    # =========================================================================

    def before_submit(
        self,
        order: SalesOrder,
        event: SubmitEvent,
        old_order: SalesOrder | None = None,
    ) -> EvaluationResult:
        """
        Evaluate an order about to be saved.

        Raises:
            AllLinesBlockedError: every line is hard-blocked.
        """
        with LogContext.bind(order_id=order.order_id, customer_id=order.customer_id):
            if _dropped_to_boss_cleared(order, event, old_order):
                logger.info("evaluation_skipped_dropped_to_boss")
                return EvaluationResult(order=order, evaluated=False)

            credit = None
            if event in CREDIT_EVENTS and order.status in CREDIT_STATUSES:
                order, credit = self._apply_credit(order, event)

            if event not in RESTRICTION_EVENTS:
                return EvaluationResult(order=order, evaluated=credit is not None, credit=credit)

            accumulator = ValidationAccumulator()
            accumulator.address = self.addresses.validate(order)

            gpl_configs = self.catalog.gpl_configs(order.customer_id)
            if gpl_configs:
                order = replace(
                    order,
                    lines=assign_gpl_sub_reps(
                        order.lines, gpl_configs, self.preferences.gpl_none_code,
                    ),
                )

            lines = self.catalog.enrich_lines(order.lines)
            accumulator.add(gpl_verdicts(lines, self.preferences.gpl_none_code))

            pending = [line for line in lines if line.cert_applied_on is None]
            if not pending:
                logger.info("evaluation_no_pending_lines")
                return EvaluationResult(
                    order=order, evaluated=True, credit=credit, accumulator=accumulator,
                )

            self._collect_restrictions(order, pending, old_order, accumulator)
            accumulator.is_duplicate = self._is_duplicate(order)

            if not accumulator.has_findings:
                logger.info("evaluation_clean")
                return EvaluationResult(
                    order=order, evaluated=True, credit=credit, accumulator=accumulator,
                )

            if accumulator.verdicts:
                self.violations.record(order, accumulator.verdicts)

            classified = classify(accumulator.verdicts)
            mutation = apply_restrictions(
                order,
                classified,
                is_duplicate=accumulator.is_duplicate,
                address=accumulator.address,
            )

            logger.info(
                "evaluation_completed",
                extra={
                    "verdict_count": len(accumulator.verdicts),
                    "is_duplicate": accumulator.is_duplicate,
                    "address_valid": accumulator.address.is_valid,
                    "status": mutation.order.status.value,
                },
            )
            return EvaluationResult(
                order=mutation.order,
                evaluated=True,
                credit=credit,
                accumulator=accumulator,
                classified=classified,
                mutation=mutation,
            )

    def _apply_credit(
        self,
        order: SalesOrder,
        event: SubmitEvent,
    ) -> tuple[SalesOrder, CreditStatus | None]:
        try:
            status = self.credit.credit_status(order.customer_id, order.order_id)
        except DataError:
            logger.exception("credit_check_skipped")
            return order, None

        status = apply_order_checks(
            status,
            is_create=event is SubmitEvent.CREATE,
            order_total=order.total,
            manual_override=order.credit_limit_override,
        )
        order = replace(
            order,
            invalid_order_reason=invalid_reason_for(status),
            status=order_status_for(status),
        )
        return order, status

    def _customer_profile(self, customer_id: str) -> CustomerProfile:
        try:
            return self.catalog.get_customer_profile(customer_id)
        except DataError:
            logger.warning("customer_profile_missing")
            return CustomerProfile(customer_id=customer_id)

    def _collect_restrictions(
        self,
        order: SalesOrder,
        lines: list[OrderLine],
        old_order: SalesOrder | None,
        accumulator: ValidationAccumulator,
    ) -> None:
        item_ids = {line.item_id for line in lines}
        eccns = {line.eccn for line in lines if line.eccn}
        address = order.shipping_address

        rules = self.catalog.find_rules(item_ids, eccns, restriction_types=_CATALOG_RULE_TYPES)
        accumulator.add(jurisdiction_verdicts(rules, lines, address))

        requirements = certificate_required_lines(rules, lines, address, order.customer_id)
        accumulator.add(self.certificates.validate(requirements, order.customer_id))

        profile = self._customer_profile(order.customer_id)
        accumulator.add(map_verdicts(lines, profile.approved_for_map))

        blocks = self.catalog.find_customer_blocks(order.customer_id, item_ids)
        accumulator.add(customer_block_verdicts(blocks, lines))

        accumulator.add(lifecycle_verdicts(lines))
        accumulator.add(
            quantity_cap_verdicts(
                lines,
                self.catalog.inventory_balances(item_ids),
                _prior_quantities(old_order),
            )
        )
        accumulator.add(
            price_variance_verdicts(
                lines,
                self.catalog.system_prices(order.customer_id, profile.price_level, item_ids),
                self.preferences.price_tolerance,
            )
        )

    def _is_duplicate(self, order: SalesOrder) -> bool:
        if order.not_duplicate:
            return False
        return self.orders.find_duplicate_po(order)

    # =========================================================================
    # After submit
    # =========================================================================

    def certificate_requirements(self, order: SalesOrder) -> tuple[CertificateRequirement, ...]:
        """Certificate-gated lines of ``order`` not yet debited."""
        lines = [
            line for line in self.catalog.enrich_lines(order.lines)
            if line.cert_applied_on is None
        ]
        if not lines:
            return ()
        rules = self.catalog.find_rules(
            {line.item_id for line in lines},
            {line.eccn for line in lines if line.eccn},
            restriction_types=(RestrictionType.CERTIFICATE_REQUIRED,),
        )
        return certificate_required_lines(
            rules, lines, order.shipping_address, order.customer_id
        )

    def after_submit(
        self,
        order: SalesOrder,
        event: SubmitEvent,
        old_order: SalesOrder | None = None,
    ) -> AllocationOutcome | None:
        """
        Debit certificates for a saved order and stamp the covered lines.

        Returns None when nothing needed allocating.

        Raises:
            CertificateConflictError: a certificate changed concurrently.
        """
        if event not in RESTRICTION_EVENTS:
            return None

        with LogContext.bind(order_id=order.order_id, customer_id=order.customer_id):
            if _dropped_to_boss_cleared(order, event, old_order):
                logger.info("allocation_skipped_dropped_to_boss")
                return None
            if order.status is OrderStatus.PENDING_APPROVAL:
                logger.info("allocation_skipped_pending_approval")
                return None

            requirements = self.certificate_requirements(order)
            if not requirements:
                return None

            allocation = self.certificates.allocate(requirements, order.customer_id)

            stamped = tuple(
                replace(line, cert_applied_on=allocation.applied_on(line.line_key))
                if line.cert_applied_on is None and allocation.applied_on(line.line_key)
                else line
                for line in order.lines
            )
            updated = replace(order, lines=stamped)
            if updated != order and order.order_id:
                updated = self.orders.save(updated)

            logger.info(
                "allocation_completed",
                extra={
                    "gated_lines": len(requirements),
                    "stamped_lines": sum(
                        1 for a, b in zip(order.lines, stamped) if a is not b
                    ),
                },
            )
            return AllocationOutcome(order=updated, allocation=allocation)
