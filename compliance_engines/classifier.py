"""
Module: compliance_engines.classifier
Responsibility:
    Stamp GPL sub-representatives on order lines, produce the line-level
    verdicts that do not come from the restriction catalog (GPL, MAP,
    price variance) and bucket every verdict into the
    disjoint categories the mutation applier acts on.

Architecture position:
    Engines -- pure rule layer, zero I/O.
    Catalog verdicts come from ``compliance_engines.restrictions``,
    lifecycle verdicts from ``compliance_engines.inventory`` and
    certificate verdicts from ``compliance_engines.certificates``.

Invariants enforced:
    - Every verdict lands in exactly one bucket.
    - Precedence: override -> soft; positive max-allowed quantity ->
      adjust; system price -> price; CERT -> cert; GPL -> gpl; anything
      else -> hard.
    - Price variance only fires when |rate - system price| is strictly
      greater than the tolerance.

Usage:
    from compliance_engines.classifier import classify

    classified = classify(verdicts)
    classified.hard      # lines to remove
    classified.adjust    # lines to clamp
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, replace
from decimal import Decimal

from compliance_engines.tracer import traced_engine
from compliance_kernel.logging_config import get_logger
from compliance_modules.orders.models import (
    GPLConfig,
    OrderLine,
    Remediation,
    RestrictionVerdict,
    VerdictCategory,
)

logger = get_logger("engines.classifier")

GPL_REASON = "Missing Customer GPL Config, Sales Agency or Sales Rep."
MAP_REASON = "Customer not approved for MAP Items"
PRICE_REASON = "Incorrect Price, the System Price is: {price}"


@dataclass(frozen=True)
class ClassifiedRestrictions:
    """Verdicts bucketed by what the mutation applier does with them."""

    hard: tuple[RestrictionVerdict, ...] = ()
    soft: tuple[RestrictionVerdict, ...] = ()
    adjust: tuple[RestrictionVerdict, ...] = ()
    price: tuple[RestrictionVerdict, ...] = ()
    cert: tuple[RestrictionVerdict, ...] = ()
    gpl: tuple[RestrictionVerdict, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not (self.hard or self.soft or self.adjust or self.price or self.cert or self.gpl)

    @property
    def requires_approval(self) -> bool:
        """Soft, price, cert or GPL issues hold the order for approval."""
        return bool(self.soft or self.price or self.cert or self.gpl)

    @property
    def all_verdicts(self) -> tuple[RestrictionVerdict, ...]:
        return self.hard + self.soft + self.adjust + self.price + self.cert + self.gpl


def assign_gpl_sub_reps(
    lines: Sequence[OrderLine],
    configs: Mapping[str, GPLConfig],
    gpl_none_code: str,
) -> tuple[OrderLine, ...]:
    """
    Stamp each GPL line with the customer's sub-representative.

    A line is stamped when the customer has a config for its GPL with both
    a sales rep and a sub-rep.  Other lines are returned unchanged.
    """
    assigned = []
    for line in lines:
        config = configs.get(line.gpl) if line.gpl and line.gpl != gpl_none_code else None
        if config is not None and config.assigns_sub_rep:
            line = replace(line, gpl_sub_rep=config.sub_rep)
        assigned.append(line)
    return tuple(assigned)


def gpl_verdicts(
    lines: Sequence[OrderLine],
    gpl_none_code: str,
) -> tuple[RestrictionVerdict, ...]:
    """Lines with a sales GPL configured but no sub-representative."""
    return tuple(
        RestrictionVerdict(
            line_key=line.line_key,
            line_index=line.line_index,
            item_id=line.item_id,
            item_name=line.item_name,
            category=VerdictCategory.GPL,
            reason=GPL_REASON,
            remediation=Remediation.FLAG_ONLY,
            quantity=line.quantity,
        )
        for line in lines
        if line.gpl and line.gpl != gpl_none_code and not line.gpl_sub_rep
    )


def map_verdicts(
    lines: Sequence[OrderLine],
    approved_for_map: bool,
) -> tuple[RestrictionVerdict, ...]:
    """MAP items are blocked unless the customer is approved for them."""
    if approved_for_map:
        return ()
    return tuple(
        RestrictionVerdict(
            line_key=line.line_key,
            line_index=line.line_index,
            item_id=line.item_id,
            item_name=line.item_name,
            category=VerdictCategory.MAP,
            reason=MAP_REASON,
            remediation=Remediation.REMOVE_LINE,
            quantity=line.quantity,
        )
        for line in lines
        if line.is_map_item
    )


def price_variance_verdicts(
    lines: Sequence[OrderLine],
    system_prices: Mapping[str, Decimal],
    tolerance: Decimal | None,
) -> tuple[RestrictionVerdict, ...]:
    """
    Lines priced outside ``tolerance`` of the system price.

    Args:
        lines: Order lines.
        system_prices: Item id -> expected unit price for this customer.
        tolerance: Allowed absolute difference; None disables the check.
    """
    if tolerance is None:
        return ()
    verdicts = []
    for line in lines:
        system_price = system_prices.get(line.item_id)
        if system_price is None:
            continue
        if abs(line.rate - system_price) <= tolerance:
            continue
        verdicts.append(
            RestrictionVerdict(
                line_key=line.line_key,
                line_index=line.line_index,
                item_id=line.item_id,
                item_name=line.item_name,
                category=VerdictCategory.PRICE,
                reason=PRICE_REASON.format(price=system_price),
                remediation=Remediation.CORRECT_PRICE,
                quantity=line.quantity,
                system_price=system_price,
            )
        )
    return tuple(verdicts)


def _bucket(verdict: RestrictionVerdict) -> str:
    if verdict.override:
        return "soft"
    if verdict.max_allowed_quantity is not None and verdict.max_allowed_quantity > 0:
        return "adjust"
    if verdict.system_price is not None:
        return "price"
    if verdict.category is VerdictCategory.CERT:
        return "cert"
    if verdict.category is VerdictCategory.GPL:
        return "gpl"
    return "hard"


@traced_engine("classifier", "1.0", fingerprint_fields=("verdicts",))
def classify(verdicts: Sequence[RestrictionVerdict]) -> ClassifiedRestrictions:
    """Bucket verdicts into disjoint categories, keeping input order per bucket."""
    buckets: dict[str, list[RestrictionVerdict]] = {
        "hard": [], "soft": [], "adjust": [], "price": [], "cert": [], "gpl": [],
    }
    for verdict in verdicts:
        buckets[_bucket(verdict)].append(verdict)

    classified = ClassifiedRestrictions(**{k: tuple(v) for k, v in buckets.items()})

    logger.debug(
        "restrictions_classified",
        extra={name: len(items) for name, items in buckets.items()},
    )
    return classified
