"""
Module: compliance_engines.restrictions
Responsibility:
    Match catalog restriction rules to order lines and the order's ship-to
    address, and turn jurisdiction and customer-block matches into
    verdicts.

Architecture position:
    Engines -- pure rule layer, zero I/O.  Rules come from
    ``compliance_services.catalog``.

Invariants enforced:
    - Jurisdiction scope: a rule with a zip applies only on a zip match; a
      rule without a zip but with a state applies on a state match; a rule
      with neither applies on a country match.  A rule with none of the
      three never applies.
    - Override rules are ignored for lines carrying a jurisdiction override.
    - At most one jurisdiction verdict per line; a non-override rule wins
      over an override rule.
    - Certificate requirements only come from rules scoped to a country
      whose customer is empty or the ordering customer.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from compliance_engines.tracer import traced_engine
from compliance_kernel.logging_config import get_logger
from compliance_modules.orders.models import (
    OrderLine,
    Remediation,
    RestrictionRule,
    RestrictionType,
    RestrictionVerdict,
    ShippingAddress,
    VerdictCategory,
)

logger = get_logger("engines.restrictions")


@dataclass(frozen=True)
class CertificateRequirement:
    """A line that may only ship against export certificates."""

    line: OrderLine
    override: bool = False


def rule_matches_line(rule: RestrictionRule, line: OrderLine) -> bool:
    """A rule matches a line by item, or by ECCN when the line has one."""
    if rule.item_id is not None and rule.item_id == line.item_id:
        return True
    return bool(line.eccn) and line.eccn == rule.eccn


def applies_to_address(rule: RestrictionRule, address: ShippingAddress) -> bool:
    """Whether a rule's jurisdiction scope covers the ship-to address."""
    if rule.zip_code:
        return rule.zip_code in (address.zip_code, address.zip5)
    if rule.state:
        return rule.state == address.state
    if rule.country:
        return rule.country == address.country
    return False


def _eligible_lines(rule: RestrictionRule, lines: Sequence[OrderLine]) -> list[OrderLine]:
    matched = [line for line in lines if rule_matches_line(rule, line)]
    if rule.override:
        matched = [line for line in matched if not line.jurisdiction_override]
    return matched


def scope_rules(
    rules: Sequence[RestrictionRule],
    lines: Sequence[OrderLine],
    address: ShippingAddress,
) -> list[RestrictionRule]:
    """Rules that apply to the address and to at least one eligible line."""
    return [
        rule for rule in rules
        if applies_to_address(rule, address) and _eligible_lines(rule, lines)
    ]


@traced_engine("restrictions", "1.0", fingerprint_fields=("rules", "lines", "address"))
def jurisdiction_verdicts(
    rules: Sequence[RestrictionRule],
    lines: Sequence[OrderLine],
    address: ShippingAddress,
) -> tuple[RestrictionVerdict, ...]:
    """One verdict per line blocked by a jurisdiction rule."""
    blocking: dict[str, tuple[OrderLine, bool]] = {}

    for rule in scope_rules(rules, lines, address):
        if rule.restriction_type is not RestrictionType.JURISDICTION_BLOCKED:
            continue
        for line in _eligible_lines(rule, lines):
            seen = blocking.get(line.line_key)
            # override stays only while every matching rule is an override
            override = rule.override if seen is None else (seen[1] and rule.override)
            blocking[line.line_key] = (line, override)

    verdicts = []
    for line, override in sorted(blocking.values(), key=lambda pair: pair[0].line_index):
        verdicts.append(
            RestrictionVerdict(
                line_key=line.line_key,
                line_index=line.line_index,
                item_id=line.item_id,
                item_name=line.item_name,
                category=VerdictCategory.HARD,
                reason=RestrictionType.JURISDICTION_BLOCKED.label,
                remediation=Remediation.FLAG_ONLY if override else Remediation.REMOVE_LINE,
                quantity=line.quantity,
                override=override,
            )
        )
    return tuple(verdicts)


def certificate_required_lines(
    rules: Sequence[RestrictionRule],
    lines: Sequence[OrderLine],
    address: ShippingAddress,
    customer_id: str,
) -> tuple[CertificateRequirement, ...]:
    """Lines gated by a certificate-required rule, each listed once."""
    required: dict[str, CertificateRequirement] = {}

    for rule in scope_rules(rules, lines, address):
        if rule.restriction_type is not RestrictionType.CERTIFICATE_REQUIRED:
            continue
        if not rule.country:
            continue
        if rule.customer_id and rule.customer_id != customer_id:
            continue
        for line in _eligible_lines(rule, lines):
            seen = required.get(line.line_key)
            override = rule.override if seen is None else (seen.override and rule.override)
            required[line.line_key] = CertificateRequirement(line=line, override=override)

    return tuple(sorted(required.values(), key=lambda req: req.line.line_index))


def customer_block_verdicts(
    rules: Sequence[RestrictionRule],
    lines: Sequence[OrderLine],
) -> tuple[RestrictionVerdict, ...]:
    """Verdicts for lines whose item the customer may not purchase.

    Customer blocks match by item only and are not scoped to a jurisdiction.
    """
    verdicts = []
    seen: set[str] = set()
    for rule in rules:
        if rule.restriction_type is not RestrictionType.CUSTOMER_BLOCKED:
            continue
        for line in lines:
            if line.line_key in seen or rule.item_id != line.item_id:
                continue
            seen.add(line.line_key)
            verdicts.append(
                RestrictionVerdict(
                    line_key=line.line_key,
                    line_index=line.line_index,
                    item_id=line.item_id,
                    item_name=line.item_name,
                    category=VerdictCategory.CUSTOMER,
                    reason=RestrictionType.CUSTOMER_BLOCKED.label,
                    remediation=Remediation.FLAG_ONLY if rule.override else Remediation.REMOVE_LINE,
                    quantity=line.quantity,
                    override=rule.override,
                )
            )
    return tuple(verdicts)
