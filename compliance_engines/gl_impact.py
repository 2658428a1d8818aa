"""
Module: compliance_engines.gl_impact
Responsibility:
    Build custom GL lines added alongside the standard posting of
    intercompany fulfillments and receipts: reversal of cancelled transfer
    fulfillments, consigned-inventory reclassification, returned transfer
    receipts, and the intercompany impact sale of sales-order
    fulfillments.  Also computes the intercompany custom cost the impact
    sale is booked at.

Architecture position:
    Engines -- pure rule layer, zero I/O.  Eligibility (record type,
    subsidiary, ship status), costs and preferences are resolved by
    ``compliance_services.gl_impact``.

Invariants enforced:
    - Only posting lines with an account and a non-zero amount are used.
    - Every function returns balanced lines: total debits == total credits.
    - Segment ids (class, department, location, entity) are carried over
      from the source line.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import replace
from decimal import Decimal

from compliance_engines.tracer import traced_engine
from compliance_kernel.logging_config import get_logger
from compliance_modules.orders.models import FulfilledLine, GLLine, PostingLine, ReceivedLine

logger = get_logger("engines.gl_impact")

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")


def postable_lines(standard_lines: Sequence[PostingLine]) -> list[PostingLine]:
    """Posting lines with an account and a non-zero debit or credit."""
    return [
        line for line in standard_lines
        if line.is_posting and line.account_id and (line.debit != 0 or line.credit != 0)
    ]


@traced_engine("gl_impact", "1.0", fingerprint_fields=("standard_lines",))
def reversal_lines(standard_lines: Sequence[PostingLine]) -> tuple[GLLine, ...]:
    """Reverse each standard line by swapping its debit and credit."""
    return tuple(
        GLLine(
            account_id=line.account_id,
            debit=line.credit,
            credit=line.debit,
            class_id=line.class_id,
            department_id=line.department_id,
            location_id=line.location_id,
            entity_id=line.entity_id,
        )
        for line in postable_lines(standard_lines)
    )


@traced_engine("gl_impact", "1.0", fingerprint_fields=("standard_lines", "consignment_account_id"))
def consignment_lines(
    standard_lines: Sequence[PostingLine],
    consignment_account_id: str,
) -> tuple[GLLine, ...]:
    """Move each natural debit to the inventory consignment account."""
    lines: list[GLLine] = []
    for line in postable_lines(standard_lines):
        if line.debit == 0:
            continue
        segments = {
            "class_id": line.class_id,
            "department_id": line.department_id,
            "location_id": line.location_id,
            "entity_id": line.entity_id,
        }
        lines.append(GLLine(account_id=line.account_id, credit=line.debit, **segments))
        lines.append(GLLine(account_id=consignment_account_id, debit=line.debit, **segments))
    return tuple(lines)


@traced_engine(
    "gl_impact", "1.0",
    fingerprint_fields=("fulfilled_lines", "cogs_accounts", "payable_account_id"),
)
def impact_sale_lines(
    fulfilled_lines: Sequence[FulfilledLine],
    cogs_accounts: Mapping[str, str],
    payable_account_id: str,
) -> tuple[GLLine, ...]:
    """
    Debit each item's COGS account and credit intercompany payable.

    The amount is ``custom_cost x quantity``.  Lines without a COGS account
    or with a zero custom cost are skipped.
    """
    lines: list[GLLine] = []
    for line in fulfilled_lines:
        if not line.fulfilled:
            continue
        cogs_account = cogs_accounts.get(line.item_id)
        cost = line.custom_cost or _ZERO
        if not cogs_account or cost == 0:
            logger.debug(
                "impact_sale_line_skipped",
                extra={"item_id": line.item_id, "has_cogs_account": bool(cogs_account)},
            )
            continue
        amount = cost * line.quantity
        segments = {
            "class_id": line.class_id,
            "department_id": line.department_id,
            "location_id": line.location_id,
        }
        lines.append(GLLine(account_id=cogs_account, debit=amount, **segments))
        lines.append(GLLine(account_id=payable_account_id, credit=amount, **segments))
    return tuple(lines)


@traced_engine(
    "gl_impact", "1.0",
    fingerprint_fields=("received_lines", "standard_costs", "consigned_account_id", "payable_account_id"),
)
def returned_receipt_lines(
    received_lines: Sequence[ReceivedLine],
    standard_costs: Mapping[str, Decimal],
    consigned_account_id: str,
    payable_account_id: str,
    *,
    class_id: str | None = None,
    department_id: str | None = None,
    location_id: str | None = None,
) -> tuple[GLLine, ...]:
    """
    Debit consigned inventory and credit intercompany payable for goods
    received back on a transfer.

    The amount is the item's standard cost x received quantity.  Items
    without a standard cost are skipped.  Segments come from the transfer
    order, not the receipt lines.
    """
    segments = {
        "class_id": class_id,
        "department_id": department_id,
        "location_id": location_id,
    }
    lines: list[GLLine] = []
    for line in received_lines:
        cost = standard_costs.get(line.item_id)
        if not cost:
            continue
        amount = cost * line.quantity
        lines.append(GLLine(account_id=consigned_account_id, debit=amount, **segments))
        lines.append(GLLine(account_id=payable_account_id, credit=amount, **segments))
    return tuple(lines)


@traced_engine(
    "gl_impact", "1.0",
    fingerprint_fields=("fulfilled_lines", "vista_owned", "markup_percent", "discount_percent"),
)
def apply_custom_costs(
    fulfilled_lines: Sequence[FulfilledLine],
    *,
    vista_owned: bool,
    markup_percent: Decimal,
    discount_percent: Decimal,
    location_costs: Mapping[tuple[str, str | None], Decimal],
    base_prices: Mapping[str, Decimal],
) -> tuple[FulfilledLine, ...]:
    """
    Set the intercompany custom cost of each fulfilled line.

    Vista-owned customers are charged the location cost plus
    ``markup_percent``; other customers the base price less
    ``discount_percent``.  No cost or price on file gives zero.
    Lines not fulfilled are returned unchanged.
    """
    costed: list[FulfilledLine] = []
    for line in fulfilled_lines:
        if not line.fulfilled:
            costed.append(line)
            continue
        if vista_owned:
            base = location_costs.get((line.item_id, line.location_id), _ZERO)
            cost = base + base * markup_percent / _HUNDRED
        else:
            base = base_prices.get(line.item_id, _ZERO)
            cost = base - base * discount_percent / _HUNDRED
        costed.append(replace(line, custom_cost=cost))
    return tuple(costed)
