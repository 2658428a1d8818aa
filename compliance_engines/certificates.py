"""
Module: compliance_engines.certificates
Responsibility:
    Decide whether matching export certificates cover an order line's
    quantity and value, and compute the debit of every covering
    certificate.

Architecture position:
    Engines -- pure rule layer, zero I/O.
    Imports only compliance_modules.orders.models (value objects).
    Persisting the debits is the job of
    ``compliance_services.certificates`` (compare-and-swap update).

Invariants enforced:
    - Uncovered lines debit nothing and produce a CERT verdict.
    - Conservation: for a covered line, the sum of quantity (value) debited
      across certificates tracking quantity (value) equals the line's
      quantity (value) exactly.
    - Untracked (None) certificate fields stay None; they are never coerced
      to zero.
    - A certificate is TERMINATED when a tracked field is zero after the
      debit; otherwise it stays ACTIVE.
    - Purity: ``applied_at`` is passed in; no clock access.

Failure modes:
    - None.  Lines without any matching tracked certificate are simply
      not covered.

Usage:
    from compliance_engines.certificates import allocate_certificates

    result = allocate_certificates(
        lines=cert_lines,
        certificates=certificates,
        applied_at=clock.now(),
    )
    for debit in result.debits:
        ...
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from compliance_engines.tracer import traced_engine
from compliance_kernel.logging_config import get_logger
from compliance_modules.orders.models import (
    CertificateStatus,
    ExportCertificate,
    OrderLine,
    Remediation,
    RestrictionType,
    RestrictionVerdict,
    VerdictCategory,
)

logger = get_logger("engines.certificates")

_ZERO = Decimal("0")
_ONE = Decimal("1")
# Storage scale of certificate balances (Numeric(38, 9)).
_VALUE_QUANTUM = Decimal("0.000000001")


@dataclass(frozen=True)
class CoverageCheck:
    """
    Combined capacity of the certificates matching one line.

    An untracked field adds zero capacity, so a line with positive value
    needs at least one matching certificate that tracks value (and likewise
    for quantity).
    """

    line_key: str
    requested_quantity: Decimal
    requested_value: Decimal
    available_quantity: Decimal
    available_value: Decimal
    certificate_ids: tuple[str, ...]

    @property
    def covered(self) -> bool:
        if not self.certificate_ids:
            return False
        return (
            self.available_quantity >= self.requested_quantity
            and self.available_value >= self.requested_value
        )


@dataclass(frozen=True)
class CertificateDebit:
    """
    Net change to one certificate across all lines of an allocation.

    ``expected_version`` is the version the certificate was read at; the
    persistence layer updates only if the stored version still matches.
    """

    certificate_id: str
    expected_version: int
    quantity_before: Decimal | None
    quantity_after: Decimal | None
    value_before: Decimal | None
    value_after: Decimal | None
    status: CertificateStatus

    @property
    def quantity_debited(self) -> Decimal | None:
        if self.quantity_before is None:
            return None
        return self.quantity_before - self.quantity_after

    @property
    def value_debited(self) -> Decimal | None:
        if self.value_before is None:
            return None
        return self.value_before - self.value_after


@dataclass(frozen=True)
class LineAllocation:
    """Allocation outcome for one line."""

    line_key: str
    line_index: int
    covered: bool
    certificate_ids: tuple[str, ...] = ()
    cert_applied_on: datetime | None = None


@dataclass(frozen=True)
class AllocationResult:
    """Result of allocating certificates to a set of lines."""

    lines: tuple[LineAllocation, ...]
    debits: tuple[CertificateDebit, ...]
    verdicts: tuple[RestrictionVerdict, ...]

    @property
    def all_covered(self) -> bool:
        return all(line.covered for line in self.lines)

    def applied_on(self, line_key: str) -> datetime | None:
        for line in self.lines:
            if line.line_key == line_key:
                return line.cert_applied_on
        return None


def matches(line: OrderLine, certificate: ExportCertificate) -> bool:
    """A certificate matches a line by item, or by ECCN when the line has one."""
    if certificate.item_id is not None and certificate.item_id == line.item_id:
        return True
    return bool(line.eccn) and line.eccn == certificate.eccn


def check_coverage(
    line: OrderLine,
    certificates: Sequence[ExportCertificate],
) -> CoverageCheck:
    """
    Sum the remaining capacity of every tracked certificate matching ``line``.

    Untracked fields are summed as zero here only; the debit path keeps them
    None.
    """
    matching = [c for c in certificates if c.is_tracked and matches(line, c)]

    quantities = [c.remaining_quantity for c in matching if c.tracks_quantity]
    values = [c.remaining_value for c in matching if c.tracks_value]

    return CoverageCheck(
        line_key=line.line_key,
        requested_quantity=line.quantity,
        requested_value=line.value,
        available_quantity=sum(quantities, _ZERO),
        available_value=sum(values, _ZERO),
        certificate_ids=tuple(c.certificate_id for c in matching),
    )


def _unit_share(line_quantity: Decimal, line_value: Decimal, unit: Decimal) -> Decimal:
    """Value consumed together with ``unit`` of the line's quantity."""
    if unit >= line_quantity:
        return line_value
    share = line_value * unit / line_quantity
    return share.quantize(_VALUE_QUANTUM, rounding=ROUND_HALF_UP)


def _debit_certificate(
    certificate: ExportCertificate,
    line_quantity: Decimal,
    line_value: Decimal,
) -> tuple[ExportCertificate, Decimal, Decimal]:
    """
    Debit one certificate for what is left of a line.

    Returns the updated certificate and the line's remaining quantity and
    value after the debit.
    """
    cert_quantity = certificate.remaining_quantity
    cert_value = certificate.remaining_value

    if certificate.tracks_quantity and certificate.tracks_value:
        # One unit and its share of value per step keeps both dimensions
        # in step across certificates.
        while cert_quantity > 0 and cert_value > 0 and (line_quantity > 0 or line_value > 0):
            if line_quantity > 0:
                unit = min(_ONE, line_quantity, cert_quantity)
                step = min(_unit_share(line_quantity, line_value, unit), cert_value)
                cert_quantity -= unit
                line_quantity -= unit
            else:
                step = min(line_value, cert_value)
            cert_value -= step
            line_value -= step
    elif certificate.tracks_quantity:
        step = min(line_quantity, cert_quantity)
        cert_quantity -= step
        line_quantity -= step
    elif certificate.tracks_value:
        step = min(line_value, cert_value)
        cert_value -= step
        line_value -= step

    updated = replace(
        certificate,
        remaining_quantity=cert_quantity,
        remaining_value=cert_value,
    )
    return updated, line_quantity, line_value


def _settle_remainder(
    certificate: ExportCertificate,
    line_quantity: Decimal,
    line_value: Decimal,
) -> tuple[ExportCertificate, Decimal, Decimal]:
    """
    Debit each dimension independently.

    Used after the stepped pass when a certificate ran out of value before
    quantity (or the reverse) and left part of the line undebited.
    """
    cert_quantity = certificate.remaining_quantity
    cert_value = certificate.remaining_value
    if certificate.tracks_quantity and line_quantity > 0:
        step = min(line_quantity, cert_quantity)
        cert_quantity -= step
        line_quantity -= step
    if certificate.tracks_value and line_value > 0:
        step = min(line_value, cert_value)
        cert_value -= step
        line_value -= step
    updated = replace(
        certificate,
        remaining_quantity=cert_quantity,
        remaining_value=cert_value,
    )
    return updated, line_quantity, line_value


def _status_after_debit(certificate: ExportCertificate) -> CertificateStatus:
    exhausted = (
        (certificate.tracks_quantity and certificate.remaining_quantity == 0)
        or (certificate.tracks_value and certificate.remaining_value == 0)
    )
    return CertificateStatus.TERMINATED if exhausted else CertificateStatus.ACTIVE


def certificate_verdict(line: OrderLine) -> RestrictionVerdict:
    """CERT verdict for a line no certificate covers."""
    return RestrictionVerdict(
        line_key=line.line_key,
        line_index=line.line_index,
        item_id=line.item_id,
        item_name=line.item_name,
        category=VerdictCategory.CERT,
        reason=RestrictionType.CERTIFICATE_REQUIRED.label,
        remediation=Remediation.FLAG_ONLY,
        quantity=line.quantity,
    )


@traced_engine("certificates", "1.0", fingerprint_fields=("lines", "certificates"))
def validate_certificates(
    lines: Sequence[OrderLine],
    certificates: Sequence[ExportCertificate],
) -> tuple[RestrictionVerdict, ...]:
    """
    CERT verdicts for lines the certificates cannot cover, without debiting.

    Each line is checked against the full capacity independently, the way
    an order is screened before it is saved.
    """
    return tuple(
        certificate_verdict(line)
        for line in lines
        if not check_coverage(line, certificates).covered
    )


@traced_engine("certificates", "1.0", fingerprint_fields=("lines", "certificates"))
def allocate_certificates(
    lines: Sequence[OrderLine],
    certificates: Sequence[ExportCertificate],
    applied_at: datetime,
) -> AllocationResult:
    """
    Allocate certificate capacity to ``lines`` in order.

    Certificates are consumed in the order given.  Balances carry over from
    line to line, so two lines of one order never draw on the same capacity.
    """
    working: dict[str, ExportCertificate] = {c.certificate_id: c for c in certificates}
    order = [c.certificate_id for c in certificates]
    touched: list[str] = []

    line_results: list[LineAllocation] = []
    verdicts: list[RestrictionVerdict] = []

    for line in lines:
        current = [working[cid] for cid in order]
        coverage = check_coverage(line, current)

        if not coverage.covered:
            logger.info(
                "certificate_coverage_insufficient",
                extra={
                    "line_key": line.line_key,
                    "item_id": line.item_id,
                    "requested_quantity": str(coverage.requested_quantity),
                    "requested_value": str(coverage.requested_value),
                    "available_quantity": str(coverage.available_quantity),
                    "available_value": str(coverage.available_value),
                },
            )
            verdicts.append(certificate_verdict(line))
            line_results.append(
                LineAllocation(
                    line_key=line.line_key,
                    line_index=line.line_index,
                    covered=False,
                )
            )
            continue

        line_quantity = line.quantity
        line_value = line.value
        debited: list[str] = []

        for cid in coverage.certificate_ids:
            if line_quantity <= 0 and line_value <= 0:
                break
            before = working[cid]
            after, line_quantity, line_value = _debit_certificate(
                before, line_quantity, line_value,
            )
            if after == before:
                continue
            working[cid] = after
            debited.append(cid)

        for cid in coverage.certificate_ids:
            if line_quantity <= 0 and line_value <= 0:
                break
            before = working[cid]
            after, line_quantity, line_value = _settle_remainder(
                before, line_quantity, line_value,
            )
            if after != before:
                working[cid] = after
                if cid not in debited:
                    debited.append(cid)

        for cid in debited:
            if cid not in touched:
                touched.append(cid)

        line_results.append(
            LineAllocation(
                line_key=line.line_key,
                line_index=line.line_index,
                covered=True,
                certificate_ids=tuple(debited),
                cert_applied_on=applied_at if debited else None,
            )
        )

    originals = {c.certificate_id: c for c in certificates}
    debits = []
    for cid in touched:
        before = originals[cid]
        after = working[cid]
        debits.append(
            CertificateDebit(
                certificate_id=cid,
                expected_version=before.version,
                quantity_before=before.remaining_quantity,
                quantity_after=after.remaining_quantity,
                value_before=before.remaining_value,
                value_after=after.remaining_value,
                status=_status_after_debit(after),
            )
        )

    logger.info(
        "certificates_allocated",
        extra={
            "line_count": len(line_results),
            "uncovered_count": len(verdicts),
            "certificates_debited": len(debits),
        },
    )

    return AllocationResult(
        lines=tuple(line_results),
        debits=tuple(debits),
        verdicts=tuple(verdicts),
    )
