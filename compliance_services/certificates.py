"""
compliance_services.certificates -- Export certificate validation and debit.

Responsibility:
    Load the certificates usable for an order, run the pure allocation
    engine, and persist each certificate's debit with a compare-and-swap
    update so concurrent orders can never overdraw one certificate.

Architecture position:
    Services -- stateful orchestration over engines + kernel.
    Composes RestrictionCatalog (reads), compliance_engines.certificates
    (decision), and ExportCertificateModel (writes).

Invariants enforced:
    - Certificates must not expire before ``today + lead_time_to_ship_days``.
      Without a configured lead time no certificate qualifies and every
      certificate-gated line is uncovered.
    - Every debit is a single conditional UPDATE matching the certificate
      id AND the version read.  The version is incremented on success.
    - A debit that matches no row raises CertificateConflictError after
      rolling back the session; no partial allocation survives.
    - No local retry.  The caller decides whether to re-run the evaluation.

Failure modes:
    - CertificateConflictError when another transaction debited a
      certificate between read and write.

Audit relevance:
    Each successful debit is logged with certificate id, version and the
    quantity/value before and after.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import replace
from datetime import date, timedelta

from sqlalchemy import update
from sqlalchemy.orm import Session

from compliance_config.schema import CompliancePreferences
from compliance_engines.certificates import (
    AllocationResult,
    CertificateDebit,
    allocate_certificates,
    validate_certificates,
)
from compliance_engines.restrictions import CertificateRequirement
from compliance_kernel.domain.clock import Clock, SystemClock
from compliance_kernel.exceptions import CertificateConflictError
from compliance_kernel.logging_config import get_logger
from compliance_modules.orders.models import (
    ExportCertificate,
    RestrictionVerdict,
)
from compliance_modules.orders.orm import ExportCertificateModel
from compliance_services.catalog import RestrictionCatalog

logger = get_logger("services.certificates")


class CertificateAllocationService:
    """
    Validates and debits export certificates for certificate-gated lines.

    Contract:
        Receives Session, Clock, preferences and a RestrictionCatalog via
        constructor injection.
    Guarantees:
        - ``validate`` never writes.
        - ``allocate`` writes all debits or raises with nothing written.
    Non-goals:
        - Does not decide which lines need certificates; that is
          ``compliance_engines.restrictions.certificate_required_lines``.
    """

    def __init__(
        self,
        session: Session,
        preferences: CompliancePreferences,
        catalog: RestrictionCatalog | None = None,
        clock: Clock | None = None,
    ):
        self.session = session
        self.preferences = preferences
        self.catalog = catalog or RestrictionCatalog(session, preferences.search_page_size)
        self._clock = clock or SystemClock()

    def earliest_expiration(self) -> date | None:
        """First acceptable expiration date, or None without a lead time.

        A lead time of zero counts as unset.
        """
        lead_time = self.preferences.lead_time_to_ship_days
        if not lead_time:
            return None
        return self._clock.today() + timedelta(days=lead_time)

    def load_certificates(
        self,
        requirements: Sequence[CertificateRequirement],
        customer_id: str,
    ) -> list[ExportCertificate]:
        if not requirements:
            return []
        as_of = self.earliest_expiration()
        if as_of is None:
            logger.warning(
                "certificate_lead_time_missing",
                extra={"customer_id": customer_id},
            )
            return []
        lines = [req.line for req in requirements]
        return self.catalog.find_active_certificates(
            item_ids={line.item_id for line in lines},
            eccns={line.eccn for line in lines if line.eccn},
            customer_id=customer_id,
            as_of=as_of,
        )

    def validate(
        self,
        requirements: Sequence[CertificateRequirement],
        customer_id: str,
    ) -> tuple[RestrictionVerdict, ...]:
        """CERT verdicts for gated lines that current certificates cannot cover."""
        certificates = self.load_certificates(requirements, customer_id)
        overrides = {req.line.line_key: req.override for req in requirements}
        verdicts = validate_certificates([req.line for req in requirements], certificates)
        return tuple(
            replace(v, override=overrides.get(v.line_key, False)) for v in verdicts
        )

    def allocate(
        self,
        requirements: Sequence[CertificateRequirement],
        customer_id: str,
    ) -> AllocationResult:
        """
        Debit certificates for every covered gated line.

        Raises:
            CertificateConflictError: a certificate changed since it was read.
        """
        certificates = self.load_certificates(requirements, customer_id)
        result = allocate_certificates(
            [req.line for req in requirements],
            certificates,
            applied_at=self._clock.now(),
        )

        try:
            for debit in result.debits:
                self._write_debit(debit)
            self.session.flush()
        except CertificateConflictError:
            self.session.rollback()
            raise

        logger.info(
            "certificate_allocation_persisted",
            extra={
                "customer_id": customer_id,
                "line_count": len(result.lines),
                "debit_count": len(result.debits),
                "uncovered": sum(1 for line in result.lines if not line.covered),
            },
        )
        return result

    def _write_debit(self, debit: CertificateDebit) -> None:
        stmt = (
            update(ExportCertificateModel)
            .where(ExportCertificateModel.certificate_id == debit.certificate_id)
            .where(ExportCertificateModel.version == debit.expected_version)
            .values(
                remaining_quantity=debit.quantity_after,
                remaining_value=debit.value_after,
                status=debit.status.value,
                version=ExportCertificateModel.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)
        if result.rowcount != 1:
            logger.warning(
                "certificate_conflict",
                extra={
                    "certificate_id": debit.certificate_id,
                    "expected_version": debit.expected_version,
                },
            )
            raise CertificateConflictError(debit.certificate_id, debit.expected_version)

        logger.info(
            "certificate_debited",
            extra={
                "certificate_id": debit.certificate_id,
                "version": debit.expected_version + 1,
                "quantity_before": debit.quantity_before,
                "quantity_after": debit.quantity_after,
                "value_before": debit.value_before,
                "value_after": debit.value_after,
                "status": debit.status.value,
            },
        )
