"""
Tests for CertificateAllocationService.

Covers:
- Lead-time window on certificate expiration
- Validation without writes
- Compare-and-swap debits: version bump, status, conflict and rollback
"""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select, update

from compliance_config.schema import CompliancePreferences
from compliance_engines.restrictions import CertificateRequirement
from compliance_kernel.exceptions import CertificateConflictError
from compliance_modules.orders.models import OrderLine
from compliance_modules.orders.orm import ExportCertificateModel
from compliance_services.catalog import RestrictionCatalog
from compliance_services.certificates import CertificateAllocationService


def _requirement(key="L1", index=0, quantity="6", rate="80", override=False):
    line = OrderLine(
        line_key=key,
        line_index=index,
        item_id="100",
        item_name="ITEM-100",
        quantity=Decimal(quantity),
        rate=Decimal(rate),
    )
    return CertificateRequirement(line=line, override=override)


def _add_certificate(session, certificate_id, quantity=None, value=None, expiration=date(2024, 12, 31)):
    session.add(
        ExportCertificateModel(
            certificate_id=certificate_id,
            customer_id="42",
            item_id="100",
            expiration_date=expiration,
            remaining_quantity=Decimal(quantity) if quantity is not None else None,
            remaining_value=Decimal(value) if value is not None else None,
        )
    )


def _stored(session, certificate_id) -> ExportCertificateModel:
    session.expire_all()
    return session.scalars(
        select(ExportCertificateModel).where(
            ExportCertificateModel.certificate_id == certificate_id
        )
    ).one()


class _SnapshotCatalog(RestrictionCatalog):
    """Serves certificates read earlier, as a concurrent evaluation would."""

    def __init__(self, session, certificates):
        super().__init__(session)
        self._certificates = certificates

    def find_active_certificates(self, item_ids, eccns, customer_id, as_of):
        return list(self._certificates)


@pytest.fixture
def service(db_session, preferences, deterministic_clock):
    return CertificateAllocationService(db_session, preferences, clock=deterministic_clock)


class TestExpirationWindow:
    def test_earliest_expiration_is_today_plus_lead_time(self, service):
        # clock is 2024-06-03, lead time 5 days
        assert service.earliest_expiration() == date(2024, 6, 8)

    def test_certificate_expiring_inside_lead_time_not_used(self, db_session, service):
        _add_certificate(db_session, "A", quantity="10", value="1000", expiration=date(2024, 6, 7))
        db_session.flush()

        verdicts = service.validate([_requirement(quantity="1")], "42")

        assert len(verdicts) == 1

    def test_no_lead_time_means_no_certificates(
        self, db_session, deterministic_clock, captured_logs,
    ):
        _add_certificate(db_session, "A", quantity="10")
        db_session.flush()
        service = CertificateAllocationService(
            db_session, CompliancePreferences(), clock=deterministic_clock,
        )

        assert service.earliest_expiration() is None
        assert service.load_certificates([_requirement()], "42") == []
        assert any(
            r["message"] == "certificate_lead_time_missing" for r in captured_logs()
        )

    def test_zero_lead_time_counts_as_unset(self, db_session, deterministic_clock):
        _add_certificate(db_session, "A", quantity="10", value="1000")
        db_session.flush()
        service = CertificateAllocationService(
            db_session,
            CompliancePreferences(lead_time_to_ship_days=0),
            clock=deterministic_clock,
        )

        assert service.earliest_expiration() is None
        assert len(service.validate([_requirement(quantity="1")], "42")) == 1


class TestValidate:
    def test_covered_line_passes_without_writing(self, db_session, service):
        _add_certificate(db_session, "A", quantity="5", value="500")
        _add_certificate(db_session, "B", quantity="3", value="200")
        db_session.flush()

        assert service.validate([_requirement()], "42") == ()
        assert _stored(db_session, "A").version == 0

    def test_override_carried_to_verdict(self, db_session, service):
        verdicts = service.validate([_requirement(override=True)], "42")

        assert verdicts[0].override is True


class TestAllocate:
    def test_debits_and_bumps_version(self, db_session, service, deterministic_clock):
        _add_certificate(db_session, "A", quantity="5", value="500")
        _add_certificate(db_session, "B", quantity="3", value="200")
        db_session.commit()

        result = service.allocate([_requirement()], "42")
        db_session.commit()

        a, b = _stored(db_session, "A"), _stored(db_session, "B")
        assert a.remaining_quantity == Decimal("0")
        assert a.remaining_value == Decimal("100")
        assert a.status == "2"
        assert a.version == 1
        assert b.remaining_quantity == Decimal("2")
        assert b.remaining_value == Decimal("120")
        assert b.status == "1"
        assert b.version == 1
        assert result.applied_on("L1") == deterministic_clock.now()

    def test_untracked_field_stays_null(self, db_session, service):
        _add_certificate(db_session, "A", quantity="10")
        _add_certificate(db_session, "V", value="1000")
        db_session.commit()

        service.allocate([_requirement(quantity="4")], "42")
        db_session.commit()

        stored = _stored(db_session, "A")
        assert stored.remaining_quantity == Decimal("6")
        assert stored.remaining_value is None

    def test_uncovered_line_writes_nothing(self, db_session, service):
        _add_certificate(db_session, "A", quantity="1")
        db_session.commit()

        result = service.allocate([_requirement(quantity="6")], "42")

        assert result.debits == ()
        assert _stored(db_session, "A").version == 0

    def test_logs_each_debit(self, db_session, service, captured_logs):
        _add_certificate(db_session, "A", quantity="10", value="1000")
        db_session.commit()

        service.allocate([_requirement(quantity="4")], "42")

        debited = [r for r in captured_logs() if r["message"] == "certificate_debited"]
        assert len(debited) == 1
        assert debited[0]["certificate_id"] == "A"
        assert debited[0]["version"] == 1
        assert Decimal(debited[0]["quantity_after"]) == Decimal("6")


class TestConcurrentDebit:
    def test_stale_read_conflicts(self, db_session, preferences, deterministic_clock):
        """Two orders read the same certificate; only the first debit lands."""
        _add_certificate(db_session, "A", quantity="5", value="100")
        db_session.commit()

        snapshot = RestrictionCatalog(db_session).find_active_certificates(
            {"100"}, set(), "42", date(2024, 6, 8),
        )
        first = CertificateAllocationService(
            db_session, preferences, _SnapshotCatalog(db_session, snapshot), deterministic_clock,
        )
        second = CertificateAllocationService(
            db_session, preferences, _SnapshotCatalog(db_session, snapshot), deterministic_clock,
        )

        first.allocate([_requirement(quantity="3", rate="1")], "42")
        db_session.commit()

        with pytest.raises(CertificateConflictError) as exc_info:
            second.allocate([_requirement(quantity="3", rate="1")], "42")

        assert exc_info.value.code == "CERTIFICATE_CONFLICT"
        assert exc_info.value.entity_id == "A"
        assert exc_info.value.expected_version == 0

        stored = _stored(db_session, "A")
        assert stored.remaining_quantity == Decimal("2")
        assert stored.version == 1

    def test_conflict_rolls_back_earlier_debits(
        self, db_session, preferences, deterministic_clock,
    ):
        """A conflict on the second certificate leaves the first undebited."""
        _add_certificate(db_session, "A", quantity="2", value="2", expiration=date(2024, 7, 1))
        _add_certificate(db_session, "B", quantity="5", value="10", expiration=date(2024, 8, 1))
        db_session.commit()

        snapshot = RestrictionCatalog(db_session).find_active_certificates(
            {"100"}, set(), "42", date(2024, 6, 8),
        )
        db_session.execute(
            update(ExportCertificateModel)
            .where(ExportCertificateModel.certificate_id == "B")
            .values(version=ExportCertificateModel.version + 1)
        )
        db_session.commit()

        service = CertificateAllocationService(
            db_session, preferences, _SnapshotCatalog(db_session, snapshot), deterministic_clock,
        )
        with pytest.raises(CertificateConflictError):
            service.allocate([_requirement(quantity="4", rate="1")], "42")

        a = _stored(db_session, "A")
        assert a.remaining_quantity == Decimal("2")
        assert a.version == 0

    def test_conflict_logged(self, db_session, preferences, deterministic_clock, captured_logs):
        _add_certificate(db_session, "A", quantity="5", value="100")
        db_session.commit()
        snapshot = RestrictionCatalog(db_session).find_active_certificates(
            {"100"}, set(), "42", date(2024, 6, 8),
        )
        db_session.execute(
            update(ExportCertificateModel).values(version=ExportCertificateModel.version + 1)
        )
        db_session.commit()

        service = CertificateAllocationService(
            db_session, preferences, _SnapshotCatalog(db_session, snapshot), deterministic_clock,
        )
        with pytest.raises(CertificateConflictError):
            service.allocate([_requirement(quantity="1", rate="1")], "42")

        conflicts = [r for r in captured_logs() if r["message"] == "certificate_conflict"]
        assert conflicts[0]["certificate_id"] == "A"
        assert conflicts[0]["expected_version"] == 0
