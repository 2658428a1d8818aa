"""
Tests for the export certificate allocation engine.

Covers:
- Coverage check across matching certificates
- Interleaved quantity/value debiting and conservation
- Untracked fields add no capacity and stay untracked after a debit
- Balances carried across lines of one allocation
- Pre-save validation without debiting
"""

from datetime import date, datetime, timezone
from decimal import Decimal

from compliance_engines.certificates import (
    allocate_certificates,
    check_coverage,
    matches,
    validate_certificates,
)
from compliance_modules.orders.models import (
    CertificateStatus,
    ExportCertificate,
    OrderLine,
    Remediation,
    VerdictCategory,
)

APPLIED_AT = datetime(2024, 6, 3, 15, 30, tzinfo=timezone.utc)


def _line(key="L1", index=0, item_id="100", quantity="6", rate="80", eccn=None):
    return OrderLine(
        line_key=key,
        line_index=index,
        item_id=item_id,
        item_name=f"ITEM-{item_id}",
        quantity=Decimal(quantity),
        rate=Decimal(rate),
        eccn=eccn,
    )


def _cert(cid, quantity=None, value=None, item_id="100", eccn=None, version=0):
    return ExportCertificate(
        certificate_id=cid,
        expiration_date=date(2025, 1, 1),
        remaining_quantity=Decimal(quantity) if quantity is not None else None,
        remaining_value=Decimal(value) if value is not None else None,
        item_id=item_id,
        eccn=eccn,
        version=version,
    )


def _debit(result, cid):
    return next(d for d in result.debits if d.certificate_id == cid)


class TestMatching:
    def test_matches_by_item(self):
        assert matches(_line(item_id="100"), _cert("A", quantity="1", item_id="100"))

    def test_matches_by_eccn(self):
        line = _line(item_id="999", eccn="5A002")
        assert matches(line, _cert("A", quantity="1", item_id=None, eccn="5A002"))

    def test_line_without_eccn_does_not_match_eccn_less_certificate(self):
        line = _line(item_id="100", eccn=None)
        assert not matches(line, _cert("A", quantity="1", item_id="200", eccn=None))

    def test_untracked_certificate_adds_no_capacity(self):
        coverage = check_coverage(_line(), [_cert("A")])

        assert coverage.certificate_ids == ()
        assert coverage.covered is False

    def test_untracked_value_adds_no_capacity(self):
        """A quantity-only certificate cannot cover a line with positive value."""
        coverage = check_coverage(_line(quantity="2", rate="50"), [_cert("A", quantity="10")])

        assert coverage.available_quantity == Decimal("10")
        assert coverage.available_value == Decimal("0")
        assert coverage.covered is False

    def test_zero_value_line_needs_no_value_capacity(self):
        coverage = check_coverage(_line(quantity="2", rate="0"), [_cert("A", quantity="10")])

        assert coverage.covered is True

    def test_split_dimensions_cover_together(self):
        """A quantity-only and a value-only certificate combine."""
        coverage = check_coverage(
            _line(quantity="2", rate="50"),
            [_cert("A", quantity="10"), _cert("B", value="100")],
        )

        assert coverage.covered is True


class TestAllocation:
    def test_two_certificate_example(self):
        """A(5/500) + B(3/200) against qty 6 at 80 leaves 2 and 220 combined."""
        result = allocate_certificates(
            lines=[_line(quantity="6", rate="80")],
            certificates=[
                _cert("A", quantity="5", value="500"),
                _cert("B", quantity="3", value="200"),
            ],
            applied_at=APPLIED_AT,
        )

        a, b = _debit(result, "A"), _debit(result, "B")
        assert a.quantity_after + b.quantity_after == Decimal("2")
        assert a.value_after + b.value_after == Decimal("220")
        assert a.quantity_after == Decimal("0")
        assert a.value_after == Decimal("100")
        assert b.quantity_after == Decimal("2")
        assert b.value_after == Decimal("120")
        assert result.verdicts == ()
        assert result.all_covered is True

    def test_exhausted_certificate_is_terminated(self):
        result = allocate_certificates(
            lines=[_line(quantity="6", rate="80")],
            certificates=[
                _cert("A", quantity="5", value="500"),
                _cert("B", quantity="3", value="200"),
            ],
            applied_at=APPLIED_AT,
        )

        assert _debit(result, "A").status == CertificateStatus.TERMINATED
        assert _debit(result, "B").status == CertificateStatus.ACTIVE

    def test_line_stamped_with_applied_at(self):
        result = allocate_certificates(
            lines=[_line(quantity="2", rate="10")],
            certificates=[_cert("A", quantity="5", value="500")],
            applied_at=APPLIED_AT,
        )

        assert result.applied_on("L1") == APPLIED_AT
        assert result.lines[0].certificate_ids == ("A",)

    def test_value_conservation_when_one_certificate_runs_out_of_value(self):
        """Debits sum to the line exactly even with uneven per-unit shares."""
        result = allocate_certificates(
            lines=[_line(quantity="4", rate="100")],
            certificates=[
                _cert("A", quantity="5", value="50"),
                _cert("B", quantity="5", value="1000"),
            ],
            applied_at=APPLIED_AT,
        )

        total_quantity = sum(d.quantity_debited for d in result.debits)
        total_value = sum(d.value_debited for d in result.debits)
        assert total_quantity == Decimal("4")
        assert total_value == Decimal("400")
        assert _debit(result, "A").status == CertificateStatus.TERMINATED

    def test_quantity_only_certificates(self):
        result = allocate_certificates(
            lines=[_line(quantity="6", rate="80")],
            certificates=[
                _cert("A", quantity="4"),
                _cert("B", quantity="4"),
                _cert("V", value="1000"),
            ],
            applied_at=APPLIED_AT,
        )

        assert _debit(result, "A").quantity_debited == Decimal("4")
        assert _debit(result, "B").quantity_debited == Decimal("2")
        assert _debit(result, "A").value_after is None
        assert _debit(result, "A").value_debited is None
        assert _debit(result, "V").value_after == Decimal("520")
        assert _debit(result, "V").quantity_after is None

    def test_value_only_certificates(self):
        result = allocate_certificates(
            lines=[_line(quantity="3", rate="50")],
            certificates=[
                _cert("Q", quantity="3"),
                _cert("A", value="100"),
                _cert("B", value="100"),
            ],
            applied_at=APPLIED_AT,
        )

        assert _debit(result, "A").value_after == Decimal("0")
        assert _debit(result, "B").value_after == Decimal("50")
        assert _debit(result, "B").quantity_after is None
        assert _debit(result, "Q").quantity_after == Decimal("0")
        assert _debit(result, "Q").status == CertificateStatus.TERMINATED

    def test_insufficient_coverage_debits_nothing(self):
        result = allocate_certificates(
            lines=[_line(quantity="6")],
            certificates=[_cert("A", quantity="2", value="1000")],
            applied_at=APPLIED_AT,
        )

        assert result.debits == ()
        assert len(result.verdicts) == 1
        verdict = result.verdicts[0]
        assert verdict.category == VerdictCategory.CERT
        assert verdict.remediation == Remediation.FLAG_ONLY
        assert result.applied_on("L1") is None
        assert result.all_covered is False

    def test_quantity_only_certificate_does_not_cover_priced_line(self):
        certificates = [_cert("C1", quantity="10")]
        line = _line(quantity="2", rate="50")

        result = allocate_certificates(
            lines=[line], certificates=certificates, applied_at=APPLIED_AT,
        )

        assert result.debits == ()
        assert [v.category for v in result.verdicts] == [VerdictCategory.CERT]
        assert len(validate_certificates([line], certificates)) == 1

    def test_balances_carry_across_lines(self):
        """Two lines never draw on the same capacity."""
        result = allocate_certificates(
            lines=[
                _line("L1", 0, quantity="3", rate="1"),
                _line("L2", 1, quantity="3", rate="1"),
            ],
            certificates=[_cert("A", quantity="5", value="100")],
            applied_at=APPLIED_AT,
        )

        assert [line.covered for line in result.lines] == [True, False]
        assert _debit(result, "A").quantity_after == Decimal("2")
        assert [v.line_key for v in result.verdicts] == ["L2"]

    def test_unused_certificate_is_not_debited(self):
        result = allocate_certificates(
            lines=[_line(quantity="2", rate="10")],
            certificates=[_cert("A", quantity="5", value="500"), _cert("B", quantity="5", value="500")],
            applied_at=APPLIED_AT,
        )

        assert [d.certificate_id for d in result.debits] == ["A"]

    def test_expected_version_is_read_version(self):
        result = allocate_certificates(
            lines=[_line(quantity="1", rate="1")],
            certificates=[_cert("A", quantity="5", value="5", version=3)],
            applied_at=APPLIED_AT,
        )

        assert result.debits[0].expected_version == 3

    def test_inputs_are_not_mutated(self):
        certificates = [_cert("A", quantity="5", value="500")]
        allocate_certificates(
            lines=[_line(quantity="2", rate="10")],
            certificates=certificates,
            applied_at=APPLIED_AT,
        )

        assert certificates[0].remaining_quantity == Decimal("5")
        assert certificates[0].remaining_value == Decimal("500")


class TestValidation:
    def test_lines_checked_independently(self):
        """Screening does not carry balances; each line fits on its own."""
        verdicts = validate_certificates(
            lines=[
                _line("L1", 0, quantity="3", rate="1"),
                _line("L2", 1, quantity="3", rate="1"),
            ],
            certificates=[_cert("A", quantity="5", value="5")],
        )

        assert verdicts == ()

    def test_uncovered_line_flagged(self):
        verdicts = validate_certificates(
            lines=[_line(quantity="6")],
            certificates=[],
        )

        assert len(verdicts) == 1
        assert verdicts[0].reason == "No valid certificate for this item and quantity"
