"""
End-to-end tests for OrderComplianceEvaluator.

Orders ship to a US address that the fake tax-area service confirms, so
address validation passes unless a test says otherwise.
"""

from dataclasses import replace
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select

from compliance_engines.address import UNVALIDATED_REASON
from compliance_engines.classifier import GPL_REASON
from compliance_engines.mutation import DUPLICATE_PO_REASON
from compliance_kernel.exceptions import AllLinesBlockedError
from compliance_modules.orders.models import (
    OrderLine,
    OrderStatus,
    SalesOrder,
    ShippingAddress,
    SubmitEvent,
)
from compliance_modules.orders.orm import (
    CustomerGPLConfigModel,
    CustomerModel,
    ExportCertificateModel,
    InvoiceModel,
    ItemModel,
    PriceLevelPriceModel,
    RestrictionRuleModel,
)
from compliance_services.evaluation import OrderComplianceEvaluator
from compliance_services.orders import OrderRepository
from compliance_services.tax_area import TaxAreaClient
from compliance_services.violations import ViolationLogService

TAX_FOUND_TX_78701 = """<?xml version="1.0" encoding="UTF-8"?>
<S:Envelope xmlns:S="http://schemas.xmlsoap.org/soap/envelope/">
  <S:Body>
    <VertexEnvelope xmlns="urn:vertexinc:o-series:tps:7:0">
      <TaxAreaResponse>
        <TaxAreaResult>
          <PostalAddress>
            <MainDivision>TX</MainDivision>
            <PostalCode>78701</PostalCode>
          </PostalAddress>
        </TaxAreaResult>
      </TaxAreaResponse>
    </VertexEnvelope>
  </S:Body>
</S:Envelope>"""

ADDRESS = ShippingAddress(
    address1="1 Main St", city="Austin", state="TX", zip_code="78701", country="US",
)


def _line(index, item_id, quantity="4", rate="10"):
    return OrderLine(
        line_key=f"L{index}",
        line_index=index,
        item_id=item_id,
        item_name=f"ITEM-{item_id}",
        quantity=Decimal(quantity),
        rate=Decimal(rate),
    )


def _order(*lines, order_id="SO-1", total="80", po_number=None, **overrides):
    return SalesOrder(
        order_id=order_id,
        customer_id="42",
        order_date=date(2024, 6, 3),
        lines=tuple(lines) or (_line(0, "100"), _line(1, "200")),
        total=Decimal(total),
        po_number=po_number,
        ship_method="FedEx Ground",
        shipping_address=ADDRESS,
        **overrides,
    )


def _seed(session, override="ON", credit_limit="1000", price_level=None):
    session.add(
        CustomerModel(
            customer_id="42",
            credit_limit=Decimal(credit_limit),
            credit_hold_override=override,
            price_level=price_level,
        )
    )
    session.add_all(
        ItemModel(item_id=item_id, item_name=f"ITEM-{item_id}") for item_id in ("100", "200", "300")
    )
    session.flush()


def _rule(session, rule_id, restriction_type, item_id, **scope):
    session.add(
        RestrictionRuleModel(
            rule_id=rule_id, restriction_type=restriction_type, item_id=item_id, **scope,
        )
    )
    session.flush()


@pytest.fixture
def evaluator(db_session, preferences, deterministic_clock, fake_http):
    tax_client = TaxAreaClient(preferences, session=fake_http(200, TAX_FOUND_TX_78701))
    return OrderComplianceEvaluator(
        db_session, preferences, clock=deterministic_clock, tax_client=tax_client,
    )


class TestCredit:
    def test_order_over_remaining_credit_held_on_create(self, db_session, evaluator):
        _seed(db_session, override="AUTO")
        db_session.add(
            InvoiceModel(invoice_id="INV-1", customer_id="42", amount_remaining=Decimal("800"))
        )
        db_session.flush()

        result = evaluator.before_submit(_order(total="300"), SubmitEvent.CREATE)

        assert result.credit.valid is False
        assert result.credit.remaining_credit == Decimal("200.00")
        assert result.order.status == OrderStatus.PENDING_APPROVAL
        assert result.order.invalid_order_reason == "200.00"

    def test_same_order_passes_on_edit(self, db_session, evaluator):
        _seed(db_session, override="AUTO")
        db_session.add(
            InvoiceModel(invoice_id="INV-1", customer_id="42", amount_remaining=Decimal("800"))
        )
        db_session.flush()

        result = evaluator.before_submit(_order(total="300"), SubmitEvent.EDIT)

        assert result.credit.valid is True
        assert result.order.status == OrderStatus.PENDING_FULFILLMENT

    def test_manual_override_forces_valid(self, db_session, evaluator):
        _seed(db_session, override="OFF")

        result = evaluator.before_submit(
            _order(credit_limit_override=True), SubmitEvent.CREATE,
        )

        assert result.credit.valid is True
        assert result.order.status == OrderStatus.PENDING_FULFILLMENT

    def test_inline_edit_runs_credit_only(self, db_session, evaluator):
        _seed(db_session, override="OFF")
        _rule(db_session, "R1", "1", "200", state="TX")

        result = evaluator.before_submit(_order(), SubmitEvent.XEDIT)

        assert result.evaluated is True
        assert result.accumulator is None
        assert result.order.invalid_order_reason == "Customer is On Hold"
        assert len(result.order.lines) == 2

    def test_unknown_customer_skips_credit(self, evaluator, captured_logs):
        result = evaluator.before_submit(_order(), SubmitEvent.CREATE)

        assert result.credit is None
        assert any(r["message"] == "credit_check_skipped" for r in captured_logs())


class TestRestrictions:
    def test_clean_order_unchanged(self, db_session, evaluator, captured_logs):
        _seed(db_session)
        order = _order()

        result = evaluator.before_submit(order, SubmitEvent.CREATE)

        assert result.order == order
        assert result.mutation is None
        assert any(r["message"] == "evaluation_clean" for r in captured_logs())

    def test_jurisdiction_block_removes_line(self, db_session, evaluator):
        _seed(db_session)
        _rule(db_session, "R1", "1", "200", state="TX")

        result = evaluator.before_submit(_order(), SubmitEvent.CREATE)

        assert [line.item_id for line in result.order.lines] == ["100"]
        assert result.order.lines[0].line_index == 0
        assert result.order.status == OrderStatus.PENDING_FULFILLMENT
        assert result.mutation.removed_line_keys == ("L1",)
        logged = ViolationLogService(db_session).for_customer("42")
        assert [row.item_id for row in logged] == ["200"]

    def test_rule_for_other_state_ignored(self, db_session, evaluator):
        _seed(db_session)
        _rule(db_session, "R1", "1", "200", state="CA")

        result = evaluator.before_submit(_order(), SubmitEvent.CREATE)

        assert len(result.order.lines) == 2

    def test_all_lines_blocked(self, db_session, evaluator):
        _seed(db_session)
        _rule(db_session, "R1", "1", "100", country="US")
        _rule(db_session, "R2", "2", "200", customer_id="42")

        with pytest.raises(AllLinesBlockedError) as exc_info:
            evaluator.before_submit(_order(), SubmitEvent.CREATE)

        assert exc_info.value.removed_line_keys == ("L0", "L1")

    def test_override_rule_holds_for_approval(self, db_session, evaluator):
        _seed(db_session)
        _rule(db_session, "R1", "1", "200", state="TX", override=True)

        result = evaluator.before_submit(_order(), SubmitEvent.CREATE)

        assert len(result.order.lines) == 2
        assert result.order.status == OrderStatus.PENDING_APPROVAL
        assert "ITEM-200 - Sale not Permitted in Jurisdiction\n" in result.order.invalid_order_reason
        assert ViolationLogService(db_session).for_customer("42") == []

    def test_gpl_config_assigns_sub_rep(self, db_session, evaluator):
        _seed(db_session)
        db_session.add(
            CustomerGPLConfigModel(customer_id="42", gpl="3", sales_rep="REP-1", sub_rep="SUB-1")
        )
        db_session.flush()
        order = _order(replace(_line(0, "100"), gpl="3"), _line(1, "200"))

        result = evaluator.before_submit(order, SubmitEvent.CREATE)

        assert result.order.lines[0].gpl_sub_rep == "SUB-1"
        assert GPL_REASON not in (result.order.invalid_order_reason or "")

    def test_gpl_without_config_holds_order(self, db_session, evaluator):
        _seed(db_session)
        order = _order(replace(_line(0, "100"), gpl="3"), _line(1, "200"))

        result = evaluator.before_submit(order, SubmitEvent.CREATE)

        assert result.order.lines[0].gpl_sub_rep is None
        assert result.order.status == OrderStatus.PENDING_APPROVAL
        assert GPL_REASON in result.order.invalid_order_reason

    def test_price_variance_stamps_system_price(self, db_session, evaluator):
        _seed(db_session, price_level="WHOLESALE")
        db_session.add(
            PriceLevelPriceModel(item_id="100", price_level="WHOLESALE", unit_price=Decimal("12"))
        )
        db_session.flush()

        result = evaluator.before_submit(_order(), SubmitEvent.CREATE)

        assert result.order.lines[0].system_price == Decimal("12")
        assert result.order.lines[1].system_price is None
        assert result.order.status == OrderStatus.PENDING_APPROVAL

    def test_duplicate_po(self, db_session, evaluator):
        _seed(db_session)
        OrderRepository(db_session).save(_order(po_number="PO-77"))

        result = evaluator.before_submit(
            _order(order_id="SO-2", po_number="PO-77"), SubmitEvent.CREATE,
        )

        assert result.accumulator.is_duplicate is True
        assert result.order.status == OrderStatus.PENDING_APPROVAL
        assert DUPLICATE_PO_REASON in result.order.invalid_order_reason

    def test_not_duplicate_flag_skips_search(self, db_session, evaluator):
        _seed(db_session)
        OrderRepository(db_session).save(_order(po_number="PO-77"))

        result = evaluator.before_submit(
            _order(order_id="SO-2", po_number="PO-77", not_duplicate=True), SubmitEvent.CREATE,
        )

        assert result.accumulator.is_duplicate is False
        assert result.mutation is None

    def test_unvalidated_address_holds_order(
        self, db_session, preferences, deterministic_clock, fake_http,
    ):
        _seed(db_session)
        tax_client = TaxAreaClient(preferences, session=fake_http(500, "down"))
        evaluator = OrderComplianceEvaluator(
            db_session, preferences, clock=deterministic_clock, tax_client=tax_client,
        )

        result = evaluator.before_submit(_order(), SubmitEvent.CREATE)

        assert result.order.status == OrderStatus.PENDING_APPROVAL
        assert result.order.invalid_order_reason == UNVALIDATED_REASON

    def test_dropped_to_boss_cleared_skips_evaluation(self, db_session, evaluator):
        _seed(db_session, override="OFF")
        old = _order(dropped_to_boss=True)
        new = replace(old, dropped_to_boss=False)

        result = evaluator.before_submit(new, SubmitEvent.EDIT, old_order=old)

        assert result.evaluated is False
        assert result.order == new


class TestCertificates:
    def _gate_item_300(self, session, remaining="10"):
        _rule(session, "R1", "3", "300", country="US")
        session.add(
            ExportCertificateModel(
                certificate_id="C-1",
                customer_id="42",
                item_id="300",
                expiration_date=date(2024, 12, 31),
                remaining_quantity=Decimal(remaining),
                remaining_value=Decimal("1000"),
            )
        )
        session.flush()

    def test_covered_line_passes_and_is_debited_after_submit(
        self, db_session, evaluator, deterministic_clock,
    ):
        _seed(db_session)
        self._gate_item_300(db_session)
        order = _order(_line(0, "100"), _line(1, "300"))

        result = evaluator.before_submit(order, SubmitEvent.CREATE)
        assert result.mutation is None

        saved = OrderRepository(db_session).save(result.order)
        outcome = evaluator.after_submit(saved, SubmitEvent.CREATE)

        assert outcome.order.lines[0].cert_applied_on is None
        assert outcome.order.lines[1].cert_applied_on == deterministic_clock.now()
        assert [d.certificate_id for d in outcome.allocation.debits] == ["C-1"]

        db_session.expire_all()
        certificate = db_session.scalars(select(ExportCertificateModel)).one()
        assert certificate.remaining_quantity == Decimal("6")
        assert certificate.version == 1
        assert OrderRepository(db_session).get("SO-1").lines[1].cert_applied_on is not None

    def test_stamped_line_not_debited_again(self, db_session, evaluator):
        _seed(db_session)
        self._gate_item_300(db_session)
        saved = OrderRepository(db_session).save(_order(_line(0, "300")))
        evaluator.after_submit(saved, SubmitEvent.CREATE)
        db_session.expire_all()

        again = evaluator.after_submit(OrderRepository(db_session).get("SO-1"), SubmitEvent.EDIT)

        assert again is None
        db_session.expire_all()
        assert db_session.scalars(select(ExportCertificateModel)).one().remaining_quantity == Decimal("6")

    def test_insufficient_certificate_holds_order(self, db_session, evaluator):
        _seed(db_session)
        self._gate_item_300(db_session, remaining="3")

        result = evaluator.before_submit(_order(_line(0, "300")), SubmitEvent.CREATE)

        assert result.order.status == OrderStatus.PENDING_APPROVAL
        assert result.order.invalid_order_reason == (
            "ITEM-300 - No valid certificate for this item and quantity\n"
        )
        assert len(result.order.lines) == 1

    def test_pending_approval_order_not_allocated(self, db_session, evaluator):
        _seed(db_session)
        self._gate_item_300(db_session)
        held = _order(_line(0, "300"), status=OrderStatus.PENDING_APPROVAL)

        assert evaluator.after_submit(held, SubmitEvent.CREATE) is None
        assert db_session.scalars(select(ExportCertificateModel)).one().version == 0

    def test_inline_edit_not_allocated(self, db_session, evaluator):
        _seed(db_session)
        self._gate_item_300(db_session)

        assert evaluator.after_submit(_order(_line(0, "300")), SubmitEvent.XEDIT) is None
