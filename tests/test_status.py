"""Status machines and derived invoice status."""

import pytest

from sales_core.domain.status import (
    DELIVERY_STATUS,
    INVOICE_STATUS,
    PURCHASE_ORDER_STATUS,
    QUOTATION_STATUS,
    SALES_ORDER_STATUS,
    InvoiceStatus,
    QuotationStatus,
    derive_invoice_status,
    status_after_refund,
    status_value,
)
from sales_core.errors import BusinessRuleError, InvalidStatusTransitionError


class TestStatusMachine:
    def test_initial_states(self):
        assert QUOTATION_STATUS.initial == "draft"
        assert SALES_ORDER_STATUS.initial == "draft"
        assert PURCHASE_ORDER_STATUS.initial == "draft"
        assert DELIVERY_STATUS.initial == "pending"
        assert INVOICE_STATUS.initial == "draft"

    def test_same_state_always_allowed(self):
        for machine in (QUOTATION_STATUS, SALES_ORDER_STATUS, PURCHASE_ORDER_STATUS,
                        DELIVERY_STATUS, INVOICE_STATUS):
            for state in machine.states:
                assert machine.can_transition(state, state)

    def test_quotation_lifecycle(self):
        assert QUOTATION_STATUS.can_transition("draft", "sent")
        assert QUOTATION_STATUS.can_transition("sent", "accepted")
        assert QUOTATION_STATUS.can_transition("accepted", "cancelled")
        assert not QUOTATION_STATUS.can_transition("draft", "accepted")
        assert not QUOTATION_STATUS.can_transition("cancelled", "draft")
        assert QUOTATION_STATUS.is_terminal("cancelled")

    def test_sales_order_lifecycle(self):
        assert SALES_ORDER_STATUS.can_transition("draft", "confirmed")
        assert SALES_ORDER_STATUS.can_transition("confirmed", "processing")
        assert SALES_ORDER_STATUS.can_transition("processing", "completed")
        assert not SALES_ORDER_STATUS.can_transition("completed", "cancelled")
        assert not SALES_ORDER_STATUS.can_transition("draft", "completed")

    def test_invoice_lifecycle(self):
        assert INVOICE_STATUS.can_transition("sent", "overdue")
        assert INVOICE_STATUS.can_transition("overdue", "paid")
        assert INVOICE_STATUS.can_transition("partial", "paid")
        assert not INVOICE_STATUS.can_transition("paid", "sent")
        assert not INVOICE_STATUS.can_transition("draft", "paid")

    def test_enum_members_accepted(self):
        assert QUOTATION_STATUS.can_transition(QuotationStatus.DRAFT, QuotationStatus.SENT)
        assert status_value(InvoiceStatus.OVERDUE) == "overdue"
        assert status_value(None) == ""

    def test_unknown_state(self):
        assert not QUOTATION_STATUS.is_valid("archived")
        assert not QUOTATION_STATUS.can_transition("draft", "archived")
        with pytest.raises(BusinessRuleError):
            QUOTATION_STATUS.check_valid("archived")

    def test_check_transition_raises(self):
        with pytest.raises(InvalidStatusTransitionError) as exc_info:
            DELIVERY_STATUS.check_transition("returned", "shipped")
        assert exc_info.value.current == "returned"
        assert exc_info.value.new == "shipped"


class TestDerivedInvoiceStatus:
    @pytest.mark.parametrize("amount_paid,expected", [
        (0, None),
        (550.0, "partial"),
        (1100.0, "paid"),
        (1200.0, "paid"),
    ])
    def test_derive(self, amount_paid, expected):
        assert derive_invoice_status(amount_paid, 1100.0) == expected

    @pytest.mark.parametrize("amount_paid,expected", [
        (0, "sent"),
        (400.0, "partial"),
        (1100.0, None),
    ])
    def test_after_refund(self, amount_paid, expected):
        assert status_after_refund(amount_paid, 1100.0) == expected
