# Overview: Pytest coverage for the refund calculator.

"""
Refund tests.

The refunded total never exceeds the amount paid and always equals the sum
of refund records; a rejected refund changes nothing.
"""

import pytest

from storefront.errors import InvalidRefundAmount, RefundNotAllowed, ValidationError
from storefront.models import Order, RefundRecord
from storefront.services import lifecycle_service
from storefront.services.booking_service import TransactionalBookingBuilder
from storefront.services.order_service import TransactionalOrderBuilder
from storefront.services.refund_service import can_be_refunded, process_refund, remaining_refundable

from conftest import booking_payload, order_payload


@pytest.fixture
def delivered_order(db_session, store, product, cheap_product):
    """2700 order (1000x2 + 500x1 + 200 shipping), paid and delivered."""
    data = order_payload(
        (product.id, 2), (cheap_product.id, 1),
        delivery={"method": "delivery", "fee_cents": 200},
    )
    order = TransactionalOrderBuilder().create_order(store, data)
    lifecycle_service.update_payment_status(order, "completed")
    return lifecycle_service.update_status(order, "delivered")


class TestProcessRefund:
    def test_full_refund(self, delivered_order, notifier):
        result = process_refund(delivered_order, 2700, reason="Damaged", actor="Front desk")

        order = result.document
        assert result.fully_refunded is True
        assert result.remaining_cents == 0
        assert order.status == "refunded"
        assert order.payment_status == "refunded"
        assert order.payment_refunded_cents == 2700
        assert order.latest_timeline_entry.status == "refunded"
        assert order.latest_timeline_entry.note == "Refund processed: NGN 27.00 - Damaged"
        assert result.refund.processed_by == "Front desk"
        assert result.refund.method == "original"
        assert notifier.events == ["refund_confirmation"]

    def test_over_refund_changes_nothing(self, db_session, delivered_order):
        with pytest.raises(InvalidRefundAmount) as exc_info:
            process_refund(delivered_order, 3000)

        order = db_session.get(Order, delivered_order.id)
        assert exc_info.value.details["remaining_cents"] == 2700
        assert order.status == "delivered"
        assert order.payment_status == "completed"
        assert order.payment_refunded_cents == 0
        assert db_session.query(RefundRecord).count() == 0

    def test_partial_then_remainder(self, delivered_order):
        first = process_refund(delivered_order, 1000)
        assert first.document.status == "partially_refunded"
        assert first.document.payment_status == "partially_refunded"
        assert first.remaining_cents == 1700

        second = process_refund(first.document, 1700)
        order = second.document
        assert order.status == "refunded"
        assert order.payment_refunded_cents == sum(r.amount_cents for r in order.refunds) == 2700

    def test_nothing_left_to_refund(self, delivered_order):
        process_refund(delivered_order, 2700)
        with pytest.raises(RefundNotAllowed):
            process_refund(delivered_order, 1)

    @pytest.mark.parametrize("amount", [0, -100])
    def test_non_positive_amount(self, delivered_order, amount):
        with pytest.raises(InvalidRefundAmount):
            process_refund(delivered_order, amount)

    def test_non_integer_amount(self, delivered_order):
        with pytest.raises(ValidationError):
            process_refund(delivered_order, "12.50")

    def test_pending_order_not_eligible(self, db_session, store, product):
        order = TransactionalOrderBuilder().create_order(store, order_payload((product.id, 1)))
        assert can_be_refunded(order) is False

        with pytest.raises(RefundNotAllowed):
            process_refund(order, 500)

    def test_unpaid_delivered_order_not_eligible(self, db_session, store, product):
        order = TransactionalOrderBuilder().create_order(store, order_payload((product.id, 1)))
        lifecycle_service.update_status(order, "delivered")
        with pytest.raises(RefundNotAllowed):
            process_refund(order, 500)

    def test_cancelled_booking_refund(self, db_session, store, slot):
        booking = TransactionalBookingBuilder().create_booking(store, booking_payload(slot.id))
        lifecycle_service.update_payment_status(booking, "completed")
        lifecycle_service.cancel_booking(booking, reason="Weather")

        result = process_refund(booking, 2000)

        assert result.document.status == "partially_refunded"
        assert remaining_refundable(result.document) == 3000
