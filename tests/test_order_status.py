from __future__ import annotations

import pytest

from checkout.dashboard import dashboard_summary
from checkout.errors import InvalidTransition, NotFound, OrderValidationError, PermissionDenied
from checkout.models import Order
from checkout.status import cancel_order, update_order_status
from payments.models import Payment
from payments.services import verify_payment

pytestmark = pytest.mark.django_db


def test_customer_cancels_pending_order(place_order, product, customer, mailoutbox):
    order = place_order(product, qty=2)

    result = cancel_order(order_id=order.id, actor=customer, reason="Changed my mind")

    order.refresh_from_db()
    assert order.order_status == Order.Status.CANCELLED
    assert order.cancelled_by_actor == Order.CancelledBy.CUSTOMER
    assert order.cancelled_by_id is None
    assert order.cancel_reason == "Changed my mind"
    assert order.cancellation_label == "Cancelled by customer"
    assert result.notification is None
    assert mailoutbox == []

    product.refresh_from_db()
    assert product.stock == 5
    assert order.items.count() == 1
    assert order.payments.get().status == Payment.Status.PENDING


def test_customer_cannot_cancel_confirmed_order(place_order, product, customer, staff):
    order = place_order(product)
    update_order_status(order_id=order.id, new_status="confirmed", staff=staff)

    with pytest.raises(InvalidTransition, match="cannot be cancelled"):
        cancel_order(order_id=order.id, actor=customer)

    order.refresh_from_db()
    assert order.order_status == Order.Status.CONFIRMED


def test_customer_cannot_cancel_paid_order(place_order, product, customer, staff):
    order = place_order(product, qty=2)
    verify_payment(payment_id=order.payments.get().id, staff=staff)
    order.refresh_from_db()
    assert (order.order_status, order.payment_status) == (Order.Status.PENDING, Order.PaymentStatus.PAID)

    with pytest.raises(InvalidTransition, match="cannot be cancelled"):
        cancel_order(order_id=order.id, actor=customer)

    order.refresh_from_db()
    assert order.order_status == Order.Status.PENDING
    product.refresh_from_db()
    assert product.stock == 3


def test_cancelling_delivered_order_keeps_stock(place_order, product, staff):
    order = place_order(product, qty=2)
    for target in ("confirmed", "shipped", "delivered"):
        update_order_status(order_id=order.id, new_status=target, staff=staff)

    cancel_order(order_id=order.id, actor=staff, reason="Lost in transit")

    order.refresh_from_db()
    assert order.order_status == Order.Status.CANCELLED
    product.refresh_from_db()
    assert product.stock == 3


def test_customer_cannot_cancel_someone_elses_order(place_order, product, other_customer):
    order = place_order(product)

    with pytest.raises(NotFound):
        cancel_order(order_id=order.id, actor=other_customer)


def test_staff_cancel_records_staff_and_notifies(place_order, product, staff, email_templates, mailoutbox):
    order = place_order(product)
    update_order_status(order_id=order.id, new_status="confirmed", staff=staff)

    result = cancel_order(order_id=order.id, actor=staff, reason="Out of tea leaves")

    order.refresh_from_db()
    assert order.order_status == Order.Status.CANCELLED
    assert order.cancelled_by_actor == Order.CancelledBy.STAFF
    assert order.cancelled_by_id == staff.user_id
    assert order.cancellation_label == "Cancelled by Somchai Staff"
    assert result.notification.ok
    assert len(mailoutbox) == 1
    assert "Out of tea leaves" in mailoutbox[0].body


def test_cancelled_is_terminal(place_order, product, staff):
    order = place_order(product)
    cancel_order(order_id=order.id, actor=staff)

    with pytest.raises(InvalidTransition):
        cancel_order(order_id=order.id, actor=staff)
    with pytest.raises(InvalidTransition):
        update_order_status(order_id=order.id, new_status="confirmed", staff=staff)


def test_restock_can_be_disabled(place_order, product, customer, settings):
    settings.RESTOCK_ON_CANCEL = False
    order = place_order(product, qty=2)

    cancel_order(order_id=order.id, actor=customer)

    product.refresh_from_db()
    assert product.stock == 3


def test_forward_transitions(place_order, product, staff):
    order = place_order(product)

    for target in ("confirmed", "shipped", "delivered"):
        assert update_order_status(order_id=order.id, new_status=target, staff=staff).order_status == target


@pytest.mark.parametrize("target", ["shipped", "delivered", "pending"])
def test_skipping_or_reversing_is_rejected(place_order, product, staff, target):
    order = place_order(product)

    with pytest.raises(InvalidTransition):
        update_order_status(order_id=order.id, new_status=target, staff=staff)


def test_cancelled_target_goes_through_staff_cancel(place_order, product, staff):
    order = place_order(product)

    updated = update_order_status(order_id=order.id, new_status="cancelled", staff=staff)

    assert updated.order_status == Order.Status.CANCELLED
    assert updated.cancelled_by_actor == Order.CancelledBy.STAFF


def test_status_changes_need_staff_and_known_status(place_order, product, customer, staff):
    order = place_order(product)

    with pytest.raises(PermissionDenied):
        update_order_status(order_id=order.id, new_status="confirmed", staff=customer)
    with pytest.raises(OrderValidationError):
        update_order_status(order_id=order.id, new_status="teleported", staff=staff)
    with pytest.raises(NotFound):
        update_order_status(order_id=order.id + 1000, new_status="confirmed", staff=staff)


def test_dashboard_summary(place_order, make_product, staff, customer):
    from catalog.models import Product

    tea = make_product(price="100.00", stock=10)
    make_product(name="Retired", status=Product.Status.INACTIVE)

    paid = place_order(tea, qty=2)
    verify_payment(payment_id=paid.payments.get().id, staff=staff)
    place_order(tea, qty=1)
    cancelled = place_order(tea, qty=1)
    cancel_order(order_id=cancelled.id, actor=customer)

    summary = dashboard_summary(staff)

    assert summary.orders_total == 3
    assert summary.orders_by_status["pending"] == 2
    assert summary.orders_by_status["cancelled"] == 1
    assert summary.orders_paid == 1
    assert summary.payments_pending == 2
    assert str(summary.revenue_verified) == "200.00"
    assert summary.products_active == 1
    assert summary.products_inactive == 1

    with pytest.raises(PermissionDenied):
        dashboard_summary(customer)
