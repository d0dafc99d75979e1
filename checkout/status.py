from __future__ import annotations

import logging
from dataclasses import dataclass

from django.conf import settings
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from accounts.identity import Actor
from catalog.models import Product
from notifications.services import SendEmailResult

from .errors import InvalidTransition, NotFound, OrderValidationError
from .guards import require_actor, require_staff
from .models import Order

logger = logging.getLogger(__name__)

# Forward-only fulfilment edges; cancellation is handled separately.
ALLOWED_TRANSITIONS: dict[str, set[str]] = {
    Order.Status.PENDING: {Order.Status.CONFIRMED},
    Order.Status.CONFIRMED: {Order.Status.SHIPPED},
    Order.Status.SHIPPED: {Order.Status.DELIVERED},
    Order.Status.DELIVERED: set(),
    Order.Status.CANCELLED: set(),
}


@dataclass
class CancelResult:
    order: Order
    notification: SendEmailResult | None = None


def _restock(order: Order) -> None:
    if not getattr(settings, "RESTOCK_ON_CANCEL", True):
        return
    qty_by_product: dict[int, int] = {}
    for it in order.items.all():
        if it.product_id:
            qty_by_product[it.product_id] = qty_by_product.get(it.product_id, 0) + int(it.quantity)
    for product_id in sorted(qty_by_product):
        Product.objects.filter(id=product_id).update(stock=F("stock") + qty_by_product[product_id])


def cancel_order(*, order_id: int, actor: Actor | None, reason: str | None = None) -> CancelResult:
    """Cancel an order on behalf of its customer or a staff member.

    Customers may cancel their own orders while pending and unpaid. Staff may
    cancel any order that is not already cancelled; the customer is then
    notified after commit.
    """

    actor = require_actor(actor)
    reason = (reason or "").strip()

    with transaction.atomic():
        order = Order.objects.select_for_update().select_related("customer").filter(id=int(order_id)).first()
        if order is None:
            raise NotFound("Order not found")

        if actor.is_staff:
            if order.order_status == Order.Status.CANCELLED:
                raise InvalidTransition("This order cannot be cancelled")
            order.cancelled_by_actor = Order.CancelledBy.STAFF
            order.cancelled_by_id = actor.user_id
        else:
            if order.customer.user_id != actor.user_id:
                raise NotFound("Order not found")
            if order.order_status != Order.Status.PENDING or order.payment_status == Order.PaymentStatus.PAID:
                raise InvalidTransition("This order cannot be cancelled")
            order.cancelled_by_actor = Order.CancelledBy.CUSTOMER
            order.cancelled_by = None

        previous_status = order.order_status
        order.order_status = Order.Status.CANCELLED
        order.cancel_reason = reason
        order.cancelled_at = timezone.now()
        order.save(update_fields=[
            "order_status",
            "cancelled_by_actor",
            "cancelled_by",
            "cancel_reason",
            "cancelled_at",
            "updated_at",
        ])
        # Shipped goods have left the shop.
        if previous_status not in (Order.Status.SHIPPED, Order.Status.DELIVERED):
            _restock(order)

    logger.info(
        "Order cancelled",
        extra={
            "order_id": order.id,
            "cancelled_by_actor": order.cancelled_by_actor,
            "user_id": actor.user_id,
        },
    )

    order = Order.objects.select_related("customer", "cancelled_by").get(id=order.id)
    notification = None
    if actor.is_staff:
        from notifications.dispatch import notify_order_cancelled

        notification = notify_order_cancelled(order=order, reason=reason)
    return CancelResult(order=order, notification=notification)


def update_order_status(*, order_id: int, new_status: str, staff: Actor | None) -> Order:
    staff = require_staff(staff)

    new_status = (new_status or "").strip().lower()
    if new_status not in Order.Status.values:
        raise OrderValidationError("Unknown order status", fields=["status"])
    if new_status == Order.Status.CANCELLED:
        return cancel_order(order_id=order_id, actor=staff).order

    with transaction.atomic():
        order = Order.objects.select_for_update().filter(id=int(order_id)).first()
        if order is None:
            raise NotFound("Order not found")

        current = order.order_status
        if new_status not in ALLOWED_TRANSITIONS.get(current, set()):
            raise InvalidTransition(f"Cannot move order from {current} to {new_status}")

        order.order_status = new_status
        order.save(update_fields=["order_status", "updated_at"])

    logger.info(
        "Order status changed",
        extra={"order_id": order.id, "from_status": current, "to_status": new_status, "staff_id": staff.user_id},
    )
    return order
