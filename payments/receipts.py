from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from django.conf import settings
from django.core.files.base import ContentFile
from django.template.loader import render_to_string
from django.utils import timezone

from accounts.identity import Actor
from checkout.errors import InvalidTransition, NotFound, ReceiptIntegrityError
from checkout.guards import require_actor
from checkout.models import Order, OrderItem

from .models import Payment

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Receipt:
    order_id: int
    number: str
    path: str
    url: str
    subtotal: Decimal
    shipping_fee: Decimal
    total: Decimal
    generated_at: datetime | None


def receipt_number(order: Order) -> str:
    return f"RC-{int(order.id):06d}"


def _file_url(f) -> str:
    try:
        return f.url
    except ValueError:
        return ""


def _receipt_from_order(order: Order) -> Receipt:
    return Receipt(
        order_id=int(order.id),
        number=receipt_number(order),
        path=order.receipt_file.name,
        url=_file_url(order.receipt_file),
        subtotal=Decimal(order.subtotal),
        shipping_fee=Decimal(order.shipping_fee),
        total=Decimal(order.total),
        generated_at=order.receipt_generated_at,
    )


def check_order_totals(order: Order, items: list[OrderItem]) -> Decimal:
    items_total = Decimal("0.00")
    for it in items:
        items_total += Decimal(it.line_subtotal)

    expected_total = items_total + Decimal(order.shipping_fee)
    if items_total != Decimal(order.subtotal) or expected_total != Decimal(order.total):
        logger.error(
            "Order totals do not match its items; receipt not generated",
            extra={
                "order_id": order.id,
                "items_total": str(items_total),
                "order_subtotal": str(order.subtotal),
                "order_total": str(order.total),
            },
        )
        raise ReceiptIntegrityError(f"Order {order.id} totals do not match its items")
    return items_total


def render_receipt_html(*, order: Order, items: list[OrderItem], payment: Payment) -> str:
    """Render the receipt document. Output depends only on its inputs."""

    customer = order.customer
    verified_by = ""
    if payment.verified_by_id and payment.verified_by is not None:
        verified_by = payment.verified_by.get_full_name() or payment.verified_by.email

    context = {
        "site_name": getattr(settings, "SITE_NAME", ""),
        "receipt_number": receipt_number(order),
        "order_id": order.id,
        "currency": order.currency,
        "customer_name": order.shipping_full_name or customer.full_name or customer.email,
        "customer_email": order.contact_email or customer.email,
        "shipping_line1": order.shipping_line1,
        "shipping_city": order.shipping_city,
        "shipping_postal_code": order.shipping_postal_code,
        "shipping_phone": order.shipping_phone,
        "items": [
            {
                "name": it.product_name,
                "quantity": it.quantity,
                "unit_price": it.unit_price,
                "line_subtotal": it.line_subtotal,
            }
            for it in items
        ],
        "subtotal": order.subtotal,
        "shipping_fee": order.shipping_fee,
        "total": order.total,
        "payment_id": payment.id,
        "payment_amount": payment.amount,
        "verified_at": payment.verified_at,
        "verified_by": verified_by,
        "ordered_at": order.created_at,
    }
    return render_to_string("payments/receipt.html", context)


def generate_receipt(order: Order, *, payment: Payment | None = None, force: bool = False) -> Receipt:
    """Build and store the receipt for a verified payment.

    An already stored receipt is returned as is unless ``force`` is set.
    """

    if order.receipt_file and not force:
        return _receipt_from_order(order)

    if payment is None:
        payment = (
            order.payments.select_related("verified_by")
            .filter(status=Payment.Status.VERIFIED)
            .order_by("-verified_at", "-id")
            .first()
        )
    if payment is None or payment.status != Payment.Status.VERIFIED:
        raise InvalidTransition("Order has no verified payment")

    items = list(order.items.all().order_by("id"))
    check_order_totals(order, items)

    html = render_receipt_html(order=order, items=items, payment=payment)

    if order.receipt_file:
        order.receipt_file.delete(save=False)
    order.receipt_file.save(
        f"receipt_order_{order.id}.html",
        ContentFile(html.encode("utf-8")),
        save=False,
    )
    order.receipt_generated_at = timezone.now()
    order.save(update_fields=["receipt_file", "receipt_generated_at", "updated_at"])

    logger.info("Receipt generated", extra={"order_id": order.id, "receipt": order.receipt_file.name})
    return _receipt_from_order(order)


def get_receipt(*, order_id: int, actor: Actor | None) -> Receipt:
    actor = require_actor(actor)

    order = Order.objects.select_related("customer").filter(id=int(order_id)).first()
    if order is None:
        raise NotFound("Order not found")
    if not actor.is_staff and order.customer.user_id != actor.user_id:
        raise NotFound("Order not found")
    if not order.receipt_file:
        raise NotFound("Receipt is not available yet")
    return _receipt_from_order(order)
