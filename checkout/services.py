from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.validators import validate_email
from django.db import DatabaseError, transaction
from django.db.models import F

from accounts.identity import Actor
from accounts.models import Customer
from accounts.services import customer_for_actor, resolve_customer
from catalog.models import Product

from .cart import CartLine, cart_subtotal, merge_cart_lines, parse_cart_lines, resolve_lines
from .errors import AuthRequired, NotFound, OrderValidationError, StockConflict, StorageFailure
from .guards import require_actor, require_staff
from .models import Order, OrderItem

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ShippingInfo:
    full_name: str
    line1: str
    phone: str
    email: str = ""
    city: str = ""
    postal_code: str = ""
    note: str = ""


@dataclass(frozen=True)
class CheckoutResult:
    order_id: int
    payment_id: int
    total: Decimal


def _decimal_setting(name: str, default: str) -> Decimal | None:
    raw = str(getattr(settings, name, default) or "").strip()
    if not raw:
        return None
    try:
        return Decimal(raw).quantize(Decimal("0.01"))
    except InvalidOperation:
        logger.warning("Invalid decimal setting %s=%r", name, raw)
        return None


def shipping_fee_for(subtotal: Decimal) -> Decimal:
    fee = _decimal_setting("SHIPPING_FLAT_FEE", "0.00") or Decimal("0.00")
    threshold = _decimal_setting("FREE_SHIPPING_THRESHOLD", "")
    if threshold is not None and Decimal(subtotal) >= threshold:
        return Decimal("0.00")
    return fee


def validate_shipping(shipping: ShippingInfo, *, actor: Actor | None) -> ShippingInfo:
    cleaned = ShippingInfo(
        full_name=(shipping.full_name or "").strip(),
        line1=(shipping.line1 or "").strip(),
        phone=(shipping.phone or "").strip(),
        email=((shipping.email or "").strip() or (actor.email if actor else "")).lower(),
        city=(shipping.city or "").strip(),
        postal_code=(shipping.postal_code or "").strip(),
        note=(shipping.note or "").strip(),
    )

    missing = [
        name
        for name in ("full_name", "line1", "phone", "email")
        if not getattr(cleaned, name)
    ]
    if missing:
        raise OrderValidationError(
            f"Missing required checkout fields: {', '.join(missing)}", fields=missing)

    try:
        validate_email(cleaned.email)
    except DjangoValidationError:
        raise OrderValidationError("Invalid email", fields=["email"])

    return cleaned


def reserve_at_checkout(lines: list[CartLine]) -> dict[int, Product]:
    """Lock the ordered products and take their quantities out of stock.

    Must run inside the order transaction. Rows are locked in id order so
    concurrent checkouts over the same products queue up instead of
    deadlocking. Lines for products that no longer exist are dropped. Raises
    StockConflict listing every product that cannot be served; nothing is
    decremented in that case.
    """

    ids = sorted({int(ln.product_id) for ln in lines})
    products = {
        p.id: p
        for p in Product.objects.select_for_update().filter(id__in=ids).order_by("id")
    }
    lines = [ln for ln in lines if int(ln.product_id) in products]

    conflicts: list[int] = []
    for ln in lines:
        p = products[int(ln.product_id)]
        if p.status != Product.Status.ACTIVE or int(p.stock) < int(ln.quantity):
            conflicts.append(int(ln.product_id))
    if conflicts:
        raise StockConflict(conflicts)

    for ln in sorted(lines, key=lambda x: int(x.product_id)):
        updated = Product.objects.filter(
            id=int(ln.product_id),
            stock__gte=int(ln.quantity),
        ).update(stock=F("stock") - int(ln.quantity))
        if not updated:
            raise StockConflict([ln.product_id])

    return products


def create_order(*, customer: Customer, lines: list[CartLine], shipping: ShippingInfo) -> Order:
    """Persist an order header and its items from live catalog prices.

    Stock is re-validated and decremented in the same transaction.
    """

    lines = merge_cart_lines(lines)
    if not lines:
        raise OrderValidationError("Cart is empty", fields=["cart"])

    with transaction.atomic():
        products = reserve_at_checkout(lines)
        resolved = resolve_lines(lines, products)
        if not resolved:
            raise OrderValidationError("Cart is empty", fields=["cart"])

        subtotal = cart_subtotal(resolved)
        shipping_fee = shipping_fee_for(subtotal)

        order = Order.objects.create(
            customer=customer,
            currency=getattr(settings, "CURRENCY", "THB"),
            subtotal=subtotal,
            shipping_fee=shipping_fee,
            total=subtotal + shipping_fee,
            shipping_full_name=shipping.full_name,
            shipping_line1=shipping.line1,
            shipping_city=shipping.city,
            shipping_postal_code=shipping.postal_code,
            shipping_phone=shipping.phone,
            contact_email=shipping.email or customer.email,
            note=shipping.note,
        )

        OrderItem.objects.bulk_create([
            OrderItem(
                order=order,
                product_id=ln.product_id,
                product_name=ln.name,
                quantity=ln.quantity,
                unit_price=ln.unit_price,
                line_subtotal=ln.line_subtotal,
            )
            for ln in resolved
        ])

    logger.info(
        "Order created",
        extra={"order_id": order.id, "customer_id": customer.id, "total": str(order.total)},
    )
    return order


def checkout(*, actor: Actor | None, cart_lines, shipping: ShippingInfo, proof_file) -> CheckoutResult | None:
    """Turn a cart snapshot into an order with its first pending payment.

    Returns None for an empty cart (nothing is stored). On any failure the
    order is rolled back and the uploaded proof is removed from storage.
    """

    from payments.services import record_pending_payment
    from payments.storage import delete_payment_proof, save_payment_proof, validate_payment_proof

    lines = merge_cart_lines(parse_cart_lines(cart_lines))
    known = set(
        Product.objects.filter(id__in=[ln.product_id for ln in lines]).values_list("id", flat=True)
    )
    lines = [ln for ln in lines if int(ln.product_id) in known]
    if not lines:
        logger.info("Checkout with an empty cart ignored")
        return None

    if actor is None and not getattr(settings, "ALLOW_GUEST_CHECKOUT", True):
        raise AuthRequired("Login required to check out")

    shipping = validate_shipping(shipping, actor=actor)
    validate_payment_proof(proof_file)

    proof_ref = save_payment_proof(proof_file)
    try:
        with transaction.atomic():
            customer = resolve_customer(
                actor=actor,
                email=shipping.email,
                full_name=shipping.full_name,
                phone=shipping.phone,
            )
            order = create_order(customer=customer, lines=lines, shipping=shipping)
            payment = record_pending_payment(order=order, amount=order.total, proof_ref=proof_ref)
    except DatabaseError as exc:
        delete_payment_proof(proof_ref)
        logger.exception("Checkout failed to commit")
        raise StorageFailure("Could not place the order, please try again") from exc
    except Exception:
        delete_payment_proof(proof_ref)
        raise

    return CheckoutResult(order_id=order.id, payment_id=payment.id, total=order.total)


def _orders_with_details():
    return Order.objects.select_related("customer", "cancelled_by").prefetch_related("items", "payments")


def list_customer_orders(*, actor: Actor | None) -> list[Order]:
    actor = require_actor(actor)
    customer = customer_for_actor(actor)
    if customer is None:
        return []
    return list(_orders_with_details().filter(customer=customer).order_by("-created_at", "-id"))


def get_customer_order(*, order_id: int, actor: Actor | None) -> Order:
    actor = require_actor(actor)
    order = _orders_with_details().filter(id=int(order_id)).first()
    if order is None:
        raise NotFound("Order not found")
    if not actor.is_staff and order.customer.user_id != actor.user_id:
        raise NotFound("Order not found")
    return order


def list_orders(
    *,
    staff: Actor | None,
    order_status: str | None = None,
    payment_status: str | None = None,
    limit: int = 100,
) -> list[Order]:
    require_staff(staff)

    qs = _orders_with_details()
    if order_status:
        if order_status not in Order.Status.values:
            raise OrderValidationError("Unknown order status", fields=["order_status"])
        qs = qs.filter(order_status=order_status)
    if payment_status:
        if payment_status not in Order.PaymentStatus.values:
            raise OrderValidationError("Unknown payment status", fields=["payment_status"])
        qs = qs.filter(payment_status=payment_status)

    limit = max(1, min(int(limit or 100), 500))
    return list(qs.order_by("-created_at", "-id")[:limit])
