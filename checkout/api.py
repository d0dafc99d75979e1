from __future__ import annotations

import logging
from decimal import Decimal

from django.conf import settings
from ninja import File, Form, Router
from ninja.files import UploadedFile

from accounts.auth import JWTAuth, user_from_request
from accounts.identity import actor_from_user

from .cart import CartLine, can_increment, cart_subtotal, merge_cart_lines, parse_cart_lines, resolve_cart
from .errors import NotFound, OrderValidationError, StockConflict
from .models import Order
from .schemas import (
    CancelIn,
    CartItemAddIn,
    CartItemOut,
    CartItemUpdateIn,
    CartOut,
    CheckoutIn,
    CheckoutOut,
    OrderItemOut,
    OrderOut,
    PaymentOut,
    ReceiptOut,
)
from .services import ShippingInfo, checkout, get_customer_order, list_customer_orders, shipping_fee_for
from .status import cancel_order

router = Router(tags=["checkout"])

logger = logging.getLogger(__name__)

_auth = JWTAuth()

SESSION_CART_KEY = "cart"


def _file_url(f) -> str:
    if not f:
        return ""
    try:
        return f.url
    except ValueError:
        return ""


def _actor(request):
    return actor_from_user(request.auth)


def _optional_actor(request):
    return actor_from_user(user_from_request(request))


def _session_lines(request) -> list[CartLine]:
    raw = request.session.get(SESSION_CART_KEY) or []
    try:
        return merge_cart_lines(parse_cart_lines(raw))
    except OrderValidationError:
        logger.warning("Dropping malformed session cart")
        return []


def _store_lines(request, lines: list[CartLine]) -> None:
    request.session[SESSION_CART_KEY] = [
        {"product_id": ln.product_id, "quantity": ln.quantity}
        for ln in lines
        if ln.quantity > 0
    ]


def _cart_out(lines: list[CartLine]) -> CartOut:
    resolved = resolve_cart(lines)
    subtotal = cart_subtotal(resolved)
    shipping_fee = shipping_fee_for(subtotal) if resolved else Decimal("0.00")
    return CartOut(
        currency=getattr(settings, "CURRENCY", "THB"),
        items=[
            CartItemOut(
                product_id=ln.product_id,
                name=ln.name,
                unit_price=ln.unit_price,
                quantity=ln.quantity,
                stock_available=ln.stock,
                line_subtotal=ln.line_subtotal,
            )
            for ln in resolved
        ],
        subtotal=subtotal,
        shipping_fee=shipping_fee,
        total=subtotal + shipping_fee,
    )


def payment_out(p) -> PaymentOut:
    return PaymentOut(
        id=p.id,
        status=p.status,
        amount=p.amount,
        proof_url=_file_url(p.proof),
        submitted_at=p.submitted_at,
        verified_at=p.verified_at,
        rejected_at=p.rejected_at,
        rejection_reason=p.rejection_reason,
    )


def receipt_out(r) -> ReceiptOut:
    return ReceiptOut(
        order_id=r.order_id,
        number=r.number,
        url=r.url,
        subtotal=r.subtotal,
        shipping_fee=r.shipping_fee,
        total=r.total,
        generated_at=r.generated_at,
    )


def order_out(o: Order) -> OrderOut:
    return OrderOut(
        id=o.id,
        created_at=o.created_at,
        order_status=o.order_status,
        order_status_label=o.get_order_status_display(),
        payment_status=o.payment_status,
        payment_status_label=o.get_payment_status_display(),
        cancellation_label=o.cancellation_label,
        cancel_reason=o.cancel_reason,
        currency=o.currency,
        subtotal=o.subtotal,
        shipping_fee=o.shipping_fee,
        total=o.total,
        customer_email=o.contact_email or o.customer.email,
        shipping_full_name=o.shipping_full_name,
        shipping_line1=o.shipping_line1,
        shipping_city=o.shipping_city,
        shipping_postal_code=o.shipping_postal_code,
        shipping_phone=o.shipping_phone,
        note=o.note,
        receipt_url=_file_url(o.receipt_file),
        items=[
            OrderItemOut(
                id=it.id,
                product_id=it.product_id,
                product_name=it.product_name,
                quantity=it.quantity,
                unit_price=it.unit_price,
                line_subtotal=it.line_subtotal,
            )
            for it in o.items.all()
        ],
        payments=[payment_out(p) for p in o.payments.all()],
    )


@router.get("/cart", response=CartOut)
def get_cart(request):
    return _cart_out(_session_lines(request))


@router.post("/cart/items", response=CartOut)
def add_cart_item(request, payload: CartItemAddIn):
    if payload.quantity < 1:
        raise OrderValidationError("Quantity must be at least 1", fields=["quantity"])

    lines = _session_lines(request)
    current = next((ln.quantity for ln in lines if ln.product_id == payload.product_id), 0)

    decision = can_increment(product_id=payload.product_id, current_cart_qty=current + payload.quantity - 1)
    if not decision.allowed:
        if decision.reason == "product not found":
            raise NotFound("Product not found")
        raise StockConflict([payload.product_id], "Out of stock")

    lines = merge_cart_lines([*lines, CartLine(product_id=payload.product_id, quantity=payload.quantity)])
    _store_lines(request, lines)
    return _cart_out(lines)


@router.post("/cart/items/{product_id}/update", response=CartOut)
def update_cart_item(request, product_id: int, payload: CartItemUpdateIn):
    action = (payload.action or "").strip().lower()
    if action not in {"plus", "minus"}:
        raise OrderValidationError("Action must be plus or minus", fields=["action"])

    lines = _session_lines(request)
    current = next((ln.quantity for ln in lines if ln.product_id == product_id), 0)
    if not current:
        raise NotFound("Product is not in the cart")

    if action == "plus":
        decision = can_increment(product_id=product_id, current_cart_qty=current)
        if not decision.allowed:
            raise StockConflict([product_id], "Out of stock")
        new_qty = current + 1
    else:
        new_qty = current - 1

    lines = [
        CartLine(product_id=ln.product_id, quantity=new_qty) if ln.product_id == product_id else ln
        for ln in lines
    ]
    lines = merge_cart_lines(lines)
    _store_lines(request, lines)
    return _cart_out(lines)


@router.delete("/cart/items/{product_id}", response=CartOut)
def delete_cart_item(request, product_id: int):
    lines = [ln for ln in _session_lines(request) if ln.product_id != product_id]
    _store_lines(request, lines)
    return _cart_out(lines)


@router.post("/checkout", response={200: CheckoutOut, 204: None})
def checkout_cart(request, payload: Form[CheckoutIn], proof: UploadedFile | None = File(None)):
    result = checkout(
        actor=_optional_actor(request),
        cart_lines=request.session.get(SESSION_CART_KEY) or [],
        shipping=ShippingInfo(
            full_name=payload.full_name,
            line1=payload.line1,
            phone=payload.phone,
            email=payload.email or "",
            city=payload.city or "",
            postal_code=payload.postal_code or "",
            note=payload.note or "",
        ),
        proof_file=proof,
    )
    if result is None:
        return 204, None

    request.session[SESSION_CART_KEY] = []
    return 200, CheckoutOut(order_id=result.order_id, payment_id=result.payment_id, total=result.total)


@router.get("/orders", response=list[OrderOut], auth=_auth)
def list_orders(request):
    return [order_out(o) for o in list_customer_orders(actor=_actor(request))]


@router.get("/orders/{order_id}", response=OrderOut, auth=_auth)
def get_order(request, order_id: int):
    return order_out(get_customer_order(order_id=order_id, actor=_actor(request)))


@router.post("/orders/{order_id}/cancel", response=OrderOut, auth=_auth)
def cancel(request, order_id: int, payload: CancelIn):
    actor = _actor(request)
    cancel_order(order_id=order_id, actor=actor, reason=payload.reason)
    return order_out(get_customer_order(order_id=order_id, actor=actor))


@router.post("/orders/{order_id}/payments", response=PaymentOut, auth=_auth)
def resubmit_payment(request, order_id: int, proof: UploadedFile | None = File(None)):
    from payments.services import submit_payment_proof

    payment = submit_payment_proof(order_id=order_id, actor=_actor(request), proof_file=proof)
    return payment_out(payment)


@router.get("/orders/{order_id}/receipt", response=ReceiptOut, auth=_auth)
def order_receipt(request, order_id: int):
    from payments.receipts import get_receipt

    return receipt_out(get_receipt(order_id=order_id, actor=_actor(request)))
