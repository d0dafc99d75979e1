from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal

from django.conf import settings
from django.db import DatabaseError, IntegrityError, transaction
from django.utils import timezone

from accounts.identity import Actor
from checkout.errors import (
    CheckoutError,
    InvalidTransition,
    NotFound,
    StorageFailure,
)
from checkout.guards import require_actor, require_staff
from checkout.models import Order
from notifications.dispatch import notify_payment_rejected, notify_payment_verified
from notifications.services import SendEmailResult

from .models import Payment
from .receipts import Receipt, generate_receipt
from .storage import delete_payment_proof, save_payment_proof, validate_payment_proof

logger = logging.getLogger(__name__)


@dataclass
class VerificationResult:
    payment: Payment
    receipt: Receipt | None
    notification: SendEmailResult | None
    warnings: list[str] = field(default_factory=list)


@dataclass
class RejectionResult:
    payment: Payment
    notification: SendEmailResult | None
    warnings: list[str] = field(default_factory=list)


def record_pending_payment(*, order: Order, amount: Decimal, proof_ref: str) -> Payment:
    """Create the pending payment for an order. Runs inside the caller's transaction."""

    if Payment.objects.filter(order=order, status=Payment.Status.PENDING).exists():
        raise InvalidTransition("Order already has a payment awaiting verification")

    try:
        with transaction.atomic():
            return Payment.objects.create(
                order=order,
                amount=Decimal(amount),
                proof=proof_ref or "",
                status=Payment.Status.PENDING,
            )
    except IntegrityError as exc:
        # Partial unique index: another pending attempt won the race.
        raise InvalidTransition("Order already has a payment awaiting verification") from exc


def verify_payment(*, payment_id: int, staff: Actor | None) -> VerificationResult:
    staff = require_staff(staff)

    with transaction.atomic():
        payment = (
            Payment.objects.select_for_update()
            .filter(id=int(payment_id))
            .first()
        )
        if payment is None:
            raise NotFound("Payment not found")
        if payment.status != Payment.Status.PENDING:
            raise InvalidTransition(f"Payment is already {payment.status}")

        order = Order.objects.select_for_update().get(id=payment.order_id)
        if order.order_status == Order.Status.CANCELLED:
            raise InvalidTransition("Order is cancelled")
        if Decimal(payment.amount) != Decimal(order.total):
            raise InvalidTransition("Payment amount does not match the order total")

        payment.status = Payment.Status.VERIFIED
        payment.verified_by_id = staff.user_id
        payment.verified_at = timezone.now()
        payment.save(update_fields=["status", "verified_by", "verified_at", "updated_at"])

        if getattr(settings, "PAYMENT_VERIFY_MARKS_ORDER_PAID", True):
            order.payment_status = Order.PaymentStatus.PAID
            order.save(update_fields=["payment_status", "updated_at"])

    logger.info(
        "Payment verified",
        extra={"payment_id": payment.id, "order_id": order.id, "staff_id": staff.user_id},
    )

    warnings: list[str] = []
    order = Order.objects.select_related("customer").get(id=order.id)
    payment = Payment.objects.select_related("verified_by").get(id=payment.id)

    receipt = None
    try:
        receipt = generate_receipt(order, payment=payment)
    except CheckoutError as exc:
        warnings.append(f"Receipt not generated: {exc}")
    except Exception:
        logger.exception("Receipt generation failed", extra={"order_id": order.id})
        warnings.append("Receipt not generated")

    notification = notify_payment_verified(order=order, payment=payment, receipt=receipt)
    if not notification.ok:
        warnings.append(f"Customer was not notified: {notification.error}")

    return VerificationResult(payment=payment, receipt=receipt, notification=notification, warnings=warnings)


def reject_payment(*, payment_id: int, staff: Actor | None, reason: str = "") -> RejectionResult:
    staff = require_staff(staff)
    reason = (reason or "").strip()

    with transaction.atomic():
        payment = Payment.objects.select_for_update().filter(id=int(payment_id)).first()
        if payment is None:
            raise NotFound("Payment not found")
        if payment.status != Payment.Status.PENDING:
            raise InvalidTransition(f"Payment is already {payment.status}")

        payment.status = Payment.Status.FAILED
        payment.rejected_by_id = staff.user_id
        payment.rejected_at = timezone.now()
        payment.rejection_reason = reason
        payment.save(update_fields=["status", "rejected_by", "rejected_at", "rejection_reason", "updated_at"])

    logger.info(
        "Payment rejected",
        extra={"payment_id": payment.id, "order_id": payment.order_id, "staff_id": staff.user_id},
    )

    order = Order.objects.select_related("customer").get(id=payment.order_id)
    warnings: list[str] = []
    notification = notify_payment_rejected(order=order, payment=payment, reason=reason)
    if not notification.ok:
        warnings.append(f"Customer was not notified: {notification.error}")
    return RejectionResult(payment=payment, notification=notification, warnings=warnings)


def submit_payment_proof(*, order_id: int, actor: Actor | None, proof_file) -> Payment:
    """Attach a new proof of payment to an unpaid order (e.g. after a rejection)."""

    actor = require_actor(actor)
    validate_payment_proof(proof_file)

    order = Order.objects.select_related("customer").filter(id=int(order_id)).first()
    if order is None or order.customer.user_id != actor.user_id:
        raise NotFound("Order not found")

    proof_ref = save_payment_proof(proof_file)
    try:
        with transaction.atomic():
            order = Order.objects.select_for_update().get(id=order.id)
            if order.order_status == Order.Status.CANCELLED:
                raise InvalidTransition("Order is cancelled")
            if order.payment_status == Order.PaymentStatus.PAID:
                raise InvalidTransition("Order is already paid")
            payment = record_pending_payment(order=order, amount=order.total, proof_ref=proof_ref)
    except DatabaseError as exc:
        delete_payment_proof(proof_ref)
        logger.exception("Failed to record payment proof", extra={"order_id": order.id})
        raise StorageFailure("Could not save the payment, please try again") from exc
    except Exception:
        delete_payment_proof(proof_ref)
        raise

    logger.info("Payment proof submitted", extra={"payment_id": payment.id, "order_id": order.id})
    return payment
