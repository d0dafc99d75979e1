"""Order lifecycle notifications.

Called after the triggering state change has committed. Delivery is best
effort and at most once: failures are logged and returned, never raised.
"""

from __future__ import annotations

import logging
from typing import Any

from .services import SendEmailResult, send_templated_email

logger = logging.getLogger(__name__)

PAYMENT_VERIFIED = "payment_verified"
PAYMENT_REJECTED = "payment_rejected"
ORDER_CANCELLED = "order_cancelled"


def _recipient(order) -> str:
    email = (getattr(order, "contact_email", "") or "").strip()
    if not email and getattr(order, "customer", None) is not None:
        email = (order.customer.email or "").strip()
    return email


def _base_context(order) -> dict[str, Any]:
    return {
        "order_id": order.id,
        "customer_name": order.shipping_full_name or getattr(order.customer, "full_name", ""),
        "currency": order.currency,
        "total": order.total,
        "order_status": order.get_order_status_display(),
        "payment_status": order.get_payment_status_display(),
    }


def _dispatch(*, template_key: str, order, context: dict[str, Any]) -> SendEmailResult:
    to_email = _recipient(order)
    if not to_email:
        logger.warning(
            "Notification skipped: order has no recipient",
            extra={"order_id": order.id, "template_key": template_key},
        )
        return SendEmailResult(ok=False, outbound_id=None, error="No recipient email")

    try:
        result = send_templated_email(
            template_key=template_key,
            to_email=to_email,
            context=context,
            order_id=order.id,
        )
    except Exception as exc:
        logger.exception(
            "Notification dispatch failed",
            extra={"order_id": order.id, "template_key": template_key},
        )
        return SendEmailResult(ok=False, outbound_id=None, error=str(exc) or exc.__class__.__name__)

    if not result.ok:
        logger.warning(
            "Notification not delivered: %s",
            result.error,
            extra={"order_id": order.id, "template_key": template_key, "outbound_id": result.outbound_id},
        )
    return result


def notify_payment_verified(*, order, payment, receipt=None) -> SendEmailResult:
    context = {
        **_base_context(order),
        "payment_id": payment.id,
        "payment_amount": payment.amount,
        "receipt_number": getattr(receipt, "number", ""),
        "receipt_url": getattr(receipt, "url", ""),
    }
    return _dispatch(template_key=PAYMENT_VERIFIED, order=order, context=context)


def notify_payment_rejected(*, order, payment, reason: str = "") -> SendEmailResult:
    context = {
        **_base_context(order),
        "payment_id": payment.id,
        "reason": reason,
    }
    return _dispatch(template_key=PAYMENT_REJECTED, order=order, context=context)


def notify_order_cancelled(*, order, reason: str = "") -> SendEmailResult:
    context = {
        **_base_context(order),
        "reason": reason,
        "cancelled_by": order.cancellation_label,
    }
    return _dispatch(template_key=ORDER_CANCELLED, order=order, context=context)
