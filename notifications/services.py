from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.template import Context, Engine
from django.utils import timezone

from .models import EmailTemplate, OutboundEmail

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SendEmailResult:
    ok: bool
    outbound_id: int | None
    error: str | None = None


def _render_django_template(source: str, context: dict[str, Any]) -> str:
    engine = Engine.get_default()
    template = engine.from_string(source)
    return template.render(Context(context))


def send_templated_email(
    *,
    template_key: str,
    to_email: str,
    context: dict[str, Any] | None = None,
    from_email: str | None = None,
    order_id: int | None = None,
) -> SendEmailResult:
    """Send an email based on a DB-stored template.

    Every attempt is logged as an OutboundEmail row. Delivery problems are
    reported through the result, not raised.
    """

    template = EmailTemplate.objects.filter(key=template_key, is_active=True).first()
    if not template:
        outbound = OutboundEmail.objects.create(
            order_id=order_id,
            to_email=to_email,
            template_key=template_key,
            subject="",
            status=OutboundEmail.Status.FAILED,
            error_message="Template not found or inactive",
        )
        return SendEmailResult(ok=False, outbound_id=outbound.id, error=outbound.error_message)

    resolved_from_email = from_email or (getattr(settings, "DEFAULT_FROM_EMAIL", "") or "").strip() or None

    render_ctx: dict[str, Any] = {
        "site_name": getattr(settings, "SITE_NAME", ""),
        "support_email": resolved_from_email or "",
        **(context or {}),
    }

    try:
        subject = _render_django_template(template.subject, render_ctx).strip()
        body_text = _render_django_template(template.body_text, render_ctx)
        body_html = _render_django_template(
            template.body_html, render_ctx) if template.body_html else ""
    except Exception as exc:
        outbound = OutboundEmail.objects.create(
            order_id=order_id,
            to_email=to_email,
            template_key=template_key,
            subject=template.subject,
            body_text=template.body_text,
            body_html=template.body_html,
            status=OutboundEmail.Status.FAILED,
            error_message=f"Render failed: {exc}",
        )
        return SendEmailResult(ok=False, outbound_id=outbound.id, error=outbound.error_message)

    outbound = OutboundEmail.objects.create(
        order_id=order_id,
        to_email=to_email,
        template_key=template_key,
        subject=subject,
        body_text=body_text,
        body_html=body_html,
        rendered=True,
        status=OutboundEmail.Status.PENDING,
    )
    return deliver_outbound(outbound, from_email=resolved_from_email)


def deliver_outbound(outbound: OutboundEmail, *, from_email: str | None = None) -> SendEmailResult:
    """Send an already rendered OutboundEmail and record the outcome on it."""

    try:
        msg = EmailMultiAlternatives(
            subject=outbound.subject,
            body=outbound.body_text,
            from_email=from_email or (getattr(settings, "DEFAULT_FROM_EMAIL", "") or "").strip() or None,
            to=[outbound.to_email],
        )
        if outbound.body_html:
            msg.attach_alternative(outbound.body_html, "text/html")
        msg.send(fail_silently=False)
    except Exception as exc:
        outbound.status = OutboundEmail.Status.FAILED
        outbound.error_message = str(exc) or exc.__class__.__name__
        outbound.save(update_fields=["status", "error_message"])
        return SendEmailResult(ok=False, outbound_id=outbound.id, error=outbound.error_message)

    outbound.status = OutboundEmail.Status.SENT
    outbound.error_message = ""
    outbound.sent_at = timezone.now()
    outbound.save(update_fields=["status", "error_message", "sent_at"])
    return SendEmailResult(ok=True, outbound_id=outbound.id)


def retry_outbound_email(outbound: OutboundEmail) -> SendEmailResult:
    """Re-send a failed email whose content was rendered before delivery failed."""

    if outbound.status != OutboundEmail.Status.FAILED or not outbound.rendered:
        return SendEmailResult(ok=False, outbound_id=outbound.id, error="Email cannot be retried")

    result = deliver_outbound(outbound)
    logger.info(
        "Outbound email retried",
        extra={"outbound_id": outbound.id, "order_id": outbound.order_id, "ok": result.ok},
    )
    return result
