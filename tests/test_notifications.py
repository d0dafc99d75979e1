from __future__ import annotations

import pytest

from notifications.dispatch import PAYMENT_VERIFIED, notify_order_cancelled, notify_payment_verified
from notifications.models import EmailTemplate, OutboundEmail
from notifications.services import send_templated_email

pytestmark = pytest.mark.django_db


def test_templates_are_seeded(email_templates):
    keys = set(EmailTemplate.objects.values_list("key", flat=True))
    assert {"payment_verified", "payment_rejected", "order_cancelled"} <= keys


def test_send_logs_outbound_and_sends_html(email_templates, mailoutbox):
    result = send_templated_email(
        template_key=PAYMENT_VERIFIED,
        to_email="buyer@example.com",
        context={"order_id": 12, "customer_name": "Nok", "payment_amount": "200.00", "currency": "THB"},
    )

    assert result.ok
    outbound = OutboundEmail.objects.get(id=result.outbound_id)
    assert outbound.status == OutboundEmail.Status.SENT
    assert outbound.sent_at is not None
    assert mailoutbox[0].subject == "Payment received for order #12"
    assert mailoutbox[0].alternatives[0][1] == "text/html"


def test_inactive_template_is_reported(email_templates, mailoutbox):
    EmailTemplate.objects.filter(key=PAYMENT_VERIFIED).update(is_active=False)

    result = send_templated_email(template_key=PAYMENT_VERIFIED, to_email="buyer@example.com")

    assert not result.ok
    assert OutboundEmail.objects.get(id=result.outbound_id).status == OutboundEmail.Status.FAILED
    assert mailoutbox == []


def test_transport_failure_is_returned_not_raised(place_order, product, email_templates, monkeypatch, caplog):
    order = place_order(product)
    payment = order.payments.get()

    def _boom(self, fail_silently=False):
        raise ConnectionRefusedError("smtp down")

    monkeypatch.setattr("django.core.mail.EmailMultiAlternatives.send", _boom)

    result = notify_payment_verified(order=order, payment=payment)

    assert not result.ok
    assert "smtp down" in result.error
    assert OutboundEmail.objects.get(id=result.outbound_id).status == OutboundEmail.Status.FAILED
    assert "Notification not delivered" in caplog.text


def test_unexpected_dispatch_error_is_contained(place_order, product, monkeypatch):
    order = place_order(product)

    def _explode(**kwargs):
        raise RuntimeError("db gone")

    monkeypatch.setattr("notifications.dispatch.send_templated_email", _explode)

    result = notify_order_cancelled(order=order, reason="x")

    assert not result.ok
    assert result.outbound_id is None
    assert result.error == "db gone"


def test_failed_delivery_can_be_retried(email_templates, monkeypatch, mailoutbox):
    from notifications.services import retry_outbound_email

    def _boom(self, fail_silently=False):
        raise ConnectionRefusedError("smtp down")

    with monkeypatch.context() as m:
        m.setattr("django.core.mail.EmailMultiAlternatives.send", _boom)
        failed = send_templated_email(template_key=PAYMENT_VERIFIED, to_email="buyer@example.com", context={"order_id": 3})
    assert not failed.ok

    outbound = OutboundEmail.objects.get(id=failed.outbound_id)
    result = retry_outbound_email(outbound)

    outbound.refresh_from_db()
    assert result.ok
    assert outbound.status == OutboundEmail.Status.SENT
    assert outbound.error_message == ""
    assert mailoutbox[0].subject == "Payment received for order #3"


def test_unrendered_email_is_not_retried(email_templates):
    from notifications.services import retry_outbound_email

    missing = send_templated_email(template_key="no-such-template", to_email="buyer@example.com")

    result = retry_outbound_email(OutboundEmail.objects.get(id=missing.outbound_id))
    assert not result.ok
    assert result.error == "Email cannot be retried"
