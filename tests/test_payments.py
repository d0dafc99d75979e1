from __future__ import annotations

import logging
from decimal import Decimal

import pytest
from django.core.files.storage import default_storage
from django.core.management import call_command

from checkout.errors import AuthRequired, InvalidTransition, NotFound, PermissionDenied
from checkout.models import Order
from notifications.models import EmailTemplate, OutboundEmail
from payments.models import Payment
from payments.receipts import generate_receipt, get_receipt, render_receipt_html
from payments.services import reject_payment, submit_payment_proof, verify_payment

pytestmark = pytest.mark.django_db


def _receipt_text(order: Order) -> str:
    order.refresh_from_db()
    with order.receipt_file.open("rb") as fh:
        return fh.read().decode("utf-8")


def test_verify_marks_paid_and_issues_receipt(place_order, product, staff, email_templates, mailoutbox):
    order = place_order(product, qty=2)
    payment = order.payments.get()

    result = verify_payment(payment_id=payment.id, staff=staff)

    payment.refresh_from_db()
    order.refresh_from_db()
    assert payment.status == Payment.Status.VERIFIED
    assert payment.verified_by_id == staff.user_id
    assert payment.verified_at is not None
    assert order.payment_status == Order.PaymentStatus.PAID
    assert result.warnings == []

    assert result.receipt is not None
    assert result.receipt.total == Decimal("200.00")
    assert result.receipt.number == f"RC-{order.id:06d}"
    html = _receipt_text(order)
    assert "200.00" in html
    assert result.receipt.number in html

    assert len(mailoutbox) == 1
    assert mailoutbox[0].to == ["buyer@example.com"]
    assert f"#{order.id}" in mailoutbox[0].subject
    assert OutboundEmail.objects.filter(order=order, template_key="payment_verified", status="sent").count() == 1


def test_second_verify_is_rejected_without_side_effects(place_order, product, staff, email_templates, mailoutbox):
    order = place_order(product)
    payment = order.payments.get()
    verify_payment(payment_id=payment.id, staff=staff)
    order.refresh_from_db()
    first_receipt = (order.receipt_file.name, order.receipt_generated_at)

    with pytest.raises(InvalidTransition):
        verify_payment(payment_id=payment.id, staff=staff)

    order.refresh_from_db()
    assert (order.receipt_file.name, order.receipt_generated_at) == first_receipt
    assert len(mailoutbox) == 1


def test_verify_requires_staff(place_order, product, customer):
    payment = place_order(product).payments.get()

    with pytest.raises(AuthRequired):
        verify_payment(payment_id=payment.id, staff=None)
    with pytest.raises(PermissionDenied):
        verify_payment(payment_id=payment.id, staff=customer)
    with pytest.raises(NotFound):
        verify_payment(payment_id=987654, staff=_as_staff(customer))

    payment.refresh_from_db()
    assert payment.status == Payment.Status.PENDING


def _as_staff(actor):
    from dataclasses import replace

    return replace(actor, is_staff=True)


def test_verify_refuses_cancelled_order(place_order, product, staff):
    order = place_order(product)
    Order.objects.filter(id=order.id).update(order_status=Order.Status.CANCELLED)

    with pytest.raises(InvalidTransition):
        verify_payment(payment_id=order.payments.get().id, staff=staff)


def test_verify_refuses_amount_mismatch(place_order, product, staff):
    order = place_order(product)
    Payment.objects.filter(order=order).update(amount=Decimal("1.00"))

    with pytest.raises(InvalidTransition):
        verify_payment(payment_id=order.payments.get().id, staff=staff)


def test_verify_can_leave_order_unpaid(place_order, product, staff, settings):
    settings.PAYMENT_VERIFY_MARKS_ORDER_PAID = False
    order = place_order(product)

    verify_payment(payment_id=order.payments.get().id, staff=staff)

    order.refresh_from_db()
    assert order.payment_status == Order.PaymentStatus.PENDING


def test_notification_failure_does_not_undo_verification(place_order, product, staff, mailoutbox):
    EmailTemplate.objects.all().delete()
    order = place_order(product)
    payment = order.payments.get()

    result = verify_payment(payment_id=payment.id, staff=staff)

    payment.refresh_from_db()
    assert payment.status == Payment.Status.VERIFIED
    assert result.notification is not None and not result.notification.ok
    assert any("not notified" in w for w in result.warnings)
    assert mailoutbox == []
    assert OutboundEmail.objects.get(order=order).status == OutboundEmail.Status.FAILED


def test_integrity_mismatch_blocks_receipt_only(place_order, product, staff, email_templates, caplog):
    order = place_order(product)
    Order.objects.filter(id=order.id).update(subtotal=Decimal("150.00"))

    with caplog.at_level(logging.ERROR, logger="payments.receipts"):
        result = verify_payment(payment_id=order.payments.get().id, staff=staff)

    order.refresh_from_db()
    assert order.payment_status == Order.PaymentStatus.PAID
    assert result.receipt is None
    assert not order.receipt_file
    assert any("Receipt not generated" in w for w in result.warnings)
    assert "totals do not match" in caplog.text


def test_receipt_is_reused_unless_forced(place_order, product, staff, email_templates):
    order = place_order(product)
    verify_payment(payment_id=order.payments.get().id, staff=staff)
    order.refresh_from_db()

    again = generate_receipt(order)
    assert again.path == order.receipt_file.name
    assert again.generated_at == order.receipt_generated_at

    forced = generate_receipt(order, force=True)
    assert forced.generated_at >= again.generated_at
    assert default_storage.exists(forced.path)


def test_receipt_rendering_is_deterministic(place_order, product, staff):
    order = place_order(product)
    payment = order.payments.get()
    verify_payment(payment_id=payment.id, staff=staff)
    payment.refresh_from_db()

    items = list(order.items.all())
    assert render_receipt_html(order=order, items=items, payment=payment) == render_receipt_html(
        order=order, items=items, payment=payment)


def test_receipt_needs_verified_payment(place_order, product, customer):
    order = place_order(product)

    with pytest.raises(InvalidTransition):
        generate_receipt(order)
    with pytest.raises(NotFound):
        get_receipt(order_id=order.id, actor=customer)


def test_receipt_access(place_order, product, customer, other_customer, staff):
    order = place_order(product)
    verify_payment(payment_id=order.payments.get().id, staff=staff)

    assert get_receipt(order_id=order.id, actor=customer).order_id == order.id
    assert get_receipt(order_id=order.id, actor=staff).order_id == order.id
    with pytest.raises(NotFound):
        get_receipt(order_id=order.id, actor=other_customer)


def test_reject_then_resubmit(place_order, product, customer, staff, make_proof, email_templates, mailoutbox):
    order = place_order(product)
    first = order.payments.get()

    result = reject_payment(payment_id=first.id, staff=staff, reason="Slip is unreadable")

    first.refresh_from_db()
    assert first.status == Payment.Status.FAILED
    assert first.rejected_by_id == staff.user_id
    assert first.rejection_reason == "Slip is unreadable"
    assert result.notification.ok
    assert "Slip is unreadable" in mailoutbox[0].body

    second = submit_payment_proof(order_id=order.id, actor=customer, proof_file=make_proof())
    assert second.status == Payment.Status.PENDING
    assert second.amount == order.total
    assert order.payments.count() == 2

    with pytest.raises(InvalidTransition):
        reject_payment(payment_id=first.id, staff=staff)


def test_only_one_pending_payment_per_order(place_order, product, customer, make_proof, monkeypatch):
    import payments.services as services

    order = place_order(product)
    stored: list[str] = []
    original = services.save_payment_proof

    def _save(upload):
        name = original(upload)
        stored.append(name)
        return name

    monkeypatch.setattr(services, "save_payment_proof", _save)

    with pytest.raises(InvalidTransition):
        submit_payment_proof(order_id=order.id, actor=customer, proof_file=make_proof())

    assert order.payments.count() == 1
    assert len(stored) == 1
    assert not default_storage.exists(stored[0])


def test_resubmit_rules(place_order, product, customer, other_customer, staff, make_proof):
    order = place_order(product)

    with pytest.raises(NotFound):
        submit_payment_proof(order_id=order.id, actor=other_customer, proof_file=make_proof())

    verify_payment(payment_id=order.payments.get().id, staff=staff)
    with pytest.raises(InvalidTransition):
        submit_payment_proof(order_id=order.id, actor=customer, proof_file=make_proof())


def test_regenerate_receipt_command(place_order, product, staff, email_templates, mailoutbox, capsys):
    order = place_order(product)
    verify_payment(payment_id=order.payments.get().id, staff=staff)

    call_command("regenerate_receipt", str(order.id), "--resend")

    out = capsys.readouterr().out
    assert f"RC-{order.id:06d}" in out
    assert "Email sent" in out
    assert len(mailoutbox) == 2
