from __future__ import annotations

from django.core.management.base import BaseCommand, CommandError

from checkout.errors import CheckoutError
from checkout.models import Order
from notifications.dispatch import notify_payment_verified
from payments.models import Payment
from payments.receipts import generate_receipt


class Command(BaseCommand):
    help = "Re-render the receipt of an order with a verified payment (optionally re-send the email)."

    def add_arguments(self, parser):
        parser.add_argument("order_id", type=int)
        parser.add_argument(
            "--resend",
            action="store_true",
            help="Also send the payment verified email again.",
        )

    def handle(self, *args, **options):
        order_id: int = int(options["order_id"])
        order = Order.objects.select_related("customer").filter(id=order_id).first()
        if order is None:
            raise CommandError(f"Order {order_id} not found")

        payment = (
            order.payments.select_related("verified_by")
            .filter(status=Payment.Status.VERIFIED)
            .order_by("-verified_at", "-id")
            .first()
        )
        try:
            receipt = generate_receipt(order, payment=payment, force=True)
        except CheckoutError as e:
            raise CommandError(str(e)) from e

        self.stdout.write(self.style.SUCCESS(f"Receipt {receipt.number} stored at {receipt.path}"))

        if options.get("resend"):
            result = notify_payment_verified(order=order, payment=payment, receipt=receipt)
            if result.ok:
                self.stdout.write(self.style.SUCCESS("Email sent"))
            else:
                self.stdout.write(self.style.WARNING(f"Email not sent: {result.error}"))
