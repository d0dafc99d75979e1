from __future__ import annotations

from django.conf import settings
from django.db import models


class Payment(models.Model):
    """A proof-of-payment submission for an order.

    An order may collect several attempts over time (e.g. a new upload after a
    rejected one), but only one of them may be pending at once.
    """

    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        VERIFIED = "verified", "Verified"
        FAILED = "failed", "Failed"

    order = models.ForeignKey(
        "checkout.Order", on_delete=models.CASCADE, related_name="payments")
    status = models.CharField(
        max_length=16, choices=Status.choices, default=Status.PENDING)

    amount = models.DecimalField(max_digits=12, decimal_places=2)
    proof = models.FileField(max_length=255, blank=True, default="")

    verified_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="verified_payments",
    )
    verified_at = models.DateTimeField(null=True, blank=True)

    rejected_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="rejected_payments",
    )
    rejected_at = models.DateTimeField(null=True, blank=True)
    rejection_reason = models.TextField(blank=True, default="")

    submitted_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=["status", "-submitted_at"], name="idx_payment_status_submitted"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["order"],
                condition=models.Q(status="pending"),
                name="uniq_pending_payment_per_order",
            ),
        ]
        ordering = ["-submitted_at", "-id"]

    def __str__(self) -> str:
        return f"payment:{self.id} order:{self.order_id} {self.status}"
