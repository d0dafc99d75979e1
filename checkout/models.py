from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.db import models


class Order(models.Model):
    class PaymentStatus(models.TextChoices):
        PENDING = "pending", "Pending"
        PAID = "paid", "Paid"

    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        CONFIRMED = "confirmed", "Confirmed"
        SHIPPED = "shipped", "Shipped"
        DELIVERED = "delivered", "Delivered"
        CANCELLED = "cancelled", "Cancelled"

    class CancelledBy(models.TextChoices):
        NONE = "", "-"
        CUSTOMER = "customer", "Customer"
        STAFF = "staff", "Staff"

    customer = models.ForeignKey(
        "accounts.Customer",
        on_delete=models.PROTECT,
        related_name="orders",
    )

    payment_status = models.CharField(
        max_length=16, choices=PaymentStatus.choices, default=PaymentStatus.PENDING)
    order_status = models.CharField(
        max_length=16, choices=Status.choices, default=Status.PENDING)

    currency = models.CharField(max_length=3, default="THB")

    # Totals are written once at creation: total = subtotal + shipping_fee.
    subtotal = models.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal("0.00"))
    shipping_fee = models.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal("0.00"))
    total = models.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal("0.00"))

    # Shipping/contact snapshot
    shipping_full_name = models.CharField(max_length=200)
    shipping_line1 = models.CharField(max_length=255)
    shipping_city = models.CharField(max_length=120, blank=True, default="")
    shipping_postal_code = models.CharField(
        max_length=32, blank=True, default="")
    shipping_phone = models.CharField(max_length=32)
    contact_email = models.EmailField()
    note = models.TextField(blank=True, default="")

    # Cancellation: who (tagged), which staff member, why.
    cancelled_by_actor = models.CharField(
        max_length=16, choices=CancelledBy.choices, blank=True, default=CancelledBy.NONE)
    cancelled_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="cancelled_orders",
    )
    cancel_reason = models.TextField(blank=True, default="")
    cancelled_at = models.DateTimeField(null=True, blank=True)

    # Receipt document (generated after payment verification)
    receipt_file = models.FileField(
        upload_to="receipts/%Y/%m/", null=True, blank=True)
    receipt_generated_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=["customer", "-created_at"], name="idx_order_customer_created"),
            models.Index(fields=["order_status", "-created_at"], name="idx_order_status_created"),
            models.Index(fields=["payment_status", "-created_at"], name="idx_order_payment_created"),
        ]
        ordering = ["-created_at", "-id"]

    def __str__(self) -> str:
        return f"order:{self.id} customer:{self.customer_id} {self.order_status}/{self.payment_status}"

    @property
    def is_cancelled(self) -> bool:
        return self.order_status == self.Status.CANCELLED

    @property
    def cancellation_label(self) -> str:
        if self.order_status != self.Status.CANCELLED:
            return ""
        if self.cancelled_by_actor == self.CancelledBy.STAFF:
            staff = self.cancelled_by
            name = ""
            if staff is not None:
                name = staff.get_full_name() or staff.email
            return f"Cancelled by {name or 'staff'}"
        if self.cancelled_by_actor == self.CancelledBy.CUSTOMER:
            return "Cancelled by customer"
        return "Cancelled"

    def items_subtotal(self) -> Decimal:
        total = Decimal("0.00")
        for it in self.items.all():
            total += Decimal(it.line_subtotal)
        return total


class OrderItem(models.Model):
    order = models.ForeignKey(
        Order, on_delete=models.CASCADE, related_name="items")
    product = models.ForeignKey(
        "catalog.Product",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="order_items",
    )

    product_name = models.CharField(max_length=255)
    quantity = models.PositiveIntegerField()
    # Price at the moment of purchase; never follows later catalog changes.
    unit_price = models.DecimalField(max_digits=12, decimal_places=2)
    line_subtotal = models.DecimalField(max_digits=12, decimal_places=2)

    class Meta:
        ordering = ["id"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity__gte=1), name="chk_orderitem_qty_gte_1"),
        ]

    def save(self, *args, **kwargs):
        if self.pk is not None and not kwargs.get("force_insert"):
            raise ValueError("Order items are immutable once created")
        self.line_subtotal = (Decimal(self.unit_price) * int(self.quantity)).quantize(Decimal("0.01"))
        return super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"order:{self.order_id} product:{self.product_id} x{self.quantity}"
