from __future__ import annotations

from decimal import Decimal

from django.db import models


class Product(models.Model):
    class Status(models.TextChoices):
        ACTIVE = "active", "Active"
        INACTIVE = "inactive", "Inactive"

    name = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    price = models.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal("0.00"))
    # Units available for sale. Checkout decrements it under a row lock.
    stock = models.PositiveIntegerField(default=0)
    status = models.CharField(
        max_length=16, choices=Status.choices, default=Status.ACTIVE)
    image = models.FileField(upload_to="products/%Y/%m/", null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["status", "-created_at"], name="idx_product_status_created"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(stock__gte=0), name="chk_product_stock_gte_0"),
            models.CheckConstraint(
                condition=models.Q(price__gte=0), name="chk_product_price_gte_0"),
        ]

    def __str__(self) -> str:
        return f"{self.id} - {self.name}"

    @property
    def is_active(self) -> bool:
        return self.status == self.Status.ACTIVE
