from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from django.db.models import Count, Q, Sum

from accounts.identity import Actor
from catalog.models import Product

from .guards import require_staff
from .models import Order


@dataclass
class DashboardSummary:
    orders_total: int
    orders_by_status: dict[str, int] = field(default_factory=dict)
    orders_paid: int = 0
    payments_pending: int = 0
    revenue_verified: Decimal = Decimal("0.00")
    products_active: int = 0
    products_inactive: int = 0


def dashboard_summary(staff: Actor | None) -> DashboardSummary:
    from payments.models import Payment

    require_staff(staff)

    order_counts = Order.objects.aggregate(
        total=Count("id"),
        paid=Count("id", filter=Q(payment_status=Order.PaymentStatus.PAID)),
        **{
            f"status_{value}": Count("id", filter=Q(order_status=value))
            for value in Order.Status.values
        },
    )
    payment_stats = Payment.objects.aggregate(
        pending=Count("id", filter=Q(status=Payment.Status.PENDING)),
        revenue=Sum("amount", filter=Q(status=Payment.Status.VERIFIED)),
    )
    product_counts = Product.objects.aggregate(
        active=Count("id", filter=Q(status=Product.Status.ACTIVE)),
        inactive=Count("id", filter=Q(status=Product.Status.INACTIVE)),
    )

    return DashboardSummary(
        orders_total=int(order_counts["total"] or 0),
        orders_by_status={value: int(order_counts[f"status_{value}"] or 0) for value in Order.Status.values},
        orders_paid=int(order_counts["paid"] or 0),
        payments_pending=int(payment_stats["pending"] or 0),
        revenue_verified=Decimal(payment_stats["revenue"] or 0).quantize(Decimal("0.01")),
        products_active=int(product_counts["active"] or 0),
        products_inactive=int(product_counts["inactive"] or 0),
    )
