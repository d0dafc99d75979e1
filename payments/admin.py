from __future__ import annotations

from django.contrib import admin
from django.contrib import messages

from accounts.identity import actor_from_user
from checkout.errors import CheckoutError

from .models import Payment
from .services import reject_payment, verify_payment


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "order",
        "status",
        "amount",
        "submitted_at",
        "verified_by",
        "verified_at",
    )
    list_filter = ("status",)
    search_fields = ("order__id", "order__customer__email")
    readonly_fields = (
        "order",
        "status",
        "amount",
        "proof",
        "verified_by",
        "verified_at",
        "rejected_by",
        "rejected_at",
        "rejection_reason",
        "submitted_at",
        "updated_at",
    )
    actions = ("verify_selected", "reject_selected")

    def has_add_permission(self, request):
        return False

    @admin.action(description="Verify selected payments")
    def verify_selected(self, request, queryset):
        staff = actor_from_user(request.user)
        for payment in queryset:
            try:
                result = verify_payment(payment_id=payment.id, staff=staff)
            except CheckoutError as e:
                messages.warning(request, f"Payment {payment.id}: {e}")
                continue
            messages.success(request, f"Payment {payment.id} verified.")
            for w in result.warnings:
                messages.warning(request, f"Payment {payment.id}: {w}")

    @admin.action(description="Reject selected payments")
    def reject_selected(self, request, queryset):
        staff = actor_from_user(request.user)
        for payment in queryset:
            try:
                result = reject_payment(payment_id=payment.id, staff=staff)
            except CheckoutError as e:
                messages.warning(request, f"Payment {payment.id}: {e}")
                continue
            messages.success(request, f"Payment {payment.id} rejected.")
            for w in result.warnings:
                messages.warning(request, f"Payment {payment.id}: {w}")
