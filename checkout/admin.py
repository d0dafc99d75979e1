from __future__ import annotations

from django.contrib import admin
from django.contrib import messages
from django.http import HttpRequest, HttpResponse
from django.shortcuts import get_object_or_404, redirect
from django.urls import path, reverse

from accounts.identity import actor_from_user
from payments.models import Payment

from .errors import CheckoutError
from .models import Order, OrderItem
from .status import cancel_order, update_order_status


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    fields = ("product", "product_name", "quantity", "unit_price", "line_subtotal")
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


class PaymentInline(admin.TabularInline):
    model = Payment
    extra = 0
    fields = ("status", "amount", "proof", "submitted_at", "verified_by", "verified_at", "rejection_reason")
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "customer",
        "order_status",
        "payment_status",
        "total",
        "cancelled_by_actor",
        "created_at",
    )
    list_filter = ("order_status", "payment_status", "cancelled_by_actor")
    search_fields = ("id", "customer__email", "contact_email", "shipping_full_name")
    readonly_fields = (
        "customer",
        "order_status",
        "payment_status",
        "currency",
        "subtotal",
        "shipping_fee",
        "total",
        "cancelled_by_actor",
        "cancelled_by",
        "cancel_reason",
        "cancelled_at",
        "receipt_file",
        "receipt_generated_at",
        "created_at",
        "updated_at",
    )
    fields = (
        "customer",
        "order_status",
        "payment_status",
        "currency",
        "subtotal",
        "shipping_fee",
        "total",
        "shipping_full_name",
        "shipping_line1",
        "shipping_city",
        "shipping_postal_code",
        "shipping_phone",
        "contact_email",
        "note",
        "cancelled_by_actor",
        "cancelled_by",
        "cancel_reason",
        "cancelled_at",
        "receipt_file",
        "receipt_generated_at",
        "created_at",
        "updated_at",
    )
    inlines = (OrderItemInline, PaymentInline)

    actions = ("mark_confirmed", "mark_shipped", "mark_delivered", "cancel_selected")

    def has_add_permission(self, request):
        return False

    def get_urls(self):
        urls = super().get_urls()
        custom = [
            path(
                "<path:object_id>/receipt/",
                self.admin_site.admin_view(self.receipt_view),
                name="checkout_order_receipt",
            ),
        ]
        return custom + urls

    def receipt_view(self, request: HttpRequest, object_id: str) -> HttpResponse:
        from payments.receipts import generate_receipt

        order = get_object_or_404(Order, pk=object_id)
        try:
            receipt = generate_receipt(order, force=bool(request.GET.get("force")))
        except CheckoutError as e:
            messages.error(request, f"Could not generate receipt: {e}")
            return redirect(reverse("admin:checkout_order_change", args=[order.pk]))

        order.refresh_from_db(fields=["receipt_file"])
        with order.receipt_file.open("rb") as fh:
            resp = HttpResponse(fh.read(), content_type="text/html; charset=utf-8")
        resp["Content-Disposition"] = f'inline; filename="{receipt.number}.html"'
        return resp

    def _move(self, request, queryset, new_status: str):
        staff = actor_from_user(request.user)
        done = 0
        for order in queryset:
            try:
                update_order_status(order_id=order.id, new_status=new_status, staff=staff)
                done += 1
            except CheckoutError as e:
                messages.warning(request, f"Order {order.id}: {e}")
        if done:
            messages.success(request, f"Updated {done} order(s) to {new_status}.")

    @admin.action(description="Mark as confirmed")
    def mark_confirmed(self, request, queryset):
        self._move(request, queryset, Order.Status.CONFIRMED)

    @admin.action(description="Mark as shipped")
    def mark_shipped(self, request, queryset):
        self._move(request, queryset, Order.Status.SHIPPED)

    @admin.action(description="Mark as delivered")
    def mark_delivered(self, request, queryset):
        self._move(request, queryset, Order.Status.DELIVERED)

    @admin.action(description="Cancel selected orders")
    def cancel_selected(self, request, queryset):
        staff = actor_from_user(request.user)
        done = 0
        for order in queryset:
            try:
                result = cancel_order(order_id=order.id, actor=staff, reason="Cancelled from admin")
            except CheckoutError as e:
                messages.warning(request, f"Order {order.id}: {e}")
                continue
            done += 1
            if result.notification is not None and not result.notification.ok:
                messages.warning(
                    request, f"Order {order.id}: customer was not notified ({result.notification.error})")
        if done:
            messages.success(request, f"Cancelled {done} order(s).")
