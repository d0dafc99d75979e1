from __future__ import annotations

from django.contrib import admin

from .models import Product


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "price", "stock", "status", "updated_at")
    list_filter = ("status",)
    search_fields = ("name",)
    list_editable = ("stock", "status")
    readonly_fields = ("created_at", "updated_at")

    actions = ("mark_active", "mark_inactive")

    @admin.action(description="Mark selected products active")
    def mark_active(self, request, queryset):
        updated = queryset.update(status=Product.Status.ACTIVE)
        self.message_user(request, f"Activated: {updated}")

    @admin.action(description="Mark selected products inactive")
    def mark_inactive(self, request, queryset):
        updated = queryset.update(status=Product.Status.INACTIVE)
        self.message_user(request, f"Deactivated: {updated}")
