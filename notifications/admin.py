from __future__ import annotations

from django.contrib import admin
from django.contrib import messages

from .models import EmailTemplate, OutboundEmail
from .services import retry_outbound_email


@admin.register(EmailTemplate)
class EmailTemplateAdmin(admin.ModelAdmin):
    list_display = ("key", "name", "subject", "is_active", "updated_at")
    list_filter = ("is_active",)
    search_fields = ("key", "name", "subject")
    readonly_fields = ("updated_at",)


@admin.register(OutboundEmail)
class OutboundEmailAdmin(admin.ModelAdmin):
    list_display = ("id", "order", "template_key", "to_email", "status", "created_at", "sent_at")
    list_filter = ("status", "template_key")
    list_select_related = ("order",)
    search_fields = ("to_email", "order__id")
    date_hierarchy = "created_at"
    readonly_fields = [f.name for f in OutboundEmail._meta.fields]

    actions = ("retry_failed",)

    def has_add_permission(self, request):
        return False

    @admin.action(description="Retry failed emails")
    def retry_failed(self, request, queryset):
        sent = 0
        for outbound in queryset.filter(status=OutboundEmail.Status.FAILED):
            result = retry_outbound_email(outbound)
            if result.ok:
                sent += 1
            else:
                messages.warning(request, f"Email {outbound.id}: {result.error}")
        messages.info(request, f"Re-sent {sent} email(s).")
