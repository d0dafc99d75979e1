from django.db import migrations


TEMPLATES = {
    "payment_verified": {
        "name": "Payment verified",
        "subject": "Payment received for order #{{ order_id }}",
        "body_text": (
            "Hi {{ customer_name }},\n\n"
            "We have verified your payment of {{ payment_amount }} {{ currency }} for order #{{ order_id }}.\n"
            "{% if receipt_url %}Your receipt {{ receipt_number }}: {{ receipt_url }}\n{% endif %}"
            "\nThank you for shopping with {{ site_name }}.\n"
        ),
        "body_html": (
            "<p>Hi {{ customer_name }},</p>"
            "<p>We have verified your payment of <strong>{{ payment_amount }} {{ currency }}</strong> "
            "for order <strong>#{{ order_id }}</strong>.</p>"
            "{% if receipt_url %}<p>Your receipt {{ receipt_number }}: "
            "<a href=\"{{ receipt_url }}\">{{ receipt_url }}</a></p>{% endif %}"
            "<p>Thank you for shopping with {{ site_name }}.</p>"
        ),
    },
    "payment_rejected": {
        "name": "Payment rejected",
        "subject": "We could not verify the payment for order #{{ order_id }}",
        "body_text": (
            "Hi {{ customer_name }},\n\n"
            "We could not verify the payment proof submitted for order #{{ order_id }}.\n"
            "{% if reason %}Reason: {{ reason }}\n{% endif %}"
            "Please upload a new proof of payment from your purchases page.\n"
        ),
        "body_html": (
            "<p>Hi {{ customer_name }},</p>"
            "<p>We could not verify the payment proof submitted for order <strong>#{{ order_id }}</strong>.</p>"
            "{% if reason %}<p>Reason: {{ reason }}</p>{% endif %}"
            "<p>Please upload a new proof of payment from your purchases page.</p>"
        ),
    },
    "order_cancelled": {
        "name": "Order cancelled",
        "subject": "Order #{{ order_id }} has been cancelled",
        "body_text": (
            "Hi {{ customer_name }},\n\n"
            "Your order #{{ order_id }} ({{ total }} {{ currency }}) has been cancelled.\n"
            "{% if reason %}Note: {{ reason }}\n{% endif %}"
            "Please contact {{ support_email }} for a refund within 3-5 business days if you already paid.\n"
        ),
        "body_html": (
            "<p>Hi {{ customer_name }},</p>"
            "<p>Your order <strong>#{{ order_id }}</strong> ({{ total }} {{ currency }}) has been cancelled.</p>"
            "{% if reason %}<p>Note: {{ reason }}</p>{% endif %}"
            "<p>Please contact {{ support_email }} for a refund within 3-5 business days if you already paid.</p>"
        ),
    },
}


def seed_order_templates(apps, schema_editor):
    EmailTemplate = apps.get_model("notifications", "EmailTemplate")

    for key, data in TEMPLATES.items():
        EmailTemplate.objects.update_or_create(
            key=key,
            defaults={**data, "is_active": True},
        )


class Migration(migrations.Migration):
    dependencies = [
        ("notifications", "0001_initial"),
    ]

    operations = [
        migrations.RunPython(
            seed_order_templates,
            migrations.RunPython.noop,
        ),
    ]
