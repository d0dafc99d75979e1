from __future__ import annotations

import logging

from django.contrib.auth import get_user_model

from .identity import Actor
from .models import Customer

logger = logging.getLogger(__name__)


def _normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def resolve_customer(
    *,
    actor: Actor | None,
    email: str,
    full_name: str = "",
    phone: str = "",
) -> Customer:
    """Find or create the Customer for a checkout.

    Signed-in shoppers are matched by their user first, then by email (a guest
    record with the same email is adopted). Guests are matched by email.
    Must run inside the checkout transaction.
    """

    email = _normalize_email(email)

    if actor is not None:
        customer = Customer.objects.select_for_update().filter(user_id=actor.user_id).first()
        if customer:
            return customer

        User = get_user_model()
        user = User.objects.get(id=actor.user_id)
        email = _normalize_email(actor.email) or email
        customer = Customer.objects.select_for_update().filter(email=email).first()
        if customer:
            if customer.user_id is None:
                customer.user = user
                customer.save(update_fields=["user", "updated_at"])
            return customer

        customer = Customer.objects.create(
            user=user,
            email=email,
            full_name=(full_name or "").strip() or user.get_full_name(),
            phone=(phone or "").strip(),
        )
        logger.info("Created customer for user", extra={"customer_id": customer.id, "user_id": user.id})
        return customer

    customer, created = Customer.objects.get_or_create(
        email=email,
        defaults={
            "full_name": (full_name or "").strip(),
            "phone": (phone or "").strip(),
        },
    )
    if created:
        logger.info("Created guest customer", extra={"customer_id": customer.id})
    return customer


def customer_for_actor(actor: Actor) -> Customer | None:
    return Customer.objects.filter(user_id=actor.user_id).first()
