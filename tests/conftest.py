"""Pytest fixtures for the shop tests."""

from __future__ import annotations

import importlib
from decimal import Decimal

import pytest
from django.core.files.uploadedfile import SimpleUploadedFile

from accounts.identity import actor_from_user
from accounts.jwt_utils import issue_access_token
from catalog.models import Product
from checkout.services import ShippingInfo


@pytest.fixture
def email_templates(db):
    """Seeded notification templates (flushed between transactional tests)."""
    from notifications.models import EmailTemplate

    seed = importlib.import_module("notifications.migrations.0002_seed_order_templates")
    for key, data in seed.TEMPLATES.items():
        EmailTemplate.objects.update_or_create(key=key, defaults={**data, "is_active": True})
    return EmailTemplate.objects.all()


@pytest.fixture
def customer_user(db, django_user_model):
    return django_user_model.objects.create_user(
        email="buyer@example.com",
        password="pass12345",
        first_name="Nok",
        last_name="Buyer",
    )


@pytest.fixture
def other_user(db, django_user_model):
    return django_user_model.objects.create_user(email="other@example.com", password="pass12345")


@pytest.fixture
def staff_user(db, django_user_model):
    return django_user_model.objects.create_user(
        email="staff@example.com",
        password="pass12345",
        first_name="Somchai",
        last_name="Staff",
        is_staff=True,
    )


@pytest.fixture
def customer(customer_user):
    return actor_from_user(customer_user)


@pytest.fixture
def other_customer(other_user):
    return actor_from_user(other_user)


@pytest.fixture
def staff(staff_user):
    return actor_from_user(staff_user)


@pytest.fixture
def make_product(db):
    def _make(*, price="100.00", stock=5, name="Thai tea", status=Product.Status.ACTIVE):
        return Product.objects.create(name=name, price=Decimal(price), stock=stock, status=status)

    return _make


@pytest.fixture
def product(make_product):
    return make_product()


@pytest.fixture
def shipping():
    return ShippingInfo(
        full_name="Nok Buyer",
        line1="12 Sukhumvit Rd",
        city="Bangkok",
        postal_code="10110",
        phone="+66800000000",
        email="buyer@example.com",
    )


@pytest.fixture
def make_proof():
    def _make(name="slip.png", content=b"\x89PNG fake slip"):
        return SimpleUploadedFile(name, content, content_type="image/png")

    return _make


@pytest.fixture
def proof(make_proof):
    return make_proof()


@pytest.fixture
def place_order(customer, shipping, make_proof):
    """Check out ``qty`` of ``product`` for the signed-in customer."""
    from checkout.models import Order
    from checkout.services import checkout

    def _place(product, qty=2, *, actor=None):
        result = checkout(
            actor=actor or customer,
            cart_lines=[{"product_id": product.id, "quantity": qty}],
            shipping=shipping,
            proof_file=make_proof(),
        )
        return Order.objects.get(id=result.order_id)

    return _place


@pytest.fixture
def auth_client(client):
    def _login(user):
        client.cookies["access_token"] = issue_access_token(user_id=user.id)
        return client

    return _login
