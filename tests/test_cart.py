from __future__ import annotations

from decimal import Decimal

import pytest

from catalog.models import Product
from checkout.cart import (
    CartLine,
    can_increment,
    cart_subtotal,
    merge_cart_lines,
    parse_cart_lines,
    resolve_cart,
)
from checkout.errors import OrderValidationError


def test_parse_accepts_legacy_keys_and_ignores_client_prices():
    lines = parse_cart_lines([
        {"id": "7", "qty": 2, "price": "1.00", "name": "hacked"},
        {"productId": 8, "quantity": "1"},
    ])
    assert lines == [CartLine(product_id=7, quantity=2), CartLine(product_id=8, quantity=1)]


@pytest.mark.parametrize("raw", ["nope", [{"id": 1}], [{"id": "x", "qty": 1}], [{"id": 1, "qty": True}]])
def test_parse_rejects_malformed_lines(raw):
    with pytest.raises(OrderValidationError):
        parse_cart_lines(raw)


def test_merge_sums_duplicates_and_drops_zero():
    merged = merge_cart_lines([
        CartLine(product_id=3, quantity=1),
        CartLine(product_id=4, quantity=0),
        CartLine(product_id=3, quantity=2),
    ])
    assert merged == [CartLine(product_id=3, quantity=3)]


def test_merge_rejects_negative_quantity():
    with pytest.raises(OrderValidationError):
        merge_cart_lines([CartLine(product_id=3, quantity=-1)])


@pytest.mark.django_db
def test_resolve_uses_live_catalog_and_skips_unavailable(make_product):
    tea = make_product(price="100.00", stock=5)
    gone = make_product(name="Old mug", status=Product.Status.INACTIVE)

    resolved = resolve_cart([
        {"product_id": tea.id, "quantity": 2},
        {"product_id": gone.id, "quantity": 1},
        {"product_id": 999999, "quantity": 1},
    ])

    assert [ln.product_id for ln in resolved] == [tea.id]
    assert resolved[0].unit_price == Decimal("100.00")
    assert resolved[0].line_subtotal == Decimal("200.00")
    assert cart_subtotal(resolved) == Decimal("200.00")


def test_resolve_empty_cart_is_empty():
    assert resolve_cart([]) == []
    assert resolve_cart(None) == []


@pytest.mark.django_db
def test_can_increment_respects_stock(make_product):
    p = make_product(stock=2)

    assert can_increment(product_id=p.id, current_cart_qty=1).allowed

    decision = can_increment(product_id=p.id, current_cart_qty=2)
    assert not decision.allowed
    assert decision.reason == "out of stock"
    assert decision.available == 2


@pytest.mark.django_db
def test_can_increment_unknown_or_inactive_product(make_product):
    p = make_product(status=Product.Status.INACTIVE)

    assert can_increment(product_id=p.id, current_cart_qty=0).reason == "product not found"
    assert can_increment(product_id=424242, current_cart_qty=0).reason == "product not found"
