from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterable

from catalog.models import Product

from .errors import OrderValidationError


@dataclass(frozen=True)
class CartLine:
    product_id: int
    quantity: int


@dataclass(frozen=True)
class ResolvedLine:
    product_id: int
    name: str
    unit_price: Decimal
    quantity: int
    stock: int

    @property
    def line_subtotal(self) -> Decimal:
        return (self.unit_price * self.quantity).quantize(Decimal("0.01"))


@dataclass(frozen=True)
class StockDecision:
    allowed: bool
    reason: str = ""
    available: int = 0


def _as_int(value: Any, *, field: str) -> int:
    if isinstance(value, bool):
        raise OrderValidationError(f"Invalid {field}", fields=[field])
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    raise OrderValidationError(f"Invalid {field}", fields=[field])


def parse_cart_lines(raw: Any) -> list[CartLine]:
    """Normalize untrusted cart data (session/cookie/JSON) into CartLine values.

    Accepts a list of mappings using ``id``/``productId``/``product_id`` and
    ``qty``/``quantity`` keys, or CartLine instances. Any price or name sent
    along is ignored.
    """

    if raw is None:
        return []
    if not isinstance(raw, (list, tuple)):
        raise OrderValidationError("Cart must be a list of lines", fields=["cart"])

    out: list[CartLine] = []
    for entry in raw:
        if isinstance(entry, CartLine):
            out.append(entry)
            continue
        if not isinstance(entry, dict):
            raise OrderValidationError("Invalid cart line", fields=["cart"])

        pid = entry.get("product_id", entry.get("productId", entry.get("id")))
        qty = entry.get("quantity", entry.get("qty"))
        if pid is None or qty is None:
            raise OrderValidationError("Invalid cart line", fields=["cart"])

        out.append(CartLine(
            product_id=_as_int(pid, field="product_id"),
            quantity=_as_int(qty, field="quantity"),
        ))
    return out


def merge_cart_lines(lines: Iterable[CartLine]) -> list[CartLine]:
    """Sum duplicate products, drop zero quantities, reject negatives.

    Keeps the order in which products first appear.
    """

    qty_by_product: dict[int, int] = {}
    for ln in lines:
        if int(ln.quantity) < 0:
            raise OrderValidationError("Quantity must not be negative", fields=["quantity"])
        if int(ln.quantity) == 0:
            continue
        qty_by_product[int(ln.product_id)] = qty_by_product.get(int(ln.product_id), 0) + int(ln.quantity)
    return [CartLine(product_id=pid, quantity=qty) for pid, qty in qty_by_product.items()]


def resolve_lines(lines: Iterable[CartLine], products: dict[int, Product]) -> list[ResolvedLine]:
    out: list[ResolvedLine] = []
    for ln in lines:
        p = products.get(int(ln.product_id))
        if p is None or p.status != Product.Status.ACTIVE:
            continue
        out.append(
            ResolvedLine(
                product_id=int(p.id),
                name=p.name,
                unit_price=Decimal(p.price).quantize(Decimal("0.01")),
                quantity=int(ln.quantity),
                stock=int(p.stock),
            )
        )
    return out


def resolve_cart(lines) -> list[ResolvedLine]:
    """Price a cart snapshot against the live catalog (read-only)."""

    merged = merge_cart_lines(parse_cart_lines(lines))
    if not merged:
        return []
    products = {
        p.id: p
        for p in Product.objects.filter(id__in=[ln.product_id for ln in merged])
    }
    return resolve_lines(merged, products)


def cart_subtotal(lines: Iterable[ResolvedLine]) -> Decimal:
    total = Decimal("0.00")
    for ln in lines:
        total += ln.line_subtotal
    return total


def can_increment(*, product_id: int, current_cart_qty: int) -> StockDecision:
    current_cart_qty = max(0, int(current_cart_qty or 0))
    p = Product.objects.filter(id=int(product_id)).only("id", "stock", "status").first()
    if p is None or p.status != Product.Status.ACTIVE:
        return StockDecision(allowed=False, reason="product not found")

    available = int(p.stock)
    if current_cart_qty + 1 > available:
        return StockDecision(allowed=False, reason="out of stock", available=available)
    return StockDecision(allowed=True, available=available)
