from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from ninja import Schema


class CartItemOut(Schema):
    product_id: int
    name: str
    unit_price: Decimal
    quantity: int
    stock_available: int
    line_subtotal: Decimal


class CartOut(Schema):
    currency: str = "THB"
    items: list[CartItemOut]
    subtotal: Decimal
    shipping_fee: Decimal
    total: Decimal


class CartItemAddIn(Schema):
    product_id: int
    quantity: int = 1


class CartItemUpdateIn(Schema):
    action: str  # plus | minus


class CheckoutOut(Schema):
    order_id: int
    payment_id: int
    total: Decimal


class OrderItemOut(Schema):
    id: int
    product_id: int | None = None
    product_name: str
    quantity: int
    unit_price: Decimal
    line_subtotal: Decimal


class PaymentOut(Schema):
    id: int
    status: str
    amount: Decimal
    proof_url: str = ""
    submitted_at: datetime
    verified_at: datetime | None = None
    rejected_at: datetime | None = None
    rejection_reason: str = ""


class OrderOut(Schema):
    id: int
    created_at: datetime
    order_status: str
    order_status_label: str
    payment_status: str
    payment_status_label: str
    cancellation_label: str = ""
    cancel_reason: str = ""

    currency: str
    subtotal: Decimal
    shipping_fee: Decimal
    total: Decimal

    customer_email: str
    shipping_full_name: str
    shipping_line1: str
    shipping_city: str = ""
    shipping_postal_code: str = ""
    shipping_phone: str
    note: str = ""

    receipt_url: str = ""
    items: list[OrderItemOut]
    payments: list[PaymentOut]


class CancelIn(Schema):
    reason: str | None = None


class ReceiptOut(Schema):
    order_id: int
    number: str
    url: str
    subtotal: Decimal
    shipping_fee: Decimal
    total: Decimal
    generated_at: datetime | None = None


class CheckoutIn(Schema):
    full_name: str = ""
    line1: str = ""
    phone: str = ""
    email: str | None = None
    city: str | None = None
    postal_code: str | None = None
    note: str | None = None


class OrderStatusIn(Schema):
    status: str


class DashboardOut(Schema):
    orders_total: int
    orders_by_status: dict[str, int]
    orders_paid: int
    payments_pending: int
    revenue_verified: Decimal
    products_active: int
    products_inactive: int
