from __future__ import annotations

from ninja import Schema

from checkout.schemas import PaymentOut, ReceiptOut


class RejectIn(Schema):
    reason: str = ""


class VerifyOut(Schema):
    payment: PaymentOut
    receipt: ReceiptOut | None = None
    notified: bool
    warnings: list[str] = []


class RejectOut(Schema):
    payment: PaymentOut
    notified: bool
    warnings: list[str] = []
