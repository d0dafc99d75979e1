"""Order lifecycle errors.

Raised by the service layer; the API layer maps them to HTTP responses via
``status_code``/``code``.
"""

from __future__ import annotations


class CheckoutError(Exception):
    status_code = 400
    code = "checkout_error"

    def __init__(self, message: str = "", **extra):
        super().__init__(message or self.default_message())
        self.extra = extra

    @classmethod
    def default_message(cls) -> str:
        return cls.code.replace("_", " ").capitalize()

    def as_payload(self) -> dict:
        return {"detail": str(self), "code": self.code, **self.extra}


class OrderValidationError(CheckoutError):
    status_code = 400
    code = "validation_error"

    def __init__(self, message: str = "", *, fields: list[str] | None = None):
        if fields:
            super().__init__(message, fields=list(fields))
        else:
            super().__init__(message)
        self.fields = list(fields or [])


class AuthRequired(CheckoutError):
    status_code = 401
    code = "auth_required"


class PermissionDenied(CheckoutError):
    status_code = 403
    code = "permission_denied"


class NotFound(CheckoutError):
    status_code = 404
    code = "not_found"


class InvalidTransition(CheckoutError):
    status_code = 409
    code = "invalid_transition"


class StockConflict(CheckoutError):
    status_code = 409
    code = "stock_conflict"

    def __init__(self, product_ids, message: str = ""):
        ids = sorted({int(pid) for pid in product_ids})
        super().__init__(
            message or f"Not enough stock for products: {', '.join(str(i) for i in ids)}",
            product_ids=ids,
        )
        self.product_ids = ids


class StorageFailure(CheckoutError):
    status_code = 503
    code = "storage_failure"


class ReceiptIntegrityError(CheckoutError):
    status_code = 500
    code = "receipt_integrity_error"
