from __future__ import annotations

import logging

from django.conf import settings
from ninja import NinjaAPI

from checkout.api import router as checkout_router
from checkout.errors import CheckoutError
from checkout.staff_api import router as staff_router
from payments.api import router as payments_router

logger = logging.getLogger(__name__)

docs_url = "/docs" if getattr(settings, "NINJA_ENABLE_DOCS", True) else None
openapi_url = "/openapi.json" if getattr(settings,
                                         "NINJA_ENABLE_DOCS", True) else None

api = NinjaAPI(
    title="Chaploy shop API",
    version="1",
    docs_url=docs_url,
    openapi_url=openapi_url,
)

api.add_router("/checkout", checkout_router)
api.add_router("/staff/payments", payments_router)
api.add_router("/staff", staff_router)


@api.exception_handler(CheckoutError)
def checkout_error(request, exc: CheckoutError):
    if exc.status_code >= 500:
        logger.error("Request failed: %s", exc, extra={"code": exc.code, "path": request.path})
    return api.create_response(request, exc.as_payload(), status=exc.status_code)


@api.get("/health")
def health(request):
    return {"status": "ok"}
