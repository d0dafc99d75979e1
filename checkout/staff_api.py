from __future__ import annotations

from ninja import Router

from accounts.auth import JWTAuth
from accounts.identity import actor_from_user

from .api import order_out
from .dashboard import dashboard_summary
from .guards import require_staff
from .schemas import CancelIn, DashboardOut, OrderOut, OrderStatusIn
from .services import get_customer_order, list_orders
from .status import cancel_order, update_order_status

router = Router(tags=["staff"], auth=JWTAuth())


def _staff(request):
    return actor_from_user(request.auth)


@router.get("/orders", response=list[OrderOut])
def staff_orders(request, order_status: str | None = None, payment_status: str | None = None, limit: int = 100):
    orders = list_orders(
        staff=_staff(request),
        order_status=order_status,
        payment_status=payment_status,
        limit=limit,
    )
    return [order_out(o) for o in orders]


@router.post("/orders/{order_id}/status", response=OrderOut)
def staff_order_status(request, order_id: int, payload: OrderStatusIn):
    staff = _staff(request)
    update_order_status(order_id=order_id, new_status=payload.status, staff=staff)
    return order_out(get_customer_order(order_id=order_id, actor=staff))


@router.post("/orders/{order_id}/cancel", response=OrderOut)
def staff_order_cancel(request, order_id: int, payload: CancelIn):
    staff = _staff(request)
    require_staff(staff)
    cancel_order(order_id=order_id, actor=staff, reason=payload.reason)
    return order_out(get_customer_order(order_id=order_id, actor=staff))


@router.get("/dashboard", response=DashboardOut)
def staff_dashboard(request):
    return dashboard_summary(_staff(request))
