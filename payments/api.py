from __future__ import annotations

from ninja import Router

from accounts.auth import JWTAuth
from accounts.identity import actor_from_user
from checkout.api import payment_out, receipt_out

from .schemas import RejectIn, RejectOut, VerifyOut
from .services import reject_payment, verify_payment

router = Router(tags=["staff"], auth=JWTAuth())


@router.post("/{payment_id}/verify", response=VerifyOut)
def verify(request, payment_id: int):
    result = verify_payment(payment_id=payment_id, staff=actor_from_user(request.auth))
    return VerifyOut(
        payment=payment_out(result.payment),
        receipt=receipt_out(result.receipt) if result.receipt else None,
        notified=bool(result.notification and result.notification.ok),
        warnings=result.warnings,
    )


@router.post("/{payment_id}/reject", response=RejectOut)
def reject(request, payment_id: int, payload: RejectIn):
    result = reject_payment(
        payment_id=payment_id,
        staff=actor_from_user(request.auth),
        reason=payload.reason,
    )
    return RejectOut(
        payment=payment_out(result.payment),
        notified=bool(result.notification and result.notification.ok),
        warnings=result.warnings,
    )
