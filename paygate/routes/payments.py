"""
Settlement notifier route.

The external settlement service reports that a payment was paid or
cancelled; requests must carry a valid HMAC signature.
"""

from fastapi import APIRouter, Depends, Request
from paygate.core.limiter import limiter, WEBHOOK_RATE_LIMIT
from paygate.schemas.responses import PaymentStateResponse
from paygate.schemas.transaction import SettlementNotification
from paygate.security import verify_settlement_signature
from paygate.services.payment_store import PaymentStore
import logging

logger = logging.getLogger(__name__)

router = APIRouter()


def get_payment_store(request: Request) -> PaymentStore:
    return request.app.state.payment_store


@router.post(
    "/{payment_id}/settlement",
    dependencies=[Depends(verify_settlement_signature)],
    response_model=PaymentStateResponse,
)
@limiter.limit(WEBHOOK_RATE_LIMIT)
async def settle_payment(
    request: Request,
    payment_id: str,
    notification: SettlementNotification,
    payments: PaymentStore = Depends(get_payment_store),
):
    """Apply a settlement event. Cancellation is terminal and idempotent."""
    if notification.event == "cancelled":
        payment = await payments.cancel(payment_id)
        message = "Payment cancelled"
    else:
        payment = await payments.mark_paid(payment_id, notification.type)
        message = "Payment marked as paid"

    logger.info(f"Settlement event '{notification.event}' applied to payment {payment_id}")
    return PaymentStateResponse(
        success=True,
        message=message,
        payment_id=payment.id,
        status=payment.status,
        type=payment.type,
        cancelled=payment.cancelled,
    )
