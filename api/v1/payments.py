from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import CurrentUser, get_current_user, get_db, get_payment_provider
from schemas.payment import PaymentIntentCreate, PaymentIntentResponse, WebhookAck
from services.payment_service import PaymentProvider, PaymentService, ensure_payments_enabled

router = APIRouter(dependencies=[Depends(ensure_payments_enabled)])


@router.post(
    "/intent",
    response_model=PaymentIntentResponse,
    summary="Create a payment intent",
    description="Start card payment of a booking by its parent. Amounts are in agorot.",
)
async def create_payment_intent(
    payload: PaymentIntentCreate,
    current_user: CurrentUser = Depends(get_current_user),
    provider: PaymentProvider = Depends(get_payment_provider),
    db: AsyncSession = Depends(get_db),
):
    return await PaymentService(db, provider).create_intent(current_user, payload.booking_id)


@router.post(
    "/webhook",
    response_model=WebhookAck,
    summary="Payment provider webhook",
)
async def payment_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(default=None),
    provider: PaymentProvider = Depends(get_payment_provider),
    db: AsyncSession = Depends(get_db),
):
    # Signature covers the raw body, so it is read before any parsing
    payload = await request.body()
    await PaymentService(db, provider).handle_webhook(payload, stripe_signature)
    return WebhookAck()
