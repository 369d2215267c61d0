"""
Payment provider seam and the booking payment flow.

The provider talks to the card processor; ``PaymentService`` ties provider
intents to bookings. Only the intent id is stored on the booking.
"""

import hashlib
import hmac
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.errors import ForbiddenError, InternalError, NotFoundError, ServiceUnavailableError, ValidationError
from core.security import TokenPayload
from repositories.booking import BookingRepository
from schemas.payment import PaymentIntentResponse

logger = logging.getLogger(__name__)

# Maximum age of a signed webhook in seconds
SIGNATURE_TOLERANCE_SECONDS = 300


class WebhookSignatureError(Exception):
    """Raised when a webhook signature cannot be verified."""


@dataclass(frozen=True)
class PaymentIntent:
    id: str
    client_secret: Optional[str]


class PaymentProvider:
    """Interface every payment provider implements."""

    async def create_payment_intent(
        self, amount_minor: int, currency: str, metadata: Dict[str, str]
    ) -> PaymentIntent:
        raise NotImplementedError

    def construct_event(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        """Verify a webhook delivery and return the decoded event."""
        raise NotImplementedError


def compute_signature(secret: str, timestamp: str, payload: bytes) -> str:
    signed = timestamp.encode("utf-8") + b"." + payload
    return hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()


def verify_signature(
    payload: bytes,
    header: Optional[str],
    secret: str,
    tolerance: int = SIGNATURE_TOLERANCE_SECONDS,
    now: Optional[float] = None,
) -> None:
    """Check a ``t=<unix>,v1=<hex>[,v1=...]`` signature header against the payload."""
    if not header:
        raise WebhookSignatureError("Missing signature header")
    if not secret:
        raise WebhookSignatureError("Webhook secret is not configured")

    timestamp = None
    candidates = []
    for part in header.split(","):
        key, _, value = part.strip().partition("=")
        if key == "t":
            timestamp = value
        elif key == "v1":
            candidates.append(value)
    if not timestamp or not candidates:
        raise WebhookSignatureError("Malformed signature header")

    try:
        age = abs((time.time() if now is None else now) - int(timestamp))
    except ValueError:
        raise WebhookSignatureError("Invalid signature timestamp")
    if age > tolerance:
        raise WebhookSignatureError(f"Signature timestamp outside tolerance ({int(age)}s)")

    expected = compute_signature(secret, timestamp, payload)
    if not any(hmac.compare_digest(expected, candidate) for candidate in candidates):
        raise WebhookSignatureError("Signature mismatch")


class StripePaymentProvider(PaymentProvider):
    """Stripe over its REST API."""

    def __init__(
        self,
        secret_key: Optional[str] = None,
        webhook_secret: Optional[str] = None,
        api_base: Optional[str] = None,
        timeout: float = 30.0,
    ):
        self.secret_key = secret_key or settings.STRIPE_SECRET_KEY
        self.webhook_secret = webhook_secret or settings.STRIPE_WEBHOOK_SECRET
        self.api_base = (api_base or settings.STRIPE_API_BASE).rstrip("/")
        self.timeout = timeout

    async def create_payment_intent(
        self, amount_minor: int, currency: str, metadata: Dict[str, str]
    ) -> PaymentIntent:
        if not self.secret_key:
            raise ValueError("STRIPE_SECRET_KEY is not configured")

        form = {
            "amount": str(amount_minor),
            "currency": currency,
            "automatic_payment_methods[enabled]": "true",
        }
        for key, value in metadata.items():
            form[f"metadata[{key}]"] = value

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(
                f"{self.api_base}/payment_intents",
                auth=(self.secret_key, ""),
                data=form,
            )
            response.raise_for_status()
            result = response.json()

        return PaymentIntent(id=result["id"], client_secret=result.get("client_secret"))

    def construct_event(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        verify_signature(payload, signature, self.webhook_secret)
        try:
            return json.loads(payload)
        except ValueError as e:
            raise WebhookSignatureError("Payload is not valid JSON") from e


class PaymentService:
    def __init__(self, db: AsyncSession, provider: PaymentProvider):
        self.db = db
        self.provider = provider
        self.booking_repo = BookingRepository(db)

    async def create_intent(self, actor: TokenPayload, booking_id: int) -> PaymentIntentResponse:
        """
        Start payment of a booking by its parent.

        Args:
            actor: Authenticated caller, must be the booking's parent
            booking_id: Booking to pay

        Returns:
            Client secret, publishable key and amount in minor units
        """
        booking = await self.booking_repo.get_by_id(booking_id)
        if not booking:
            raise NotFoundError("Booking not found")
        if booking.parent_user_id != actor.user_id:
            raise ForbiddenError()
        if booking.is_paid:
            raise ValidationError("Booking already paid")

        amount_minor = booking.total_amount_nis * 100
        try:
            intent = await self.provider.create_payment_intent(
                amount_minor,
                settings.PAYMENT_CURRENCY,
                {"bookingId": str(booking.id), "parentId": str(actor.user_id)},
            )
        except httpx.HTTPStatusError as e:
            logger.error(f"Payment provider error: {e.response.status_code} - {e.response.text}")
            raise InternalError("Payment provider error") from e
        except httpx.HTTPError as e:
            logger.error(f"Payment provider unreachable: {str(e)}")
            raise InternalError("Payment provider error") from e

        await self.record_payment_intent(booking.id, intent.id)
        logger.info(f"Payment intent {intent.id} created for booking {booking.id}, amount {amount_minor}")
        return PaymentIntentResponse(
            client_secret=intent.client_secret,
            publishable_key=settings.STRIPE_PUBLISHABLE_KEY,
            amount=amount_minor,
        )

    async def record_payment_intent(self, booking_id: int, payment_intent_id: str) -> None:
        try:
            await self.booking_repo.set_payment_intent(booking_id, payment_intent_id)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception(f"Database error recording payment intent for booking {booking_id}: {e}")
            raise

    async def mark_booking_paid(self, payment_intent_id: str) -> int:
        try:
            updated = await self.booking_repo.mark_paid_by_intent(payment_intent_id)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception(f"Database error marking intent {payment_intent_id} paid: {e}")
            raise
        if not updated:
            logger.warning(f"No booking found for payment intent {payment_intent_id}")
        return updated

    async def handle_webhook(self, payload: bytes, signature: Optional[str]) -> None:
        try:
            event = self.provider.construct_event(payload, signature)
        except WebhookSignatureError as e:
            logger.warning(f"Rejected payment webhook: {str(e)}")
            raise ValidationError("Invalid webhook signature") from e

        event_type = event.get("type")
        if event_type == "payment_intent.succeeded":
            intent_id = (event.get("data") or {}).get("object", {}).get("id")
            if intent_id:
                await self.mark_booking_paid(intent_id)
                logger.info(f"Payment intent {intent_id} succeeded")
        else:
            logger.debug(f"Ignoring payment webhook event {event_type}")


def ensure_payments_enabled() -> None:
    if not settings.ENABLE_PAYMENTS:
        raise ServiceUnavailableError("Payments are not enabled")
