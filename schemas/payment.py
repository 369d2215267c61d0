from typing import Optional
from pydantic import BaseModel


class PaymentIntentCreate(BaseModel):
    booking_id: int


class PaymentIntentResponse(BaseModel):
    client_secret: Optional[str] = None
    publishable_key: Optional[str] = None
    amount: int


class WebhookAck(BaseModel):
    received: bool = True
