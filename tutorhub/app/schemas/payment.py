"""Payment schemas."""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class PaymentRead(BaseModel):
    id: int
    booking_id: int
    user_id: int
    amount: float
    currency: str
    status: str
    transaction_id: Optional[str] = None
    payment_method: Optional[str] = None
    paid_at: Optional[datetime] = None
    refunded_at: Optional[datetime] = None
    refund_reason: Optional[str] = None
    refunded_amount: Optional[float] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PaymentIntentCreate(BaseModel):
    booking_id: int
    payment_method_id: Optional[str] = None


class PaymentIntentResponse(BaseModel):
    client_secret: Optional[str] = None
    payment_intent_id: str
    amount: float


class RefundRequest(BaseModel):
    payment_id: int
    reason: str = Field(min_length=1)
    amount: Optional[Decimal] = Field(default=None, gt=0)


class RefundResponse(BaseModel):
    success: bool
    refund_id: str
    amount: float
    status: Optional[str] = None


class HistoryTutor(BaseModel):
    id: int
    name: str
    email: str


class HistorySession(BaseModel):
    id: int
    title: str
    scheduled_at: datetime
    duration: int
    tutor: HistoryTutor


class PaymentHistoryItem(PaymentRead):
    session: HistorySession


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class PaymentHistoryResponse(BaseModel):
    payments: List[PaymentHistoryItem]
    pagination: Pagination


class PaymentMethodAttach(BaseModel):
    payment_method_id: str


class CardDetails(BaseModel):
    brand: Optional[str] = None
    last4: Optional[str] = None
    exp_month: Optional[int] = None
    exp_year: Optional[int] = None


class PaymentMethodRead(BaseModel):
    id: str
    type: str
    card: CardDetails


class WebhookResponse(BaseModel):
    received: bool = True
    status: str
    duplicate: bool = False
