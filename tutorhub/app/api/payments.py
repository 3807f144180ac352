"""Payment endpoints: intents, refunds, history, saved cards and the Stripe webhook."""

from typing import Optional

from fastapi import APIRouter, Depends, Header, Query, Request, status
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from tutorhub.app.db.session import get_db
from tutorhub.app.dependencies.auth import get_current_user
from tutorhub.app.models.user import User
from tutorhub.app.schemas.payment import (
    PaymentHistoryResponse,
    PaymentIntentCreate,
    PaymentIntentResponse,
    PaymentMethodAttach,
    PaymentMethodRead,
    RefundRequest,
    RefundResponse,
    WebhookResponse,
)
from tutorhub.app.services import payments as payment_service
from tutorhub.app.services.stripe_gateway import StripeGateway, get_payment_gateway, verify_webhook_event
from tutorhub.app.services.webhook_reconciler import reconcile_event

router = APIRouter(prefix="/api/payments", tags=["payments"])


@router.post("/create-payment-intent", response_model=PaymentIntentResponse)
def create_payment_intent(
    payload: PaymentIntentCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    gateway: StripeGateway = Depends(get_payment_gateway),
):
    return payment_service.create_payment_intent(
        db,
        gateway,
        payload.booking_id,
        current_user,
        payment_method_id=payload.payment_method_id,
    )


@router.post("/refund", response_model=RefundResponse)
def refund_payment(
    payload: RefundRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    gateway: StripeGateway = Depends(get_payment_gateway),
):
    return payment_service.refund_payment(
        db,
        gateway,
        payload.payment_id,
        current_user,
        reason=payload.reason,
        amount=payload.amount,
    )


@router.post("/webhook", response_model=WebhookResponse)
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(default=None, alias="stripe-signature"),
    db: Session = Depends(get_db),
):
    # Signature is computed over the raw body; it must be read before any parsing.
    payload = await request.body()
    event = await run_in_threadpool(verify_webhook_event, payload, stripe_signature)
    event_status, duplicate = await run_in_threadpool(reconcile_event, db, event)
    return WebhookResponse(status=event_status, duplicate=duplicate)


@router.get("/history", response_model=PaymentHistoryResponse)
def payment_history(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status_filter: Optional[str] = Query(None, alias="status"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return payment_service.get_payment_history(db, current_user, page=page, limit=limit, status=status_filter)


@router.get("/methods", response_model=list[PaymentMethodRead])
def list_payment_methods(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    gateway: StripeGateway = Depends(get_payment_gateway),
):
    return payment_service.list_payment_methods(db, gateway, current_user)


@router.post("/methods", status_code=status.HTTP_201_CREATED)
def add_payment_method(
    payload: PaymentMethodAttach,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    gateway: StripeGateway = Depends(get_payment_gateway),
):
    payment_service.add_payment_method(db, gateway, current_user, payload.payment_method_id)
    return {"success": True}


@router.delete("/methods/{payment_method_id}")
def remove_payment_method(
    payment_method_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    gateway: StripeGateway = Depends(get_payment_gateway),
):
    payment_service.remove_payment_method(db, gateway, current_user, payment_method_id)
    return {"success": True}
