"""Client-driven payment operations: intents, manual refunds, history and saved cards."""

import logging
import math
from datetime import datetime
from decimal import Decimal

from sqlalchemy.orm import Session

from tutorhub.app.core.exceptions import InvalidStateError, NotFoundError
from tutorhub.app.core.settings import get_settings
from tutorhub.app.core.time import ensure_utc, utc_now
from tutorhub.app.domain.status import BookingStatus, NotificationType, PaymentStatus, SessionStatus
from tutorhub.app.models.booking import Booking
from tutorhub.app.models.payment import Payment
from tutorhub.app.models.user import User
from tutorhub.app.services.authorization import require_booking_student, require_payer_or_admin
from tutorhub.app.services.billing import to_minor_units, to_money
from tutorhub.app.services.notifications import notify
from tutorhub.app.services.stripe_gateway import StripeGateway
from tutorhub.app.services.transitions import apply_transition

logger = logging.getLogger(__name__)

REFUNDABLE_STATUSES = (PaymentStatus.COMPLETED, PaymentStatus.PARTIALLY_REFUNDED)


def create_payment_intent(
    db: Session,
    gateway: StripeGateway,
    booking_id: int,
    user: User,
    payment_method_id: str | None = None,
) -> dict:
    booking = db.query(Booking).filter(Booking.id == booking_id).first()
    if not booking:
        raise NotFoundError("Booking not found")
    require_booking_student(booking, user)
    if booking.status != BookingStatus.PENDING:
        raise InvalidStateError("Booking is not available for payment")

    session_obj = booking.session
    amount = to_money(session_obj.price)
    payment = booking.payment

    if (
        payment is not None
        and payment.status == PaymentStatus.PENDING
        and payment.transaction_id
        and not payment_method_id
    ):
        intent = gateway.retrieve_payment_intent(payment.transaction_id)
        logger.info("Reusing payment intent %s for booking %s", intent["id"], booking.id)
    else:
        intent = gateway.create_payment_intent(
            amount_cents=to_minor_units(amount),
            metadata={"booking_id": str(booking.id), "user_id": str(user.id)},
            customer_id=user.stripe_customer_id,
            payment_method_id=payment_method_id,
            return_url=f"{get_settings().app_url}/payment/success",
        )
        logger.info("Created payment intent %s for booking %s", intent["id"], booking.id)

    method = "saved_card" if payment_method_id else "card"
    if payment is None:
        payment = Payment(
            booking_id=booking.id,
            user_id=user.id,
            amount=amount,
            currency=get_settings().stripe_currency.upper(),
            status=PaymentStatus.PENDING.value,
            transaction_id=intent["id"],
            payment_method=method,
        )
        db.add(payment)
    else:
        if not apply_transition(db, payment, PaymentStatus.PENDING, transaction_id=intent["id"], payment_method=method):
            payment.transaction_id = intent["id"]
            payment.payment_method = method
    db.commit()

    return {
        "client_secret": intent.get("client_secret"),
        "payment_intent_id": intent["id"],
        "amount": float(amount),
    }


def _refundable_remainder(payment: Payment) -> Decimal:
    already = to_money(payment.refunded_amount or 0)
    return to_money(payment.amount) - already


def refund_payment(
    db: Session,
    gateway: StripeGateway,
    payment_id: int,
    user: User,
    reason: str,
    amount: Decimal | None = None,
    now: datetime | None = None,
) -> dict:
    now = now or utc_now()
    payment = db.query(Payment).filter(Payment.id == payment_id).first()
    if not payment:
        raise NotFoundError("Payment not found")
    require_payer_or_admin(payment, user)

    if payment.status not in REFUNDABLE_STATUSES:
        raise InvalidStateError("Payment cannot be refunded")

    booking = payment.booking
    session_obj = booking.session
    if ensure_utc(session_obj.scheduled_at) < now:
        raise InvalidStateError("Cannot refund past sessions")

    remainder = _refundable_remainder(payment)
    refund_amount = to_money(amount) if amount is not None else remainder
    if refund_amount <= 0 or refund_amount > remainder:
        raise InvalidStateError("Refund amount exceeds the refundable balance")

    refund = gateway.create_refund(
        payment_intent_id=payment.transaction_id,
        amount_cents=to_minor_units(refund_amount),
        metadata={"payment_id": str(payment.id), "reason": reason},
    )

    total_refunded = to_money(payment.refunded_amount or 0) + refund_amount
    target = PaymentStatus.REFUNDED if total_refunded >= to_money(payment.amount) else PaymentStatus.PARTIALLY_REFUNDED
    changes = {"refunded_at": now, "refund_reason": reason, "refunded_amount": total_refunded}
    if not apply_transition(db, payment, target, **changes):
        for field, value in changes.items():
            setattr(payment, field, value)

    apply_transition(db, booking, BookingStatus.CANCELLED)
    if session_obj.status == SessionStatus.SCHEDULED:
        apply_transition(db, session_obj, SessionStatus.CANCELLED)

    notify(
        db,
        payment.user_id,
        NotificationType.PAYMENT_DUE,
        "Refund Processed",
        f"Your refund of ${refund_amount:.2f} has been processed.",
    )
    notify(
        db,
        session_obj.tutor_id,
        NotificationType.SESSION_REMINDER,
        "Session Cancelled",
        "A session has been cancelled and refunded.",
    )
    db.commit()
    logger.info("Refunded %s on payment %s (%s) by user %s", refund_amount, payment.id, target.value, user.id)

    return {
        "success": True,
        "refund_id": refund["id"],
        "amount": float(refund_amount),
        "status": refund.get("status"),
    }


def get_payment_history(db: Session, user: User, page: int = 1, limit: int = 10, status: str | None = None) -> dict:
    page = max(page, 1)
    limit = max(min(limit, 100), 1)
    query = db.query(Payment).filter(Payment.user_id == user.id)
    if status and status != "ALL":
        query = query.filter(Payment.status == status)

    total = query.count()
    payments = (
        query.order_by(Payment.created_at.desc(), Payment.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    items = []
    for payment in payments:
        session_obj = payment.booking.session
        tutor = session_obj.tutor
        items.append(
            {
                **{column: getattr(payment, column) for column in _PAYMENT_FIELDS},
                "session": {
                    "id": session_obj.id,
                    "title": session_obj.title,
                    "scheduled_at": session_obj.scheduled_at,
                    "duration": session_obj.duration,
                    "tutor": {"id": tutor.id, "name": tutor.display_name, "email": tutor.email},
                },
            }
        )

    return {
        "payments": items,
        "pagination": {"page": page, "limit": limit, "total": total, "pages": math.ceil(total / limit)},
    }


_PAYMENT_FIELDS = (
    "id",
    "booking_id",
    "user_id",
    "amount",
    "currency",
    "status",
    "transaction_id",
    "payment_method",
    "paid_at",
    "refunded_at",
    "refund_reason",
    "refunded_amount",
    "created_at",
)


def _ensure_customer(db: Session, gateway: StripeGateway, user: User) -> str:
    customer_id = gateway.ensure_customer(user.email, user.full_name or "", user.id, user.stripe_customer_id)
    if customer_id != user.stripe_customer_id:
        user.stripe_customer_id = customer_id
        db.commit()
    return customer_id


def list_payment_methods(db: Session, gateway: StripeGateway, user: User) -> list[dict]:
    customer_id = _ensure_customer(db, gateway, user)
    return gateway.list_card_methods(customer_id)


def add_payment_method(db: Session, gateway: StripeGateway, user: User, payment_method_id: str) -> None:
    customer_id = _ensure_customer(db, gateway, user)
    gateway.attach_payment_method(payment_method_id, customer_id)


def remove_payment_method(db: Session, gateway: StripeGateway, user: User, payment_method_id: str) -> None:
    customer_id = _ensure_customer(db, gateway, user)
    owned = {method["id"] for method in gateway.list_card_methods(customer_id)}
    if payment_method_id not in owned:
        raise NotFoundError("Payment method not found")
    gateway.detach_payment_method(payment_method_id)
