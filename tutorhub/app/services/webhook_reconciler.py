"""
Reconcile Stripe webhook events with local payment, booking and session state.

Events are applied at most once: the processor's event id is written to
``processed_webhook_events`` in the same transaction as the state changes,
so a redelivered event is answered from the ledger and two concurrent
deliveries of the same event cannot both commit. Handlers are additionally
written to converge: re-applying an outcome the payment already reflects
changes nothing and sends no notification.

An event that cannot be applied yet (its payment row is not committed, or a
concurrent write won the status race) raises WebhookRetryError. Nothing is
written to the ledger in that case, so the processor's redelivery gets a
fresh attempt.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tutorhub.app.core.exceptions import ConcurrentModificationError, InvalidStateError, WebhookRetryError
from tutorhub.app.core.time import ensure_utc, utc_now
from tutorhub.app.domain.status import (
    BookingStatus,
    NotificationType,
    PaymentStatus,
    SessionStatus,
    can_transition,
)
from tutorhub.app.models.booking import Booking
from tutorhub.app.models.payment import Payment
from tutorhub.app.models.webhook_event import ProcessedWebhookEvent
from tutorhub.app.services.billing import from_minor_units, to_money
from tutorhub.app.services.notifications import notify
from tutorhub.app.services.transitions import apply_transition

logger = logging.getLogger(__name__)

PROCESSED = "processed"
IGNORED = "ignored"
REJECTED = "rejected"


def _payment_for_intent(db: Session, intent_id: str | None) -> Payment | None:
    if not intent_id:
        return None
    return db.query(Payment).filter(Payment.transaction_id == intent_id).first()


def _resolve_payment(db: Session, intent_id: str | None, metadata: Dict[str, Any] | None) -> Payment | None:
    """Find the payment an event refers to.

    Looks up the intent id first, then the ``booking_id`` the intent was
    created with. Returns None when the booking named in the metadata does
    not exist here; raises WebhookRetryError when the payment row has not
    been committed yet.
    """
    payment = _payment_for_intent(db, intent_id)
    if payment is not None:
        return payment

    raw_booking_id = (metadata or {}).get("booking_id")
    if raw_booking_id is None:
        raise WebhookRetryError(f"No payment recorded for intent {intent_id}")
    try:
        booking_id = int(raw_booking_id)
    except (TypeError, ValueError):
        logger.warning("Intent %s carries malformed booking_id %r", intent_id, raw_booking_id)
        return None

    booking = db.query(Booking).filter(Booking.id == booking_id).first()
    if booking is None:
        logger.warning("Intent %s refers to unknown booking %s", intent_id, booking_id)
        return None
    if booking.payment is None:
        raise WebhookRetryError(f"No payment recorded yet for booking {booking_id}")
    return booking.payment


def _handle_payment_succeeded(db: Session, intent: Dict[str, Any], now: datetime) -> str:
    intent_id = intent.get("id")
    payment = _resolve_payment(db, intent_id, intent.get("metadata"))
    if payment is None:
        return IGNORED

    changes = {"paid_at": now}
    if intent_id and payment.transaction_id != intent_id:
        # The intent that actually charged the card becomes the payment's reference.
        logger.info("Payment %s settled by intent %s (recorded %s)", payment.id, intent_id, payment.transaction_id)
        changes["transaction_id"] = intent_id
    changed = apply_transition(db, payment, PaymentStatus.COMPLETED, **changes)

    booking = payment.booking
    if can_transition(BookingStatus(booking.status), BookingStatus.CONFIRMED):
        apply_transition(db, booking, BookingStatus.CONFIRMED)
    else:
        logger.info("Booking %s already %s; not confirming", booking.id, booking.status)

    session_obj = booking.session
    if session_obj.status != SessionStatus.SCHEDULED:
        # Sessions only move forward; a paid session that already started stays where it is.
        logger.info("Session %s is %s after payment success; leaving status", session_obj.id, session_obj.status)

    if changed:
        notify(
            db,
            payment.user_id,
            NotificationType.PAYMENT_DUE,
            "Payment Successful",
            "Your payment has been processed successfully. Your session is now confirmed.",
        )
        notify(
            db,
            session_obj.tutor_id,
            NotificationType.SESSION_REMINDER,
            "New Booking Confirmed",
            "A new session has been booked and paid for.",
        )
    return PROCESSED


def _handle_payment_failed(db: Session, intent: Dict[str, Any], now: datetime) -> str:
    intent_id = intent.get("id")
    payment = _resolve_payment(db, intent_id, intent.get("metadata"))
    if payment is None:
        return IGNORED
    if payment.transaction_id != intent_id:
        # A failure on an intent the payment has moved away from says nothing about the payment.
        logger.info("Ignoring failure of superseded intent %s for payment %s", intent_id, payment.id)
        return IGNORED

    if apply_transition(db, payment, PaymentStatus.FAILED):
        notify(
            db,
            payment.user_id,
            NotificationType.PAYMENT_DUE,
            "Payment Failed",
            "Your payment could not be processed. Please try again.",
        )
    return PROCESSED


def _refund_reason(charge: Dict[str, Any]) -> str:
    refunds = (charge.get("refunds") or {}).get("data") or []
    if refunds and refunds[0].get("reason"):
        return refunds[0]["reason"]
    return "Customer requested"


def _handle_charge_refunded(db: Session, charge: Dict[str, Any], now: datetime) -> str:
    payment = _resolve_payment(db, charge.get("payment_intent"), charge.get("metadata"))
    if payment is None:
        return IGNORED
    if payment.status == PaymentStatus.REFUNDED:
        return PROCESSED

    session_obj = payment.booking.session
    if ensure_utc(session_obj.scheduled_at) < now:
        raise InvalidStateError("Cannot refund past sessions")

    refunded_amount = from_minor_units(int(charge.get("amount_refunded") or 0))
    fully_refunded = bool(charge.get("refunded")) or refunded_amount >= to_money(payment.amount)
    target = PaymentStatus.REFUNDED if fully_refunded else PaymentStatus.PARTIALLY_REFUNDED
    if not fully_refunded and refunded_amount <= to_money(payment.refunded_amount or 0):
        return PROCESSED

    changes = {
        "refunded_at": now,
        "refund_reason": payment.refund_reason or _refund_reason(charge),
        "refunded_amount": refunded_amount if refunded_amount > 0 else to_money(payment.amount),
    }
    changed = apply_transition(db, payment, target, **changes)
    if not changed:
        for field, value in changes.items():
            setattr(payment, field, value)

    booking = payment.booking
    if can_transition(BookingStatus(booking.status), BookingStatus.CANCELLED):
        apply_transition(db, booking, BookingStatus.CANCELLED)
    if session_obj.status == SessionStatus.SCHEDULED:
        apply_transition(db, session_obj, SessionStatus.CANCELLED)

    notify(
        db,
        payment.user_id,
        NotificationType.PAYMENT_DUE,
        "Refund Processed",
        "Your refund has been processed successfully.",
    )
    return PROCESSED


EVENT_HANDLERS: Dict[str, Callable[[Session, Dict[str, Any], datetime], str]] = {
    "payment_intent.succeeded": _handle_payment_succeeded,
    "payment_intent.payment_failed": _handle_payment_failed,
    "charge.refunded": _handle_charge_refunded,
}


def reconcile_event(db: Session, event: Dict[str, Any], now: datetime | None = None) -> tuple[str, bool]:
    """Apply one verified event. Returns ``(status, duplicate)``."""
    now = now or utc_now()
    event_id = event.get("id")
    event_type = event.get("type", "")

    if event_id:
        seen = db.query(ProcessedWebhookEvent).filter(ProcessedWebhookEvent.event_id == event_id).first()
        if seen:
            logger.info("Webhook event %s (%s) already handled as %s", event_id, event_type, seen.status)
            return seen.status, True

    data_object = (event.get("data") or {}).get("object") or {}
    handler = EVENT_HANDLERS.get(event_type)
    error = None
    if handler is None:
        logger.info("Unhandled event type: %s", event_type)
        status = IGNORED
    else:
        try:
            status = handler(db, data_object, now)
        except ConcurrentModificationError as exc:
            db.rollback()
            logger.warning("Webhook event %s (%s) lost a status race: %s", event_id, event_type, exc.message)
            raise WebhookRetryError(f"Event {event_id} could not be applied: {exc.message}") from exc
        except WebhookRetryError as exc:
            db.rollback()
            logger.warning("Deferring webhook event %s (%s): %s", event_id, event_type, exc.message)
            raise
        except InvalidStateError as exc:
            db.rollback()
            logger.warning("Rejected webhook event %s (%s): %s", event_id, event_type, exc.message)
            status = REJECTED
            error = exc.message

    if event_id:
        db.add(
            ProcessedWebhookEvent(
                event_id=event_id,
                event_type=event_type,
                status=status,
                processing_error=error,
                processed_at=utc_now(),
            )
        )
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.info("Webhook event %s was handled by a concurrent delivery", event_id)
        seen = db.query(ProcessedWebhookEvent).filter(ProcessedWebhookEvent.event_id == event_id).first()
        return (seen.status if seen else status), True

    logger.info("Webhook event %s (%s) %s", event_id, event_type, status)
    return status, False
