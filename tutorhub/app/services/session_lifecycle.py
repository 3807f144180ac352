"""
Session lifecycle: start, join, leave, end, cancel and direct status updates.

Timing rules, all in whole minutes relative to ``scheduled_at``:

- start is allowed from 15 minutes before the scheduled time, with no
  upper bound;
- join is allowed from 30 minutes before start until 15 minutes after the
  scheduled end, and auto-starts a SCHEDULED session when the caller is
  within 15 minutes either side of the start;
- end pro-rates the price when the session ran shorter than booked.
"""

import logging
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from tutorhub.app.core.exceptions import InvalidStateError, NotFoundError
from tutorhub.app.core.settings import get_settings
from tutorhub.app.core.time import ensure_utc, utc_now, whole_minutes_between
from tutorhub.app.domain.status import (
    BookingStatus,
    NotificationType,
    PaymentStatus,
    SessionStatus,
    can_transition,
)
from tutorhub.app.models.review import Review
from tutorhub.app.models.session import Session as SessionModel
from tutorhub.app.models.user import User
from tutorhub.app.services.authorization import (
    Participation,
    require_session_participant,
    require_session_viewer,
)
from tutorhub.app.services.billing import calculate_actual_cost, clamp_actual_duration, to_money
from tutorhub.app.services.notifications import notify
from tutorhub.app.services.transitions import apply_transition

logger = logging.getLogger(__name__)

START_WINDOW_MINUTES = 15
JOIN_OPENS_MINUTES = 30
JOIN_CLOSES_AFTER_END_MINUTES = 15
AUTO_START_MINUTES = 15


def get_session_or_404(db: Session, session_id: int) -> SessionModel:
    session_obj = db.query(SessionModel).filter(SessionModel.id == session_id).first()
    if not session_obj:
        raise NotFoundError("Session not found")
    return session_obj


def get_session_for_user(db: Session, session_id: int, user: User) -> SessionModel:
    session_obj = get_session_or_404(db, session_id)
    require_session_viewer(session_obj, user)
    return session_obj


def build_meeting_link(session_id: int) -> str:
    return f"{get_settings().app_url}/session/{session_id}/video"


def _participant(user: User) -> dict:
    return {"id": user.id, "name": user.display_name, "email": user.email}


def start_session(db: Session, session_id: int, user: User, now: datetime | None = None) -> dict:
    now = now or utc_now()
    session_obj = get_session_or_404(db, session_id)
    participation = require_session_participant(session_obj, user, "start")

    if session_obj.status != SessionStatus.SCHEDULED:
        raise InvalidStateError(f"Session cannot be started. Current status: {session_obj.status}")

    minutes_before_start = whole_minutes_between(now, session_obj.scheduled_at)
    if minutes_before_start > START_WINDOW_MINUTES:
        raise InvalidStateError(
            f"Session can only be started within {START_WINDOW_MINUTES} minutes of scheduled time"
        )

    meeting_link = session_obj.meeting_link or build_meeting_link(session_obj.id)
    apply_transition(db, session_obj, SessionStatus.IN_PROGRESS, meeting_link=meeting_link, started_at=now)
    notify(
        db,
        participation.counterpart.id,
        NotificationType.SESSION_REMINDER,
        "Session Started",
        f'{participation.user.display_name} has started the session "{session_obj.title}". Join now!',
    )
    db.commit()
    db.refresh(session_obj)
    logger.info("Session %s started by user %s", session_obj.id, user.id)

    return {
        "message": "Session started successfully",
        "session": session_obj,
        "meeting_link": meeting_link,
        "participant": _participant(participation.counterpart),
    }


def join_session(db: Session, session_id: int, user: User, now: datetime | None = None) -> dict:
    now = now or utc_now()
    session_obj = get_session_or_404(db, session_id)
    participation = require_session_participant(session_obj, user, "join")

    if session_obj.status in (SessionStatus.COMPLETED, SessionStatus.CANCELLED):
        raise InvalidStateError(f"Session cannot be joined. Current status: {session_obj.status}")

    scheduled_at = ensure_utc(session_obj.scheduled_at)
    scheduled_end = scheduled_at + timedelta(minutes=session_obj.duration)
    minutes_before_start = whole_minutes_between(now, scheduled_at)
    minutes_after_end = whole_minutes_between(scheduled_end, now)

    if minutes_before_start > JOIN_OPENS_MINUTES:
        raise InvalidStateError(
            f"Session can only be joined within {JOIN_OPENS_MINUTES} minutes of scheduled time"
        )
    if minutes_after_end > JOIN_CLOSES_AFTER_END_MINUTES:
        raise InvalidStateError(
            f"Session join period has ended ({JOIN_CLOSES_AFTER_END_MINUTES} minutes after scheduled end time)"
        )

    meeting_link = session_obj.meeting_link or build_meeting_link(session_obj.id)
    should_auto_start = (
        session_obj.status == SessionStatus.SCHEDULED
        and -AUTO_START_MINUTES <= minutes_before_start <= AUTO_START_MINUTES
    )
    if should_auto_start:
        apply_transition(db, session_obj, SessionStatus.IN_PROGRESS, meeting_link=meeting_link, started_at=now)
        notify(
            db,
            participation.counterpart.id,
            NotificationType.SESSION_REMINDER,
            "Session Starting",
            f'{participation.user.display_name} has joined the session "{session_obj.title}". Please join now!',
        )
    elif session_obj.meeting_link is None:
        session_obj.meeting_link = meeting_link
    db.commit()
    db.refresh(session_obj)
    logger.info("User %s joined session %s", user.id, session_obj.id)

    return {
        "message": "Successfully joined session",
        "session": session_obj,
        "participants": {
            "tutor": _participant(session_obj.tutor),
            "student": _participant(session_obj.student),
        },
        "user_role": participation.role,
        "can_start": session_obj.status == SessionStatus.SCHEDULED and participation.is_tutor,
        "time_until_start": max(0, minutes_before_start),
        "time_until_end": max(0, -minutes_after_end),
    }


def leave_session(db: Session, session_id: int, user: User, reason: str | None = None) -> dict:
    session_obj = get_session_or_404(db, session_id)
    participation = require_session_participant(session_obj, user, "leave")

    if session_obj.status != SessionStatus.IN_PROGRESS:
        raise InvalidStateError(f"Session is not in progress. Current status: {session_obj.status}")

    message = f'{participation.user.display_name} has left the session "{session_obj.title}".'
    if reason:
        message = f"{message} Reason: {reason}"
    notify(db, participation.counterpart.id, NotificationType.SYSTEM_UPDATE, "Participant Left", message)
    db.commit()

    if participation.is_tutor:
        # Status is left alone; a tutor walking out does not end the session.
        logger.warning("Tutor %s left in-progress session %s", user.id, session_obj.id)
    logger.info("User %s left session %s (reason=%r)", user.id, session_obj.id, reason)

    return {
        "message": "Successfully left session",
        "session": session_obj,
        "participant": _participant(participation.counterpart),
    }


def _settle_booking_on_end(db: Session, session_obj: SessionModel, actual_cost, now: datetime) -> None:
    booking = session_obj.booking
    if booking is None:
        return
    if not can_transition(BookingStatus(booking.status), BookingStatus.COMPLETED):
        logger.warning("Booking %s is %s; leaving it as is for ended session %s", booking.id, booking.status, session_obj.id)
        return
    apply_transition(db, booking, BookingStatus.COMPLETED)

    payment = booking.payment
    if payment is None or to_money(session_obj.price) == actual_cost:
        return
    if not can_transition(PaymentStatus(payment.status), PaymentStatus.COMPLETED):
        logger.warning(
            "Skipping amount adjustment for payment %s in status %s (session %s)",
            payment.id,
            payment.status,
            session_obj.id,
        )
        return
    changed = apply_transition(db, payment, PaymentStatus.COMPLETED, amount=actual_cost, paid_at=now)
    if not changed:
        payment.amount = actual_cost
        payment.paid_at = now
    logger.info("Payment %s adjusted to %s for early-ended session %s", payment.id, actual_cost, session_obj.id)


def _record_review(db: Session, session_obj: SessionModel, rating: int | None, feedback: str | None) -> None:
    if not rating or not feedback:
        return
    if session_obj.review is not None:
        logger.info("Session %s already has a review; ignoring end-of-session feedback", session_obj.id)
        return
    db.add(
        Review(
            session_id=session_obj.id,
            tutor_id=session_obj.tutor_id,
            student_id=session_obj.student_id,
            rating=rating,
            comment=feedback,
        )
    )


def end_session(
    db: Session,
    session_id: int,
    user: User,
    reason: str | None = None,
    rating: int | None = None,
    feedback: str | None = None,
    now: datetime | None = None,
) -> dict:
    now = now or utc_now()
    session_obj = get_session_or_404(db, session_id)
    participation: Participation = require_session_participant(session_obj, user, "end")

    if session_obj.status != SessionStatus.IN_PROGRESS:
        raise InvalidStateError(f"Session cannot be ended. Current status: {session_obj.status}")

    started_at = session_obj.started_at or session_obj.scheduled_at
    elapsed = whole_minutes_between(started_at, now)
    actual_duration = clamp_actual_duration(elapsed, session_obj.duration)
    actual_cost = calculate_actual_cost(session_obj.price, session_obj.duration, actual_duration)

    apply_transition(
        db,
        session_obj,
        SessionStatus.COMPLETED,
        ended_at=now,
        actual_duration=actual_duration,
    )
    _settle_booking_on_end(db, session_obj, actual_cost, now)
    _record_review(db, session_obj, rating, feedback)

    message = f'{participation.user.display_name} has ended the session "{session_obj.title}".'
    if reason:
        message = f"{message} Reason: {reason}"
    notify(db, participation.counterpart.id, NotificationType.SYSTEM_UPDATE, "Session Ended", message)
    db.commit()
    db.refresh(session_obj)

    summary = {
        "session_id": session_obj.id,
        "title": session_obj.title,
        "scheduled_duration": session_obj.duration,
        "actual_duration": actual_duration,
        "scheduled_price": float(session_obj.price),
        "actual_cost": float(actual_cost),
        "ended_by": participation.user.display_name,
        "ended_at": now,
        "reason": reason or "Session completed normally",
    }
    logger.info("Session %s ended by user %s: %s", session_obj.id, user.id, summary)
    return {"message": "Session ended successfully", "session": session_obj, "summary": summary}


def cancel_session(db: Session, session_id: int, user: User, now: datetime | None = None) -> SessionModel:
    session_obj = get_session_or_404(db, session_id)
    participation = require_session_participant(session_obj, user, "cancel")

    if not apply_transition(db, session_obj, SessionStatus.CANCELLED, ended_at=now or utc_now()):
        return session_obj
    booking = session_obj.booking
    if booking is not None and can_transition(BookingStatus(booking.status), BookingStatus.CANCELLED):
        apply_transition(db, booking, BookingStatus.CANCELLED)
    notify(
        db,
        participation.counterpart.id,
        NotificationType.SYSTEM_UPDATE,
        "Session Cancelled",
        f'{participation.user.display_name} has cancelled the session "{session_obj.title}".',
    )
    db.commit()
    db.refresh(session_obj)
    logger.info("Session %s cancelled by user %s", session_obj.id, user.id)
    return session_obj


def update_session_status(
    db: Session, session_id: int, user: User, target: SessionStatus, now: datetime | None = None
) -> SessionModel:
    """Drive a session to ``target`` through the same rules as the dedicated operations.

    IN_PROGRESS goes through start (time window, meeting link), COMPLETED
    through end (duration, pro-rating, booking settlement) and CANCELLED
    cancels the booking with it. Asking for the current status is a no-op.
    """
    session_obj = get_session_or_404(db, session_id)
    require_session_participant(session_obj, user, "update")
    if session_obj.status == target:
        return session_obj

    if target == SessionStatus.IN_PROGRESS:
        return start_session(db, session_id, user, now=now)["session"]
    if target == SessionStatus.COMPLETED:
        return end_session(db, session_id, user, now=now)["session"]
    if target == SessionStatus.CANCELLED:
        return cancel_session(db, session_id, user, now=now)
    raise InvalidStateError(f"Session cannot move from {session_obj.status} to {target}")
