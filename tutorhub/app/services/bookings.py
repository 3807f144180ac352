"""Booking creation: a student reserves a tutor's time as a PENDING booking."""

import logging
from datetime import timedelta

from sqlalchemy.orm import Session

from tutorhub.app.core.exceptions import InvalidStateError, NotFoundError
from tutorhub.app.core.time import ensure_utc
from tutorhub.app.domain.status import BookingStatus, NotificationType, SessionStatus, UserRole
from tutorhub.app.models.booking import Booking
from tutorhub.app.models.session import Session as SessionModel
from tutorhub.app.models.user import User
from tutorhub.app.schemas.booking import BookingCreate
from tutorhub.app.services.authorization import require_booking_viewer
from tutorhub.app.services.billing import to_money
from tutorhub.app.services.notifications import notify

logger = logging.getLogger(__name__)

MAX_SESSION_MINUTES = 480
ACTIVE_SESSION_STATUSES = (SessionStatus.SCHEDULED.value, SessionStatus.IN_PROGRESS.value)


def _has_conflict(db: Session, user_ids: tuple[int, int], start, end) -> bool:
    # Sessions are at most MAX_SESSION_MINUTES long, so only those starting in
    # (start - MAX, end) can overlap; the exact overlap test runs in Python.
    candidates = (
        db.query(SessionModel)
        .filter(
            SessionModel.status.in_(ACTIVE_SESSION_STATUSES),
            SessionModel.scheduled_at < end,
            SessionModel.scheduled_at > start - timedelta(minutes=MAX_SESSION_MINUTES),
            (SessionModel.tutor_id.in_(user_ids)) | (SessionModel.student_id.in_(user_ids)),
        )
        .all()
    )
    for other in candidates:
        other_start = ensure_utc(other.scheduled_at)
        other_end = other_start + timedelta(minutes=other.duration)
        if other_start < end and other_end > start:
            return True
    return False


def create_booking(db: Session, booking_in: BookingCreate, student: User) -> Booking:
    if booking_in.duration <= 0 or booking_in.duration > MAX_SESSION_MINUTES:
        raise InvalidStateError("Invalid session duration")

    tutor = db.query(User).filter(User.id == booking_in.tutor_id, User.role == UserRole.TUTOR.value).first()
    if not tutor:
        raise NotFoundError("Tutor not found")
    if tutor.id == student.id:
        raise InvalidStateError("You cannot book a session with yourself")

    start = ensure_utc(booking_in.scheduled_at)
    end = start + timedelta(minutes=booking_in.duration)
    if _has_conflict(db, (tutor.id, student.id), start, end):
        raise InvalidStateError("Scheduling conflict detected")

    session_obj = SessionModel(
        tutor_id=tutor.id,
        student_id=student.id,
        title=booking_in.title,
        description=booking_in.description,
        scheduled_at=start,
        duration=booking_in.duration,
        price=to_money(booking_in.price),
        status=SessionStatus.SCHEDULED.value,
    )
    booking = Booking(session=session_obj, student_id=student.id, status=BookingStatus.PENDING.value)
    db.add(session_obj)
    db.add(booking)
    notify(
        db,
        tutor.id,
        NotificationType.SESSION_REMINDER,
        "New Session Scheduled",
        f'A new session "{booking_in.title}" has been scheduled for {start.isoformat()}.',
    )
    db.commit()
    db.refresh(booking)
    logger.info("Booking %s created for session %s (tutor %s, student %s)", booking.id, session_obj.id, tutor.id, student.id)
    return booking


def get_booking_for_user(db: Session, booking_id: int, user: User) -> Booking:
    booking = db.query(Booking).filter(Booking.id == booking_id).first()
    if not booking:
        raise NotFoundError("Booking not found")
    require_booking_viewer(booking, user)
    return booking
