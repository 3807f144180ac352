"""Capability checks run before every mutating operation."""

from dataclasses import dataclass

from tutorhub.app.core.exceptions import ForbiddenError
from tutorhub.app.models.booking import Booking
from tutorhub.app.models.payment import Payment
from tutorhub.app.models.session import Session as SessionModel
from tutorhub.app.models.user import User


@dataclass
class Participation:
    """The caller's side of a session and the user on the other side."""

    role: str
    user: User
    counterpart: User

    @property
    def is_tutor(self) -> bool:
        return self.role == "tutor"


def require_session_participant(session_obj: SessionModel, user: User, action: str) -> Participation:
    if user.id == session_obj.tutor_id:
        return Participation(role="tutor", user=session_obj.tutor, counterpart=session_obj.student)
    if user.id == session_obj.student_id:
        return Participation(role="student", user=session_obj.student, counterpart=session_obj.tutor)
    raise ForbiddenError(f"Unauthorized to {action} this session")


def require_session_viewer(session_obj: SessionModel, user: User) -> None:
    if user.is_admin or user.id in (session_obj.tutor_id, session_obj.student_id):
        return
    raise ForbiddenError("Access denied")


def require_booking_student(booking: Booking, user: User) -> None:
    if booking.student_id != user.id:
        raise ForbiddenError("Unauthorized")


def require_booking_viewer(booking: Booking, user: User) -> None:
    if user.is_admin or user.id in (booking.student_id, booking.session.tutor_id):
        return
    raise ForbiddenError("Access denied")


def require_payer_or_admin(payment: Payment, user: User) -> None:
    if payment.user_id != user.id and not user.is_admin:
        raise ForbiddenError("Unauthorized")
