"""Status enums and the legal transitions between them.

Every status write in the services goes through ``ensure_transition`` so an
illegal move is rejected in one place rather than per handler. Re-entering
the current status is always legal and means "nothing to do".
"""

from enum import StrEnum

from tutorhub.app.core.exceptions import InvalidStateError


class SessionStatus(StrEnum):
    SCHEDULED = "SCHEDULED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class BookingStatus(StrEnum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class PaymentStatus(StrEnum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"
    PARTIALLY_REFUNDED = "PARTIALLY_REFUNDED"


class NotificationType(StrEnum):
    SESSION_REMINDER = "SESSION_REMINDER"
    SYSTEM_UPDATE = "SYSTEM_UPDATE"
    PAYMENT_DUE = "PAYMENT_DUE"
    REVIEW_REQUEST = "REVIEW_REQUEST"


class UserRole(StrEnum):
    STUDENT = "student"
    TUTOR = "tutor"


SESSION_TRANSITIONS: dict[SessionStatus, frozenset[SessionStatus]] = {
    SessionStatus.SCHEDULED: frozenset({SessionStatus.IN_PROGRESS, SessionStatus.CANCELLED}),
    SessionStatus.IN_PROGRESS: frozenset({SessionStatus.COMPLETED, SessionStatus.CANCELLED}),
    SessionStatus.COMPLETED: frozenset(),
    SessionStatus.CANCELLED: frozenset(),
}

BOOKING_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.COMPLETED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED}),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
}

PAYMENT_TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.COMPLETED, PaymentStatus.FAILED}),
    PaymentStatus.FAILED: frozenset({PaymentStatus.PENDING, PaymentStatus.COMPLETED}),
    PaymentStatus.COMPLETED: frozenset({PaymentStatus.REFUNDED, PaymentStatus.PARTIALLY_REFUNDED}),
    PaymentStatus.PARTIALLY_REFUNDED: frozenset({PaymentStatus.REFUNDED}),
    PaymentStatus.REFUNDED: frozenset(),
}

_TABLES = {
    SessionStatus: SESSION_TRANSITIONS,
    BookingStatus: BOOKING_TRANSITIONS,
    PaymentStatus: PAYMENT_TRANSITIONS,
}


def can_transition(current: StrEnum, target: StrEnum) -> bool:
    if current == target:
        return True
    table = _TABLES[type(target)]
    return target in table[type(target)(current)]


def ensure_transition(entity: str, current: StrEnum | str, target: StrEnum) -> bool:
    """Validate ``current -> target``.

    Returns ``False`` when the entity is already in ``target`` (no write
    needed) and ``True`` when a write is needed. Raises InvalidStateError for
    an illegal move.
    """
    current_status = type(target)(current)
    if current_status == target:
        return False
    if not can_transition(current_status, target):
        raise InvalidStateError(f"{entity} cannot move from {current_status} to {target}")
    return True
