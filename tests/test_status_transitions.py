import pytest

from tutorhub.app.core.exceptions import InvalidStateError
from tutorhub.app.domain.status import (
    BookingStatus,
    PaymentStatus,
    SessionStatus,
    can_transition,
    ensure_transition,
)


@pytest.mark.parametrize(
    "current,target",
    [
        (SessionStatus.SCHEDULED, SessionStatus.IN_PROGRESS),
        (SessionStatus.SCHEDULED, SessionStatus.CANCELLED),
        (SessionStatus.IN_PROGRESS, SessionStatus.COMPLETED),
        (BookingStatus.PENDING, BookingStatus.CONFIRMED),
        (BookingStatus.CONFIRMED, BookingStatus.COMPLETED),
        (PaymentStatus.PENDING, PaymentStatus.COMPLETED),
        (PaymentStatus.FAILED, PaymentStatus.PENDING),
        (PaymentStatus.COMPLETED, PaymentStatus.PARTIALLY_REFUNDED),
        (PaymentStatus.PARTIALLY_REFUNDED, PaymentStatus.REFUNDED),
    ],
)
def test_legal_transitions(current, target):
    assert can_transition(current, target)
    assert ensure_transition("Entity", current, target) is True


@pytest.mark.parametrize(
    "current,target",
    [
        (SessionStatus.COMPLETED, SessionStatus.IN_PROGRESS),
        (SessionStatus.CANCELLED, SessionStatus.SCHEDULED),
        (SessionStatus.IN_PROGRESS, SessionStatus.SCHEDULED),
        (BookingStatus.CANCELLED, BookingStatus.CONFIRMED),
        (BookingStatus.COMPLETED, BookingStatus.CANCELLED),
        (PaymentStatus.REFUNDED, PaymentStatus.COMPLETED),
        (PaymentStatus.COMPLETED, PaymentStatus.FAILED),
        (PaymentStatus.PENDING, PaymentStatus.REFUNDED),
    ],
)
def test_illegal_transitions_raise(current, target):
    assert not can_transition(current, target)
    with pytest.raises(InvalidStateError):
        ensure_transition("Entity", current, target)


def test_same_status_is_a_no_op():
    assert can_transition(PaymentStatus.REFUNDED, PaymentStatus.REFUNDED)
    assert ensure_transition("Payment", "REFUNDED", PaymentStatus.REFUNDED) is False


def test_error_message_names_entity_and_statuses():
    with pytest.raises(InvalidStateError) as excinfo:
        ensure_transition("Session", "COMPLETED", SessionStatus.IN_PROGRESS)
    assert excinfo.value.message == "Session cannot move from COMPLETED to IN_PROGRESS"
