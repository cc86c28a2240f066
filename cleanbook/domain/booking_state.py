"""Booking state machine."""

from enum import Enum
from types import MappingProxyType

from cleanbook.core.exceptions import InvalidTransition


class BookingStatus(str, Enum):
    """Lifecycle status of a booking."""

    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"


BOOKING_TRANSITIONS: MappingProxyType[BookingStatus, frozenset[BookingStatus]] = MappingProxyType(
    {
        BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
        BookingStatus.CONFIRMED: frozenset({BookingStatus.IN_PROGRESS, BookingStatus.CANCELLED}),
        BookingStatus.IN_PROGRESS: frozenset({BookingStatus.COMPLETED, BookingStatus.NO_SHOW}),
        BookingStatus.COMPLETED: frozenset(),
        BookingStatus.CANCELLED: frozenset(),
        BookingStatus.NO_SHOW: frozenset(),
    }
)

TERMINAL_STATUSES = frozenset(s for s, nxt in BOOKING_TRANSITIONS.items() if not nxt)


def allowed_next_states(current: BookingStatus | str) -> frozenset[BookingStatus]:
    """Statuses reachable in one step from ``current``."""
    return BOOKING_TRANSITIONS.get(BookingStatus(current), frozenset())


def can_transition(current: BookingStatus | str, target: BookingStatus | str) -> bool:
    return BookingStatus(target) in allowed_next_states(current)


def is_terminal(status: BookingStatus | str) -> bool:
    return BookingStatus(status) in TERMINAL_STATUSES


def assert_booking_transition(current: BookingStatus | str, target: BookingStatus | str) -> None:
    current = BookingStatus(current)
    target = BookingStatus(target)
    if target not in allowed_next_states(current):
        raise InvalidTransition(current.value, target.value)
