"""Role-based access control and the booking authorization guard.

Every decision about who may move a booking between statuses lives in
``TRANSITION_RULES`` so the whole permission matrix can be read in one place.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from cleanbook.core.exceptions import AuthorizationError
from cleanbook.domain.booking_state import BookingStatus

if TYPE_CHECKING:
    from cleanbook.models.booking import Booking


class UserRole(str, Enum):
    """User roles in the system."""

    CUSTOMER = "CUSTOMER"
    CLEANER = "CLEANER"
    ADMIN = "ADMIN"


class BookingRelation(str, Enum):
    """How an actor is related to a particular booking."""

    OWNER = "owner"  # the customer who requested it
    ASSIGNED_CLEANER = "assigned_cleaner"
    NONE = "none"


@dataclass(frozen=True)
class Actor:
    """The authenticated caller, as resolved by the identity provider."""

    user_id: UUID
    role: UserRole


ALL_STATUSES = frozenset(BookingStatus)


@dataclass(frozen=True)
class TransitionRule:
    """Grants ``role`` (with ``relation``) the move from ``from_statuses`` to ``to_statuses``.

    A ``relation`` of None matches any relation.
    """

    role: UserRole
    relation: BookingRelation | None
    from_statuses: frozenset[BookingStatus]
    to_statuses: frozenset[BookingStatus]

    def matches(self, role: UserRole, relation: BookingRelation, current: BookingStatus, requested: BookingStatus) -> bool:
        if role != self.role:
            return False
        if self.relation is not None and relation != self.relation:
            return False
        return current in self.from_statuses and requested in self.to_statuses


# Evaluated in order, first match wins; no match means deny.
TRANSITION_RULES: tuple[TransitionRule, ...] = (
    TransitionRule(UserRole.ADMIN, None, ALL_STATUSES, ALL_STATUSES),
    # The assigned cleaner drives the job: start, complete, no-show or cancel.
    TransitionRule(
        UserRole.CLEANER,
        BookingRelation.ASSIGNED_CLEANER,
        frozenset({BookingStatus.CONFIRMED, BookingStatus.IN_PROGRESS}),
        ALL_STATUSES,
    ),
    # Customer self-cancellation window.
    TransitionRule(
        UserRole.CUSTOMER,
        BookingRelation.OWNER,
        frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED}),
        frozenset({BookingStatus.CANCELLED}),
    ),
)


def relation_to_booking(actor: Actor, booking: Booking) -> BookingRelation:
    """Classify the actor relative to the booking."""
    if actor.role == UserRole.CUSTOMER and booking.customer_id == actor.user_id:
        return BookingRelation.OWNER
    if (
        actor.role == UserRole.CLEANER
        and booking.cleaner_id is not None
        and booking.cleaner_id == actor.user_id
    ):
        return BookingRelation.ASSIGNED_CLEANER
    return BookingRelation.NONE


def find_rule(
    role: UserRole,
    relation: BookingRelation,
    current: BookingStatus,
    requested: BookingStatus,
) -> TransitionRule | None:
    for rule in TRANSITION_RULES:
        if rule.matches(role, relation, current, requested):
            return rule
    return None


def may_transition(actor: Actor, booking: Booking, requested: BookingStatus) -> bool:
    """Check whether the actor may request ``requested`` on ``booking``."""
    relation = relation_to_booking(actor, booking)
    rule = find_rule(
        UserRole(actor.role), relation, BookingStatus(booking.status), BookingStatus(requested)
    )
    return rule is not None


def assert_may_transition(actor: Actor, booking: Booking, requested: BookingStatus) -> None:
    if not may_transition(actor, booking, requested):
        raise AuthorizationError(
            f"Role '{UserRole(actor.role).value}' may not move this booking "
            f"from {BookingStatus(booking.status).value} to {BookingStatus(requested).value}"
        )


def may_assign_cleaner(actor: Actor) -> bool:
    """Cleaner assignment is an admin-only operation."""
    return actor.role == UserRole.ADMIN


def may_view_booking(actor: Actor, booking: Booking) -> bool:
    """Admins and the booking's participants may read it and watch its updates."""
    if actor.role == UserRole.ADMIN:
        return True
    return relation_to_booking(actor, booking) != BookingRelation.NONE

