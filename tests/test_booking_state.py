import pytest

from cleanbook.core.exceptions import InvalidTransition
from cleanbook.domain.booking_state import (
    BOOKING_TRANSITIONS,
    TERMINAL_STATUSES,
    BookingStatus,
    allowed_next_states,
    assert_booking_transition,
    can_transition,
    is_terminal,
)

S = BookingStatus


def test_transition_table_matches_lifecycle():
    assert allowed_next_states(S.PENDING) == {S.CONFIRMED, S.CANCELLED}
    assert allowed_next_states(S.CONFIRMED) == {S.IN_PROGRESS, S.CANCELLED}
    assert allowed_next_states(S.IN_PROGRESS) == {S.COMPLETED, S.NO_SHOW}


def test_every_status_has_an_entry():
    assert set(BOOKING_TRANSITIONS) == set(BookingStatus)


@pytest.mark.parametrize("status", [S.COMPLETED, S.CANCELLED, S.NO_SHOW])
def test_terminal_statuses_have_no_outgoing_transitions(status):
    assert is_terminal(status)
    assert allowed_next_states(status) == frozenset()
    for target in BookingStatus:
        with pytest.raises(InvalidTransition):
            assert_booking_transition(status, target)


def test_terminal_set():
    assert TERMINAL_STATUSES == {S.COMPLETED, S.CANCELLED, S.NO_SHOW}


def test_accepts_plain_strings():
    assert can_transition("PENDING", "CONFIRMED")
    assert not can_transition("PENDING", "COMPLETED")


def test_skipping_a_step_is_rejected():
    with pytest.raises(InvalidTransition) as exc_info:
        assert_booking_transition(S.PENDING, S.IN_PROGRESS)
    assert exc_info.value.status_code == 400
    assert exc_info.value.current == "PENDING"
    assert exc_info.value.target == "IN_PROGRESS"


def test_self_transition_is_rejected():
    for status in BookingStatus:
        assert not can_transition(status, status)


def test_table_cannot_be_mutated():
    with pytest.raises(AttributeError):
        BOOKING_TRANSITIONS[S.PENDING].add(S.COMPLETED)


def test_table_entries_cannot_be_replaced():
    with pytest.raises(TypeError):
        BOOKING_TRANSITIONS[S.PENDING] = frozenset({S.COMPLETED})
    with pytest.raises(TypeError):
        del BOOKING_TRANSITIONS[S.NO_SHOW]
    assert allowed_next_states(S.PENDING) == {S.CONFIRMED, S.CANCELLED}
