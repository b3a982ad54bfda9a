"""Unit tests for the appointment status transition table."""
import pytest

from mediq.errors import InvalidStatus
from mediq.state import (
    INITIAL_STATUS,
    TERMINAL_STATUSES,
    VALID_TRANSITIONS,
    AppointmentStatus,
    parse_status,
    validate_transition,
)

PENDING = AppointmentStatus.PENDING
IN_PROGRESS = AppointmentStatus.IN_PROGRESS
COMPLETED = AppointmentStatus.COMPLETED
CANCELLED = AppointmentStatus.CANCELLED

ALLOWED = {
    (PENDING, IN_PROGRESS),
    (PENDING, CANCELLED),
    (IN_PROGRESS, COMPLETED),
    (IN_PROGRESS, CANCELLED),
}


def test_every_status_has_transition_entry():
    """Verify the table covers all four statuses."""
    assert set(VALID_TRANSITIONS) == set(AppointmentStatus)


def test_initial_and_terminal_statuses():
    assert INITIAL_STATUS == PENDING
    assert TERMINAL_STATUSES == {COMPLETED, CANCELLED}

    for status in TERMINAL_STATUSES:
        assert VALID_TRANSITIONS[status] == []


@pytest.mark.parametrize("current", list(AppointmentStatus))
@pytest.mark.parametrize("intended", list(AppointmentStatus))
def test_transition_grid(current, intended):
    """Exactly the four forward moves are allowed; self-moves never are."""
    assert validate_transition(current, intended) == ((current, intended) in ALLOWED)


def test_pending_cannot_skip_to_completed():
    assert not validate_transition(PENDING, COMPLETED)


def test_parse_status_accepts_values_and_members():
    assert parse_status("in_progress") is IN_PROGRESS
    assert parse_status(CANCELLED) is CANCELLED


@pytest.mark.parametrize("raw", ["done", "", "PENDING", None, "all"])
def test_parse_status_rejects_unknown(raw):
    with pytest.raises(InvalidStatus) as exc_info:
        parse_status(raw)

    # Message lists the allowed values
    assert "pending, in_progress, completed, cancelled" in exc_info.value.message
    assert exc_info.value.retryable is False


def test_status_serialises_as_value():
    """str Enum compares equal to its wire value."""
    assert IN_PROGRESS == "in_progress"
