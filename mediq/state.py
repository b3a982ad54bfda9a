"""Appointment status lifecycle.

Best Practices:
- str Enum for discrete states (serialises as its value)
- Transition map kept as data, validated by one function
- Terminal states map to an empty list
"""
from enum import Enum
from typing import Dict

from mediq.errors import InvalidStatus


class AppointmentStatus(str, Enum):
    """
    Appointment workflow states.

    pending is the only initial state; completed and cancelled are terminal.
    """
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ServiceType(str, Enum):
    """Services a patient can queue for."""
    GENERAL = "general"
    SPECIALIST = "specialist"
    FOLLOWUP = "followup"
    TESTING = "testing"


INITIAL_STATUS = AppointmentStatus.PENDING

TERMINAL_STATUSES = frozenset({AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED})


# State machine transition map
# Pattern: Current state → [allowed next states]
VALID_TRANSITIONS: Dict[AppointmentStatus, list[AppointmentStatus]] = {
    AppointmentStatus.PENDING: [
        AppointmentStatus.IN_PROGRESS,  # Doctor calls the patient in
        AppointmentStatus.CANCELLED,
    ],
    AppointmentStatus.IN_PROGRESS: [
        AppointmentStatus.COMPLETED,
        AppointmentStatus.CANCELLED,
    ],
    AppointmentStatus.COMPLETED: [],
    AppointmentStatus.CANCELLED: [],
}


def parse_status(value) -> AppointmentStatus:
    """
    Convert a raw status value into AppointmentStatus.

    Raises:
        InvalidStatus: If value is not one of the four statuses
    """
    if isinstance(value, AppointmentStatus):
        return value
    try:
        return AppointmentStatus(value)
    except ValueError:
        raise InvalidStatus(value, [s.value for s in AppointmentStatus]) from None


def validate_transition(
    current: AppointmentStatus,
    intended: AppointmentStatus
) -> bool:
    """
    Validate status transition.

    Prevents:
    - Self-transitions (pending → pending)
    - Skipping states (pending → completed)
    - Leaving a terminal state

    Example:
        >>> validate_transition(
        ...     AppointmentStatus.PENDING,
        ...     AppointmentStatus.IN_PROGRESS
        ... )
        True
    """
    allowed = VALID_TRANSITIONS.get(current, [])
    return intended in allowed
