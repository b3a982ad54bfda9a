"""Error taxonomy for the queue engine.

Every error carries a ``retryable`` flag so callers (and the API layer) can
tell "try again later" apart from "this request is wrong".
"""


class MediQError(Exception):
    """Base class for queue engine errors."""
    retryable = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(MediQError):
    """Missing or malformed input, rejected before touching the store."""
    pass


class InvalidStatus(ValidationError):
    """Raised when a status value is not one of the recognised statuses."""

    def __init__(self, status, allowed):
        super().__init__(
            f"Invalid status '{status}'. Must be one of: {', '.join(allowed)}"
        )
        self.status = status
        self.allowed = list(allowed)


class AppointmentNotFound(MediQError):
    """Raised when no appointment matches the given id."""

    def __init__(self, appointment_id: str):
        super().__init__(f"Appointment {appointment_id} not found")
        self.appointment_id = appointment_id


class IllegalTransition(MediQError):
    """Raised when the current status does not allow the requested one."""

    def __init__(self, appointment_id: str, current, requested):
        super().__init__(
            f"Cannot change appointment status from '{current}' to '{requested}'"
        )
        self.appointment_id = appointment_id
        self.current = current
        self.requested = requested


class ConflictError(MediQError):
    """Concurrent write collision (uniqueness or conditional update)."""
    retryable = True


class StoreUnavailable(MediQError):
    """The appointment store could not be reached."""
    retryable = True


class DeliveryError(MediQError):
    """Outbound message could not be delivered by the notification channel."""
    retryable = True
