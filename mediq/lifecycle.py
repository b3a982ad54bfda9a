"""Lifecycle state machine: validated status transitions for one appointment.

Each transition is read → validate → conditional write. The write only
succeeds if the status is still the one that was validated (optimistic
concurrency), so two staff members acting on the same patient cannot both
win with contradictory updates.
"""
from mediq import config
from mediq.errors import ConflictError, IllegalTransition
from mediq.logging_config import get_logger
from mediq.notifier import ChangeNotifier, StatusChanged
from mediq.records import AppointmentRecord
from mediq.state import parse_status, validate_transition
from mediq.store import AppointmentStore

logger = get_logger(__name__)


class LifecycleStateMachine:
    """Applies status transitions and publishes StatusChanged events."""

    def __init__(
        self,
        store: AppointmentStore,
        notifier: ChangeNotifier,
        max_attempts: int = config.STATUS_UPDATE_MAX_ATTEMPTS,
    ):
        self.store = store
        self.notifier = notifier
        self.max_attempts = max_attempts

    def apply_transition(self, appointment_id: str, requested_status) -> AppointmentRecord:
        """
        Move an appointment to requested_status.

        Args:
            appointment_id: Appointment id
            requested_status: Target status (str or AppointmentStatus)

        Returns:
            Updated appointment

        Raises:
            InvalidStatus: requested_status is not a known status
            AppointmentNotFound: No appointment with this id
            IllegalTransition: Current status does not allow the move
            ConflictError: Concurrent edits kept invalidating the read
        """
        target = parse_status(requested_status)

        attempt = 0
        while True:
            attempt += 1
            current = self.store.get_by_id(appointment_id)

            if not validate_transition(current.status, target):
                logger.info(
                    "transition_rejected",
                    appointment_id=appointment_id,
                    current=current.status.value,
                    requested=target.value,
                )
                raise IllegalTransition(appointment_id, current.status.value, target.value)

            try:
                updated = self.store.update_status_conditional(
                    appointment_id, expected=current.status, new=target
                )
                break
            except ConflictError:
                if attempt >= self.max_attempts:
                    logger.warning(
                        "transition_conflict_exhausted",
                        appointment_id=appointment_id,
                        requested=target.value,
                    )
                    raise ConflictError(
                        "The appointment was updated by someone else. Please try again."
                    ) from None
                logger.info("transition_conflict_retry", appointment_id=appointment_id)

        logger.info(
            "status_changed",
            appointment_id=appointment_id,
            old_status=current.status.value,
            new_status=updated.status.value,
        )
        self.notifier.publish(StatusChanged(appointment_id, current.status, updated.status))
        return updated
