"""Queue sequencer: hand out the next queue number within a slot.

Pattern: store-side counter + tenacity retry with exponential backoff.

The number is allocated by the store in the same transaction that inserts
the appointment (see AppointmentStore.insert_sequenced), so two concurrent
bookings can never observe the same "last number". The only race left is
the first booking of a slot seeding its counter; the loser gets a
ConflictError and is retried here.
"""
import logging

from tenacity import (
    RetryError,
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from mediq import config
from mediq.errors import ConflictError
from mediq.logging_config import get_logger
from mediq.records import AppointmentDraft, AppointmentRecord
from mediq.store import AppointmentStore

logger = get_logger(__name__)
_retry_logger = logging.getLogger(__name__)


class QueueSequencer:
    """Allocates queue numbers and persists appointments in one step."""

    def __init__(
        self,
        store: AppointmentStore,
        max_attempts: int = config.SEQUENCER_MAX_ATTEMPTS,
        backoff_min: float = config.SEQUENCER_BACKOFF_MIN,
        backoff_max: float = config.SEQUENCER_BACKOFF_MAX,
    ):
        """
        Initialize sequencer.

        Args:
            store: Appointment store
            max_attempts: Total attempts before giving up on collisions
            backoff_min: First backoff delay in seconds
            backoff_max: Cap on backoff delay in seconds
        """
        self.store = store
        self.max_attempts = max_attempts
        self.backoff_min = backoff_min
        self.backoff_max = backoff_max

    def _retrying(self) -> Retrying:
        return Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.backoff_min, min=self.backoff_min, max=self.backoff_max),
            retry=retry_if_exception_type(ConflictError),
            before_sleep=before_sleep_log(_retry_logger, logging.WARNING),
        )

    def allocate(self, draft: AppointmentDraft) -> AppointmentRecord:
        """
        Reserve the next queue number in the draft's slot and persist it.

        Args:
            draft: Validated booking with its slot resolved

        Returns:
            The stored appointment (status pending, queue number attached)

        Raises:
            ConflictError: Collisions persisted after max_attempts
            StoreUnavailable: Store unreachable (not retried here)
        """
        try:
            appointment = self._retrying()(self.store.insert_sequenced, draft)
        except RetryError as e:
            logger.error(
                "queue_allocation_exhausted",
                slot=str(draft.slot_key),
                attempts=e.last_attempt.attempt_number,
            )
            raise ConflictError(
                "Could not reserve a place in the queue. Please try again."
            ) from e.last_attempt.exception()

        logger.info(
            "queue_number_allocated",
            appointment_id=appointment.id,
            slot=str(draft.slot_key),
            queue_number=appointment.queue_number,
        )
        return appointment
