"""Tests for queue number allocation."""
from datetime import datetime
from unittest.mock import Mock

import pytest

from mediq.errors import ConflictError, StoreUnavailable
from mediq.sequencer import QueueSequencer


@pytest.fixture
def morning_draft(booking):
    return booking.build_draft("Jane Doe", "+1 555 010 0000", datetime(2030, 5, 6, 9, 30), "general")


def fast_sequencer(store, max_attempts=4):
    """Sequencer with zero backoff so retries don't sleep."""
    return QueueSequencer(store, max_attempts=max_attempts, backoff_min=0, backoff_max=0)


class TestAllocation:

    def test_sequential_bookings_same_slot(self, make_booking):
        """Two morning bookings get 1 then 2."""
        first = make_booking(patient_name="Alice", appointment_time=datetime(2030, 5, 6, 9, 30))
        second = make_booking(patient_name="Bob", appointment_time=datetime(2030, 5, 6, 10, 45))

        assert (first.queue_number, second.queue_number) == (1, 2)
        assert first.slot_start == second.slot_start == datetime(2030, 5, 6, 9, 0)

    def test_slots_are_independent(self, make_booking):
        """First Evening booking is 1 even after Morning bookings."""
        make_booking(appointment_time=datetime(2030, 5, 6, 9, 30))
        make_booking(appointment_time=datetime(2030, 5, 6, 10, 0))
        evening = make_booking(appointment_time=datetime(2030, 5, 6, 14, 0))

        assert evening.queue_number == 1
        assert evening.slot_name == "Evening"
        assert evening.slot_start == datetime(2030, 5, 6, 13, 0)

    def test_numbers_are_contiguous(self, make_booking):
        numbers = [make_booking(patient_name=f"Patient {i}").queue_number for i in range(10)]
        assert numbers == list(range(1, 11))


class TestRetry:

    def test_conflict_is_retried(self, morning_draft):
        """Collisions are retried until the store succeeds."""
        record = Mock(id="abc", queue_number=3)
        store = Mock()
        store.insert_sequenced.side_effect = [ConflictError("seed race"), ConflictError("seed race"), record]

        result = fast_sequencer(store).allocate(morning_draft)

        assert result is record
        assert store.insert_sequenced.call_count == 3

    def test_exhausted_retries_raise_generic_conflict(self, morning_draft):
        store = Mock()
        store.insert_sequenced.side_effect = ConflictError("collision in 2030-05-06/Morning")

        with pytest.raises(ConflictError) as exc_info:
            fast_sequencer(store, max_attempts=3).allocate(morning_draft)

        assert store.insert_sequenced.call_count == 3
        # Internal slot details stay out of the caller-facing message
        assert "2030-05-06" not in exc_info.value.message
        assert exc_info.value.retryable is True

    def test_store_unavailable_not_retried(self, morning_draft):
        store = Mock()
        store.insert_sequenced.side_effect = StoreUnavailable("down")

        with pytest.raises(StoreUnavailable):
            fast_sequencer(store).allocate(morning_draft)

        assert store.insert_sequenced.call_count == 1
