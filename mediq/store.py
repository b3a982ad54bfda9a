"""Appointment store backed by SQLAlchemy.

All mutation goes through two atomic paths:
- insert_sequenced: bump the per-slot counter and insert the row in one
  transaction, so a queue number is never visible without its appointment
- update_status_conditional: UPDATE ... WHERE status = expected

Driver-level failures surface as StoreUnavailable, collisions as
ConflictError. Nothing here retries; retry policy belongs to the callers.
"""
from contextlib import contextmanager
from typing import List, Optional

from sqlalchemy import func, or_, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.orm import Session as SQLSession, sessionmaker

from mediq.api.database_models import Appointment, SlotCounter, utc_now
from mediq.errors import AppointmentNotFound, ConflictError, StoreUnavailable
from mediq.records import AppointmentDraft, AppointmentRecord
from mediq.slots import SlotKey
from mediq.state import INITIAL_STATUS, AppointmentStatus

# Largest integer a database driver will bind as a query parameter
MAX_QUEUE_NUMBER = 2**63 - 1


def _as_queue_number(term: str) -> Optional[int]:
    """Parse a search term as a queue number, or None if it cannot be one."""
    if not (term.isascii() and term.isdigit()):
        return None
    value = int(term)
    return value if value <= MAX_QUEUE_NUMBER else None


class AppointmentStore:
    """
    Persistence boundary for appointments.

    Pattern: Thin wrapper around SQLAlchemy returning domain records.
    """

    def __init__(self, engine: Engine):
        """
        Initialize store with a database engine.

        Args:
            engine: Engine from database.create_store_engine()
        """
        self.engine = engine
        self.SessionLocal = sessionmaker(bind=engine, expire_on_commit=False)

    @contextmanager
    def _session(self):
        try:
            with self.SessionLocal() as db:
                yield db
        except (OperationalError, InterfaceError) as e:
            raise StoreUnavailable("Appointment store is unavailable") from e

    def insert_sequenced(self, draft: AppointmentDraft) -> AppointmentRecord:
        """
        Allocate the next queue number for the draft's slot and insert it.

        The counter increment and the insert commit together; if either
        fails the whole transaction rolls back and no number is consumed.

        Raises:
            ConflictError: Concurrent counter seed or (slot, number) collision
            StoreUnavailable: Database unreachable
        """
        with self._session() as db:
            try:
                number = self._bump_counter(db, draft.slot_key)
                row = self._build_row(draft, number)
                db.add(row)
                db.commit()
            except IntegrityError as e:
                db.rollback()
                raise ConflictError(
                    f"Queue allocation collided in slot {draft.slot_key}"
                ) from e

            return AppointmentRecord.model_validate(row)

    def insert_if_unique(self, draft: AppointmentDraft, queue_number: int) -> AppointmentRecord:
        """
        Insert an appointment with a caller-chosen queue number.

        The slot counter is raised to at least queue_number in the same
        transaction so later sequenced inserts continue after it.

        Raises:
            ConflictError: queue_number already taken in this slot
        """
        with self._session() as db:
            try:
                self._raise_counter_floor(db, draft.slot_key, queue_number)
                row = self._build_row(draft, queue_number)
                db.add(row)
                db.commit()
            except IntegrityError as e:
                db.rollback()
                raise ConflictError(
                    f"Queue number {queue_number} already taken in slot {draft.slot_key}"
                ) from e

            return AppointmentRecord.model_validate(row)

    def get_by_id(self, appointment_id: str) -> AppointmentRecord:
        """
        Raises:
            AppointmentNotFound: If no appointment has this id
        """
        with self._session() as db:
            row = db.get(Appointment, appointment_id)
            if row is None:
                raise AppointmentNotFound(appointment_id)
            return AppointmentRecord.model_validate(row)

    def update_status_conditional(
        self,
        appointment_id: str,
        expected: AppointmentStatus,
        new: AppointmentStatus
    ) -> AppointmentRecord:
        """
        Set status to `new` only if it is still `expected`.

        Raises:
            AppointmentNotFound: If the appointment does not exist
            ConflictError: If the status changed since it was read
        """
        with self._session() as db:
            updated = db.query(Appointment).filter(
                Appointment.id == appointment_id,
                Appointment.status == expected.value
            ).update(
                {Appointment.status: new.value, Appointment.updated_at: utc_now()},
                synchronize_session=False
            )

            if updated == 0:
                db.rollback()
                if db.get(Appointment, appointment_id) is None:
                    raise AppointmentNotFound(appointment_id)
                raise ConflictError(
                    f"Appointment {appointment_id} is no longer '{expected.value}'"
                )

            db.commit()
            return AppointmentRecord.model_validate(db.get(Appointment, appointment_id))

    def query_filtered(
        self,
        status: Optional[AppointmentStatus] = None,
        search: Optional[str] = None
    ) -> List[AppointmentRecord]:
        """
        List appointments ordered by slot start, then queue number.

        Args:
            status: Only this status (None for all)
            search: Case-insensitive substring of name or phone, or an exact
                    queue number when the term is numeric
        """
        with self._session() as db:
            query = db.query(Appointment)

            if status is not None:
                query = query.filter(Appointment.status == status.value)

            if search:
                conditions = [
                    Appointment.patient_name.icontains(search, autoescape=True),
                    Appointment.phone_number.icontains(search, autoescape=True),
                ]
                queue_number = _as_queue_number(search)
                if queue_number is not None:
                    conditions.append(Appointment.queue_number == queue_number)
                query = query.filter(or_(*conditions))

            rows = query.order_by(
                Appointment.slot_start.asc(),
                Appointment.queue_number.asc()
            ).all()

            return [AppointmentRecord.model_validate(row) for row in rows]

    def max_queue_number(self, slot_key: SlotKey) -> int:
        """Highest queue number issued in a slot (0 if none)."""
        with self._session() as db:
            return self._max_queue_number(db, slot_key)

    def ping(self) -> bool:
        """Round-trip to the database; raises StoreUnavailable on failure."""
        with self._session() as db:
            db.execute(text("SELECT 1"))
            return True

    # Helpers (run inside the caller's transaction)

    @staticmethod
    def _max_queue_number(db: SQLSession, slot_key: SlotKey) -> int:
        value = db.query(func.max(Appointment.queue_number)).filter(
            Appointment.slot_date == slot_key.date,
            Appointment.slot_name == slot_key.name
        ).scalar()
        return value or 0

    @staticmethod
    def _counter_filter(slot_key: SlotKey):
        return (
            SlotCounter.slot_date == slot_key.date,
            SlotCounter.slot_name == slot_key.name,
        )

    def _bump_counter(self, db: SQLSession, slot_key: SlotKey) -> int:
        bumped = db.query(SlotCounter).filter(*self._counter_filter(slot_key)).update(
            {SlotCounter.last_number: SlotCounter.last_number + 1},
            synchronize_session=False
        )

        if bumped == 0:
            # First booking for this slot: seed from any existing rows.
            # A concurrent seed fails the flush with IntegrityError.
            number = self._max_queue_number(db, slot_key) + 1
            db.add(SlotCounter(slot_date=slot_key.date, slot_name=slot_key.name, last_number=number))
            db.flush()
            return number

        return db.query(SlotCounter.last_number).filter(*self._counter_filter(slot_key)).scalar()

    def _raise_counter_floor(self, db: SQLSession, slot_key: SlotKey, number: int):
        raised = db.query(SlotCounter).filter(
            *self._counter_filter(slot_key),
            SlotCounter.last_number < number
        ).update({SlotCounter.last_number: number}, synchronize_session=False)

        if raised == 0 and db.get(SlotCounter, (slot_key.date, slot_key.name)) is None:
            floor = max(number, self._max_queue_number(db, slot_key))
            db.add(SlotCounter(slot_date=slot_key.date, slot_name=slot_key.name, last_number=floor))
            db.flush()

    @staticmethod
    def _build_row(draft: AppointmentDraft, queue_number: int) -> Appointment:
        return Appointment(
            patient_name=draft.patient_name,
            phone_number=draft.phone_number,
            service_type=draft.service_type.value,
            requested_time=draft.requested_time,
            slot_date=draft.slot.key.date,
            slot_name=draft.slot.key.name,
            slot_start=draft.slot.start,
            queue_number=queue_number,
            status=INITIAL_STATUS.value,
            notes=draft.notes,
        )
