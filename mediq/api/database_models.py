"""SQLAlchemy database models for the appointment store."""
import uuid
from datetime import datetime, UTC
from sqlalchemy import (
    Column, String, DateTime, Date, Integer, Text, CheckConstraint,
    UniqueConstraint, Index,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utc_now():
    """Get current UTC timestamp."""
    return datetime.now(UTC)


def new_appointment_id() -> str:
    return str(uuid.uuid4())


class Appointment(Base):
    """Appointment row. Only status and updated_at change after insert."""
    __tablename__ = "appointments"
    __table_args__ = (
        UniqueConstraint("slot_date", "slot_name", "queue_number", name="uq_appointments_slot_queue"),
        CheckConstraint("queue_number > 0", name="ck_appointments_queue_positive"),
        Index("ix_appointments_slot_start_queue", "slot_start", "queue_number"),
    )

    id = Column(String(36), primary_key=True, default=new_appointment_id)
    patient_name = Column(String(200), nullable=False)
    phone_number = Column(String(50), nullable=False, index=True)
    service_type = Column(String(20), nullable=False)
    requested_time = Column(DateTime, nullable=False)  # Clinic wall time
    slot_date = Column(Date, nullable=False)
    slot_name = Column(String(50), nullable=False)
    slot_start = Column(DateTime, nullable=False)
    queue_number = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default="pending", index=True)
    notes = Column(Text, nullable=False, default="")
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False)

    def __repr__(self):
        return (
            f"<Appointment(id={self.id}, slot={self.slot_date}/{self.slot_name}, "
            f"queue={self.queue_number}, status={self.status})>"
        )


class SlotCounter(Base):
    """Last queue number handed out per (date, slot)."""
    __tablename__ = "slot_counters"

    slot_date = Column(Date, primary_key=True)
    slot_name = Column(String(50), primary_key=True)
    last_number = Column(Integer, nullable=False, default=0)

    def __repr__(self):
        return f"<SlotCounter(slot={self.slot_date}/{self.slot_name}, last={self.last_number})>"
