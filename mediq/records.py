"""Domain records for appointments.

Pattern: Separate database persistence from domain models.
AppointmentRecord (domain) vs api.database_models.Appointment (database).
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from mediq.slots import ResolvedSlot, SlotKey
from mediq.state import AppointmentStatus, ServiceType


class AppointmentDraft(BaseModel):
    """Validated booking request with its slot resolved, awaiting a queue number."""
    patient_name: str
    phone_number: str
    service_type: ServiceType
    requested_time: datetime
    slot: ResolvedSlot
    notes: str = ""

    model_config = ConfigDict(frozen=True)

    @property
    def slot_key(self) -> SlotKey:
        return self.slot.key


class AppointmentRecord(BaseModel):
    """Persisted appointment as seen by the rest of the engine."""
    id: str
    patient_name: str
    phone_number: str
    service_type: ServiceType
    requested_time: datetime
    slot_name: str
    slot_start: datetime
    queue_number: int = Field(..., gt=0)
    status: AppointmentStatus
    notes: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True, frozen=True)

    @property
    def slot_key(self) -> SlotKey:
        return SlotKey(self.slot_start.date(), self.slot_name)
