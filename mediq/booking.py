"""Booking flow: validate → resolve slot → allocate queue number → notify."""
import re
from datetime import datetime
from typing import Optional

from mediq.errors import ValidationError
from mediq.logging_config import get_logger
from mediq.notifier import AppointmentCreated, ChangeNotifier
from mediq.records import AppointmentDraft, AppointmentRecord
from mediq.sequencer import QueueSequencer
from mediq.slots import DEFAULT_SCHEDULE, SlotSchedule, resolve_slot, to_clinic_time
from mediq.state import ServiceType

logger = get_logger(__name__)

MIN_PHONE_DIGITS = 7


def validate_phone(phone: str) -> bool:
    """Validate phone format (at least 7 digits)."""
    digits = re.sub(r"\D", "", phone)
    return len(digits) >= MIN_PHONE_DIGITS


def parse_requested_time(value) -> datetime:
    """Accept a datetime or an ISO-8601 string (trailing Z allowed)."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            pass
    raise ValidationError(f"Invalid appointment time '{value}'. Use ISO 8601 format")


class BookingService:
    """Creates pending appointments with their slot and queue number attached."""

    def __init__(
        self,
        sequencer: QueueSequencer,
        notifier: ChangeNotifier,
        schedule: SlotSchedule = DEFAULT_SCHEDULE,
    ):
        self.sequencer = sequencer
        self.notifier = notifier
        self.schedule = schedule

    def build_draft(
        self,
        patient_name: str,
        phone_number: str,
        appointment_time,
        service_type,
        notes: Optional[str] = None,
    ) -> AppointmentDraft:
        """
        Validate raw booking input and resolve its slot.

        Raises:
            ValidationError: Missing or malformed field
        """
        missing = [
            name for name, value in (
                ("patientName", patient_name),
                ("phoneNumber", phone_number),
                ("appointmentTime", appointment_time),
                ("serviceType", service_type),
            )
            if value is None or (isinstance(value, str) and not value.strip())
        ]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

        if not validate_phone(phone_number):
            raise ValidationError(
                f"Invalid phone number. Please provide at least {MIN_PHONE_DIGITS} digits"
            )

        try:
            service = ServiceType(service_type)
        except ValueError:
            raise ValidationError(
                f"Invalid service type '{service_type}'. "
                f"Must be one of: {', '.join(s.value for s in ServiceType)}"
            ) from None

        requested = parse_requested_time(appointment_time)

        return AppointmentDraft(
            patient_name=patient_name.strip(),
            phone_number=phone_number.strip(),
            service_type=service,
            requested_time=to_clinic_time(requested),
            slot=resolve_slot(requested, self.schedule),
            notes=(notes or "").strip(),
        )

    def book(
        self,
        patient_name: str,
        phone_number: str,
        appointment_time,
        service_type,
        notes: Optional[str] = None,
    ) -> AppointmentRecord:
        """
        Book an appointment.

        Once this returns, the queue number is permanent. A caller that times
        out after submitting should look the booking up rather than resubmit.

        Returns:
            The stored appointment

        Raises:
            ValidationError: Bad input (store untouched)
            ConflictError: Queue allocation kept colliding
            StoreUnavailable: Store unreachable
        """
        draft = self.build_draft(patient_name, phone_number, appointment_time, service_type, notes)
        appointment = self.sequencer.allocate(draft)

        self.notifier.publish(AppointmentCreated(
            id=appointment.id,
            slot_key=appointment.slot_key,
            queue_number=appointment.queue_number,
        ))
        return appointment
