"""Pydantic models for API request/response validation.

Wire format is camelCase (patientName, queueNumber, ...); Python attributes
stay snake_case via the alias generator.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from mediq.state import AppointmentStatus, ServiceType


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class BookingRequest(CamelModel):
    """Request schema for POST /book."""
    patient_name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Patient full name",
        examples=["Jane Doe"]
    )
    phone_number: str = Field(
        ...,
        min_length=1,
        max_length=50,
        description="Contact number (at least 7 digits)",
        examples=["+1 555 010 0000"]
    )
    appointment_time: datetime = Field(
        ...,
        description="Requested time (ISO 8601); snapped to its Morning/Evening slot",
        examples=["2025-03-04T09:30:00"]
    )
    service_type: ServiceType = Field(..., description="general, specialist, followup or testing")
    notes: Optional[str] = Field(None, max_length=2000, description="Optional notes for the doctor")

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "patientName": "Jane Doe",
                "phoneNumber": "+1 555 010 0000",
                "appointmentTime": "2025-03-04T09:30:00",
                "serviceType": "general",
                "notes": "Recurring headache"
            }
        }
    )


class BookingResponse(CamelModel):
    """Response schema for POST /book."""
    message: str = "Appointment booked successfully!"
    id: str = Field(..., description="Appointment id")
    queue_number: int = Field(..., description="Position within the slot")
    slot_name: str = Field(..., description="Morning or Evening")
    slot_start: datetime = Field(..., description="Start of the slot (effective appointment time)")


class AppointmentOut(CamelModel):
    """Appointment as returned by the API."""
    id: str
    patient_name: str
    phone_number: str
    service_type: ServiceType
    requested_time: datetime
    slot_name: str
    slot_start: datetime
    queue_number: int
    status: AppointmentStatus
    notes: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class QueueStatsOut(CamelModel):
    pending: int
    in_progress: int
    completed: int
    cancelled: int
    total: int
    average_wait_time: int = Field(..., description="Minutes (configured figure)")

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class AppointmentListResponse(CamelModel):
    """Response schema for GET /appointments."""
    appointments: List[AppointmentOut]
    stats: QueueStatsOut


class StatusUpdateRequest(CamelModel):
    """Request schema for PATCH /appointment/{id}/status."""
    status: str = Field(
        ...,
        description="pending, in_progress, completed or cancelled",
        examples=["in_progress"]
    )


class StatusUpdateResponse(CamelModel):
    success: bool = True
    message: str
    appointment: AppointmentOut


class WhatsAppRequest(CamelModel):
    """Request schema for POST /send-whatsapp."""
    phone_number: str = Field(..., min_length=1, max_length=50)
    patient_name: str = Field(..., min_length=1, max_length=200)
    status: str = Field(..., min_length=1, max_length=50)


class WhatsAppResponse(CamelModel):
    success: bool = True
    message: str = "WhatsApp notification sent"
    sid: str


class ErrorResponse(BaseModel):
    """Error response schema."""
    error: str = Field(..., description="Error message")
    detail: Optional[str] = Field(None, description="Detailed error information")
    code: Optional[str] = Field(None, description="Error code")
    retryable: bool = Field(False, description="Whether repeating the same request may succeed")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "error": "Illegal Transition",
                "detail": "Cannot change appointment status from 'pending' to 'completed'",
                "code": "ILLEGAL_TRANSITION",
                "retryable": False
            }
        }
    )
