"""Tests for API request/response schemas."""
import pytest
from pydantic import ValidationError

from mediq.api.models import BookingRequest, BookingResponse, ErrorResponse, QueueStatsOut
from mediq.queries import compute_stats


class TestBookingRequest:

    def test_accepts_camel_case(self):
        request = BookingRequest.model_validate({
            "patientName": "Jane Doe",
            "phoneNumber": "+1 555 010 0000",
            "appointmentTime": "2030-05-06T09:30:00",
            "serviceType": "general",
        })

        assert request.patient_name == "Jane Doe"
        assert request.notes is None

    def test_rejects_unknown_service_type(self):
        with pytest.raises(ValidationError):
            BookingRequest.model_validate({
                "patientName": "Jane Doe",
                "phoneNumber": "+1 555 010 0000",
                "appointmentTime": "2030-05-06T09:30:00",
                "serviceType": "surgery",
            })


def test_booking_response_dumps_camel_case():
    response = BookingResponse(
        id="abc", queue_number=2, slot_name="Morning", slot_start="2030-05-06T09:00:00"
    )
    data = response.model_dump(by_alias=True)

    assert data["queueNumber"] == 2
    assert data["slotName"] == "Morning"
    assert data["message"] == "Appointment booked successfully!"


def test_stats_schema_matches_domain_dict():
    """QueueStatsOut serialises to the same keys as QueueStats.to_dict()."""
    stats = compute_stats([])
    assert QueueStatsOut.model_validate(stats).model_dump(by_alias=True) == stats.to_dict()


def test_error_response_defaults():
    error = ErrorResponse(error="Conflict")
    assert error.model_dump() == {"error": "Conflict", "detail": None, "code": None, "retryable": False}
