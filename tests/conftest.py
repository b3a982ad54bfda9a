"""Shared test fixtures."""
from datetime import datetime
from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient

from mediq.api.dependencies import build_services, get_services
from mediq.messaging import DeliveryReceipt


@pytest.fixture
def database_url(tmp_path):
    """File-backed SQLite database, shared by every thread in a test."""
    return f"sqlite:///{tmp_path / 'mediq-test.db'}"


@pytest.fixture
def services(database_url):
    """Engine components wired around a fresh database."""
    services = build_services(database_url=database_url, strict_status_filter=False)
    yield services
    services.close()


@pytest.fixture
def store(services):
    return services.store


@pytest.fixture
def notifier(services):
    return services.notifier


@pytest.fixture
def booking(services):
    return services.booking


@pytest.fixture
def lifecycle(services):
    return services.lifecycle


@pytest.fixture
def make_booking(booking):
    """Book an appointment with sensible defaults."""
    def _book(
        patient_name: str = "Jane Doe",
        phone_number: str = "+1 555 010 0000",
        appointment_time=datetime(2030, 5, 6, 9, 30),
        service_type: str = "general",
        notes: str = None,
    ):
        return booking.book(
            patient_name=patient_name,
            phone_number=phone_number,
            appointment_time=appointment_time,
            service_type=service_type,
            notes=notes,
        )
    return _book


@pytest.fixture
def fake_channel():
    """Notification channel that records sends instead of calling Twilio."""
    channel = Mock()
    channel.send.side_effect = lambda phone, message: DeliveryReceipt(
        sid="SM" + "0" * 32, to=f"whatsapp:{phone}", status="queued"
    )
    return channel


@pytest.fixture
def client(services):
    """TestClient bound to the temporary database (lifespan not started)."""
    from mediq.api_server import app

    app.dependency_overrides[get_services] = lambda: services
    yield TestClient(app)
    app.dependency_overrides.clear()
