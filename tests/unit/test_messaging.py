"""Tests for WhatsApp status messaging."""
from unittest.mock import Mock

import pytest
from twilio.base.exceptions import TwilioRestException

from mediq import messaging
from mediq.errors import DeliveryError
from mediq.messaging import (
    StatusMessenger,
    TwilioWhatsAppChannel,
    render_status_message,
    to_whatsapp_address,
)
from mediq.notifier import StatusChanged
from mediq.state import AppointmentStatus


@pytest.fixture
def twilio_client():
    client = Mock()
    client.messages.create.return_value = Mock(sid="SM123", status="queued")
    return client


@pytest.fixture
def channel(twilio_client):
    return TwilioWhatsAppChannel("AC123", "token", "+14155238886", client=twilio_client)


class TestTemplates:

    @pytest.mark.parametrize("status,expected", [
        ("pending", "Hi Jane, your appointment is pending confirmation."),
        ("in_progress", "Hi Jane, the doctor is now ready to see you."),
        (AppointmentStatus.COMPLETED, "Hi Jane, thank you for your visit!"),
        ("cancelled", "Hi Jane, your appointment status: cancelled"),
        ("rescheduled", "Hi Jane, your appointment status: rescheduled"),
    ])
    def test_render(self, status, expected):
        assert render_status_message("Jane", status) == expected


class TestAddress:

    def test_strips_formatting(self):
        assert to_whatsapp_address("+1 (555) 010-0000") == "whatsapp:+15550100000"

    def test_no_digits(self):
        with pytest.raises(DeliveryError):
            to_whatsapp_address("n/a")


class TestTwilioChannel:

    def test_send(self, channel, twilio_client):
        receipt = channel.send("+1 555 010 0000", "hello")

        assert receipt.sid == "SM123"
        assert receipt.to == "whatsapp:+15550100000"
        twilio_client.messages.create.assert_called_once_with(
            body="hello", from_="whatsapp:+14155238886", to="whatsapp:+15550100000"
        )

    def test_client_error_not_retried(self, channel, twilio_client):
        """4xx responses fail immediately as DeliveryError."""
        twilio_client.messages.create.side_effect = TwilioRestException(400, "/Messages", "bad number")

        with pytest.raises(DeliveryError):
            channel.send("+1 555 010 0000", "hello")

        assert twilio_client.messages.create.call_count == 1

    def test_server_error_retried(self, channel, twilio_client):
        """5xx responses are retried with backoff."""
        twilio_client.messages.create.side_effect = [
            TwilioRestException(503, "/Messages", "unavailable"),
            Mock(sid="SM456", status="queued"),
        ]

        receipt = channel.send("+1 555 010 0000", "hello")

        assert receipt.sid == "SM456"
        assert twilio_client.messages.create.call_count == 2


class TestStatusMessenger:

    def test_messages_current_status(self, store, make_booking, fake_channel):
        appointment = make_booking(patient_name="Jane", phone_number="+1 555 010 0000")
        store.update_status_conditional(
            appointment.id, AppointmentStatus.PENDING, AppointmentStatus.IN_PROGRESS
        )
        messenger = StatusMessenger(store, fake_channel)

        messenger(StatusChanged(appointment.id, AppointmentStatus.PENDING, AppointmentStatus.IN_PROGRESS))

        fake_channel.send.assert_called_once_with(
            "+1 555 010 0000", "Hi Jane, the doctor is now ready to see you."
        )

    def test_ignores_other_events(self, store, fake_channel):
        messenger = StatusMessenger(store, fake_channel)
        messenger(Mock(spec=[]))

        fake_channel.send.assert_not_called()

    def test_missing_appointment_skipped(self, store, fake_channel):
        messenger = StatusMessenger(store, fake_channel)

        result = messenger.deliver(
            StatusChanged("missing", AppointmentStatus.PENDING, AppointmentStatus.CANCELLED)
        )

        assert result is None
        fake_channel.send.assert_not_called()

    def test_delivery_failure_swallowed(self, store, make_booking, fake_channel):
        appointment = make_booking()
        fake_channel.send.side_effect = DeliveryError("twilio down")
        messenger = StatusMessenger(store, fake_channel)

        assert messenger.deliver(
            StatusChanged(appointment.id, AppointmentStatus.PENDING, AppointmentStatus.CANCELLED)
        ) is None

    def test_wired_through_services(self, database_url, fake_channel):
        """build_services subscribes the messenger when a channel is given."""
        from mediq.api.dependencies import build_services

        services = build_services(database_url=database_url, channel=fake_channel)
        appointment = services.booking.book("Jane", "+1 555 010 0000", "2030-05-06T09:30:00", "general")
        services.lifecycle.apply_transition(appointment.id, "in_progress")
        services.close()  # waits for the background worker

        fake_channel.send.assert_called_once()


class TestMessagingLogs:
    """Delivery outcomes are structured events without patient phone numbers."""

    @pytest.fixture
    def log(self, monkeypatch):
        log = Mock()
        monkeypatch.setattr(messaging, "logger", log)
        return log

    def test_sent_event(self, channel, log):
        channel.send("+1 555 010 0000", "hello")

        log.info.assert_called_once_with("whatsapp_message_queued", sid="SM123")

    def test_failure_event(self, channel, twilio_client, log):
        twilio_client.messages.create.side_effect = TwilioRestException(400, "/Messages", "bad number")

        with pytest.raises(DeliveryError):
            channel.send("+1 555 010 0000", "hello")

        log.error.assert_called_once()
        args, kwargs = log.error.call_args
        assert args == ("whatsapp_send_failed",)
        assert kwargs["twilio_status"] == 400
        assert "5550100000" not in repr(log.error.call_args)

    def test_undelivered_status_message_event(self, store, make_booking, fake_channel, log):
        appointment = make_booking(phone_number="+1 555 010 0000")
        fake_channel.send.side_effect = DeliveryError("twilio down")

        StatusMessenger(store, fake_channel).deliver(
            StatusChanged(appointment.id, AppointmentStatus.PENDING, AppointmentStatus.CANCELLED)
        )

        log.warning.assert_called_once_with(
            "status_message_not_delivered", appointment_id=appointment.id, detail="twilio down"
        )
        assert "+1 555" not in repr(log.warning.call_args)
