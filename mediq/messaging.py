"""Patient messaging over WhatsApp (Twilio).

StatusMessenger subscribes to the change notifier and tells the patient when
their appointment moves. It re-reads the appointment from the store instead
of trusting the event payload, and delivery failures are logged only: a
message that cannot be sent never affects the status change itself.
"""
import logging
import re
from concurrent.futures import Executor
from dataclasses import dataclass
from typing import Optional, Protocol

from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    before_sleep_log,
)
from twilio.base.exceptions import TwilioRestException
from twilio.rest import Client

from mediq import config
from mediq.errors import AppointmentNotFound, DeliveryError, StoreUnavailable
from mediq.logging_config import get_logger
from mediq.notifier import Event, StatusChanged
from mediq.state import AppointmentStatus
from mediq.store import AppointmentStore

logger = get_logger(__name__)
_retry_logger = logging.getLogger(__name__)

STATUS_MESSAGES = {
    AppointmentStatus.PENDING: "Hi {name}, your appointment is pending confirmation.",
    AppointmentStatus.IN_PROGRESS: "Hi {name}, the doctor is now ready to see you.",
    AppointmentStatus.COMPLETED: "Hi {name}, thank you for your visit!",
}


def render_status_message(patient_name: str, status) -> str:
    """Build the patient-facing message for a status."""
    try:
        template = STATUS_MESSAGES.get(AppointmentStatus(status))
    except ValueError:
        template = None

    if template is None:
        value = status.value if isinstance(status, AppointmentStatus) else status
        return f"Hi {patient_name}, your appointment status: {value}"
    return template.format(name=patient_name)


def to_whatsapp_address(phone_number: str) -> str:
    """'+1 (555) 010-0000' -> 'whatsapp:+15550100000'."""
    digits = re.sub(r"\D", "", phone_number)
    if not digits:
        raise DeliveryError(f"Phone number '{phone_number}' has no digits")
    return f"whatsapp:+{digits}"


@dataclass(frozen=True)
class DeliveryReceipt:
    sid: str
    to: str
    status: Optional[str] = None


class NotificationChannel(Protocol):
    def send(self, phone_number: str, message: str) -> DeliveryReceipt:
        ...


def _is_transient(exc: BaseException) -> bool:
    if isinstance(exc, TwilioRestException):
        status = exc.status or 0
        return status == 429 or status >= 500
    return isinstance(exc, OSError)


class TwilioWhatsAppChannel:
    """Sends WhatsApp messages through the Twilio REST API."""

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: str,
        client: Optional[Client] = None,
    ):
        """
        Args:
            account_sid: Twilio account SID
            auth_token: Twilio auth token
            from_number: WhatsApp-enabled Twilio number (E.164)
            client: Pre-built client (tests)
        """
        self.client = client or Client(account_sid, auth_token)
        self.from_address = f"whatsapp:{from_number}"

    @retry(
        stop=stop_after_attempt(config.MESSAGING_MAX_ATTEMPTS),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        retry=retry_if_exception(_is_transient),
        before_sleep=before_sleep_log(_retry_logger, logging.WARNING),
        reraise=True
    )
    def _create_message(self, to: str, body: str):
        return self.client.messages.create(body=body, from_=self.from_address, to=to)

    def send(self, phone_number: str, message: str) -> DeliveryReceipt:
        """
        Send one message.

        Raises:
            DeliveryError: Invalid number or Twilio failure after retries
        """
        to = to_whatsapp_address(phone_number)
        try:
            sent = self._create_message(to, message)
        except (TwilioRestException, OSError) as e:
            logger.error(
                "whatsapp_send_failed",
                error_type=type(e).__name__,
                twilio_status=getattr(e, "status", None),
            )
            raise DeliveryError("Failed to send WhatsApp message") from e

        logger.info("whatsapp_message_queued", sid=sent.sid)
        return DeliveryReceipt(sid=sent.sid, to=to, status=getattr(sent, "status", None))


def channel_from_config() -> Optional[TwilioWhatsAppChannel]:
    """Build the Twilio channel if credentials are configured."""
    if not config.messaging_enabled():
        return None
    return TwilioWhatsAppChannel(
        account_sid=config.TWILIO_ACCOUNT_SID,
        auth_token=config.TWILIO_AUTH_TOKEN,
        from_number=config.TWILIO_WHATSAPP_NUMBER,
    )


class StatusMessenger:
    """
    Notifier subscriber that messages patients on status changes.

    With an executor, delivery runs off the publishing thread; use a
    single-worker executor to keep per-appointment ordering.
    """

    def __init__(
        self,
        store: AppointmentStore,
        channel: NotificationChannel,
        executor: Optional[Executor] = None,
    ):
        self.store = store
        self.channel = channel
        self.executor = executor

    def __call__(self, event: Event):
        if not isinstance(event, StatusChanged):
            return
        if self.executor is None:
            self.deliver(event)
        else:
            self.executor.submit(self.deliver, event)

    def deliver(self, event: StatusChanged) -> Optional[DeliveryReceipt]:
        """Re-read the appointment and send its current status; never raises."""
        try:
            appointment = self.store.get_by_id(event.id)
        except (AppointmentNotFound, StoreUnavailable) as e:
            logger.warning("status_message_skipped", appointment_id=event.id, reason=type(e).__name__)
            return None

        message = render_status_message(appointment.patient_name, appointment.status)
        try:
            return self.channel.send(appointment.phone_number, message)
        except DeliveryError as e:
            logger.warning("status_message_not_delivered", appointment_id=event.id, detail=e.message)
            return None
