"""
Notification channels for emergency fan-out.

Key patterns:
- Protocol-based channels (structural typing, trivial to fake in tests)
- Expected delivery failures come back as Result values, never raised
- Transports are simulated and logged; no external provider is called
"""

from collections import deque
from typing import Protocol

import structlog

from healthbridge.domain.models import AlertPriority, DeliveryReceipt, EmergencyLevel, Notification
from healthbridge.services.alerts import HealthAlertService
from healthbridge.services.result import Result
from healthbridge.storage.base import ProfileStore

logger = structlog.get_logger(__name__)

CHAT_CHANNEL = "chat"
BROAD_ALERT_CHANNEL = "broadAlert"

_PRIORITY_BY_LEVEL = {
    EmergencyLevel.CRITICAL: AlertPriority.CRITICAL,
    EmergencyLevel.URGENT: AlertPriority.HIGH,
    EmergencyLevel.MODERATE: AlertPriority.MEDIUM,
}


def priority_for(level: EmergencyLevel) -> AlertPriority:
    return _PRIORITY_BY_LEVEL.get(level, AlertPriority.MEDIUM)


class NotificationChannel(Protocol):
    """
    One delivery path for an emergency notification.

    Design: a single async method; the dispatcher owns timeouts and isolation.
    """

    channel_name: str

    async def send(self, notification: Notification) -> Result[DeliveryReceipt, Exception]:
        ...


class ChatChannel:
    """Simulated chat (WhatsApp-style) message to the alert's phone number."""

    channel_name = CHAT_CHANNEL

    def __init__(self, sender: str = "system", outbox_size: int = 500) -> None:
        self.sender = sender
        self.outbox: deque[dict[str, str]] = deque(maxlen=outbox_size)
        self.logger = logger.bind(component="chat_channel")

    async def send(self, notification: Notification) -> Result[DeliveryReceipt, Exception]:
        try:
            if not notification.phone_number:
                raise ValueError("chat delivery needs a phone number")

            message = {
                "to": notification.phone_number,
                "from": self.sender,
                "alertId": notification.alert_id,
                "body": notification.body,
            }
            self.outbox.append(message)

            self.logger.info(
                "chat_message_sent",
                to=notification.phone_number,
                alert_id=notification.alert_id,
                level=notification.level.value,
            )
            return Result.ok(
                DeliveryReceipt(
                    channel=self.channel_name,
                    reference=f"chat-{notification.alert_id}",
                    recipients=[notification.phone_number],
                )
            )

        except Exception as e:
            self.logger.exception("chat_message_failed", error=str(e))
            return Result.err(e)


class BroadAlertChannel:
    """
    Records a HealthAlert for the user's number and notifies emergency contacts.

    Critical priority is simulated as a phone call, everything else as SMS.
    Contacts are filtered by their notification preference.
    """

    channel_name = BROAD_ALERT_CHANNEL

    def __init__(self, health_alerts: HealthAlertService, profiles: ProfileStore) -> None:
        self.health_alerts = health_alerts
        self.profiles = profiles
        self.logger = logger.bind(component="broad_alert_channel")

    async def send(self, notification: Notification) -> Result[DeliveryReceipt, Exception]:
        try:
            alert = self.health_alerts.create(
                phone_number=notification.phone_number,
                message=notification.headline,
                user_id=notification.user_id,
                priority=notification.priority,
                category="emergency",
                source=notification.source.value,
                location=notification.location,
                vital_signs=notification.vital_signs,
            )

            recipients: list[str] = []
            profile = self.profiles.get(notification.user_id)
            if profile is not None:
                for contact in profile.emergency_contacts:
                    if not contact.wants(notification.level):
                        continue
                    # The alert's own number was already reached by create().
                    if contact.phone_number != notification.phone_number:
                        self.health_alerts.deliver(contact.phone_number, alert)
                    recipients.append(contact.phone_number)

            self.logger.info(
                "broad_alert_sent",
                alert_id=alert.id,
                priority=alert.priority.value,
                contacts_notified=len(recipients),
            )
            return Result.ok(
                DeliveryReceipt(channel=self.channel_name, reference=alert.id, recipients=recipients)
            )

        except Exception as e:
            self.logger.exception("broad_alert_failed", error=str(e))
            return Result.err(e)
