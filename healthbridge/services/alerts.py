"""Health alert records: creation with simulated call/SMS delivery, listing, acknowledgement."""

import structlog

from healthbridge.clock import Clock, now_ms
from healthbridge.domain.models import AlertPriority, HealthAlert, Location, VitalSnapshot
from healthbridge.errors import InvalidInputError
from healthbridge.storage.base import AlertStore

logger = structlog.get_logger(__name__)


class HealthAlertService:
    def __init__(self, alerts: AlertStore, clock: Clock = now_ms) -> None:
        self.alerts = alerts
        self.clock = clock
        self.logger = logger.bind(component="health_alerts")

    def create(
        self,
        phone_number: str | None,
        message: str | None,
        user_id: str | None = None,
        priority: AlertPriority | None = None,
        category: str | None = None,
        source: str | None = None,
        location: Location | None = None,
        vital_signs: VitalSnapshot | None = None,
    ) -> HealthAlert:
        """
        Record an alert and simulate delivering it to `phone_number`.

        Raises:
            InvalidInputError: phone number or message missing.
        """
        if not phone_number or not message:
            raise InvalidInputError("Phone number and message are required")

        alert = HealthAlert(
            id=self.alerts.new_alert_id("alert"),
            user_id=user_id or "unknown",
            phone_number=phone_number,
            message=message,
            priority=priority or AlertPriority.MEDIUM,
            timestamp=self.clock(),
            category=category or "general",
            source=source or "manual",
            location=location,
            vital_signs=vital_signs,
        )
        self.alerts.add_health_alert(alert)
        self.deliver(phone_number, alert)
        return alert

    def deliver(self, phone_number: str, alert: HealthAlert) -> None:
        # Critical alerts ring; everything else is a text.
        if alert.priority is AlertPriority.CRITICAL:
            self.logger.warning(
                "emergency_call_simulated", to=phone_number, alert_id=alert.id, message=alert.message
            )
        else:
            self.logger.info(
                "sms_simulated", to=phone_number, alert_id=alert.id, message=alert.message
            )

    def list_alerts(
        self, user_id: str | None = None, phone_number: str | None = None
    ) -> list[HealthAlert]:
        return self.alerts.list_health_alerts(user_id or None, phone_number or None)

    def acknowledge(self, alert_id: str | None, acknowledged: bool | None = None) -> HealthAlert:
        """
        Raises:
            InvalidInputError: alert id missing.
            NotFoundError: unknown alert id.
        """
        if not alert_id:
            raise InvalidInputError("Alert ID is required")
        alert = self.alerts.acknowledge(alert_id, acknowledged)
        self.logger.info("alert_acknowledged", alert_id=alert_id, acknowledged=alert.acknowledged)
        return alert
