"""
Emergency dispatch: validate, classify, persist, fan out, backfill.

Key patterns:
- Structured concurrency with asyncio.TaskGroup for the channel fan-out
- Every channel call is isolated behind a timeout and a catch-all, so one
  failing channel never cancels or blocks another
- The persisted alert is created once and only backfilled with the outcome
"""

import asyncio
from collections.abc import Sequence

import structlog

from healthbridge.clock import Clock, now_ms
from healthbridge.config import NotificationConfig
from healthbridge.domain.models import (
    AlertInput,
    ChannelOutcome,
    DeliveryStatus,
    DispatchResult,
    EmergencyAlert,
    EmergencyLevel,
    Location,
    Notification,
    TriggerDetails,
    TriggerMethod,
    VitalSnapshot,
    format_number,
)
from healthbridge.errors import InvalidInputError, UnrecognizedInputError, UpstreamFailure
from healthbridge.services.notifications import (
    BROAD_ALERT_CHANNEL,
    NotificationChannel,
    priority_for,
)
from healthbridge.services.voice import classify_voice_command
from healthbridge.storage.base import AlertStore, ReadingStore

logger = structlog.get_logger(__name__)

DEFAULT_MESSAGE = "Emergency alert triggered"


def compose_notification_body(
    message: str,
    location: Location | None,
    vital_signs: VitalSnapshot | None,
    maps_url_template: str = "https://maps.google.com/?q={lat},{long}",
) -> str:
    lines = [f"EMERGENCY ALERT: {message}"]
    if location is not None:
        link = maps_url_template.format(lat=location.lat, long=location.long)
        lines.append(f"Location: {link}")

    if vital_signs is not None and not vital_signs.is_empty:
        lines.append("")
        lines.append("Vital Signs:")
        if vital_signs.heart_rate is not None:
            lines.append(f"Heart Rate: {format_number(vital_signs.heart_rate)} bpm")
        if vital_signs.blood_pressure is not None:
            lines.append(f"BP: {vital_signs.blood_pressure} mmHg")
        if vital_signs.blood_glucose is not None:
            lines.append(f"Glucose: {format_number(vital_signs.blood_glucose)} mg/dL")
        if vital_signs.oxygen_level is not None:
            lines.append(f"O2: {format_number(vital_signs.oxygen_level)}%")
        if vital_signs.temperature is not None:
            lines.append(f"Temp: {format_number(vital_signs.temperature)}°C")
    return "\n".join(lines)


class EmergencyDispatcher:
    def __init__(
        self,
        alerts: AlertStore,
        readings: ReadingStore,
        channels: Sequence[NotificationChannel],
        config: NotificationConfig | None = None,
        clock: Clock = now_ms,
    ) -> None:
        self.alerts = alerts
        self.readings = readings
        self.channels = list(channels)
        self.config = config or NotificationConfig()
        self.clock = clock
        self.logger = logger.bind(component="emergency_dispatcher")

    async def dispatch(self, alert_input: AlertInput) -> DispatchResult:
        """
        Raise one emergency and notify every enabled channel.

        Raises:
            InvalidInputError: phone number missing.
            UnrecognizedInputError: a voice command matched no keyword tier.
        """
        if not alert_input.phone_number or not alert_input.phone_number.strip():
            raise InvalidInputError("Phone number is required")

        level = alert_input.level or EmergencyLevel.URGENT
        message = alert_input.message
        details = TriggerDetails(threshold_exceeded=alert_input.threshold_exceeded)

        if alert_input.trigger_method is TriggerMethod.VOICE and alert_input.voice_command:
            classification = classify_voice_command(alert_input.voice_command)
            if not classification.recognized or classification.level is None:
                self.logger.info("voice_command_unrecognized", command=alert_input.voice_command)
                raise UnrecognizedInputError(
                    "Voice command not recognized as emergency", alert_input.voice_command
                )
            level = classification.level
            message = classification.message
            details = details.model_copy(update={"voice_command": alert_input.voice_command})

        if alert_input.device_info is not None:
            details = details.model_copy(
                update={
                    "device_id": alert_input.device_info.device_id,
                    "device_type": alert_input.device_info.device_type,
                }
            )

        vital_signs = alert_input.vital_signs
        if vital_signs is None and alert_input.user_id:
            vital_signs = self._latest_vitals(alert_input.user_id)

        alert = EmergencyAlert(
            id=self.alerts.new_alert_id("emergency"),
            user_id=alert_input.user_id or "unknown",
            phone_number=alert_input.phone_number,
            message=message or DEFAULT_MESSAGE,
            level=level,
            timestamp=self.clock(),
            location=alert_input.location,
            vital_signs=vital_signs,
            trigger_method=alert_input.trigger_method,
            trigger_details=details,
        )
        self.alerts.add_emergency_alert(alert)

        notification = Notification(
            alert_id=alert.id,
            user_id=alert.user_id,
            phone_number=alert.phone_number,
            level=alert.level,
            priority=priority_for(alert.level),
            headline=f"EMERGENCY: {alert.message}",
            body=compose_notification_body(
                alert.message, alert.location, alert.vital_signs, self.config.maps_url_template
            ),
            source=alert.trigger_method,
            location=alert.location,
            vital_signs=alert.vital_signs,
        )
        outcomes = await self._fan_out(notification)

        notified_contacts = [
            recipient
            for outcome in outcomes
            if outcome.channel == BROAD_ALERT_CHANNEL and outcome.delivered
            for recipient in outcome.recipients
        ]
        services_notified = (
            alert.level is EmergencyLevel.CRITICAL
            and alert.location is not None
            and alert.vital_signs is not None
        )
        if services_notified:
            self.logger.warning(
                "emergency_services_notified", alert_id=alert.id, user_id=alert.user_id
            )

        alert = alert.model_copy(
            update={
                "notified_contacts": notified_contacts,
                "emergency_services_notified": services_notified,
            }
        )
        self.alerts.update_emergency_alert(alert)

        self.logger.info(
            "alert_dispatched",
            alert_id=alert.id,
            user_id=alert.user_id,
            level=alert.level.value,
            trigger=alert.trigger_method.value,
            channels={o.channel: o.status.value for o in outcomes},
        )
        return DispatchResult(alert=alert, outcomes=outcomes)

    def _latest_vitals(self, user_id: str) -> VitalSnapshot | None:
        try:
            latest = self.readings.latest_by_type(user_id)
        except UpstreamFailure as e:
            self.logger.error("vital_signs_lookup_failed", user_id=user_id, error=str(e))
            return None
        snapshot = VitalSnapshot.from_readings(latest, last_updated=self.clock())
        return None if snapshot.is_empty else snapshot

    async def _fan_out(self, notification: Notification) -> list[ChannelOutcome]:
        enabled = set(self.config.enabled_channels)
        tasks: list[asyncio.Task[ChannelOutcome]] = []

        async with asyncio.TaskGroup() as tg:
            for channel in self.channels:
                if channel.channel_name not in enabled:
                    continue
                tasks.append(tg.create_task(self._deliver(channel, notification)))

        delivered = {task.result().channel: task.result() for task in tasks}
        return [
            delivered.get(
                channel.channel_name,
                ChannelOutcome(
                    channel=channel.channel_name,
                    status=DeliveryStatus.SKIPPED,
                    detail="channel disabled",
                ),
            )
            for channel in self.channels
        ]

    async def _deliver(
        self, channel: NotificationChannel, notification: Notification
    ) -> ChannelOutcome:
        name = channel.channel_name
        try:
            result = await asyncio.wait_for(
                channel.send(notification), timeout=self.config.channel_timeout_seconds
            )
        except TimeoutError:
            self.logger.error(
                "channel_timeout", channel=name, timeout=self.config.channel_timeout_seconds
            )
            return ChannelOutcome(channel=name, status=DeliveryStatus.FAILED, detail="timed out")
        except Exception as e:
            self.logger.exception("channel_delivery_error", channel=name, error=str(e))
            return ChannelOutcome(channel=name, status=DeliveryStatus.FAILED, detail=str(e))

        if result.is_err():
            error = result.unwrap_err()
            self.logger.error("channel_delivery_failed", channel=name, error=str(error))
            return ChannelOutcome(channel=name, status=DeliveryStatus.FAILED, detail=str(error))

        receipt = result.unwrap()
        return ChannelOutcome(
            channel=name,
            status=DeliveryStatus.DELIVERED,
            detail=receipt.reference,
            recipients=receipt.recipients,
        )
