"""
Device reading pipeline: record, evaluate, gate, dispatch.

A reading is appended to the user's log, checked against the user's
thresholds, and, when a threshold is breached and the user's cooldown has
elapsed, escalated through the emergency dispatcher.
"""

import structlog

from healthbridge.clock import Clock, now_ms
from healthbridge.config import MonitoringConfig
from healthbridge.domain.models import (
    AlertInput,
    ContactType,
    DeviceInfo,
    EmergencyContact,
    EmergencyLevel,
    ReadingOutcome,
    ReadingSubmission,
    Severity,
    ThresholdEvaluation,
    TriggerMethod,
    UserHealthProfile,
    VitalReading,
    VitalType,
)
from healthbridge.errors import NotFoundError
from healthbridge.services.cooldown import CooldownGate
from healthbridge.services.dispatcher import EmergencyDispatcher
from healthbridge.services.evaluator import ThresholdEvaluator
from healthbridge.storage.base import ProfileStore, ReadingStore, ThresholdStore

logger = structlog.get_logger(__name__)


class DeviceMonitoringService:
    def __init__(
        self,
        readings: ReadingStore,
        thresholds: ThresholdStore,
        profiles: ProfileStore,
        dispatcher: EmergencyDispatcher,
        evaluator: ThresholdEvaluator | None = None,
        cooldown: CooldownGate | None = None,
        config: MonitoringConfig | None = None,
        clock: Clock = now_ms,
    ) -> None:
        self.readings = readings
        self.thresholds = thresholds
        self.profiles = profiles
        self.dispatcher = dispatcher
        self.evaluator = evaluator or ThresholdEvaluator()
        self.cooldown = cooldown or CooldownGate(clock)
        self.config = config or MonitoringConfig()
        self.clock = clock
        self.logger = logger.bind(component="device_monitoring")

    async def record_reading(self, submission: ReadingSubmission) -> ReadingOutcome:
        user_id = submission.user_id
        profile = self.profiles.get_or_create(user_id, self.config.default_cooldown_ms)
        if submission.phone_number and submission.phone_number != profile.phone_number:
            profile = profile.model_copy(update={"phone_number": submission.phone_number})
            self.profiles.save(profile)

        vital = submission.vital_sign
        device = submission.device_info
        reading = VitalReading(
            type=vital.type,
            value=vital.value,
            unit=vital.unit,
            timestamp=vital.timestamp if vital.timestamp is not None else self.clock(),
            device_id=device.device_id if device else None,
            device_type=device.device_type if device else None,
        )

        # Pool excludes the reading being evaluated.
        recent = self.readings.recent(user_id, reading.type, self.config.recent_readings_pool)
        self.readings.append(user_id, reading)

        evaluation = self.evaluator.evaluate(
            reading, self.thresholds.thresholds_for(user_id), recent
        )
        self.logger.info(
            "reading_recorded",
            user_id=user_id,
            type=reading.type.value,
            value=str(reading.value),
            severity=evaluation.severity.value,
        )

        alert_sent = False
        alert_id = None
        if evaluation.exceeded:
            alert_sent, alert_id = await self._escalate(profile, reading, evaluation)

        return ReadingOutcome(
            vital_sign=reading,
            threshold_exceeded=evaluation.exceeded,
            severity=evaluation.severity,
            message=evaluation.message,
            alert_sent=alert_sent,
            alert_id=alert_id,
        )

    async def _escalate(
        self, profile: UserHealthProfile, reading: VitalReading, evaluation: ThresholdEvaluation
    ) -> tuple[bool, str | None]:
        now = self.clock()
        if not self.cooldown.is_open(profile, now):
            self.logger.info(
                "alert_suppressed_cooldown",
                user_id=profile.user_id,
                remaining_ms=self.cooldown.remaining_ms(profile, now),
            )
            return False, None

        level = (
            EmergencyLevel.CRITICAL
            if evaluation.severity is Severity.CRITICAL
            else EmergencyLevel.MODERATE
        )
        profile = self._seed_default_contact(profile)
        target = profile.notification_target(level)
        if target is None:
            self.logger.warning(
                "no_notification_target", user_id=profile.user_id, level=level.value
            )
            return False, None

        result = await self.dispatcher.dispatch(
            AlertInput(
                user_id=profile.user_id,
                phone_number=target,
                message=f"Health Alert: {evaluation.message}",
                level=level,
                trigger_method=TriggerMethod.THRESHOLD,
                device_info=DeviceInfo(device_id=reading.device_id, device_type=reading.device_type),
                threshold_exceeded=reading.type,
            )
        )

        if result.any_delivered:
            self.profiles.save(self.cooldown.mark_notified(profile, now))
        return result.any_delivered, result.alert.id

    def _seed_default_contact(self, profile: UserHealthProfile) -> UserHealthProfile:
        """Give a user with no emergency contacts the configured default one."""
        if profile.emergency_contacts or not self.config.default_contact_phone:
            return profile
        contact = EmergencyContact(
            type=ContactType.DOCTOR,
            name=self.config.default_contact_name,
            phone_number=self.config.default_contact_phone,
        )
        profile = profile.model_copy(update={"emergency_contacts": [contact]})
        self.profiles.save(profile)
        self.logger.info("default_contact_seeded", user_id=profile.user_id)
        return profile

    def history(
        self,
        user_id: str,
        vital_type: VitalType | None = None,
        since: int | None = None,
        limit: int = 100,
    ) -> list[VitalReading]:
        """
        Raises:
            NotFoundError: if the user has never been seen.
        """
        if self.profiles.get(user_id) is None:
            raise NotFoundError("User health profile not found")
        return self.readings.history(user_id, vital_type, since if since else None, limit)
