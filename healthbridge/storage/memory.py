"""Process-local stores. State lives for the lifetime of the process."""

from collections import defaultdict, deque
from collections.abc import Sequence

import structlog

from healthbridge.domain.models import (
    EmergencyAlert,
    HealthAlert,
    Threshold,
    UserHealthProfile,
    VitalReading,
    VitalType,
    default_thresholds,
)
from healthbridge.errors import NotFoundError
from healthbridge.storage.base import newest_first

logger = structlog.get_logger(__name__)


class InMemoryReadingStore:
    def __init__(self, history_limit: int = 1000) -> None:
        self.history_limit = history_limit
        self._readings: dict[str, deque[VitalReading]] = {}

    def append(self, user_id: str, reading: VitalReading) -> None:
        log = self._readings.setdefault(user_id, deque(maxlen=self.history_limit))
        log.append(reading)

    def recent(self, user_id: str, vital_type: VitalType, limit: int) -> list[VitalReading]:
        same_type = [r for r in self._readings.get(user_id, ()) if r.type == vital_type]
        return same_type[-limit:] if limit > 0 else []

    def history(
        self,
        user_id: str,
        vital_type: VitalType | None = None,
        since: int | None = None,
        limit: int = 100,
    ) -> list[VitalReading]:
        readings = [
            r
            for r in self._readings.get(user_id, ())
            if (vital_type is None or r.type == vital_type)
            and (since is None or r.timestamp >= since)
        ]
        readings = sorted(reversed(readings), key=lambda r: r.timestamp, reverse=True)
        return readings[:limit]

    def latest_by_type(self, user_id: str) -> dict[VitalType, VitalReading]:
        latest: dict[VitalType, VitalReading] = {}
        for reading in self._readings.get(user_id, ()):
            current = latest.get(reading.type)
            if current is None or reading.timestamp >= current.timestamp:
                latest[reading.type] = reading
        return latest

    def has_user(self, user_id: str) -> bool:
        return user_id in self._readings


class InMemoryThresholdStore:
    def __init__(self) -> None:
        self._thresholds: dict[str, list[Threshold]] = {}

    def thresholds_for(self, user_id: str) -> list[Threshold]:
        configured = self._thresholds.get(user_id)
        return list(configured) if configured is not None else default_thresholds()

    def replace_thresholds(self, user_id: str, thresholds: Sequence[Threshold]) -> None:
        self._thresholds[user_id] = list(thresholds)


class InMemoryProfileStore:
    def __init__(self) -> None:
        self._profiles: dict[str, UserHealthProfile] = {}

    def get(self, user_id: str) -> UserHealthProfile | None:
        return self._profiles.get(user_id)

    def get_or_create(self, user_id: str, cooldown_ms: int) -> UserHealthProfile:
        profile = self._profiles.get(user_id)
        if profile is None:
            profile = UserHealthProfile(user_id=user_id, notification_cooldown_ms=cooldown_ms)
            self._profiles[user_id] = profile
            logger.info("profile_created", user_id=user_id)
        return profile

    def save(self, profile: UserHealthProfile) -> None:
        self._profiles[profile.user_id] = profile


class InMemoryAlertStore:
    def __init__(self) -> None:
        self._counters: defaultdict[str, int] = defaultdict(int)
        self._health_alerts: list[HealthAlert] = []
        self._emergency_alerts: list[EmergencyAlert] = []

    def new_alert_id(self, prefix: str) -> str:
        self._counters[prefix] += 1
        return f"{prefix}-{self._counters[prefix]}"

    def add_health_alert(self, alert: HealthAlert) -> None:
        self._health_alerts.append(alert)

    def list_health_alerts(
        self, user_id: str | None = None, phone_number: str | None = None
    ) -> list[HealthAlert]:
        return newest_first(
            [
                a
                for a in self._health_alerts
                if (user_id is None or a.user_id == user_id)
                and (phone_number is None or a.phone_number == phone_number)
            ]
        )

    def acknowledge(self, alert_id: str, acknowledged: bool | None) -> HealthAlert:
        for index, alert in enumerate(self._health_alerts):
            if alert.id != alert_id:
                continue
            if acknowledged is not None and alert.acknowledged != acknowledged:
                alert = alert.model_copy(update={"acknowledged": acknowledged})
                self._health_alerts[index] = alert
            return alert
        raise NotFoundError("Alert not found")

    def add_emergency_alert(self, alert: EmergencyAlert) -> None:
        self._emergency_alerts.append(alert)

    def update_emergency_alert(self, alert: EmergencyAlert) -> None:
        for index, existing in enumerate(self._emergency_alerts):
            if existing.id == alert.id:
                self._emergency_alerts[index] = alert
                return
        raise NotFoundError(f"Emergency alert {alert.id} not found")

    def list_emergency_alerts(
        self, user_id: str | None = None, phone_number: str | None = None
    ) -> list[EmergencyAlert]:
        return newest_first(
            [
                a
                for a in self._emergency_alerts
                if (user_id is None or a.user_id == user_id)
                and (phone_number is None or a.phone_number == phone_number)
            ]
        )
