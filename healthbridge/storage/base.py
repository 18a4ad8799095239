"""
Repository protocols.

Services depend on these structural interfaces only; the backend (process
memory or a SQL database) is chosen by configuration when storage is opened.
Stores are unsynchronized: concurrent writers resolve as last-writer-wins.
"""

from collections.abc import Sequence
from typing import Protocol, TypeVar

from healthbridge.domain.models import (
    EmergencyAlert,
    HealthAlert,
    Threshold,
    UserHealthProfile,
    VitalReading,
    VitalType,
)


class ReadingStore(Protocol):
    """Per-user append-only reading log, capped at `history_limit` entries."""

    history_limit: int

    def append(self, user_id: str, reading: VitalReading) -> None:
        """Record a reading, evicting the oldest entries beyond the cap."""
        ...

    def recent(self, user_id: str, vital_type: VitalType, limit: int) -> list[VitalReading]:
        """Last `limit` readings of one type, oldest first."""
        ...

    def history(
        self,
        user_id: str,
        vital_type: VitalType | None = None,
        since: int | None = None,
        limit: int = 100,
    ) -> list[VitalReading]:
        """Readings newest first, optionally filtered by type and start time."""
        ...

    def latest_by_type(self, user_id: str) -> dict[VitalType, VitalReading]:
        """Most recent reading per type. Raises UpstreamFailure if the backend is unreachable."""
        ...

    def has_user(self, user_id: str) -> bool:
        ...


class ThresholdStore(Protocol):
    def thresholds_for(self, user_id: str) -> list[Threshold]:
        """Configured thresholds, or the defaults when the user has none."""
        ...

    def replace_thresholds(self, user_id: str, thresholds: Sequence[Threshold]) -> None:
        ...


class ProfileStore(Protocol):
    def get(self, user_id: str) -> UserHealthProfile | None:
        ...

    def get_or_create(self, user_id: str, cooldown_ms: int) -> UserHealthProfile:
        ...

    def save(self, profile: UserHealthProfile) -> None:
        ...


class AlertStore(Protocol):
    """Health alerts (broad SMS/call records) and emergency alerts."""

    def new_alert_id(self, prefix: str) -> str:
        """Next id in the `<prefix>-N` sequence."""
        ...

    def add_health_alert(self, alert: HealthAlert) -> None:
        ...

    def list_health_alerts(
        self, user_id: str | None = None, phone_number: str | None = None
    ) -> list[HealthAlert]:
        """Newest first; ties keep the most recently recorded first."""
        ...

    def acknowledge(self, alert_id: str, acknowledged: bool | None) -> HealthAlert:
        """Set the acknowledgement flag; None leaves it unchanged.

        Raises:
            NotFoundError: if no alert has this id.
        """
        ...

    def add_emergency_alert(self, alert: EmergencyAlert) -> None:
        ...

    def update_emergency_alert(self, alert: EmergencyAlert) -> None:
        ...

    def list_emergency_alerts(
        self, user_id: str | None = None, phone_number: str | None = None
    ) -> list[EmergencyAlert]:
        ...


AlertT = TypeVar("AlertT", HealthAlert, EmergencyAlert)


def newest_first(alerts: Sequence[AlertT]) -> list[AlertT]:
    """Sort by timestamp descending; later-recorded entries win ties."""
    return sorted(reversed(alerts), key=lambda alert: alert.timestamp, reverse=True)
