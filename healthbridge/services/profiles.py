"""Emergency contacts and per-user threshold management."""

from collections.abc import Sequence

import structlog

from healthbridge.config import MonitoringConfig
from healthbridge.domain.models import EmergencyContact, Threshold
from healthbridge.errors import InvalidInputError
from healthbridge.storage.base import ProfileStore, ThresholdStore

logger = structlog.get_logger(__name__)


class ProfileService:
    def __init__(
        self,
        profiles: ProfileStore,
        thresholds: ThresholdStore,
        config: MonitoringConfig | None = None,
    ) -> None:
        self.profiles = profiles
        self.thresholds = thresholds
        self.config = config or MonitoringConfig()
        self.logger = logger.bind(component="profile_service")

    def list_contacts(self, user_id: str) -> list[EmergencyContact]:
        profile = self.profiles.get(user_id)
        return list(profile.emergency_contacts) if profile else []

    def add_contact(self, user_id: str, contact: EmergencyContact) -> list[EmergencyContact]:
        profile = self.profiles.get_or_create(user_id, self.config.default_cooldown_ms)
        contacts = [c for c in profile.emergency_contacts if c.phone_number != contact.phone_number]
        contacts.append(contact)
        self.profiles.save(profile.model_copy(update={"emergency_contacts": contacts}))
        self.logger.info("contact_added", user_id=user_id, contact_type=contact.type.value)
        return contacts

    def get_thresholds(self, user_id: str) -> list[Threshold]:
        return self.thresholds.thresholds_for(user_id)

    def replace_thresholds(self, user_id: str, thresholds: Sequence[Threshold]) -> list[Threshold]:
        """
        Raises:
            InvalidInputError: if a metric type appears more than once.
        """
        seen: set[str] = set()
        for threshold in thresholds:
            if threshold.type.value in seen:
                raise InvalidInputError(f"Duplicate threshold for {threshold.type.value}")
            seen.add(threshold.type.value)

        self.profiles.get_or_create(user_id, self.config.default_cooldown_ms)
        self.thresholds.replace_thresholds(user_id, thresholds)
        self.logger.info("thresholds_replaced", user_id=user_id, count=len(thresholds))
        return list(thresholds)
