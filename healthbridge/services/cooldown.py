"""
Per-user notification cooldown.

The gate is caller-side policy: the device monitoring pipeline consults it
before dispatching for a threshold breach. One window per user, shared by all
metric types. Two concurrent requests for the same user can both pass the
check; that race is accepted.
"""

import structlog

from healthbridge.clock import Clock, now_ms
from healthbridge.domain.models import UserHealthProfile

logger = structlog.get_logger(__name__)


class CooldownGate:
    def __init__(self, clock: Clock = now_ms) -> None:
        self.clock = clock
        self.logger = logger.bind(component="cooldown_gate")

    def remaining_ms(self, profile: UserHealthProfile, now: int | None = None) -> int:
        if profile.last_notification is None:
            return 0
        now = self.clock() if now is None else now
        elapsed = now - profile.last_notification
        return max(0, profile.notification_cooldown_ms - elapsed)

    def is_open(self, profile: UserHealthProfile, now: int | None = None) -> bool:
        """True when there was no prior notification or the cooldown has elapsed."""
        if profile.last_notification is None:
            return True
        now = self.clock() if now is None else now
        return now - profile.last_notification > profile.notification_cooldown_ms

    def mark_notified(self, profile: UserHealthProfile, now: int | None = None) -> UserHealthProfile:
        now = self.clock() if now is None else now
        self.logger.debug("cooldown_started", user_id=profile.user_id, at=now)
        return profile.model_copy(update={"last_notification": now})
