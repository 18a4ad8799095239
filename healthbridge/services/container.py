"""
Service wiring.

Builds the decision core (evaluator, cooldown gate, dispatcher) and the
services around it over one opened `Storage`.
"""

from collections.abc import Sequence

import structlog

from healthbridge.clock import Clock, now_ms
from healthbridge.config import AppConfig, get_config
from healthbridge.services.alerts import HealthAlertService
from healthbridge.services.chat_responder import ChatResponder
from healthbridge.services.cooldown import CooldownGate
from healthbridge.services.dispatcher import EmergencyDispatcher
from healthbridge.services.evaluator import DEFAULT_RULES, RapidChangeRule, ThresholdEvaluator
from healthbridge.services.monitoring import DeviceMonitoringService
from healthbridge.services.notifications import BroadAlertChannel, ChatChannel, NotificationChannel
from healthbridge.services.profiles import ProfileService
from healthbridge.storage import Storage

logger = structlog.get_logger(__name__)


class ServiceContainer:
    """
    Everything a request handler needs, built once per process.

    Channels can be injected (tests, simulations); by default the simulated
    chat and broad-alert channels are used.
    """

    def __init__(
        self,
        storage: Storage,
        config: AppConfig | None = None,
        clock: Clock = now_ms,
        channels: Sequence[NotificationChannel] | None = None,
    ) -> None:
        self.config = config or get_config()
        self.storage = storage
        self.clock = clock
        self.logger = logger.bind(component="service_container")

        self._init_notifications(channels)
        self._init_monitoring()
        self._init_profiles()
        self.chat_responder = ChatResponder()

    def _init_notifications(self, channels: Sequence[NotificationChannel] | None) -> None:
        self.health_alerts = HealthAlertService(self.storage.alerts, self.clock)
        if channels is None:
            channels = [
                ChatChannel(sender=self.config.notifications.chat_sender),
                BroadAlertChannel(self.health_alerts, self.storage.profiles),
            ]
        self.channels = list(channels)

        self.dispatcher = EmergencyDispatcher(
            alerts=self.storage.alerts,
            readings=self.storage.readings,
            channels=self.channels,
            config=self.config.notifications,
            clock=self.clock,
        )
        self.logger.info(
            "notifications_initialized", channels=[c.channel_name for c in self.channels]
        )

    def _init_monitoring(self) -> None:
        pool = self.config.monitoring.recent_readings_pool
        rules = [
            RapidChangeRule(pool_size=pool) if isinstance(rule, RapidChangeRule) else rule
            for rule in DEFAULT_RULES
        ]
        self.evaluator = ThresholdEvaluator(rules)
        self.cooldown = CooldownGate(self.clock)
        self.monitoring = DeviceMonitoringService(
            readings=self.storage.readings,
            thresholds=self.storage.thresholds,
            profiles=self.storage.profiles,
            dispatcher=self.dispatcher,
            evaluator=self.evaluator,
            cooldown=self.cooldown,
            config=self.config.monitoring,
            clock=self.clock,
        )
        self.logger.info("monitoring_initialized", history_limit=self.config.monitoring.history_limit)

    def _init_profiles(self) -> None:
        self.profiles = ProfileService(
            self.storage.profiles, self.storage.thresholds, self.config.monitoring
        )

    def get_health_status(self) -> dict[str, object]:
        return {
            "status": "ok",
            "environment": self.config.environment,
            "storage": self.storage.backend,
            "channels": [c.channel_name for c in self.channels],
        }
