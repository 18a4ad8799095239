"""
Services for the application.

This package contains the decision core (threshold evaluation, cooldown,
emergency dispatch) and the services built around it.
"""

from .alerts import HealthAlertService
from .chat_responder import ChatReply, ChatResponder
from .container import ServiceContainer
from .cooldown import CooldownGate
from .dispatcher import EmergencyDispatcher
from .evaluator import ThresholdEvaluator, evaluate
from .monitoring import DeviceMonitoringService
from .notifications import BroadAlertChannel, ChatChannel, NotificationChannel
from .profiles import ProfileService
from .result import Result
from .voice import classify_voice_command

__all__ = [
    "BroadAlertChannel",
    "ChatChannel",
    "ChatReply",
    "ChatResponder",
    "CooldownGate",
    "DeviceMonitoringService",
    "EmergencyDispatcher",
    "HealthAlertService",
    "NotificationChannel",
    "ProfileService",
    "Result",
    "ServiceContainer",
    "ThresholdEvaluator",
    "classify_voice_command",
    "evaluate",
]
