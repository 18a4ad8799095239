"""
Domain models for vital-sign monitoring and emergency alerting.

These models represent the core business concepts and are framework-agnostic.
They use Pydantic for validation. Records are immutable once created; the wire
format is camelCase while Python attributes stay snake_case.
"""

import math
from collections.abc import Iterable, Mapping
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_serializer, model_validator
from pydantic.alias_generators import to_camel


class DomainModel(BaseModel):
    """Shared configuration: immutable, camelCase on the wire."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


class VitalType(str, Enum):
    """Vital-sign metrics a device can report."""

    HEART_RATE = "heartRate"
    BLOOD_PRESSURE = "bloodPressure"
    BLOOD_GLUCOSE = "bloodGlucose"
    OXYGEN_LEVEL = "oxygenLevel"
    TEMPERATURE = "temperature"
    STEPS = "steps"
    SLEEP = "sleep"
    WEIGHT = "weight"


class Severity(str, Enum):
    """Outcome of a threshold evaluation."""

    NORMAL = "normal"
    WARNING = "warning"
    CRITICAL = "critical"


class EmergencyLevel(str, Enum):
    CRITICAL = "critical"
    URGENT = "urgent"
    MODERATE = "moderate"


class TriggerMethod(str, Enum):
    MANUAL = "manual"
    VOICE = "voice"
    DEVICE = "device"
    THRESHOLD = "threshold"


class AlertPriority(str, Enum):
    """Priority of a broad health alert (drives call vs. SMS)."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ContactType(str, Enum):
    DOCTOR = "doctor"
    FAMILY = "family"
    EMERGENCY = "emergency"


class NotificationPreference(str, Enum):
    ALL = "all"
    CRITICAL = "critical"
    NONE = "none"


class DeliveryStatus(str, Enum):
    DELIVERED = "delivered"
    FAILED = "failed"
    SKIPPED = "skipped"


def format_number(value: float) -> str:
    """Render a reading for humans: 72.0 -> '72', 98.60 -> '98.6'."""
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.2f}".rstrip("0").rstrip(".")


# Vital values are a tagged variant: a plain scalar or a systolic/diastolic pair.
class ScalarValue(DomainModel):
    value: float

    @field_validator("value")
    @classmethod
    def _finite(cls, v: float) -> float:
        if not math.isfinite(v):
            raise ValueError("vital value must be a finite number")
        return v

    @model_serializer
    def _serialize(self) -> float:
        return self.value

    def __str__(self) -> str:
        return format_number(self.value)


class BloodPressure(DomainModel):
    systolic: int = Field(gt=0, lt=400)
    diastolic: int = Field(gt=0, lt=300)

    @classmethod
    def parse(cls, text: str) -> "BloodPressure":
        parts = text.strip().split("/")
        if len(parts) != 2:
            raise ValueError(f"blood pressure must look like 'systolic/diastolic', got {text!r}")
        try:
            systolic, diastolic = (int(part.strip()) for part in parts)
        except ValueError:
            raise ValueError(
                f"blood pressure must be two whole numbers, got {text!r}"
            ) from None
        return cls(systolic=systolic, diastolic=diastolic)

    @model_serializer
    def _serialize(self) -> str:
        return str(self)

    def __str__(self) -> str:
        return f"{self.systolic}/{self.diastolic}"


VitalValue = ScalarValue | BloodPressure


def parse_vital_value(vital_type: VitalType, raw: Any) -> VitalValue:
    """Turn a wire value into the variant its vital type requires."""
    if raw is None:
        raise ValueError(f"a value is required for {vital_type.value}")

    if vital_type is VitalType.BLOOD_PRESSURE:
        if isinstance(raw, BloodPressure):
            return raw
        if isinstance(raw, str):
            return BloodPressure.parse(raw)
        if isinstance(raw, Mapping):
            return BloodPressure.model_validate(raw)
        raise ValueError("bloodPressure values must be 'systolic/diastolic' strings")

    if isinstance(raw, ScalarValue):
        return raw
    if isinstance(raw, bool) or isinstance(raw, BloodPressure):
        raise ValueError(f"{vital_type.value} values must be numeric")
    if isinstance(raw, int | float):
        return ScalarValue(value=float(raw))
    if isinstance(raw, str):
        try:
            return ScalarValue(value=float(raw.strip()))
        except ValueError:
            raise ValueError(f"{vital_type.value} value {raw!r} is not a number") from None
    raise ValueError(f"{vital_type.value} values must be numeric")


def _coerce_vital_fields(data: Any, keys: Iterable[str]) -> Any:
    if not isinstance(data, dict) or "type" not in data:
        return data
    vital_type = VitalType(data["type"])
    coerced = dict(data)
    for key in keys:
        if key in coerced and coerced[key] is not None:
            coerced[key] = parse_vital_value(vital_type, coerced[key])
    return coerced


class VitalReading(DomainModel):
    """A single recorded vital-sign reading."""

    type: VitalType
    value: VitalValue
    unit: str = ""
    timestamp: int = Field(ge=0, description="Epoch milliseconds")
    device_id: str | None = None
    device_type: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _coerce_value(cls, data: Any) -> Any:
        if isinstance(data, dict) and "value" not in data:
            raise ValueError("a vital sign value is required")
        return _coerce_vital_fields(data, ("value",))

    @property
    def scalar(self) -> float | None:
        return self.value.value if isinstance(self.value, ScalarValue) else None


class VitalSignIn(DomainModel):
    """Reading as submitted by a device; the timestamp may be omitted."""

    type: VitalType
    value: VitalValue
    unit: str = ""
    timestamp: int | None = Field(default=None, ge=0)

    @model_validator(mode="before")
    @classmethod
    def _coerce_value(cls, data: Any) -> Any:
        if isinstance(data, dict) and "value" not in data:
            raise ValueError("a vital sign value is required")
        return _coerce_vital_fields(data, ("value",))


class DeviceInfo(DomainModel):
    device_id: str | None = None
    device_type: str | None = None


class Threshold(DomainModel):
    """
    Alerting bounds for one metric type.

    Blood-pressure bounds are always composite systolic/diastolic pairs; a
    single-number blood-pressure bound is rejected.
    """

    type: VitalType
    min: VitalValue | None = None
    max: VitalValue | None = None
    change_percent: float | None = Field(default=None, gt=0)
    time_window_ms: int | None = Field(default=None, gt=0)

    @model_validator(mode="before")
    @classmethod
    def _coerce_bounds(cls, data: Any) -> Any:
        return _coerce_vital_fields(data, ("min", "max"))


def default_thresholds() -> list[Threshold]:
    """Thresholds applied to users who have not configured their own."""
    return [
        Threshold(type=VitalType.HEART_RATE, min=40, max=120),
        Threshold(type=VitalType.BLOOD_PRESSURE, min="90/60", max="160/100"),
        Threshold(type=VitalType.BLOOD_GLUCOSE, min=70, max=180),
        Threshold(type=VitalType.OXYGEN_LEVEL, min=90),
        Threshold(type=VitalType.TEMPERATURE, min=35, max=38),
    ]


class ThresholdEvaluation(DomainModel):
    """Derived result of checking one reading; never persisted."""

    exceeded: bool
    severity: Severity
    message: str
    rule: str | None = Field(default=None, description="Name of the rule that fired")
    percent_change: float | None = None


class EmergencyContact(DomainModel):
    type: ContactType = ContactType.FAMILY
    name: str = Field(min_length=1)
    phone_number: str = Field(min_length=1)
    email: str | None = None
    notification_preference: NotificationPreference = NotificationPreference.ALL

    def wants(self, level: EmergencyLevel) -> bool:
        """Whether this contact opted in to alerts of the given level."""
        if self.notification_preference is NotificationPreference.ALL:
            return True
        if self.notification_preference is NotificationPreference.CRITICAL:
            return level is EmergencyLevel.CRITICAL
        return False


class UserHealthProfile(DomainModel):
    """Per-user notification settings and cooldown state."""

    user_id: str = Field(min_length=1)
    phone_number: str | None = None
    emergency_contacts: list[EmergencyContact] = Field(default_factory=list)
    last_notification: int | None = Field(default=None, description="Epoch ms of last dispatch")
    notification_cooldown_ms: int = Field(default=900_000, ge=0)

    def notification_target(self, level: EmergencyLevel) -> str | None:
        """Number to alert for device breaches: own phone, else the first contact opted in to `level`."""
        if self.phone_number:
            return self.phone_number
        for contact in self.emergency_contacts:
            if contact.wants(level):
                return contact.phone_number
        return None


class Location(DomainModel):
    lat: float = Field(ge=-90, le=90)
    long: float = Field(ge=-180, le=180)
    address: str | None = None
    accuracy: float | None = Field(default=None, ge=0)
    timestamp: int | None = None


_SNAPSHOT_FIELDS = {
    VitalType.HEART_RATE: "heart_rate",
    VitalType.BLOOD_PRESSURE: "blood_pressure",
    VitalType.BLOOD_GLUCOSE: "blood_glucose",
    VitalType.TEMPERATURE: "temperature",
    VitalType.OXYGEN_LEVEL: "oxygen_level",
}


class VitalSnapshot(DomainModel):
    """Last-known vital signs attached to an emergency alert."""

    heart_rate: float | None = None
    blood_pressure: str | None = None
    blood_glucose: float | None = None
    temperature: float | None = None
    oxygen_level: float | None = None
    last_updated: int | None = None

    @field_validator("blood_pressure")
    @classmethod
    def _valid_blood_pressure(cls, v: str | None) -> str | None:
        return None if v is None else str(BloodPressure.parse(v))

    @classmethod
    def from_readings(
        cls, latest: Mapping[VitalType, VitalReading], last_updated: int | None = None
    ) -> "VitalSnapshot":
        fields: dict[str, Any] = {}
        for vital_type, field_name in _SNAPSHOT_FIELDS.items():
            reading = latest.get(vital_type)
            if reading is None:
                continue
            if isinstance(reading.value, BloodPressure):
                fields[field_name] = str(reading.value)
            else:
                fields[field_name] = reading.value.value
        return cls(last_updated=last_updated, **fields)

    @property
    def is_empty(self) -> bool:
        return all(getattr(self, name) is None for name in _SNAPSHOT_FIELDS.values())


class TriggerDetails(DomainModel):
    voice_command: str | None = None
    device_id: str | None = None
    device_type: str | None = None
    threshold_exceeded: VitalType | None = None


class HealthAlert(DomainModel):
    """Broad alert record: SMS/call fan-out to a phone number and contacts."""

    id: str
    user_id: str = "unknown"
    phone_number: str
    message: str
    priority: AlertPriority = AlertPriority.MEDIUM
    timestamp: int
    acknowledged: bool = False
    category: str = "general"
    source: str = "manual"
    location: Location | None = None
    vital_signs: VitalSnapshot | None = None


class EmergencyAlert(DomainModel):
    """
    One emergency event. Created once per trigger and only backfilled with
    notification results right after the fan-out.
    """

    id: str
    user_id: str = "unknown"
    phone_number: str
    message: str
    level: EmergencyLevel
    timestamp: int
    location: Location | None = None
    vital_signs: VitalSnapshot | None = None
    trigger_method: TriggerMethod
    trigger_details: TriggerDetails = Field(default_factory=TriggerDetails)
    notified_contacts: list[str] = Field(default_factory=list)
    emergency_services_notified: bool = False


class AlertInput(DomainModel):
    """Request to raise an emergency, from a person, a voice command or a device."""

    user_id: str | None = None
    phone_number: str | None = None
    message: str | None = None
    level: EmergencyLevel | None = None
    location: Location | None = None
    vital_signs: VitalSnapshot | None = None
    trigger_method: TriggerMethod = TriggerMethod.MANUAL
    voice_command: str | None = None
    device_info: DeviceInfo | None = None
    threshold_exceeded: VitalType | None = None


class Notification(DomainModel):
    """What every channel receives for one emergency alert."""

    alert_id: str
    user_id: str
    phone_number: str
    level: EmergencyLevel
    priority: AlertPriority
    headline: str
    body: str
    source: TriggerMethod
    location: Location | None = None
    vital_signs: VitalSnapshot | None = None


class DeliveryReceipt(DomainModel):
    channel: str
    reference: str
    recipients: list[str] = Field(default_factory=list)


class ChannelOutcome(DomainModel):
    channel: str
    status: DeliveryStatus
    detail: str = ""
    recipients: list[str] = Field(default_factory=list)

    @property
    def delivered(self) -> bool:
        return self.status is DeliveryStatus.DELIVERED


class DispatchResult(DomainModel):
    alert: EmergencyAlert
    outcomes: list[ChannelOutcome]

    @property
    def channels_delivered(self) -> dict[str, bool]:
        return {outcome.channel: outcome.delivered for outcome in self.outcomes}

    @property
    def any_delivered(self) -> bool:
        return any(outcome.delivered for outcome in self.outcomes)


class ReadingSubmission(DomainModel):
    """A device upload: who, what, and optionally from which device."""

    user_id: str = Field(min_length=1)
    vital_sign: VitalSignIn
    device_info: DeviceInfo | None = None
    phone_number: str | None = None


class ReadingOutcome(DomainModel):
    vital_sign: VitalReading
    threshold_exceeded: bool
    severity: Severity
    message: str
    alert_sent: bool
    alert_id: str | None = None
