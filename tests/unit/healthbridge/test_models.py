"""
Domain model tests.

Covers vital value parsing (scalar vs. blood pressure), wire format,
immutability, threshold bound coercion and the snapshot helpers.
"""

import pytest
from hypothesis import given
from hypothesis import strategies as st
from pydantic import ValidationError

from healthbridge.domain.models import (
    BloodPressure,
    EmergencyContact,
    EmergencyLevel,
    NotificationPreference,
    ScalarValue,
    Threshold,
    UserHealthProfile,
    VitalReading,
    VitalSnapshot,
    VitalType,
    default_thresholds,
    format_number,
)


class TestVitalValues:
    def test_blood_pressure_parses_from_wire_string(self) -> None:
        reading = VitalReading(type="bloodPressure", value="120/80", unit="mmHg", timestamp=1)
        assert reading.value == BloodPressure(systolic=120, diastolic=80)
        assert str(reading.value) == "120/80"

    @pytest.mark.parametrize("raw", ["120", "120/", "abc/80", "120/80/60", 120])
    def test_malformed_blood_pressure_is_rejected(self, raw: object) -> None:
        with pytest.raises(ValidationError):
            VitalReading(type="bloodPressure", value=raw, timestamp=1)

    def test_scalar_accepts_numeric_strings(self) -> None:
        reading = VitalReading(type="heartRate", value="72", unit="bpm", timestamp=1)
        assert isinstance(reading.value, ScalarValue)
        assert reading.scalar == 72.0

    @pytest.mark.parametrize("raw", ["120/80", "fast", True, float("nan")])
    def test_scalar_rejects_non_numbers(self, raw: object) -> None:
        with pytest.raises(ValidationError):
            VitalReading(type="heartRate", value=raw, timestamp=1)

    def test_missing_value_is_rejected(self) -> None:
        with pytest.raises(ValidationError, match="value is required"):
            VitalReading.model_validate({"type": "heartRate", "timestamp": 1})

    def test_wire_format_is_camel_case(self) -> None:
        reading = VitalReading(
            type=VitalType.BLOOD_PRESSURE,
            value="150/95",
            unit="mmHg",
            timestamp=5,
            device_id="cuff-1",
        )
        dumped = reading.model_dump(mode="json", by_alias=True)
        assert dumped["value"] == "150/95"
        assert dumped["deviceId"] == "cuff-1"

        restored = VitalReading.model_validate(dumped)
        assert restored == reading

    def test_readings_are_immutable(self) -> None:
        reading = VitalReading(type="heartRate", value=72, timestamp=1)
        with pytest.raises(ValidationError, match="frozen"):
            reading.unit = "bpm"  # type: ignore[misc]

    @given(value=st.floats(min_value=0.0, max_value=1000.0, allow_nan=False))
    def test_any_finite_scalar_round_trips_through_display(self, value: float) -> None:
        rendered = format_number(value)
        assert abs(float(rendered) - value) <= 0.0051


class TestThresholds:
    def test_defaults_cover_five_metrics(self) -> None:
        by_type = {t.type: t for t in default_thresholds()}
        assert set(by_type) == {
            VitalType.HEART_RATE,
            VitalType.BLOOD_PRESSURE,
            VitalType.BLOOD_GLUCOSE,
            VitalType.OXYGEN_LEVEL,
            VitalType.TEMPERATURE,
        }
        assert by_type[VitalType.BLOOD_PRESSURE].max == BloodPressure(systolic=160, diastolic=100)
        assert by_type[VitalType.OXYGEN_LEVEL].max is None

    def test_single_number_blood_pressure_bound_is_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Threshold(type="bloodPressure", max=160)

    def test_change_percent_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            Threshold(type="heartRate", change_percent=0, time_window_ms=1000)

    def test_threshold_accepts_camel_case_payload(self) -> None:
        threshold = Threshold.model_validate(
            {"type": "heartRate", "min": 50, "max": 110, "changePercent": 20, "timeWindowMs": 3_600_000}
        )
        assert threshold.change_percent == 20
        assert threshold.time_window_ms == 3_600_000


class TestContactsAndProfiles:
    @pytest.mark.parametrize(
        ("preference", "level", "expected"),
        [
            (NotificationPreference.ALL, EmergencyLevel.MODERATE, True),
            (NotificationPreference.CRITICAL, EmergencyLevel.CRITICAL, True),
            (NotificationPreference.CRITICAL, EmergencyLevel.URGENT, False),
            (NotificationPreference.NONE, EmergencyLevel.CRITICAL, False),
        ],
    )
    def test_contact_preference_filter(
        self, preference: NotificationPreference, level: EmergencyLevel, expected: bool
    ) -> None:
        contact = EmergencyContact(
            name="Dr. Smith", phone_number="+1234567890", notification_preference=preference
        )
        assert contact.wants(level) is expected

    def test_notification_target_prefers_own_phone(self) -> None:
        contact = EmergencyContact(name="Ana", phone_number="+111")
        profile = UserHealthProfile(user_id="u1", emergency_contacts=[contact])
        assert profile.notification_target(EmergencyLevel.MODERATE) == "+111"
        assert (
            profile.model_copy(update={"phone_number": "+999"}).notification_target(
                EmergencyLevel.MODERATE
            )
            == "+999"
        )
        assert UserHealthProfile(user_id="u2").notification_target(EmergencyLevel.CRITICAL) is None

    def test_notification_target_respects_contact_preference(self) -> None:
        profile = UserHealthProfile(
            user_id="u1",
            emergency_contacts=[
                EmergencyContact(name="Off", phone_number="+100", notification_preference="none"),
                EmergencyContact(name="Crit", phone_number="+200", notification_preference="critical"),
                EmergencyContact(name="All", phone_number="+300"),
            ],
        )
        assert profile.notification_target(EmergencyLevel.CRITICAL) == "+200"
        assert profile.notification_target(EmergencyLevel.MODERATE) == "+300"

        opted_out = profile.model_copy(update={"emergency_contacts": profile.emergency_contacts[:1]})
        assert opted_out.notification_target(EmergencyLevel.CRITICAL) is None

    def test_default_cooldown_is_fifteen_minutes(self) -> None:
        assert UserHealthProfile(user_id="u1").notification_cooldown_ms == 900_000


class TestVitalSnapshot:
    def test_from_readings_maps_known_types(self) -> None:
        latest = {
            VitalType.HEART_RATE: VitalReading(type="heartRate", value=88, timestamp=1),
            VitalType.BLOOD_PRESSURE: VitalReading(type="bloodPressure", value="130/85", timestamp=2),
            VitalType.STEPS: VitalReading(type="steps", value=4000, timestamp=3),
        }
        snapshot = VitalSnapshot.from_readings(latest, last_updated=10)
        assert snapshot.heart_rate == 88
        assert snapshot.blood_pressure == "130/85"
        assert snapshot.oxygen_level is None
        assert snapshot.last_updated == 10
        assert not snapshot.is_empty

    def test_empty_snapshot(self) -> None:
        assert VitalSnapshot.from_readings({}).is_empty

    def test_snapshot_validates_blood_pressure(self) -> None:
        with pytest.raises(ValidationError):
            VitalSnapshot(blood_pressure="high")
