"""
Threshold evaluation tests.

Bounds rules must always win over the rapid-change rule, and evaluation is a
pure function of its inputs.
"""

import pytest
from hypothesis import assume, given
from hypothesis import strategies as st

from healthbridge.domain.models import Severity, Threshold, VitalReading, VitalType, default_thresholds
from healthbridge.services.evaluator import (
    DEFAULT_RULES,
    RapidChangeRule,
    ThresholdEvaluator,
    evaluate,
)

HOUR_MS = 3_600_000
NOW = 1_700_000_000_000


def heart_rate(value: float, timestamp: int = NOW) -> VitalReading:
    return VitalReading(type=VitalType.HEART_RATE, value=value, unit="bpm", timestamp=timestamp)


def trend_threshold(**overrides: object) -> Threshold:
    fields: dict[str, object] = {
        "type": VitalType.HEART_RATE,
        "min": 40,
        "max": 120,
        "change_percent": 20,
        "time_window_ms": HOUR_MS,
    }
    fields.update(overrides)
    return Threshold(**fields)


class TestBoundRules:
    @given(
        low=st.floats(min_value=1, max_value=100),
        span=st.floats(min_value=1, max_value=100),
        offset=st.floats(min_value=0.01, max_value=500),
        above=st.booleans(),
    )
    def test_any_out_of_bounds_scalar_is_critical(
        self, low: float, span: float, offset: float, above: bool
    ) -> None:
        high = low + span
        value = high + offset if above else low - offset
        assume(value >= 0)
        threshold = Threshold(type=VitalType.BLOOD_GLUCOSE, min=low, max=high)
        reading = VitalReading(type=VitalType.BLOOD_GLUCOSE, value=value, timestamp=NOW)

        result = evaluate(reading, [threshold])

        assert result.exceeded is True
        assert result.severity is Severity.CRITICAL

    def test_high_heart_rate_message(self) -> None:
        result = evaluate(heart_rate(130), default_thresholds())
        assert result.severity is Severity.CRITICAL
        assert result.message == "High heartRate detected: 130 bpm"
        assert result.rule == "above_max"

    def test_low_oxygen_without_max(self) -> None:
        reading = VitalReading(type="oxygenLevel", value=85, unit="%", timestamp=NOW)
        result = evaluate(reading, default_thresholds())
        assert result.severity is Severity.CRITICAL
        assert result.message == "Low oxygenLevel detected: 85 %"

    def test_value_on_the_bound_is_normal(self) -> None:
        assert evaluate(heart_rate(120), default_thresholds()).severity is Severity.NORMAL
        assert evaluate(heart_rate(40), default_thresholds()).severity is Severity.NORMAL

    def test_blood_pressure_systolic_breach_is_critical(self) -> None:
        reading = VitalReading(type="bloodPressure", value="170/110", unit="mmHg", timestamp=NOW)
        threshold = Threshold(type="bloodPressure", min="90/60", max="160/100")

        result = evaluate(reading, [threshold])

        assert result.exceeded is True
        assert result.severity is Severity.CRITICAL
        assert result.message == "High blood pressure detected: 170/110 mmHg"

    def test_blood_pressure_diastolic_alone_is_enough(self) -> None:
        reading = VitalReading(type="bloodPressure", value="150/105", timestamp=NOW)
        assert evaluate(reading, default_thresholds()).severity is Severity.CRITICAL

    def test_low_blood_pressure(self) -> None:
        reading = VitalReading(type="bloodPressure", value="85/70", timestamp=NOW)
        result = evaluate(reading, default_thresholds())
        assert result.severity is Severity.CRITICAL
        assert result.message.startswith("Low blood pressure detected: 85/70")

    def test_normal_blood_pressure(self) -> None:
        reading = VitalReading(type="bloodPressure", value="118/76", timestamp=NOW)
        result = evaluate(reading, default_thresholds())
        assert result.exceeded is False
        assert result.severity is Severity.NORMAL
        assert result.message == "bloodPressure is normal"


class TestRapidChange:
    def test_deviation_from_recent_average_is_a_warning(self) -> None:
        recent = [heart_rate(v, NOW - (10 - i) * 60_000) for i, v in enumerate([70] * 10)]

        result = evaluate(heart_rate(95), [trend_threshold()], recent)

        assert result.exceeded is True
        assert result.severity is Severity.WARNING
        assert result.percent_change == 35.7
        assert result.message == "Rapid change in heartRate: 35.7% in last 1.0 hours"

    def test_bounds_take_precedence_over_trend(self) -> None:
        recent = [heart_rate(70, NOW - 60_000) for _ in range(5)]
        result = evaluate(heart_rate(130), [trend_threshold()], recent)
        assert result.severity is Severity.CRITICAL
        assert result.rule == "above_max"

    def test_small_deviation_is_normal(self) -> None:
        recent = [heart_rate(70, NOW - 60_000) for _ in range(5)]
        result = evaluate(heart_rate(80), [trend_threshold()], recent)
        assert result.severity is Severity.NORMAL

    def test_readings_outside_the_window_are_ignored(self) -> None:
        stale = [heart_rate(50, NOW - 2 * HOUR_MS) for _ in range(5)]
        result = evaluate(heart_rate(95), [trend_threshold()], stale)
        assert result.severity is Severity.NORMAL

    def test_only_last_ten_readings_feed_the_average(self) -> None:
        old = [heart_rate(40, NOW - 50 * 60_000) for _ in range(5)]
        latest = [heart_rate(90, NOW - 10 * 60_000) for _ in range(10)]
        result = evaluate(heart_rate(95), [trend_threshold()], old + latest)
        assert result.severity is Severity.NORMAL

    def test_other_metric_types_are_ignored(self) -> None:
        glucose = [
            VitalReading(type="bloodGlucose", value=200, timestamp=NOW - 60_000) for _ in range(3)
        ]
        result = evaluate(heart_rate(95), [trend_threshold()], glucose)
        assert result.severity is Severity.NORMAL

    def test_zero_average_is_skipped(self) -> None:
        threshold = Threshold(type="steps", change_percent=10, time_window_ms=HOUR_MS)
        recent = [VitalReading(type="steps", value=0, timestamp=NOW - 60_000)]
        reading = VitalReading(type="steps", value=500, timestamp=NOW)
        assert evaluate(reading, [threshold], recent).severity is Severity.NORMAL

    def test_trend_needs_both_percent_and_window(self) -> None:
        recent = [heart_rate(70, NOW - 60_000)]
        threshold = Threshold(type=VitalType.HEART_RATE, min=40, max=120, change_percent=20)
        assert evaluate(heart_rate(95), [threshold], recent).severity is Severity.NORMAL

    def test_pool_size_is_configurable(self) -> None:
        evaluator = ThresholdEvaluator(
            [RapidChangeRule(pool_size=2) if isinstance(r, RapidChangeRule) else r for r in DEFAULT_RULES]
        )
        recent = [heart_rate(40, NOW - 60_000)] * 3 + [heart_rate(90, NOW - 30_000)] * 2
        assert evaluator.evaluate(heart_rate(95), [trend_threshold()], recent).severity is Severity.NORMAL


class TestEvaluatorContract:
    def test_missing_threshold(self) -> None:
        reading = VitalReading(type="weight", value=80, unit="kg", timestamp=NOW)
        result = evaluate(reading, default_thresholds())
        assert result.exceeded is False
        assert result.message == "No threshold defined for weight"

    @pytest.mark.parametrize("value", [72, 130, 20])
    def test_evaluation_is_pure(self, value: float) -> None:
        reading = heart_rate(value)
        thresholds = default_thresholds()
        assert evaluate(reading, thresholds) == evaluate(reading, thresholds)

    def test_rules_are_checked_in_declared_order(self) -> None:
        names = [rule.name for rule in DEFAULT_RULES]
        assert names.index("rapid_change") == len(names) - 1
