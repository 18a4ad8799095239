"""
Vital-sign threshold evaluation.

Severity precedence is declared as an ordered rule list rather than buried in
control flow: absolute-bound rules run first, the rapid-change rule last. The
first rule that fires decides the evaluation. Evaluation is a pure function of
its inputs; the reading's own timestamp is "now".
"""

from collections.abc import Sequence
from dataclasses import dataclass
from statistics import mean
from typing import Literal, Protocol

from healthbridge.clock import MS_PER_HOUR
from healthbridge.domain.models import (
    BloodPressure,
    ScalarValue,
    Severity,
    Threshold,
    ThresholdEvaluation,
    VitalReading,
)

# Only the most recent readings of the same type feed the rolling average.
RECENT_READINGS_POOL = 10

Direction = Literal["high", "low"]


class ThresholdRule(Protocol):
    """One row of the decision table."""

    name: str

    def check(
        self, reading: VitalReading, threshold: Threshold, recent: Sequence[VitalReading]
    ) -> ThresholdEvaluation | None:
        """Return an evaluation if this rule fires, else None."""
        ...


@dataclass(frozen=True)
class BloodPressureBoundRule:
    """Either systolic or diastolic beyond the composite bound is critical."""

    name: str
    direction: Direction

    def check(
        self, reading: VitalReading, threshold: Threshold, recent: Sequence[VitalReading]
    ) -> ThresholdEvaluation | None:
        if not isinstance(reading.value, BloodPressure):
            return None
        bound = threshold.max if self.direction == "high" else threshold.min
        if not isinstance(bound, BloodPressure):
            return None

        pressure = reading.value
        if self.direction == "high":
            breached = pressure.systolic > bound.systolic or pressure.diastolic > bound.diastolic
        else:
            breached = pressure.systolic < bound.systolic or pressure.diastolic < bound.diastolic
        if not breached:
            return None

        label = "High" if self.direction == "high" else "Low"
        return ThresholdEvaluation(
            exceeded=True,
            severity=Severity.CRITICAL,
            message=f"{label} blood pressure detected: {pressure} mmHg",
            rule=self.name,
        )


@dataclass(frozen=True)
class ScalarBoundRule:
    name: str
    direction: Direction

    def check(
        self, reading: VitalReading, threshold: Threshold, recent: Sequence[VitalReading]
    ) -> ThresholdEvaluation | None:
        if not isinstance(reading.value, ScalarValue):
            return None
        bound = threshold.max if self.direction == "high" else threshold.min
        if not isinstance(bound, ScalarValue):
            return None

        value = reading.value.value
        breached = value > bound.value if self.direction == "high" else value < bound.value
        if not breached:
            return None

        label = "High" if self.direction == "high" else "Low"
        return ThresholdEvaluation(
            exceeded=True,
            severity=Severity.CRITICAL,
            message=f"{label} {reading.type.value} detected: {reading.value} {reading.unit}".rstrip(),
            rule=self.name,
        )


@dataclass(frozen=True)
class RapidChangeRule:
    """
    Warn when a reading deviates from the recent rolling average by more than
    `change_percent`. Only reached when no absolute bound was crossed.
    """

    name: str = "rapid_change"
    pool_size: int = RECENT_READINGS_POOL

    def check(
        self, reading: VitalReading, threshold: Threshold, recent: Sequence[VitalReading]
    ) -> ThresholdEvaluation | None:
        if not isinstance(reading.value, ScalarValue):
            return None
        if threshold.change_percent is None or threshold.time_window_ms is None:
            return None

        window_start = reading.timestamp - threshold.time_window_ms
        same_type = [r for r in recent if r.type == reading.type][-self.pool_size :]
        values = [
            r.value.value
            for r in same_type
            if isinstance(r.value, ScalarValue) and r.timestamp >= window_start
        ]
        if not values:
            return None

        baseline = mean(values)
        if baseline == 0:
            return None

        percent_change = abs((reading.value.value - baseline) / baseline * 100)
        if percent_change <= threshold.change_percent:
            return None

        hours = threshold.time_window_ms / MS_PER_HOUR
        return ThresholdEvaluation(
            exceeded=True,
            severity=Severity.WARNING,
            message=(
                f"Rapid change in {reading.type.value}: {percent_change:.1f}% "
                f"in last {hours:.1f} hours"
            ),
            rule=self.name,
            percent_change=round(percent_change, 1),
        )


DEFAULT_RULES: tuple[ThresholdRule, ...] = (
    BloodPressureBoundRule(name="blood_pressure_high", direction="high"),
    BloodPressureBoundRule(name="blood_pressure_low", direction="low"),
    ScalarBoundRule(name="above_max", direction="high"),
    ScalarBoundRule(name="below_min", direction="low"),
    RapidChangeRule(),
)


class ThresholdEvaluator:
    """Runs a reading through the ordered rule table."""

    def __init__(self, rules: Sequence[ThresholdRule] = DEFAULT_RULES) -> None:
        self.rules = tuple(rules)

    def evaluate(
        self,
        reading: VitalReading,
        thresholds: Sequence[Threshold],
        recent_readings: Sequence[VitalReading] = (),
    ) -> ThresholdEvaluation:
        threshold = next((t for t in thresholds if t.type == reading.type), None)
        if threshold is None:
            return ThresholdEvaluation(
                exceeded=False,
                severity=Severity.NORMAL,
                message=f"No threshold defined for {reading.type.value}",
            )

        for rule in self.rules:
            evaluation = rule.check(reading, threshold, recent_readings)
            if evaluation is not None:
                return evaluation

        return ThresholdEvaluation(
            exceeded=False,
            severity=Severity.NORMAL,
            message=f"{reading.type.value} is normal",
        )


_default_evaluator = ThresholdEvaluator()


def evaluate(
    reading: VitalReading,
    thresholds: Sequence[Threshold],
    recent_readings: Sequence[VitalReading] = (),
) -> ThresholdEvaluation:
    """Evaluate with the default rule table."""
    return _default_evaluator.evaluate(reading, thresholds, recent_readings)
