"""
Scenario runner exercising the full alerting pipeline in-process.

It walks through:
1. Normal readings (no alert)
2. A heart-rate spike (critical alert dispatched)
3. A second spike inside the cooldown window (suppressed)
4. A spike after the cooldown has elapsed (dispatched again)
5. A rapid change inside the bounds (warning)
6. A voice-triggered emergency with location
7. An unrecognized voice command (rejected)

Run with: healthbridge-simulate [--user-id ID] [--phone NUMBER]
"""

import argparse
import asyncio
from collections.abc import Awaitable, Callable

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from healthbridge.clock import MS_PER_MINUTE
from healthbridge.config import AppConfig
from healthbridge.domain.models import (
    AlertInput,
    EmergencyContact,
    Location,
    ReadingOutcome,
    ReadingSubmission,
    Threshold,
    TriggerMethod,
    VitalType,
    default_thresholds,
)
from healthbridge.errors import UnrecognizedInputError
from healthbridge.services.container import ServiceContainer
from healthbridge.storage import storage_session

console = Console()

START_MS = 1_700_000_000_000


class SimulatedClock:
    """Manually advanced clock so cooldown windows pass instantly."""

    def __init__(self, start_ms: int = START_MS) -> None:
        self.now = start_ms

    def __call__(self) -> int:
        return self.now

    def advance(self, minutes: float) -> None:
        self.now += int(minutes * MS_PER_MINUTE)


class Scenario:
    def __init__(self, services: ServiceContainer, clock: SimulatedClock, user_id: str) -> None:
        self.services = services
        self.clock = clock
        self.user_id = user_id

    async def reading(self, vital_type: VitalType, value: object, unit: str) -> ReadingOutcome:
        outcome = await self.services.monitoring.record_reading(
            ReadingSubmission(
                user_id=self.user_id,
                vital_sign={"type": vital_type, "value": value, "unit": unit},
                device_info={"device_id": "sim-watch-01", "device_type": "smartwatch"},
            )
        )
        style = {"normal": "green", "warning": "yellow", "critical": "red"}[outcome.severity.value]
        sent = "📨 alert sent" if outcome.alert_sent else "no alert"
        console.print(f"  {vital_type.value}={value} {unit}: {outcome.message} ({sent})", style=style)
        return outcome

    async def normal_readings(self) -> bool:
        results = []
        for value in (72, 75, 70, 74):
            self.clock.advance(1)
            results.append(await self.reading(VitalType.HEART_RATE, value, "bpm"))
        return not any(r.threshold_exceeded for r in results)

    async def critical_spike(self) -> bool:
        self.clock.advance(1)
        outcome = await self.reading(VitalType.HEART_RATE, 135, "bpm")
        return outcome.threshold_exceeded and outcome.alert_sent

    async def cooldown_suppression(self) -> bool:
        self.clock.advance(5)
        outcome = await self.reading(VitalType.HEART_RATE, 140, "bpm")
        return outcome.threshold_exceeded and not outcome.alert_sent

    async def cooldown_elapsed(self) -> bool:
        self.clock.advance(16)
        outcome = await self.reading(VitalType.BLOOD_PRESSURE, "170/110", "mmHg")
        return outcome.threshold_exceeded and outcome.alert_sent

    async def rapid_change(self) -> bool:
        self.clock.advance(16)
        for value in (100, 102, 98):
            self.clock.advance(1)
            await self.reading(VitalType.BLOOD_GLUCOSE, value, "mg/dL")
        self.clock.advance(1)
        outcome = await self.reading(VitalType.BLOOD_GLUCOSE, 150, "mg/dL")
        return outcome.severity.value == "warning"

    async def voice_emergency(self) -> bool:
        profile = self.services.storage.profiles.get(self.user_id)
        result = await self.services.dispatcher.dispatch(
            AlertInput(
                user_id=self.user_id,
                phone_number=profile.phone_number if profile else None,
                trigger_method=TriggerMethod.VOICE,
                voice_command="I can't breathe",
                location=Location(lat=40.7128, long=-74.006, address="New York, NY"),
            )
        )
        console.print(f"  {result.alert.message} -> level {result.alert.level.value}", style="red")
        console.print(f"  Channels: {result.channels_delivered}")
        console.print(f"  Emergency services notified: {result.alert.emergency_services_notified}")
        return result.any_delivered and result.alert.emergency_services_notified

    async def unrecognized_voice(self) -> bool:
        try:
            await self.services.dispatcher.dispatch(
                AlertInput(
                    user_id=self.user_id,
                    phone_number="+15550000000",
                    trigger_method=TriggerMethod.VOICE,
                    voice_command="what's the weather",
                )
            )
        except UnrecognizedInputError as e:
            console.print(f"  Rejected: {e} ({e.command!r})", style="yellow")
            return True
        return False


def _alerts_table(services: ServiceContainer, user_id: str) -> Table:
    table = Table(title="Emergency Alerts")
    table.add_column("ID", style="cyan")
    table.add_column("Level", style="white")
    table.add_column("Trigger", style="white")
    table.add_column("Message", style="white")
    table.add_column("Contacts", style="white")

    for alert in services.storage.alerts.list_emergency_alerts(user_id=user_id):
        table.add_row(
            alert.id,
            alert.level.value,
            alert.trigger_method.value,
            alert.message,
            ", ".join(alert.notified_contacts) or "-",
        )
    return table


async def run_scenarios(user_id: str, phone_number: str) -> bool:
    """Run every scenario against in-memory storage; True if all behaved."""

    console.print(Panel("🩺 HealthBridge - Alerting Scenarios", style="bold blue"))

    config = AppConfig()
    clock = SimulatedClock()
    results: list[tuple[str, bool]] = []

    async with storage_session(config.database, config.monitoring) as storage:
        services = ServiceContainer(storage, config, clock=clock)
        services.profiles.add_contact(
            user_id, EmergencyContact(name="Dr. Smith", phone_number="+15551230000", type="doctor")
        )
        services.profiles.add_contact(
            user_id,
            EmergencyContact(
                name="Neighbour", phone_number="+15559870000", notification_preference="critical"
            ),
        )
        profile = storage.profiles.get_or_create(user_id, config.monitoring.default_cooldown_ms)
        storage.profiles.save(profile.model_copy(update={"phone_number": phone_number}))

        thresholds: list[Threshold] = [
            t.model_copy(update={"change_percent": 20.0, "time_window_ms": 60 * MS_PER_MINUTE})
            if t.type is VitalType.BLOOD_GLUCOSE
            else t
            for t in default_thresholds()
        ]
        services.profiles.replace_thresholds(user_id, thresholds)

        scenario = Scenario(services, clock, user_id)
        steps: list[tuple[str, Callable[[], Awaitable[bool]]]] = [
            ("Normal readings", scenario.normal_readings),
            ("Critical spike", scenario.critical_spike),
            ("Cooldown suppression", scenario.cooldown_suppression),
            ("Cooldown elapsed", scenario.cooldown_elapsed),
            ("Rapid change", scenario.rapid_change),
            ("Voice emergency", scenario.voice_emergency),
            ("Unrecognized voice", scenario.unrecognized_voice),
        ]

        for name, step in steps:
            console.print(f"\n{'=' * 60}")
            console.print(Panel(name, style="blue"))
            try:
                results.append((name, await step()))
            except Exception as e:
                console.print(f"❌ {name} failed with exception: {e}", style="red")
                results.append((name, False))

        console.print(f"\n{'=' * 60}")
        console.print(_alerts_table(services, user_id))

    summary = Table()
    summary.add_column("Scenario", style="cyan")
    summary.add_column("Result", style="white")
    passed = 0
    for name, ok in results:
        summary.add_row(name, "✅ PASSED" if ok else "❌ FAILED")
        passed += int(ok)
    console.print(Panel("📋 Scenario Results", style="bold"))
    console.print(summary)
    console.print(f"\n🎯 Results: {passed}/{len(results)} scenarios behaved as expected")
    return passed == len(results)


def cli(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Run HealthBridge alerting scenarios.")
    parser.add_argument("--user-id", default="demo-user")
    parser.add_argument("--phone", default="+15550001111")
    args = parser.parse_args(argv)

    try:
        ok = asyncio.run(run_scenarios(args.user_id, args.phone))
    except KeyboardInterrupt:
        console.print("\n⏹️  Interrupted by user", style="yellow")
        return 130
    return 0 if ok else 1


if __name__ == "__main__":
    raise SystemExit(cli())
