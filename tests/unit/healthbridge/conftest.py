"""Shared fixtures: a manual clock, in-memory storage and scripted channels."""

import asyncio
from collections.abc import Iterator

import pytest

from healthbridge.config import AppConfig, get_config
from healthbridge.domain.models import DeliveryReceipt, Notification
from healthbridge.services.container import ServiceContainer
from healthbridge.services.result import Result
from healthbridge.storage import Storage, open_storage

START_MS = 1_700_000_000_000


class FakeClock:
    def __init__(self, start_ms: int = START_MS) -> None:
        self.now = start_ms

    def __call__(self) -> int:
        return self.now

    def advance_minutes(self, minutes: float) -> None:
        self.now += int(minutes * 60_000)


class RecordingChannel:
    """Test channel that records notifications and can be told to fail."""

    def __init__(
        self,
        channel_name: str,
        fail_with: Exception | None = None,
        raise_exc: Exception | None = None,
        recipients: list[str] | None = None,
        delay: float = 0.0,
    ) -> None:
        self.channel_name = channel_name
        self.fail_with = fail_with
        self.raise_exc = raise_exc
        self.recipients = recipients or []
        self.delay = delay
        self.sent: list[Notification] = []

    async def send(self, notification: Notification) -> Result[DeliveryReceipt, Exception]:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.raise_exc is not None:
            raise self.raise_exc
        self.sent.append(notification)
        if self.fail_with is not None:
            return Result.err(self.fail_with)
        return Result.ok(
            DeliveryReceipt(
                channel=self.channel_name,
                reference=f"{self.channel_name}-{notification.alert_id}",
                recipients=self.recipients,
            )
        )


@pytest.fixture(autouse=True)
def clear_config_cache() -> Iterator[None]:
    get_config.cache_clear()
    yield
    get_config.cache_clear()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def app_config() -> AppConfig:
    return AppConfig()


@pytest.fixture
def storage(app_config: AppConfig) -> Iterator[Storage]:
    opened = open_storage(app_config.database, app_config.monitoring)
    yield opened
    opened.close()


@pytest.fixture
def services(storage: Storage, app_config: AppConfig, clock: FakeClock) -> ServiceContainer:
    return ServiceContainer(storage, app_config, clock=clock)


@pytest.fixture
def make_channel() -> type[RecordingChannel]:
    return RecordingChannel
