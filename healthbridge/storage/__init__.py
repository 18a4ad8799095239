"""
Storage lifecycle.

`open_storage` builds the stores for the configured backend;
`storage_session` wraps that in an async context manager so the HTTP lifespan
and the simulator open and close storage the same way.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

import structlog

from healthbridge.config import DatabaseConfig, MonitoringConfig
from healthbridge.storage.base import AlertStore, ProfileStore, ReadingStore, ThresholdStore
from healthbridge.storage.memory import (
    InMemoryAlertStore,
    InMemoryProfileStore,
    InMemoryReadingStore,
    InMemoryThresholdStore,
)
from healthbridge.storage.sql import (
    SqlAlertStore,
    SqlDatabase,
    SqlProfileStore,
    SqlReadingStore,
    SqlThresholdStore,
)

logger = structlog.get_logger(__name__)


@dataclass
class Storage:
    readings: ReadingStore
    alerts: AlertStore
    thresholds: ThresholdStore
    profiles: ProfileStore
    backend: str = "memory"
    database: SqlDatabase | None = None

    def close(self) -> None:
        if self.database is not None:
            self.database.dispose()
        logger.info("storage_closed", backend=self.backend)


def open_storage(
    database: DatabaseConfig | None = None, monitoring: MonitoringConfig | None = None
) -> Storage:
    database = database or DatabaseConfig()
    monitoring = monitoring or MonitoringConfig()

    if database.backend == "sql":
        db = SqlDatabase(database.url, echo=database.echo)
        db.create_all()
        storage = Storage(
            readings=SqlReadingStore(db, history_limit=monitoring.history_limit),
            alerts=SqlAlertStore(db),
            thresholds=SqlThresholdStore(db),
            profiles=SqlProfileStore(db),
            backend="sql",
            database=db,
        )
    else:
        storage = Storage(
            readings=InMemoryReadingStore(history_limit=monitoring.history_limit),
            alerts=InMemoryAlertStore(),
            thresholds=InMemoryThresholdStore(),
            profiles=InMemoryProfileStore(),
        )

    logger.info("storage_opened", backend=storage.backend)
    return storage


@asynccontextmanager
async def storage_session(
    database: DatabaseConfig | None = None, monitoring: MonitoringConfig | None = None
) -> AsyncIterator[Storage]:
    storage = open_storage(database, monitoring)
    try:
        yield storage
    finally:
        storage.close()


__all__ = [
    "AlertStore",
    "ProfileStore",
    "ReadingStore",
    "Storage",
    "ThresholdStore",
    "open_storage",
    "storage_session",
]
