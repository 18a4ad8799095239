"""Wall-clock helpers. All domain timestamps are integer epoch milliseconds."""

from collections.abc import Callable
from datetime import UTC, datetime

Clock = Callable[[], int]

MS_PER_SECOND = 1_000
MS_PER_MINUTE = 60 * MS_PER_SECOND
MS_PER_HOUR = 60 * MS_PER_MINUTE


def now_ms() -> int:
    return int(datetime.now(UTC).timestamp() * MS_PER_SECOND)
