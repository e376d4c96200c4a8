# =======================================================================================
# campus_access/utils/clock.py - Server Clock
# =======================================================================================
from datetime import datetime, timedelta, timezone


class SystemClock:
    """Server time as naive UTC, which is how timestamps are stored."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc).replace(tzinfo=None)


class FixedClock:
    """Manually advanced clock for tests and replays."""

    def __init__(self, start: datetime):
        self._now = start

    def now(self) -> datetime:
        return self._now

    def advance(self, **kwargs) -> datetime:
        self._now = self._now + timedelta(**kwargs)
        return self._now

    def set(self, value: datetime) -> None:
        self._now = value


def epoch_millis(moment: datetime) -> int:
    """Milliseconds since the epoch for a naive UTC datetime."""
    return int(moment.replace(tzinfo=timezone.utc).timestamp() * 1000)
