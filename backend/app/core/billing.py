"""Monthly billing window used to count usage against tier limits."""

from dataclasses import dataclass
from datetime import datetime, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class BillingPeriod:
    """Calendar month in UTC: [start, end)."""

    start: datetime
    end: datetime

    @classmethod
    def containing(cls, now: datetime) -> "BillingPeriod":
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        now = now.astimezone(timezone.utc)
        start = datetime(now.year, now.month, 1, tzinfo=timezone.utc)
        if now.month == 12:
            end = datetime(now.year + 1, 1, 1, tzinfo=timezone.utc)
        else:
            end = datetime(now.year, now.month + 1, 1, tzinfo=timezone.utc)
        return cls(start=start, end=end)
