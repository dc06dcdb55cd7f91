"""strategylab.core.time

The only time helper surface in the codebase.

Candles carry aware UTC datetimes. Everything that buckets by day or month
goes through here so bucketing is done in one timezone.
"""

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta

SECONDS_PER_DAY = 86_400.0
DAYS_PER_YEAR = 365.25
DAYS_PER_MONTH = 30.44

MONTH_LABELS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


def utc_now() -> datetime:
    """Return an aware UTC datetime."""

    return datetime.now(tz=UTC)


def ensure_utc(dt: datetime) -> datetime:
    """Naive datetimes are assumed UTC; aware ones are converted."""

    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def parse_dt(value: str) -> datetime:
    """Parse an ISO-8601 datetime string (or epoch seconds) into an aware UTC datetime.

    Accepts:
    - `Z` suffix
    - explicit offsets
    - naive timestamps (assumed UTC)
    - integer/float epoch seconds

    Raises:
        ValueError: if parsing fails.
    """

    v = value.strip()
    try:
        return datetime.fromtimestamp(float(v), tz=UTC)
    except (ValueError, OverflowError, OSError):
        pass

    if v.endswith("Z"):
        v = v[:-1] + "+00:00"
    return ensure_utc(datetime.fromisoformat(v))


def utc_day(dt: datetime) -> date:
    return ensure_utc(dt).date()


def month_key(dt: datetime) -> tuple[int, int]:
    d = ensure_utc(dt)
    return d.year, d.month


def month_label(month: int) -> str:
    return MONTH_LABELS[month - 1]


def span_years(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / (DAYS_PER_YEAR * SECONDS_PER_DAY)


def span_months(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / (DAYS_PER_MONTH * SECONDS_PER_DAY)


def seconds(td: timedelta) -> float:
    return float(td.total_seconds())
