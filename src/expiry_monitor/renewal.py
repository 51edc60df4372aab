"""
Renewal and expiry arithmetic.

Pure functions over dates:

- cycle_days: length of a renewal cycle anchored at the expiry date
- days_left: whole days until expiry (ceiling, may be negative)
- progress_percent: share of the current cycle still remaining
- infer_cycle: guess a renewal cycle from registration and expiry dates
- add_period / renewed_expiry: calendar arithmetic for renewals
- format_remaining: human readable "years, months, days" text

Month and year arithmetic rolls an overflowing day into the following
month: Jan 31 + 1 month is Mar 3 (Mar 2 in a leap year) and Feb 29 + 1 year
is Mar 1.
"""

import math
from datetime import date, datetime, timedelta, timezone
from typing import Optional, Union

from dateutil.relativedelta import relativedelta

from .enums import RenewUnit
from .i18n import get_message
from .models import RenewCycle
from .whois_parser import normalize_date, parse_datetime

DateLike = Union[date, datetime, str]

DAYS_PER_YEAR = 365
DAYS_PER_MONTH = 30


def to_date(value: DateLike) -> date:
    """
    Coerce a stored date value to a ``date``.

    Raises:
        ValueError: If the value cannot be parsed
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    if isinstance(value, date):
        return value
    normalized = normalize_date(value)
    if normalized is None:
        raise ValueError(f"Unparseable date: {value!r}")
    return date.fromisoformat(normalized)


def to_datetime(value: DateLike) -> datetime:
    """
    Coerce a stored expiry value to an aware UTC datetime.

    Timestamps keep their time of day; date-only values are midnight UTC.

    Raises:
        ValueError: If the value cannot be parsed
    """
    parsed = parse_datetime(value)
    if parsed is None:
        raise ValueError(f"Unparseable date: {value!r}")
    return parsed


def _as_utc(now: Optional[datetime]) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def add_months(start: date, months: int) -> date:
    """Add calendar months, rolling an overflowing day forward."""
    first = start.replace(day=1) + relativedelta(months=months)
    return first + timedelta(days=start.day - 1)


def add_period(start: DateLike, value: int, unit: RenewUnit) -> date:
    """
    Add ``value`` units to a date.

    Args:
        start: Base date
        value: Number of units (may be negative)
        unit: year, month or day
    """
    base = to_date(start)
    if unit == RenewUnit.YEAR:
        return add_months(base, value * 12)
    if unit == RenewUnit.MONTH:
        return add_months(base, value)
    return base + timedelta(days=value)


def renewed_expiry(expiry: DateLike, value: int, unit: RenewUnit) -> date:
    """
    New expiry date after a manual renewal.

    Renewal always extends from the previous expiry date, even when the
    domain has already expired.
    """
    if value < 1:
        raise ValueError("renewal period must be at least 1")
    return add_period(expiry, value, unit)


def cycle_days(renew_cycle: Optional[RenewCycle], anchor: Optional[DateLike] = None) -> int:
    """
    Length of one renewal cycle in days.

    Args:
        renew_cycle: The domain's cycle (1 year if None)
        anchor: Date month cycles are measured from, normally the expiry
            date; today when omitted
    """
    if renew_cycle is None:
        return DAYS_PER_YEAR

    if renew_cycle.unit == RenewUnit.YEAR:
        return renew_cycle.value * DAYS_PER_YEAR
    if renew_cycle.unit == RenewUnit.DAY:
        return renew_cycle.value
    if renew_cycle.unit == RenewUnit.MONTH:
        start = to_date(anchor) if anchor is not None else datetime.now(timezone.utc).date()
        return (add_months(start, renew_cycle.value) - start).days
    return DAYS_PER_YEAR


def days_left(expiry: DateLike, now: Optional[datetime] = None) -> int:
    """
    Whole days until expiry, rounded up.

    Date-only expiry values are treated as midnight UTC; timestamps keep
    their time of day. Negative once the domain has expired.
    """
    delta = to_datetime(expiry) - _as_utc(now)
    return math.ceil(delta.total_seconds() / 86400)


def progress_percent(
    remaining_days: int,
    total_cycle_days: int,
    *,
    renewed: bool = False,
    expiry: Optional[DateLike] = None,
    now: Optional[datetime] = None,
) -> int:
    """
    Percentage of the current cycle still remaining, in [0, 100].

    Args:
        remaining_days: Days left until expiry
        total_cycle_days: Cycle length from cycle_days()
        renewed: Whether the domain has a last-renewed marker
        expiry: Current expiry date, used to recompute days left for
            renewed domains whose stored days left is stale
        now: Reference time

    Raises:
        ValueError: If total_cycle_days is not positive
    """
    if total_cycle_days <= 0:
        raise ValueError("cycle length must be positive")

    if remaining_days <= 0:
        if not renewed:
            return 0
        if expiry is not None:
            remaining_days = days_left(expiry, now)

    if remaining_days >= total_cycle_days:
        return 100
    percent = _round_half_up(remaining_days / total_cycle_days * 100)
    return max(0, min(100, percent))


def infer_cycle(registration: DateLike, expiry: DateLike) -> RenewCycle:
    """
    Guess the renewal cycle from the registration and expiry dates.

    A span of a year or more counts as a yearly cycle (the domain was
    probably renewed several times).
    """
    span = (to_date(expiry) - to_date(registration)).days

    if span >= 360:
        return RenewCycle(1, RenewUnit.YEAR)
    if 28 <= span <= 31:
        return RenewCycle(1, RenewUnit.MONTH)
    if 85 <= span <= 95:
        return RenewCycle(3, RenewUnit.MONTH)
    if 175 <= span <= 185:
        return RenewCycle(6, RenewUnit.MONTH)

    months = _round_half_up(span / DAYS_PER_MONTH)
    if months >= 1:
        return RenewCycle(months, RenewUnit.MONTH)
    return RenewCycle(1, RenewUnit.YEAR)


def _unit_key(unit: str, count: int) -> str:
    return f"duration.{unit}" if count == 1 else f"duration.{unit}s"


def format_remaining(days: int, language: Optional[str] = None) -> str:
    """Render a day count as years, months and days (365/30-day buckets)."""
    if days <= 0:
        return ""

    years, rest = divmod(days, DAYS_PER_YEAR)
    months, rest_days = divmod(rest, DAYS_PER_MONTH)

    parts = []
    if years:
        parts.append(get_message(_unit_key("year", years), language, count=years))
    if months:
        parts.append(get_message(_unit_key("month", months), language, count=months))
    if rest_days:
        parts.append(get_message(_unit_key("day", rest_days), language, count=rest_days))
    return get_message("duration.separator", language).join(parts)
