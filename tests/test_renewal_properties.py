"""
Property-based tests for renewal and expiry arithmetic.
"""

from datetime import date, datetime, timedelta, timezone

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from expiry_monitor.enums import RenewUnit
from expiry_monitor.models import RenewCycle
from expiry_monitor.renewal import (
    add_months,
    add_period,
    cycle_days,
    days_left,
    format_remaining,
    infer_cycle,
    progress_percent,
    renewed_expiry,
    to_date,
)


dates = st.dates(min_value=date(2000, 1, 1), max_value=date(2090, 12, 31))


def midnight(day: date) -> datetime:
    return datetime(day.year, day.month, day.day, tzinfo=timezone.utc)


class TestCalendarArithmetic:
    """Month and year arithmetic rolls overflowing days forward."""

    @pytest.mark.parametrize("start, months, expected", [
        (date(2023, 1, 31), 1, date(2023, 3, 3)),
        (date(2024, 1, 31), 1, date(2024, 3, 2)),
        (date(2024, 3, 15), 1, date(2024, 4, 15)),
        (date(2024, 11, 30), 3, date(2025, 3, 2)),
        (date(2024, 5, 10), -5, date(2023, 12, 10)),
        (date(2024, 1, 30), 1, date(2024, 3, 1)),
        (date(2024, 12, 31), 2, date(2025, 3, 3)),
        (date(2025, 3, 31), -1, date(2025, 3, 3)),
    ])
    def test_add_months(self, start: date, months: int, expected: date) -> None:
        assert add_months(start, months) == expected

    def test_leap_day_plus_one_year(self) -> None:
        assert add_period(date(2024, 2, 29), 1, RenewUnit.YEAR) == date(2025, 3, 1)

    @given(start=dates, months=st.integers(min_value=-120, max_value=120))
    @settings(max_examples=100)
    def test_day_kept_when_it_fits(self, start: date, months: int) -> None:
        """*For any* day that exists in every month, the day of month SHALL be kept."""
        start = start.replace(day=min(start.day, 28))
        result = add_months(start, months)
        assert result.day == start.day
        assert (result.year * 12 + result.month) - (start.year * 12 + start.month) == months

    @given(start=dates, value=st.integers(min_value=1, max_value=5))
    @settings(max_examples=100)
    def test_years_are_twelve_months(self, start: date, value: int) -> None:
        """*For any* date, adding N years SHALL equal adding 12*N months."""
        assert add_period(start, value, RenewUnit.YEAR) == add_months(start, value * 12)

    @given(start=dates, value=st.integers(min_value=1, max_value=3650))
    @settings(max_examples=100)
    def test_day_periods_are_exact(self, start: date, value: int) -> None:
        """*For any* day count, the period SHALL add exactly that many days."""
        assert add_period(start, value, RenewUnit.DAY) == start + timedelta(days=value)

    @given(
        expiry=dates,
        value=st.integers(min_value=1, max_value=10),
        unit=st.sampled_from(list(RenewUnit)),
    )
    @settings(max_examples=100)
    def test_renewal_always_extends(self, expiry: date, value: int, unit: RenewUnit) -> None:
        """*For any* positive renewal, the new expiry SHALL be later than the old one."""
        assert renewed_expiry(expiry, value, unit) > expiry

    def test_renewal_needs_positive_period(self) -> None:
        with pytest.raises(ValueError):
            renewed_expiry(date(2025, 1, 1), 0, RenewUnit.YEAR)

    def test_string_input_accepted(self) -> None:
        assert renewed_expiry("2025-06-30", 6, RenewUnit.MONTH) == date(2025, 12, 30)


class TestDaysLeftProperty:
    """Days left is the ceiling of the distance to UTC midnight of expiry."""

    @given(day=dates, offset=st.integers(min_value=-400, max_value=400))
    @settings(max_examples=100)
    def test_exact_at_midnight(self, day: date, offset: int) -> None:
        """*For any* midnight reference time, days left SHALL equal the date difference."""
        expiry = day + timedelta(days=offset)
        assert days_left(expiry, midnight(day)) == offset

    @given(
        day=dates,
        offset=st.integers(min_value=1, max_value=400),
        seconds=st.integers(min_value=1, max_value=86399),
    )
    @settings(max_examples=100)
    def test_partial_days_round_up(self, day: date, offset: int, seconds: int) -> None:
        """*For any* time inside a day, the remaining fraction SHALL count as a day."""
        expiry = day + timedelta(days=offset)
        now = midnight(day) + timedelta(seconds=seconds)
        assert days_left(expiry, now) == offset

    def test_expired_is_negative(self) -> None:
        now = datetime(2025, 1, 10, 9, 0, tzinfo=timezone.utc)
        assert days_left("2025-01-05", now) == -5

    def test_naive_now_treated_as_utc(self) -> None:
        assert days_left("2025-01-10", datetime(2025, 1, 1)) == 9

    def test_iso_timestamp_expiry(self) -> None:
        now = datetime(2025, 1, 1, tzinfo=timezone.utc)
        assert days_left("2025-01-10T18:00:00Z", now) == 10

    @pytest.mark.parametrize("expiry, now, expected", [
        ("2025-01-10T18:00:00Z", datetime(2025, 1, 10, 12, 0, tzinfo=timezone.utc), 1),
        ("2025-01-10T18:00:00Z", datetime(2025, 1, 10, 18, 0, tzinfo=timezone.utc), 0),
        ("2025-01-10T18:00:00Z", datetime(2025, 1, 10, 19, 0, tzinfo=timezone.utc), 0),
        ("2025-01-10T18:00:00+08:00", datetime(2025, 1, 10, 9, 0, tzinfo=timezone.utc), 1),
        ("2025-01-10 18:00:00", datetime(2025, 1, 10, 17, 0), 1),
    ])
    def test_timestamp_time_of_day_counts(self, expiry: str, now: datetime, expected: int) -> None:
        """A timestamp expiry later on the same day still leaves part of a day."""
        assert days_left(expiry, now) == expected

    def test_unparseable_expiry_raises(self) -> None:
        with pytest.raises(ValueError):
            days_left("unknown", datetime(2025, 1, 1, tzinfo=timezone.utc))


class TestCycleDays:
    """Cycle lengths in days."""

    @pytest.mark.parametrize("cycle, expected", [
        (RenewCycle(1, RenewUnit.YEAR), 365),
        (RenewCycle(2, RenewUnit.YEAR), 730),
        (RenewCycle(45, RenewUnit.DAY), 45),
        (None, 365),
    ])
    def test_fixed_cycles(self, cycle, expected: int) -> None:
        assert cycle_days(cycle) == expected

    def test_month_cycle_measured_from_anchor(self) -> None:
        assert cycle_days(RenewCycle(1, RenewUnit.MONTH), "2025-02-01") == 28
        assert cycle_days(RenewCycle(1, RenewUnit.MONTH), "2024-02-01") == 29
        assert cycle_days(RenewCycle(3, RenewUnit.MONTH), "2025-01-01") == 90


class TestProgressPercentProperty:
    """Share of the current cycle still remaining."""

    @given(
        remaining=st.integers(min_value=-1000, max_value=5000),
        total=st.integers(min_value=1, max_value=3650),
        renewed=st.booleans(),
    )
    @settings(max_examples=200)
    def test_always_between_0_and_100(self, remaining: int, total: int, renewed: bool) -> None:
        """*For any* inputs, progress SHALL stay within [0, 100]."""
        assert 0 <= progress_percent(remaining, total, renewed=renewed) <= 100

    @given(total=st.integers(min_value=1, max_value=3650), extra=st.integers(min_value=0, max_value=1000))
    @settings(max_examples=100)
    def test_full_when_remaining_covers_cycle(self, total: int, extra: int) -> None:
        assert progress_percent(total + extra, total) == 100

    @given(remaining=st.integers(min_value=-1000, max_value=0))
    @settings(max_examples=50)
    def test_expired_without_renewal_is_zero(self, remaining: int) -> None:
        assert progress_percent(remaining, 365) == 0

    def test_rounds_half_up(self) -> None:
        assert progress_percent(1, 200) == 1
        assert progress_percent(182, 365) == 50

    def test_renewed_domain_recomputes_days_left(self) -> None:
        now = datetime(2025, 1, 1, tzinfo=timezone.utc)
        percent = progress_percent(-3, 365, renewed=True, expiry="2025-07-02", now=now)
        assert percent == 50

    def test_non_positive_cycle_rejected(self) -> None:
        with pytest.raises(ValueError):
            progress_percent(10, 0)


class TestInferCycle:
    """Cycle guessed from the registration span."""

    @pytest.mark.parametrize("registration, expiry, expected", [
        ("2020-01-01", "2025-01-01", RenewCycle(1, RenewUnit.YEAR)),
        ("2024-01-01", "2024-12-31", RenewCycle(1, RenewUnit.YEAR)),
        ("2024-01-01", "2024-01-31", RenewCycle(1, RenewUnit.MONTH)),
        ("2024-01-01", "2024-03-31", RenewCycle(3, RenewUnit.MONTH)),
        ("2024-01-01", "2024-06-29", RenewCycle(6, RenewUnit.MONTH)),
        ("2024-01-01", "2024-03-01", RenewCycle(2, RenewUnit.MONTH)),
        ("2024-01-01", "2024-01-08", RenewCycle(1, RenewUnit.YEAR)),
    ])
    def test_known_spans(self, registration: str, expiry: str, expected: RenewCycle) -> None:
        assert infer_cycle(registration, expiry) == expected


class TestFormatRemaining:
    """Human readable remaining time."""

    def test_english(self) -> None:
        assert format_remaining(400, "en") == "1 year 1 month 5 days"
        assert format_remaining(731, "en") == "2 years 1 day"

    def test_chinese(self) -> None:
        assert format_remaining(400, "zh") == "1年1个月5天"
        assert format_remaining(60) == "2个月"

    def test_nothing_left(self) -> None:
        assert format_remaining(0, "en") == ""
        assert format_remaining(-10, "zh") == ""


class TestToDate:

    def test_aware_datetime_converted_to_utc(self) -> None:
        value = datetime(2025, 1, 1, 22, 0, tzinfo=timezone(timedelta(hours=-5)))
        assert to_date(value) == date(2025, 1, 2)

    def test_free_text_date(self) -> None:
        assert to_date("15-Jan-2025") == date(2025, 1, 15)
