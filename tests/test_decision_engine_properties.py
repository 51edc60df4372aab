"""
Property-based tests for the expiry decision engine.

Uses Hypothesis to verify the classification thresholds, per-domain
overrides and batch grouping.
"""

from datetime import date, datetime, timedelta, timezone
from io import StringIO

from hypothesis import given, settings
from hypothesis import strategies as st

from expiry_monitor.audit_logger import AuditLogger
from expiry_monitor.decision_engine import (
    ExpiryDecisionEngine,
    effective_threshold,
    resolve_global_notify_days,
)
from expiry_monitor.enums import ExpiryStatus, LogLevel
from expiry_monitor.models import DomainRecord, NotifySettings


NOW = datetime(2025, 6, 1, tzinfo=timezone.utc)


def make_domain(
    offset_days,
    name: str = "example.com",
    use_global: bool = True,
    enabled: bool = True,
    notify_days: int = 30,
    expiry=None,
) -> DomainRecord:
    if expiry is None:
        expiry = (NOW.date() + timedelta(days=offset_days)).isoformat()
    return DomainRecord(
        id=name,
        name=name,
        registration_date="2020-01-01",
        expiry_date=expiry,
        registrar="Example Registrar",
        renew_link="https://registrar.example/renew",
        notify_settings=NotifySettings(
            use_global_settings=use_global,
            enabled=enabled,
            notify_days=notify_days,
        ),
    )


class TestClassificationProperty:
    """Expired, expiring and silent domains."""

    @given(offset=st.integers(min_value=-1000, max_value=0))
    @settings(max_examples=100)
    def test_past_expiry_is_expired(self, offset: int) -> None:
        """*For any* domain with days left <= 0, the status SHALL be EXPIRED."""
        engine = ExpiryDecisionEngine()
        assert engine.classify(make_domain(offset), 30, NOW) == ExpiryStatus.EXPIRED

    @given(
        threshold=st.integers(min_value=1, max_value=365),
        data=st.data(),
    )
    @settings(max_examples=100)
    def test_within_threshold_is_expiring(self, threshold: int, data) -> None:
        """*For any* 0 < days left <= threshold, the status SHALL be EXPIRING."""
        offset = data.draw(st.integers(min_value=1, max_value=threshold))
        engine = ExpiryDecisionEngine()
        assert engine.classify(make_domain(offset), threshold, NOW) == ExpiryStatus.EXPIRING

    @given(
        threshold=st.integers(min_value=1, max_value=365),
        extra=st.integers(min_value=1, max_value=1000),
    )
    @settings(max_examples=100)
    def test_beyond_threshold_is_silent(self, threshold: int, extra: int) -> None:
        """*For any* days left above the threshold, the status SHALL be SILENT."""
        engine = ExpiryDecisionEngine()
        domain = make_domain(threshold + extra)
        assert engine.classify(domain, threshold, NOW) == ExpiryStatus.SILENT

    @given(offset=st.integers(min_value=-100, max_value=100))
    @settings(max_examples=50)
    def test_disabled_domain_is_silent(self, offset: int) -> None:
        """*For any* domain with notifications disabled, the status SHALL be SILENT."""
        engine = ExpiryDecisionEngine()
        domain = make_domain(offset, enabled=False)
        assert engine.classify(domain, 365, NOW) == ExpiryStatus.SILENT

    @given(
        global_days=st.integers(min_value=1, max_value=365),
        own_days=st.integers(min_value=1, max_value=365),
    )
    @settings(max_examples=100)
    def test_own_threshold_overrides_global(self, global_days: int, own_days: int) -> None:
        """*For any* domain off global settings, its own threshold SHALL apply."""
        domain = make_domain(own_days, use_global=False, notify_days=own_days)
        assert effective_threshold(domain, global_days) == own_days
        engine = ExpiryDecisionEngine()
        assert engine.classify(domain, global_days, NOW) == ExpiryStatus.EXPIRING

    def test_unparseable_expiry_is_silent_and_warned(self) -> None:
        output = StringIO()
        logger = AuditLogger(output_stream=output)
        engine = ExpiryDecisionEngine(logger)

        assert engine.classify(make_domain(0, expiry="unknown"), 30, NOW) == ExpiryStatus.SILENT
        assert engine.classify(make_domain(0, expiry=""), 30, NOW) == ExpiryStatus.SILENT

        warnings = [e for e in logger.entries if e.level == LogLevel.WARN]
        assert len(warnings) == 2
        assert warnings[0].data["domain"] == "example.com"


class TestGlobalNotifyDays:

    def test_stored_value_used_when_enabled(self) -> None:
        assert resolve_global_notify_days(True, 7) == 7

    def test_default_when_disabled(self) -> None:
        assert resolve_global_notify_days(False, 7) == 30

    def test_default_when_missing(self) -> None:
        assert resolve_global_notify_days(True, None) == 30
        assert resolve_global_notify_days(True, 0) == 30


class TestBatchProperty:
    """Grouping of notifiable domains."""

    @given(offsets=st.lists(st.integers(min_value=-60, max_value=90), min_size=0, max_size=15))
    @settings(max_examples=100)
    def test_partition_matches_classification(self, offsets: list[int]) -> None:
        """
        *For any* set of domains, each notifiable domain SHALL appear in
        exactly one bucket, in input order.
        """
        domains = [make_domain(o, name=f"d{i}.com") for i, o in enumerate(offsets)]
        engine = ExpiryDecisionEngine()

        batch = engine.evaluate(domains, 30, NOW)

        expected_expired = [f"d{i}.com" for i, o in enumerate(offsets) if o <= 0]
        expected_expiring = [f"d{i}.com" for i, o in enumerate(offsets) if 0 < o <= 30]
        assert [e.name for e in batch.expired] == expected_expired
        assert [e.name for e in batch.expiring] == expected_expiring
        assert batch.total == len(expected_expired) + len(expected_expiring)

    def test_entry_fields(self) -> None:
        engine = ExpiryDecisionEngine()
        batch = engine.evaluate([make_domain(5)], 30, NOW)

        entry = batch.expiring[0]
        assert entry.name == "example.com"
        assert entry.registrar == "Example Registrar"
        assert entry.days_left == 5
        assert entry.expiry_date == (NOW.date() + timedelta(days=5)).isoformat()
        assert entry.renew_link == "https://registrar.example/renew"

    def test_timestamp_expiry_normalized(self) -> None:
        engine = ExpiryDecisionEngine()
        domain = make_domain(0, expiry="2025-06-03T12:00:00Z")
        batch = engine.evaluate([domain], 30, NOW)
        assert batch.expiring[0].expiry_date == date(2025, 6, 3).isoformat()
        assert batch.expiring[0].days_left == 3

    def test_empty_input_gives_empty_batch(self) -> None:
        batch = ExpiryDecisionEngine().evaluate([], 30, NOW)
        assert batch.is_empty

    def test_evaluation_logged(self) -> None:
        logger = AuditLogger(output_stream=StringIO())
        ExpiryDecisionEngine(logger).evaluate([make_domain(1), make_domain(-1)], 30, NOW)

        entry = logger.entries[-1]
        assert entry.component == "decision_engine"
        assert entry.data["expiring"] == 1
        assert entry.data["expired"] == 1
