"""
Decision Engine for expiry notifications.

Turns each tracked domain's expiry date and notification preferences into
a notify/silent decision and groups the notifiable domains into one batch:

- expired:  days left <= 0
- expiring: 0 < days left <= threshold
- silent:   everything else, disabled domains, unparseable expiry dates

The threshold is the global notify days unless the domain opts out of the
global settings. No "already notified" state is kept, so a domain is
reported again on every run until it is renewed or disabled.
"""

from datetime import datetime
from typing import Iterable, Optional

from .audit_logger import AuditLogger
from .enums import ExpiryStatus
from .models import (
    DEFAULT_NOTIFY_DAYS,
    DomainRecord,
    NotificationBatch,
    NotificationEntry,
)
from .renewal import days_left, to_date


def effective_threshold(domain: DomainRecord, global_notify_days: int) -> int:
    """Notify threshold in days for one domain."""
    settings = domain.notify_settings
    if settings.use_global_settings:
        return global_notify_days
    return settings.notify_days


def resolve_global_notify_days(telegram_enabled: bool, stored_notify_days: Optional[int]) -> int:
    """Threshold for domains on global settings: stored value when Telegram is on."""
    if telegram_enabled and stored_notify_days:
        return stored_notify_days
    return DEFAULT_NOTIFY_DAYS


class ExpiryDecisionEngine:
    """Classifies tracked domains for the scheduled notification run."""

    COMPONENT = "decision_engine"

    def __init__(self, logger: Optional[AuditLogger] = None) -> None:
        self._logger = logger

    def classify(
        self,
        domain: DomainRecord,
        global_notify_days: int = DEFAULT_NOTIFY_DAYS,
        now: Optional[datetime] = None,
    ) -> ExpiryStatus:
        """
        Classify a single domain.

        Returns:
            ExpiryStatus.EXPIRED, EXPIRING or SILENT
        """
        status, _ = self._classify(domain, global_notify_days, now)
        return status

    def evaluate(
        self,
        domains: Iterable[DomainRecord],
        global_notify_days: int = DEFAULT_NOTIFY_DAYS,
        now: Optional[datetime] = None,
    ) -> NotificationBatch:
        """
        Build the notification batch for one run.

        Args:
            domains: Tracked domains in stored order
            global_notify_days: Threshold for domains on global settings
            now: Reference time (current UTC time if None)

        Returns:
            NotificationBatch; input order is kept inside each bucket
        """
        batch = NotificationBatch()

        for domain in domains:
            status, remaining = self._classify(domain, global_notify_days, now)
            if status == ExpiryStatus.SILENT or remaining is None:
                continue

            entry = NotificationEntry(
                name=domain.name,
                registrar=domain.registrar,
                days_left=remaining,
                expiry_date=to_date(domain.expiry_date).isoformat(),
                renew_link=domain.renew_link,
            )
            if status == ExpiryStatus.EXPIRED:
                batch.expired.append(entry)
            else:
                batch.expiring.append(entry)

        if self._logger:
            self._logger.info(self.COMPONENT, "Domains evaluated", {
                "expiring": len(batch.expiring),
                "expired": len(batch.expired),
                "global_notify_days": global_notify_days,
            })
        return batch

    def _classify(
        self,
        domain: DomainRecord,
        global_notify_days: int,
        now: Optional[datetime],
    ) -> tuple[ExpiryStatus, Optional[int]]:
        if not domain.notify_settings.enabled:
            return ExpiryStatus.SILENT, None

        if not domain.expiry_date:
            self._warn_unparseable(domain)
            return ExpiryStatus.SILENT, None
        try:
            remaining = days_left(domain.expiry_date, now)
        except ValueError:
            self._warn_unparseable(domain)
            return ExpiryStatus.SILENT, None

        if remaining <= 0:
            return ExpiryStatus.EXPIRED, remaining
        if remaining <= effective_threshold(domain, global_notify_days):
            return ExpiryStatus.EXPIRING, remaining
        return ExpiryStatus.SILENT, remaining

    def _warn_unparseable(self, domain: DomainRecord) -> None:
        if self._logger:
            self._logger.warn(self.COMPONENT, "Skipping domain with unparseable expiry date", {
                "domain": domain.name,
                "domain_id": domain.id,
                "expiry_date": domain.expiry_date,
            })
