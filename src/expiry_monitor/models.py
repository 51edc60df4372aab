"""
Data models for the expiry monitor.

This module defines the canonical WHOIS record every provider produces,
the stored domain record the notification engine reads, and the transient
batch, dispatch and run-report structures.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

from .enums import DispatchErrorCode, RenewUnit, RunOutcome

DEFAULT_NOTIFY_DAYS = 30


@dataclass
class Registrar:
    """Registrar name and homepage."""

    name: str
    url: Optional[str] = None


@dataclass
class WhoisRecord:
    """
    Canonical WHOIS record.

    All dates are ``YYYY-MM-DD`` strings regardless of the provider that
    produced them. When ``success`` is False only ``domain`` and ``error``
    carry information; use :meth:`failure` to build such a record.
    """

    domain: str
    success: bool
    registered: Optional[bool] = None
    registration_date: Optional[str] = None
    expiry_date: Optional[str] = None
    last_updated: Optional[str] = None
    registrar: Optional[Registrar] = None
    nameservers: Optional[list[str]] = field(default_factory=list)
    status: Optional[list[str]] = field(default_factory=list)
    dnssec: Optional[str] = None
    raw: Any = None
    error: Optional[str] = None
    provider: Optional[str] = None

    @classmethod
    def failure(
        cls, domain: str, error: str, provider: Optional[str] = None
    ) -> "WhoisRecord":
        """Build a failed record with every informational field cleared."""
        return cls(
            domain=domain,
            success=False,
            registered=None,
            nameservers=None,
            status=None,
            raw=None,
            error=error,
            provider=provider,
        )

    def to_dict(self) -> dict:
        """Serialize to the JSON shape returned by the WHOIS query endpoint."""
        if not self.success:
            return {"success": False, "error": self.error, "domain": self.domain}

        return {
            "success": True,
            "domain": self.domain,
            "registered": self.registered,
            "registrationDate": self.registration_date,
            "expiryDate": self.expiry_date,
            "lastUpdated": self.last_updated,
            "registrar": self.registrar.name if self.registrar else None,
            "registrarUrl": self.registrar.url if self.registrar else None,
            "nameservers": list(self.nameservers or []),
            "status": list(self.status or []),
            "dnssec": self.dnssec,
            "raw": self.raw,
        }


@dataclass(frozen=True)
class RenewCycle:
    """Registrar-billed renewal interval."""

    value: int = 1
    unit: RenewUnit = RenewUnit.YEAR

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "RenewCycle":
        if not isinstance(data, dict):
            return cls()
        try:
            value = int(data.get("value", 1))
        except (TypeError, ValueError):
            value = 1
        try:
            unit = RenewUnit(str(data.get("unit", "year")).lower())
        except ValueError:
            # Unknown units count as one year
            return cls()
        return cls(value=value, unit=unit)

    def to_dict(self) -> dict:
        return {"value": self.value, "unit": self.unit.value}


@dataclass
class NotifySettings:
    """Per-domain notification preferences."""

    use_global_settings: bool = True
    enabled: bool = True
    notify_days: int = DEFAULT_NOTIFY_DAYS

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "NotifySettings":
        if not isinstance(data, dict):
            return cls()
        try:
            notify_days = int(data.get("notifyDays", DEFAULT_NOTIFY_DAYS))
        except (TypeError, ValueError):
            notify_days = DEFAULT_NOTIFY_DAYS
        return cls(
            use_global_settings=bool(data.get("useGlobalSettings", True)),
            enabled=bool(data.get("enabled", True)),
            notify_days=notify_days,
        )

    def to_dict(self) -> dict:
        return {
            "useGlobalSettings": self.use_global_settings,
            "enabled": self.enabled,
            "notifyDays": self.notify_days,
        }


# Stored keys owned by the core; everything else is kept verbatim in ``extra``
_DOMAIN_KEYS = frozenset({
    "id", "name", "registrationDate", "expiryDate", "renewCycle",
    "lastRenewed", "registrar", "renewLink", "notifySettings",
})


@dataclass
class DomainRecord:
    """
    A tracked domain as stored by the dashboard layer.

    The core only reads these records. Fields it does not interpret
    (category, notes, price...) live in ``extra`` so a record survives a
    read/write round trip unchanged.
    """

    id: str
    name: str
    registration_date: Optional[str]
    expiry_date: Optional[str]
    renew_cycle: RenewCycle = field(default_factory=RenewCycle)
    last_renewed: Optional[str] = None
    registrar: Optional[str] = None
    renew_link: Optional[str] = None
    notify_settings: NotifySettings = field(default_factory=NotifySettings)
    extra: dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict) -> "DomainRecord":
        return cls(
            id=str(data.get("id", "")),
            name=str(data.get("name", "")),
            registration_date=data.get("registrationDate"),
            expiry_date=data.get("expiryDate"),
            renew_cycle=RenewCycle.from_dict(data.get("renewCycle")),
            last_renewed=data.get("lastRenewed") or None,
            registrar=data.get("registrar") or None,
            renew_link=data.get("renewLink") or None,
            notify_settings=NotifySettings.from_dict(data.get("notifySettings")),
            extra={k: v for k, v in data.items() if k not in _DOMAIN_KEYS},
        )

    def to_dict(self) -> dict:
        data = dict(self.extra)
        data.update({
            "id": self.id,
            "name": self.name,
            "registrationDate": self.registration_date,
            "expiryDate": self.expiry_date,
            "renewCycle": self.renew_cycle.to_dict(),
            "lastRenewed": self.last_renewed,
            "registrar": self.registrar,
            "renewLink": self.renew_link,
            "notifySettings": self.notify_settings.to_dict(),
        })
        return data


@dataclass
class NotificationEntry:
    """One domain line in a notification message."""

    name: str
    registrar: Optional[str]
    days_left: int
    expiry_date: str
    renew_link: Optional[str] = None


@dataclass
class NotificationBatch:
    """Domains classified in one scheduler run. Never persisted."""

    expiring: list[NotificationEntry] = field(default_factory=list)
    expired: list[NotificationEntry] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.expiring and not self.expired

    @property
    def total(self) -> int:
        return len(self.expiring) + len(self.expired)


@dataclass
class DispatchResult:
    """Result of one Telegram sendMessage attempt."""

    success: bool
    error: Optional[str] = None
    error_code: Optional[DispatchErrorCode] = None
    status_code: Optional[int] = None
    response: Optional[dict] = None


@dataclass
class CheckRunReport:
    """
    Outcome of one scheduled check.

    ``escalated`` is always False: failures are logged and recorded here
    instead of being raised, so the next trigger still runs.
    """

    outcome: RunOutcome
    timestamp: str
    batch: NotificationBatch = field(default_factory=NotificationBatch)
    dispatch: Optional[DispatchResult] = None
    message: Optional[str] = None
    errors: list[str] = field(default_factory=list)
    escalated: bool = False

    @property
    def had_errors(self) -> bool:
        return bool(self.errors)
