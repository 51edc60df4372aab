"""
Enumeration types for the expiry monitor.

These enums provide type-safe constants for renewal units, validation
error codes, provider identities and run outcomes.
"""

from enum import Enum


class RenewUnit(Enum):
    """Unit of a registrar renewal cycle."""

    YEAR = "year"
    MONTH = "month"
    DAY = "day"


class ExpiryStatus(Enum):
    """Classification of a domain for one notification run."""

    EXPIRING = "expiring"
    EXPIRED = "expired"
    SILENT = "silent"


class LogLevel(Enum):
    """Logging severity levels."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class DomainValidationErrorCode(Enum):
    """Error codes for domain validation failures."""

    EMPTY_INPUT = "empty_input"
    IDNA_ERROR = "idna_error"
    MALFORMED = "malformed"
    MISSING_SUFFIX = "missing_suffix"
    SUBDOMAIN_NOT_ALLOWED = "subdomain_not_allowed"


class ProviderKind(Enum):
    """Upstream WHOIS registry families."""

    STRUCTURED = "whoisjson"
    JSON_WRAPPED_TEXT = "nic_ua"
    PROXIED_TEXT = "digitalplat"


class DispatchErrorCode(Enum):
    """Error codes for Telegram dispatch failures."""

    CONFIG_ERROR = "config_error"
    UPSTREAM_ERROR = "upstream_error"
    NETWORK_ERROR = "network_error"


class RunOutcome(Enum):
    """Outcome of one scheduled expiry check."""

    NOTHING_TO_NOTIFY = "nothing_to_notify"
    NOTIFIED = "notified"
    NOTIFICATIONS_DISABLED = "notifications_disabled"
    DRY_RUN = "dry_run"
    DISPATCH_FAILED = "dispatch_failed"
    RUN_FAILED = "run_failed"
