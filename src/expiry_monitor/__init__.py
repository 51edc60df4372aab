"""
Expiry Monitor - WHOIS resolution and domain expiry notifications.

This package normalizes answers from several WHOIS providers into one
canonical record and runs a scheduled check that reminds an operator via
Telegram before tracked domains expire.
"""

__version__ = "0.1.0"

from expiry_monitor.exceptions import (
    ExpiryMonitorError,
    ValidationError,
    UpstreamError,
    ParseError,
    ConfigError,
    PersistenceError,
    TamperingError,
    RecordNotFoundError,
    NotificationError,
)
from expiry_monitor.enums import (
    DispatchErrorCode,
    DomainValidationErrorCode,
    ExpiryStatus,
    LogLevel,
    ProviderKind,
    RenewUnit,
    RunOutcome,
)
from expiry_monitor.models import (
    CheckRunReport,
    DispatchResult,
    DomainRecord,
    NotificationBatch,
    NotificationEntry,
    NotifySettings,
    Registrar,
    RenewCycle,
    WhoisRecord,
)
from expiry_monitor.config import (
    EnvironmentSettings,
    LoggingConfig,
    PersistenceConfig,
    ResolvedTelegramConfig,
    ScheduleConfig,
    SystemConfig,
    TelegramConfig,
    TelegramDefaults,
    WhoisConfig,
    resolve_telegram_config,
)
from expiry_monitor.audit_logger import AuditLogger, LogEntry
from expiry_monitor.domain_validator import (
    DomainValidationError,
    DomainValidationResult,
    DomainValidator,
)
from expiry_monitor.whois_parser import normalize_date, parse_datetime
from expiry_monitor.whois_providers import (
    DigitalPlatProvider,
    NicUaProvider,
    WhoisJsonProvider,
    WhoisProvider,
)
from expiry_monitor.whois_router import LookupSession, WhoisRouter
from expiry_monitor.renewal import (
    add_period,
    cycle_days,
    days_left,
    format_remaining,
    infer_cycle,
    progress_percent,
    renewed_expiry,
)
from expiry_monitor.decision_engine import ExpiryDecisionEngine
from expiry_monitor.notifications import MessageFormatter, TelegramDispatcher
from expiry_monitor.storage import (
    DomainRepository,
    InMemoryStore,
    JsonFileStore,
    KeyValueStore,
)
from expiry_monitor.scheduler import CronParseError, CronParser, Scheduler
from expiry_monitor.orchestrator import ExpiryCheckOrchestrator
from expiry_monitor.api import WhoisQueryHandler
from expiry_monitor.i18n import get_message

__all__ = [
    "__version__",
    # Exceptions
    "ExpiryMonitorError",
    "ValidationError",
    "UpstreamError",
    "ParseError",
    "ConfigError",
    "PersistenceError",
    "TamperingError",
    "RecordNotFoundError",
    "NotificationError",
    # Enums
    "DispatchErrorCode",
    "DomainValidationErrorCode",
    "ExpiryStatus",
    "LogLevel",
    "ProviderKind",
    "RenewUnit",
    "RunOutcome",
    # Models
    "CheckRunReport",
    "DispatchResult",
    "DomainRecord",
    "NotificationBatch",
    "NotificationEntry",
    "NotifySettings",
    "Registrar",
    "RenewCycle",
    "WhoisRecord",
    # Config
    "EnvironmentSettings",
    "LoggingConfig",
    "PersistenceConfig",
    "ResolvedTelegramConfig",
    "ScheduleConfig",
    "SystemConfig",
    "TelegramConfig",
    "TelegramDefaults",
    "WhoisConfig",
    "resolve_telegram_config",
    # Logging
    "AuditLogger",
    "LogEntry",
    # WHOIS
    "DomainValidationError",
    "DomainValidationResult",
    "DomainValidator",
    "normalize_date",
    "parse_datetime",
    "DigitalPlatProvider",
    "NicUaProvider",
    "WhoisJsonProvider",
    "WhoisProvider",
    "LookupSession",
    "WhoisRouter",
    "WhoisQueryHandler",
    # Renewal
    "add_period",
    "cycle_days",
    "days_left",
    "format_remaining",
    "infer_cycle",
    "progress_percent",
    "renewed_expiry",
    # Notifications
    "ExpiryDecisionEngine",
    "MessageFormatter",
    "TelegramDispatcher",
    # Storage
    "DomainRepository",
    "InMemoryStore",
    "JsonFileStore",
    "KeyValueStore",
    # Scheduling
    "CronParseError",
    "CronParser",
    "Scheduler",
    "ExpiryCheckOrchestrator",
    # I18n
    "get_message",
]
