"""
Expiry check orchestrator.

Coordinates one scheduled pass over the tracked domains:

1. read the domains and the stored Telegram settings
2. resolve the effective Telegram credentials once
3. classify every domain with the decision engine
4. send one combined message when anything needs attention

A scheduled pass never raises. Storage and dispatch failures are logged
at ERROR and recorded in the returned CheckRunReport, so a run that had
nothing to do and a run whose error was swallowed stay distinguishable.

Also provides the two user-initiated test notifications, which do raise.
"""

import asyncio
from datetime import datetime, timezone
from typing import Optional

from .audit_logger import AuditLogger
from .config import (
    EnvironmentSettings,
    ResolvedTelegramConfig,
    TelegramDefaults,
    resolve_telegram_config,
)
from .decision_engine import ExpiryDecisionEngine, resolve_global_notify_days
from .enums import DispatchErrorCode, RunOutcome
from .exceptions import ConfigError, ExpiryMonitorError, NotificationError, ValidationError
from .i18n import get_message
from .models import CheckRunReport, DispatchResult, NotificationEntry
from .notifications import MessageDispatcher, MessageFormatter, TelegramDispatcher
from .renewal import days_left, to_date
from .storage import DomainRepository


class ExpiryCheckOrchestrator:
    """Runs expiry checks and test notifications against a repository."""

    COMPONENT = "orchestrator"

    def __init__(
        self,
        repository: DomainRepository,
        dispatcher: Optional[MessageDispatcher] = None,
        environment: Optional[EnvironmentSettings] = None,
        telegram_defaults: Optional[TelegramDefaults] = None,
        language: Optional[str] = None,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        """
        Args:
            repository: Source of domains and stored Telegram settings
            dispatcher: Message dispatcher (Telegram Bot API by default)
            environment: Platform secrets; read from os.environ if None
            telegram_defaults: Compiled-in Telegram credentials
            language: Message language ('zh' or 'en')
            logger: Optional audit logger
        """
        self._repository = repository
        self._dispatcher = dispatcher or TelegramDispatcher(logger=logger)
        self._environment = environment if environment is not None else EnvironmentSettings.from_env()
        self._telegram_defaults = telegram_defaults or TelegramDefaults()
        self._language = language
        self._formatter = MessageFormatter(language)
        self._engine = ExpiryDecisionEngine(logger)
        self._logger = logger

    def resolve_telegram(self) -> ResolvedTelegramConfig:
        """Resolve the effective Telegram settings from all sources."""
        stored = self._repository.get_telegram_config()
        return resolve_telegram_config(stored, self._environment, self._telegram_defaults)

    async def run_scheduled_check(
        self,
        now: Optional[datetime] = None,
        dry_run: bool = False,
    ) -> CheckRunReport:
        """
        Run one scheduled expiry pass.

        Args:
            now: Reference time (current UTC time if None)
            dry_run: Build the message but do not send it

        Returns:
            CheckRunReport; never raises
        """
        now = now or datetime.now(timezone.utc)
        timestamp = now.isoformat()

        try:
            domains = self._repository.get_domains()
            telegram = self.resolve_telegram()
        except ExpiryMonitorError as e:
            return self._failed_run(timestamp, "Failed to read monitor state", e)
        except Exception as e:
            return self._failed_run(timestamp, "Unexpected error while reading state", e)

        notify_days = resolve_global_notify_days(telegram.enabled, telegram.notify_days)
        try:
            batch = self._engine.evaluate(domains, notify_days, now)
            message = self._formatter.format_batch(batch)
        except Exception as e:
            return self._failed_run(timestamp, "Failed to evaluate domains", e)

        if batch.is_empty:
            self._log_info("No domains need a notification", {"domains": len(domains)})
            return CheckRunReport(RunOutcome.NOTHING_TO_NOTIFY, timestamp, batch)

        if dry_run:
            self._log_info("Dry run, notification not sent", {"domains": batch.total})
            return CheckRunReport(RunOutcome.DRY_RUN, timestamp, batch, message=message)

        if not telegram.enabled:
            self._log_info("Telegram notifications disabled, nothing sent", {
                "expiring": len(batch.expiring),
                "expired": len(batch.expired),
            })
            return CheckRunReport(
                RunOutcome.NOTIFICATIONS_DISABLED, timestamp, batch, message=message
            )

        # The dispatch is not cancellable once started
        try:
            result = await asyncio.shield(self._dispatcher.send(telegram, message))
        except Exception as e:
            result = DispatchResult(
                success=False,
                error=f"Unexpected dispatch error: {type(e).__name__}",
                error_code=DispatchErrorCode.NETWORK_ERROR,
            )

        if not result.success:
            if self._logger:
                self._logger.log_error(
                    self.COMPONENT,
                    "Expiry notification could not be delivered",
                    status_code=result.status_code,
                    additional_data={
                        "reason": result.error,
                        "escalated": False,
                        "sources": {
                            "bot": telegram.token_source,
                            "chat": telegram.chat_id_source,
                        },
                    },
                )
            return CheckRunReport(
                RunOutcome.DISPATCH_FAILED,
                timestamp,
                batch,
                dispatch=result,
                message=message,
                errors=[result.error or "unknown error"],
            )

        self._log_info("Expiry notification sent", {
            "expiring": len(batch.expiring),
            "expired": len(batch.expired),
        })
        return CheckRunReport(
            RunOutcome.NOTIFIED, timestamp, batch, dispatch=result, message=message
        )

    async def send_test_notification(self) -> str:
        """
        Send the fixed Telegram test message.

        Returns:
            Confirmation text

        Raises:
            NotificationError: If Telegram is disabled or delivery fails
            ConfigError: If the bot token or chat id cannot be resolved
        """
        telegram = self._require_telegram()
        await self._deliver(telegram, self._formatter.format_test_message())
        return get_message("result.test_sent", self._language)

    async def send_domain_test_notification(
        self, domain_id: str, now: Optional[datetime] = None
    ) -> str:
        """
        Send a preview of the notification for one domain.

        Raises:
            RecordNotFoundError: If the id is unknown
            ValidationError: If the domain's expiry date cannot be parsed
            NotificationError: If Telegram is disabled or delivery fails
            ConfigError: If the bot token or chat id cannot be resolved
        """
        domain = self._repository.get_domain(domain_id)
        telegram = self._require_telegram()

        try:
            remaining = days_left(domain.expiry_date or "", now)
            expiry = to_date(domain.expiry_date or "").isoformat()
        except ValueError as e:
            raise ValidationError(
                code="invalid_expiry_date",
                message=f"Expiry date of {domain.name} cannot be parsed",
                details={"domain_id": domain_id, "expiry_date": domain.expiry_date},
            ) from e

        entry = NotificationEntry(
            name=domain.name,
            registrar=domain.registrar,
            days_left=remaining,
            expiry_date=expiry,
            renew_link=domain.renew_link,
        )
        message = self._formatter.format_domain_preview(entry, expired=remaining <= 0)
        await self._deliver(telegram, message)
        return get_message("result.test_sent", self._language)

    def _require_telegram(self) -> ResolvedTelegramConfig:
        telegram = self.resolve_telegram()
        if not telegram.enabled:
            raise NotificationError(
                code="telegram_disabled",
                message=get_message("error.telegram_disabled", self._language),
            )
        if not telegram.bot_token:
            raise ConfigError(
                code="missing_bot_token",
                message=get_message("error.missing_bot_token", self._language),
            )
        if not telegram.chat_id:
            raise ConfigError(
                code="missing_chat_id",
                message=get_message("error.missing_chat_id", self._language),
            )
        return telegram

    async def _deliver(self, telegram: ResolvedTelegramConfig, message: str) -> None:
        result = await asyncio.shield(self._dispatcher.send(telegram, message))
        if not result.success:
            raise NotificationError(
                code="dispatch_failed",
                message=get_message(
                    "error.test_failed", self._language, error=result.error
                ),
                details={"status_code": result.status_code},
            )

    def _failed_run(self, timestamp: str, message: str, error: Exception) -> CheckRunReport:
        if self._logger:
            self._logger.log_error(
                self.COMPONENT,
                message,
                error=error,
                additional_data={"escalated": False},
            )
        return CheckRunReport(
            RunOutcome.RUN_FAILED,
            timestamp,
            errors=[f"{type(error).__name__}: {error}"],
        )

    def _log_info(self, message: str, data: dict) -> None:
        if self._logger:
            self._logger.info(self.COMPONENT, message, data)
