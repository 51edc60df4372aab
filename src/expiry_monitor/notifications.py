"""
Telegram notification module for the expiry monitor.

Provides the message formatter for the combined expiry notification and
the single-domain preview, and a dispatcher that delivers a message
through the Telegram Bot API sendMessage method.

The dispatcher never raises: missing credentials, HTTP errors and
transport failures are reported through DispatchResult. There are no
retries; a failed run is picked up again by the next scheduled trigger.
"""

import html
from abc import abstractmethod
from typing import Optional, Protocol, runtime_checkable

import httpx

from .audit_logger import AuditLogger
from .config import ResolvedTelegramConfig
from .enums import DispatchErrorCode
from .i18n import get_message
from .models import DispatchResult, NotificationBatch, NotificationEntry

TELEGRAM_API_BASE = "https://api.telegram.org"

# Rule widths follow the zh heading widths
EXPIRING_RULE = "=" * 19
EXPIRED_RULE = "=" * 21
PREVIEW_EXPIRING_RULE = "=" * 23
PREVIEW_EXPIRED_RULE = "=" * 25
SECTION_DIVIDER = "━" * 16


class MessageFormatter:
    """
    Builds Telegram HTML messages.

    Every interpolated value is HTML-escaped; markup comes only from the
    translation templates.
    """

    def __init__(self, language: Optional[str] = None) -> None:
        self._language = language

    @property
    def language(self) -> Optional[str]:
        return self._language

    def _t(self, key: str, **kwargs) -> str:
        return get_message(key, self._language, **kwargs)

    def format_entry(self, entry: NotificationEntry, bold_labels: bool = False) -> str:
        """Format one domain block, newline terminated."""

        def line(icon: str, label_key: str, value: str) -> str:
            label = self._t(label_key)
            if bold_labels:
                return f"{icon} <b>{label}:</b> {value}\n"
            return f"{icon} {label}: {value}\n"

        text = line("🌍", "field.domain", html.escape(entry.name))
        if entry.registrar:
            text += line("🏬", "field.registrar", html.escape(entry.registrar))
        text += line("⏳", "field.days_left", self._t("field.days_value", days=entry.days_left))
        text += line("📅", "field.expiry_date", html.escape(entry.expiry_date))
        if entry.renew_link:
            text += line("⚠️", "field.renew_link", html.escape(entry.renew_link))
        else:
            text += line("⚠️", "field.renew_link", self._t("field.renew_link_missing"))
        return text

    def _format_section(self, title_key: str, rule: str, entries: list[NotificationEntry]) -> str:
        text = self._t(title_key) + "\n" + rule + "\n\n"
        text += "\n".join(self.format_entry(entry) for entry in entries)
        return text

    def format_batch(self, batch: NotificationBatch) -> str:
        """
        Format the combined message for one run.

        Returns:
            The message, or an empty string for an empty batch
        """
        message = ""
        if batch.expiring:
            message += self._format_section(
                "notification.expiring_title", EXPIRING_RULE, batch.expiring
            )
        if batch.expiring and batch.expired:
            message += "\n" + SECTION_DIVIDER + "\n\n"
        if batch.expired:
            message += self._format_section(
                "notification.expired_title", EXPIRED_RULE, batch.expired
            )
        return message

    def format_test_message(self) -> str:
        return self._t("notification.test_message")

    def format_domain_preview(self, entry: NotificationEntry, expired: bool) -> str:
        """Format the single-domain test notification."""
        if expired:
            title = self._t("notification.preview_expired_title")
            rule = PREVIEW_EXPIRED_RULE
            intro = self._t("notification.preview_expired_intro")
        else:
            title = self._t("notification.preview_expiring_title")
            rule = PREVIEW_EXPIRING_RULE
            intro = self._t("notification.preview_expiring_intro")

        return (
            title + "\n" + rule + "\n\n"
            + intro + "\n\n"
            + self.format_entry(entry, bold_labels=True)
        )


@runtime_checkable
class MessageDispatcher(Protocol):
    """Protocol for anything that can deliver a formatted message."""

    @abstractmethod
    async def send(self, config: ResolvedTelegramConfig, message: str) -> DispatchResult:
        ...


class TelegramDispatcher:
    """Delivers messages through the Telegram Bot API."""

    COMPONENT = "telegram_dispatcher"

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        api_base: str = TELEGRAM_API_BASE,
        timeout: float = 30.0,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        """
        Args:
            client: Optional injected HTTP client (a short-lived one is
                created per send otherwise)
            api_base: Bot API base URL
            timeout: Request timeout in seconds
            logger: Optional audit logger
        """
        self._client = client
        self._api_base = api_base.rstrip("/")
        self._timeout = timeout
        self._logger = logger

    async def send(self, config: ResolvedTelegramConfig, message: str) -> DispatchResult:
        """
        Send one HTML message.

        Returns:
            DispatchResult; never raises for delivery problems
        """
        missing = config.missing()
        if missing:
            error = "Telegram is not configured: missing " + ", ".join(missing)
            self._log_failure(error, DispatchErrorCode.CONFIG_ERROR)
            return DispatchResult(
                success=False,
                error=error,
                error_code=DispatchErrorCode.CONFIG_ERROR,
            )

        # The token is part of the URL; never log the URL
        url = f"{self._api_base}/bot{config.bot_token}/sendMessage"
        payload = {
            "chat_id": config.chat_id,
            "text": message,
            "parse_mode": "HTML",
            "disable_web_page_preview": True,
        }

        try:
            if self._client is not None:
                response = await self._client.post(url, json=payload, timeout=self._timeout)
            else:
                async with httpx.AsyncClient(verify=True) as client:
                    response = await client.post(url, json=payload, timeout=self._timeout)
        except httpx.InvalidURL:
            # Raised before any request for tokens that cannot form a URL
            error = "Telegram is not configured: bot token is not valid in a URL"
            self._log_failure(error, DispatchErrorCode.CONFIG_ERROR)
            return DispatchResult(
                success=False,
                error=error,
                error_code=DispatchErrorCode.CONFIG_ERROR,
            )
        except httpx.HTTPError as e:
            error = f"Telegram request failed: {_describe_transport_error(e)}"
            self._log_failure(error, DispatchErrorCode.NETWORK_ERROR)
            return DispatchResult(
                success=False,
                error=error,
                error_code=DispatchErrorCode.NETWORK_ERROR,
            )

        body = _json_or_none(response)
        if not response.is_success or (isinstance(body, dict) and body.get("ok") is False):
            description = None
            if isinstance(body, dict):
                description = body.get("description")
            error = f"Telegram sendMessage failed: {description or 'unknown error'}"
            self._log_failure(error, DispatchErrorCode.UPSTREAM_ERROR, response.status_code)
            return DispatchResult(
                success=False,
                error=error,
                error_code=DispatchErrorCode.UPSTREAM_ERROR,
                status_code=response.status_code,
                response=body if isinstance(body, dict) else None,
            )

        if self._logger:
            self._logger.info(self.COMPONENT, "Telegram message sent", {
                "chat_id": config.chat_id,
                "length": len(message),
            })
        return DispatchResult(
            success=True,
            status_code=response.status_code,
            response=body if isinstance(body, dict) else None,
        )

    def _log_failure(
        self,
        error: str,
        code: DispatchErrorCode,
        status_code: Optional[int] = None,
    ) -> None:
        if self._logger:
            self._logger.log_error(
                self.COMPONENT,
                "Telegram dispatch failed",
                status_code=status_code,
                additional_data={"reason": error, "error_code": code.value},
            )


def _json_or_none(response: httpx.Response) -> Optional[object]:
    try:
        return response.json()
    except ValueError:
        return None


def _describe_transport_error(error: httpx.HTTPError) -> str:
    # httpx error strings can embed the request URL, which carries the token
    text = str(error)
    try:
        url = str(error.request.url)
    except RuntimeError:
        return text or type(error).__name__
    return text.replace(url, "<telegram-api>") or type(error).__name__
