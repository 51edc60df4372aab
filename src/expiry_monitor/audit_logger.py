"""
Audit Logger module for the expiry monitor.

Every component takes an optional AuditLogger. Entries carry a component
name and a data dict and are written as JSON lines, as readable text, or
both. Credentials never reach the stream: values under credential-like
keys are replaced, and Telegram bot tokens embedded in strings (API URLs,
transport errors) are redacted wherever they appear.
"""

import json
import re
import sys
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional, TextIO

from .enums import LogLevel

_LEVEL_ORDER = {
    LogLevel.DEBUG: 0,
    LogLevel.INFO: 1,
    LogLevel.WARN: 2,
    LogLevel.ERROR: 3,
}

# "bot123456:AA..." as it appears in Bot API URLs
_BOT_TOKEN_IN_TEXT = re.compile(r"bot\d{3,}:[A-Za-z0-9_-]{10,}")

OUTPUT_FORMATS = ("json", "text", "both")


@dataclass
class LogEntry:
    """One structured log record."""

    timestamp: str
    level: LogLevel
    component: str
    message: str
    data: dict = field(default_factory=dict)

    def as_json(self) -> str:
        record = asdict(self)
        record["level"] = self.level.value
        return json.dumps(record, ensure_ascii=False, default=str)

    def as_text(self) -> str:
        # [TIMESTAMP] LEVEL [COMPONENT] MESSAGE {data}
        line = f"[{self.timestamp}] {self.level.value.upper()} [{self.component}] {self.message}"
        if self.data:
            line += " " + json.dumps(self.data, ensure_ascii=False, default=str)
        return line


class AuditLogger:
    """
    Structured logger shared by the WHOIS providers, the decision engine,
    the Telegram dispatcher, the scheduler and the orchestrator.
    """

    SENSITIVE_KEYS = frozenset({
        'token', 'secret', 'password', 'api_key', 'apikey', 'hmac_secret',
        'bot_token', 'bottoken', 'auth', 'authorization', 'credential',
    })

    MASK_VALUE = "***MASKED***"

    def __init__(
        self,
        output_format: str = "text",
        output_stream: Optional[TextIO] = None,
        min_level: LogLevel = LogLevel.INFO,
    ):
        """
        Args:
            output_format: 'json', 'text', or 'both'
            output_stream: Destination stream (sys.stderr if None)
            min_level: Entries below this level are dropped
        """
        if output_format not in OUTPUT_FORMATS:
            raise ValueError(f"Invalid output_format: {output_format}")

        self._output_format = output_format
        self._stream = output_stream or sys.stderr
        self._min_level = min_level
        self._entries: list[LogEntry] = []

    @classmethod
    def from_level_name(
        cls,
        level: str,
        output_format: str = "text",
        output_stream: Optional[TextIO] = None,
    ) -> "AuditLogger":
        """Build a logger from a config level name; unknown names mean 'info'."""
        try:
            min_level = LogLevel(level.lower())
        except ValueError:
            min_level = LogLevel.INFO
        return cls(output_format, output_stream, min_level)

    @property
    def output_format(self) -> str:
        return self._output_format

    @property
    def entries(self) -> list[LogEntry]:
        """Entries written so far, oldest first."""
        return list(self._entries)

    def is_enabled_for(self, level: LogLevel) -> bool:
        return _LEVEL_ORDER[level] >= _LEVEL_ORDER[self._min_level]

    def log(
        self,
        level: LogLevel,
        component: str,
        message: str,
        data: Optional[dict] = None,
    ) -> Optional[LogEntry]:
        """
        Write one entry.

        Returns:
            The entry as written, or None when ``level`` is filtered out
        """
        if not self.is_enabled_for(level):
            return None

        entry = LogEntry(
            timestamp=datetime.now(timezone.utc).isoformat(),
            level=level,
            component=component,
            message=_redact_text(message),
            data=self.mask_sensitive_data(data or {}),
        )
        self._entries.append(entry)

        lines = []
        if self._output_format != "text":
            lines.append(entry.as_json())
        if self._output_format != "json":
            lines.append(entry.as_text())
        self._stream.write("\n".join(lines) + "\n")
        self._stream.flush()
        return entry

    def debug(self, component: str, message: str, data: Optional[dict] = None) -> None:
        self.log(LogLevel.DEBUG, component, message, data)

    def info(self, component: str, message: str, data: Optional[dict] = None) -> None:
        self.log(LogLevel.INFO, component, message, data)

    def warn(self, component: str, message: str, data: Optional[dict] = None) -> None:
        self.log(LogLevel.WARN, component, message, data)

    def log_error(
        self,
        component: str,
        message: str,
        error: Optional[BaseException] = None,
        status_code: Optional[int] = None,
        additional_data: Optional[dict] = None,
    ) -> Optional[LogEntry]:
        """
        Write an ERROR entry with exception and upstream HTTP context.

        ``error_type``/``error_message`` describe the exception and
        ``status_code`` the upstream response, when given.
        """
        data = dict(additional_data or {})
        if error is not None:
            data["error_type"] = type(error).__name__
            data["error_message"] = str(error)
        if status_code is not None:
            data["status_code"] = status_code
        return self.log(LogLevel.ERROR, component, message, data)

    def is_sensitive_key(self, key: Any) -> bool:
        key_lower = str(key).lower()
        return any(sensitive in key_lower for sensitive in self.SENSITIVE_KEYS)

    def mask_sensitive_data(self, data: dict) -> dict:
        """Copy of ``data`` with credentials masked at any nesting depth."""
        return {
            key: self.MASK_VALUE if self.is_sensitive_key(key) else self._mask(value)
            for key, value in data.items()
        }

    def _mask(self, value: Any) -> Any:
        if isinstance(value, dict):
            return self.mask_sensitive_data(value)
        if isinstance(value, (list, tuple)):
            return [self._mask(item) for item in value]
        if isinstance(value, str):
            return _redact_text(value)
        return value

    def clear_entries(self) -> None:
        self._entries.clear()


def _redact_text(text: str) -> str:
    return _BOT_TOKEN_IN_TEXT.sub("bot" + AuditLogger.MASK_VALUE, text)
