"""
Exception classes for the expiry monitor.

All exceptions inherit from ExpiryMonitorError and provide structured
error information with codes, messages, and optional details.

Provider adapters and the Telegram dispatcher never let these escape;
they are converted into result objects at those boundaries.
"""

from typing import Optional


class ExpiryMonitorError(Exception):
    """Base exception for all expiry monitor errors."""

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[dict] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"

    def to_dict(self) -> dict:
        """Convert exception to dictionary for serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(ExpiryMonitorError):
    """Raised when a domain is malformed or not allowed (rejected before any network call)."""

    pass


class UpstreamError(ExpiryMonitorError):
    """Raised when a WHOIS provider or Telegram answers non-2xx or cannot be reached."""

    def __init__(
        self,
        code: str,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[dict] = None,
    ) -> None:
        super().__init__(code, message, details)
        self.status_code = status_code


class ParseError(ExpiryMonitorError):
    """Raised when an expected field is missing from free text. Never fatal."""

    pass


class ConfigError(ExpiryMonitorError):
    """Raised when a credential or setting required for a call is missing."""

    pass


class PersistenceError(ExpiryMonitorError):
    """Raised when the key-value store cannot be read or written."""

    pass


class TamperingError(PersistenceError):
    """Raised when HMAC validation of the state file fails."""

    pass


class RecordNotFoundError(PersistenceError):
    """Raised when a domain record id does not exist in the store."""

    pass


class NotificationError(ExpiryMonitorError):
    """Raised when a user-initiated test notification cannot be delivered."""

    pass
