"""
WHOIS query endpoint handler.

Framework-independent handler for the dashboard's "fill from WHOIS"
request. It accepts the decoded JSON body and returns an HTTP status and
a JSON-serializable body:

- 400 with ``{"error", "code"}`` for a missing or invalid domain
- 200 with the canonical record for every completed lookup, including
  logical failures (``success: false``)
"""

import json
from typing import Any, Optional, Union

from .audit_logger import AuditLogger
from .i18n import get_message
from .whois_router import WhoisRouter

HTTP_OK = 200
HTTP_BAD_REQUEST = 400


class WhoisQueryHandler:
    """Validates the request body and runs the routed WHOIS lookup."""

    COMPONENT = "whois_api"

    def __init__(
        self,
        router: WhoisRouter,
        language: Optional[str] = None,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        self._router = router
        self._language = language
        self._logger = logger

    def _bad_request(self, code: str, **kwargs) -> tuple[int, dict]:
        message = get_message(f"validation.{code}", self._language, **kwargs)
        if self._logger:
            self._logger.info(self.COMPONENT, "Rejected WHOIS query", {"code": code})
        return HTTP_BAD_REQUEST, {"error": message, "code": code}

    async def handle(self, payload: Union[dict, str, bytes, None]) -> tuple[int, dict]:
        """
        Handle one query.

        Args:
            payload: Decoded JSON object, or the raw request body

        Returns:
            (HTTP status, JSON body)
        """
        body: Any = payload
        if isinstance(payload, (str, bytes)):
            try:
                body = json.loads(payload)
            except ValueError:
                return self._bad_request("invalid_request")

        if not isinstance(body, dict):
            return self._bad_request("invalid_request")

        domain = body.get("domain")
        if not isinstance(domain, str) or not domain.strip():
            return self._bad_request("empty_input")

        validation = self._router.validator.validate(domain)
        if not validation.valid:
            assert validation.error is not None
            return self._bad_request(validation.error.code.value)

        record = await self._router.lookup(validation.canonical_domain)
        if self._logger:
            self._logger.info(self.COMPONENT, "WHOIS query completed", {
                "domain": record.domain,
                "success": record.success,
                "provider": record.provider,
            })
        return HTTP_OK, record.to_dict()
