"""
WHOIS provider adapters.

Three upstream shapes are normalized into one WhoisRecord:

- WhoisJsonProvider: structured JSON registry API (default for most TLDs)
- NicUaProvider: JSON envelope wrapping a free-text WHOIS blob (.pp.ua)
- DigitalPlatProvider: free-text WHOIS fetched through an HTTPS relay
  (.qzz.io, .dpdns.org, .us.kg, .xx.kg)

Providers never raise for upstream problems; network errors, non-2xx
responses, missing credentials and undecodable payloads all come back as
``WhoisRecord.failure``.
"""

from typing import Any, Optional
from urllib.parse import quote

import httpx

from .audit_logger import AuditLogger
from .config import WhoisConfig
from .enums import ProviderKind
from .exceptions import ConfigError, ParseError, UpstreamError
from .models import Registrar, WhoisRecord
from .whois_parser import normalize_date, parse_all, parse_date_field, parse_field


class WhoisProvider:
    """
    Base class for WHOIS providers.

    Owns a lazily created httpx.AsyncClient (TLS verified) unless one is
    injected. Subclasses implement ``_fetch`` and may raise UpstreamError,
    ConfigError, ParseError or httpx.HTTPError from it.
    """

    kind: ProviderKind
    label = "WHOIS"
    COMPONENT = "whois_provider"

    def __init__(
        self,
        config: Optional[WhoisConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        self._config = config or WhoisConfig()
        self._client = client
        self._owns_client = client is None
        self._logger = logger

    @property
    def name(self) -> str:
        return self.kind.value

    async def __aenter__(self) -> "WhoisProvider":
        self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                verify=True,
                timeout=httpx.Timeout(self._config.timeout_seconds),
                follow_redirects=True,
            )
            self._owns_client = True
        return self._client

    async def close(self) -> None:
        """Close the HTTP client if this provider created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def resolve(self, domain: str) -> WhoisRecord:
        """
        Look up a canonical domain.

        Args:
            domain: Validated, canonical domain

        Returns:
            WhoisRecord; ``success`` is False on any upstream problem
        """
        try:
            record = await self._fetch(domain)
        except (UpstreamError, ConfigError, ParseError) as e:
            self._log_failure(domain, e.message, getattr(e, "status_code", None))
            return WhoisRecord.failure(domain, e.message, self.name)
        except httpx.TimeoutException:
            message = f"{self.label} request timed out after {self._config.timeout_seconds}s"
            self._log_failure(domain, message)
            return WhoisRecord.failure(domain, message, self.name)
        except httpx.HTTPError as e:
            message = f"{self.label} request failed: {e}"
            self._log_failure(domain, message)
            return WhoisRecord.failure(domain, message, self.name)
        except (TypeError, ValueError, AttributeError, KeyError) as e:
            # Payload shapes the field maps do not expect
            message = f"{self.label} returned an unexpected payload: {e}"
            self._log_failure(domain, message)
            return WhoisRecord.failure(domain, message, self.name)

        record.provider = self.name
        if self._logger:
            self._logger.debug(self.COMPONENT, "WHOIS lookup completed", {
                "domain": domain,
                "provider": self.name,
                "registered": record.registered,
            })
        return record

    async def _fetch(self, domain: str) -> WhoisRecord:
        raise NotImplementedError

    def _raise_for_status(self, response: httpx.Response) -> None:
        if not response.is_success:
            raise UpstreamError(
                code="upstream_http_error",
                message=(
                    f"{self.label} request failed: "
                    f"{response.status_code} {response.reason_phrase}"
                ),
                status_code=response.status_code,
            )

    def _decode_json(self, response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise ParseError(
                code="invalid_json",
                message=f"{self.label} returned an undecodable payload: {e}",
            )

    def _log_failure(
        self, domain: str, message: str, status_code: Optional[int] = None
    ) -> None:
        if self._logger:
            self._logger.log_error(
                self.COMPONENT,
                "WHOIS lookup failed",
                status_code=status_code,
                additional_data={
                    "domain": domain,
                    "provider": self.name,
                    "reason": message,
                },
            )


class WhoisJsonProvider(WhoisProvider):
    """Structured JSON registry API (whoisjson.com)."""

    kind = ProviderKind.STRUCTURED
    label = "WhoisJSON"
    ENDPOINT = "https://whoisjson.com/api/v1/whois"

    async def _fetch(self, domain: str) -> WhoisRecord:
        api_key = self._config.api_key
        if not api_key:
            raise ConfigError(
                code="missing_api_key",
                message="WhoisJSON API key is not configured",
            )

        client = self._ensure_client()
        response = await client.get(
            self.ENDPOINT,
            params={"domain": domain},
            headers={
                "Authorization": f"Token={api_key}",
                "Content-Type": "application/json",
            },
        )
        self._raise_for_status(response)
        data = self._decode_json(response)
        if not isinstance(data, dict):
            raise ParseError(
                code="invalid_payload",
                message="WhoisJSON returned an unexpected payload",
            )
        return self.parse_payload(domain, data)

    @staticmethod
    def parse_payload(domain: str, data: dict) -> WhoisRecord:
        """Map a WhoisJSON payload onto the canonical record."""
        registrar = None
        raw_registrar = data.get("registrar")
        if isinstance(raw_registrar, dict):
            registrar = Registrar(
                name=raw_registrar.get("name") or "",
                url=raw_registrar.get("url") or None,
            )
        elif isinstance(raw_registrar, str) and raw_registrar:
            registrar = Registrar(name=raw_registrar)

        return WhoisRecord(
            domain=data.get("name") or domain,
            success=True,
            registered=bool(data.get("registered", False)),
            registration_date=normalize_date(data.get("created")),
            expiry_date=normalize_date(data.get("expires")),
            last_updated=normalize_date(data.get("changed")),
            registrar=registrar,
            nameservers=_as_list(data.get("nameserver")),
            status=_as_list(data.get("status")),
            dnssec=data.get("dnssec") or None,
            raw=data,
        )


class NicUaProvider(WhoisProvider):
    """NIC.UA whois-info endpoint: JSON envelope around a WHOIS text blob."""

    kind = ProviderKind.JSON_WRAPPED_TEXT
    label = "NIC.UA"
    ENDPOINT = "https://nic.ua/en/whois-info"
    REGISTRAR_URL = "https://nic.ua"

    async def _fetch(self, domain: str) -> WhoisRecord:
        client = self._ensure_client()
        response = await client.get(
            self.ENDPOINT,
            params={"domain_name": domain},
            headers={
                "Accept": "*/*",
                "Accept-Language": "zh-CN,zh;q=0.9,en-US;q=0.8,en;q=0.7",
                "User-Agent": self._config.user_agent,
                "X-Requested-With": "XMLHttpRequest",
            },
        )
        self._raise_for_status(response)
        data = self._decode_json(response)
        if not isinstance(data, dict):
            raise ParseError(
                code="invalid_payload",
                message="NIC.UA returned an unexpected payload",
            )
        if data.get("is_error"):
            raise UpstreamError(
                code="upstream_error_flag",
                message="NIC.UA returned an error",
                status_code=response.status_code,
            )
        return self.parse_payload(domain, data)

    @classmethod
    def parse_payload(cls, domain: str, data: dict) -> WhoisRecord:
        text = data.get("whois_info") or ""
        if not isinstance(text, str):
            raise ParseError(
                code="invalid_payload",
                message="NIC.UA returned an unexpected payload: whois_info is not text",
            )
        created = parse_date_field(text, "Created On:")
        registrar_name = parse_field(text, "Sponsoring Registrar:")
        status = parse_field(text, "Status:")

        return WhoisRecord(
            domain=domain,
            success=True,
            registered=created is not None,
            registration_date=created,
            expiry_date=parse_date_field(text, "Expiration Date:"),
            last_updated=parse_date_field(text, "Last Updated On:"),
            registrar=(
                Registrar(name=registrar_name, url=cls.REGISTRAR_URL)
                if registrar_name else None
            ),
            nameservers=parse_all(text, "Name Server:"),
            status=[status] if status else [],
            dnssec=None,
            raw=data,
        )


class DigitalPlatProvider(WhoisProvider):
    """
    DigitalPlat free-domain registry.

    The registry's TLS handshake is unreliable from some networks, so the
    request goes through the relay in ``WhoisConfig.proxy_template``.
    """

    kind = ProviderKind.PROXIED_TEXT
    label = "DigitalPlat"
    TARGET = "https://dash.domain.digitalplat.org/whois?name={domain}"
    DEFAULT_REGISTRAR = "DigitalPlat"
    NOT_FOUND_MARKER = "Domain not found"

    def build_url(self, domain: str) -> str:
        target = self.TARGET.format(domain=quote(domain, safe=""))
        return self._config.proxy_template.format(url=quote(target, safe=""))

    async def _fetch(self, domain: str) -> WhoisRecord:
        client = self._ensure_client()
        response = await client.get(
            self.build_url(domain),
            headers={
                "Accept": "text/html",
                "User-Agent": self._config.user_agent,
            },
        )
        self._raise_for_status(response)
        return self.parse_text(domain, response.text)

    @classmethod
    def parse_text(cls, domain: str, text: str) -> WhoisRecord:
        if cls.NOT_FOUND_MARKER in text:
            return WhoisRecord(
                domain=domain,
                success=True,
                registered=False,
                raw=text,
            )

        created = parse_date_field(text, "Creation Date:")
        status = parse_field(text, "Domain Status:")

        return WhoisRecord(
            domain=domain,
            success=True,
            registered=created is not None,
            registration_date=created,
            expiry_date=parse_date_field(text, "Registry Expiry Date:"),
            last_updated=None,
            registrar=Registrar(
                name=parse_field(text, "Registrar:") or cls.DEFAULT_REGISTRAR,
                url=parse_field(text, "Registrar URL:"),
            ),
            nameservers=parse_all(text, "Name Server:"),
            status=[status] if status else [],
            dnssec=None,
            raw=text,
        )


def _as_list(value: Any) -> list[str]:
    if value is None or value == "":
        return []
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value if v]
    return [str(value)]
