"""
WHOIS routing module.

Validates a domain, picks the provider responsible for its suffix and runs
the lookup. Also provides bounded-concurrency batch lookups and a
LookupSession that keeps at most one user-initiated lookup in flight.
"""

import asyncio
from typing import Iterable, Optional

import httpx

from .audit_logger import AuditLogger
from .config import WhoisConfig
from .domain_validator import DomainValidator
from .models import WhoisRecord
from .whois_providers import (
    DigitalPlatProvider,
    NicUaProvider,
    WhoisJsonProvider,
    WhoisProvider,
)


class WhoisRouter:
    """
    Maps validated domains to WHOIS providers.

    Suffix routes are checked in insertion order; anything unmatched falls
    back to the structured JSON provider.
    """

    COMPONENT = "whois_router"

    def __init__(
        self,
        config: Optional[WhoisConfig] = None,
        validator: Optional[DomainValidator] = None,
        client: Optional[httpx.AsyncClient] = None,
        logger: Optional[AuditLogger] = None,
        routes: Optional[list[tuple[str, WhoisProvider]]] = None,
        fallback: Optional[WhoisProvider] = None,
    ) -> None:
        """
        Args:
            config: Upstream settings shared by the default providers
            validator: Domain validator (default allow-list if None)
            client: Optional shared HTTP client for the default providers
            logger: Optional audit logger
            routes: Ordered (suffix, provider) pairs replacing the defaults
            fallback: Provider for unmatched suffixes
        """
        self._config = config or WhoisConfig()
        self._validator = validator or DomainValidator()
        self._logger = logger

        if fallback is None:
            fallback = WhoisJsonProvider(self._config, client, logger)
        self._fallback = fallback

        if routes is None:
            nic_ua = NicUaProvider(self._config, client, logger)
            digitalplat = DigitalPlatProvider(self._config, client, logger)
            routes = [
                ("pp.ua", nic_ua),
                ("qzz.io", digitalplat),
                ("dpdns.org", digitalplat),
                ("us.kg", digitalplat),
                ("xx.kg", digitalplat),
            ]
        self._routes = [(suffix.lower().strip("."), p) for suffix, p in routes]

    @property
    def validator(self) -> DomainValidator:
        return self._validator

    @property
    def providers(self) -> list[WhoisProvider]:
        """Distinct providers, routes first, fallback last."""
        seen: list[WhoisProvider] = []
        for _, provider in self._routes:
            if all(provider is not p for p in seen):
                seen.append(provider)
        if all(self._fallback is not p for p in seen):
            seen.append(self._fallback)
        return seen

    async def __aenter__(self) -> "WhoisRouter":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        for provider in self.providers:
            await provider.close()

    def provider_for(self, canonical_domain: str) -> WhoisProvider:
        """Return the provider for an already validated domain."""
        for suffix, provider in self._routes:
            if canonical_domain == suffix or canonical_domain.endswith("." + suffix):
                return provider
        return self._fallback

    def route(self, domain: str) -> tuple[str, WhoisProvider]:
        """
        Validate a domain and select its provider.

        Returns:
            (canonical domain, provider)

        Raises:
            ValidationError: If the domain is malformed or not an apex domain
        """
        canonical = self._validator.validate(domain).raise_for_error()
        return canonical, self.provider_for(canonical)

    async def lookup(self, domain: str) -> WhoisRecord:
        """
        Validate, route and resolve one domain.

        Raises:
            ValidationError: If the domain fails validation; upstream
                problems come back as a failed WhoisRecord instead
        """
        canonical, provider = self.route(domain)
        if self._logger:
            self._logger.debug(self.COMPONENT, "Routing WHOIS lookup", {
                "domain": canonical,
                "provider": provider.name,
            })
        return await provider.resolve(canonical)

    async def lookup_many(
        self, domains: Iterable[str], concurrency: int = 1
    ) -> list[WhoisRecord]:
        """
        Resolve several domains, preserving input order.

        Sequential by default; ``concurrency`` > 1 bounds the number of
        parallel requests. Invalid domains yield failed records.
        """
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")

        semaphore = asyncio.Semaphore(concurrency)

        async def _one(domain: str) -> WhoisRecord:
            validation = self._validator.validate(domain)
            if not validation.valid:
                assert validation.error is not None
                return WhoisRecord.failure(domain, validation.error.message)
            async with semaphore:
                canonical = validation.canonical_domain
                return await self.provider_for(canonical).resolve(canonical)

        domain_list = list(domains)
        if concurrency == 1:
            return [await _one(d) for d in domain_list]
        return list(await asyncio.gather(*(_one(d) for d in domain_list)))


class LookupSession:
    """
    Single-slot lookup manager for interactive callers.

    Starting a lookup for a different domain cancels the one in flight;
    asking again for the in-flight domain joins the running task.
    """

    def __init__(self, router: WhoisRouter) -> None:
        self._router = router
        self._task: Optional[asyncio.Task] = None
        self._domain: Optional[str] = None

    @property
    def in_flight(self) -> Optional[str]:
        if self._task is not None and not self._task.done():
            return self._domain
        return None

    async def lookup(self, domain: str) -> WhoisRecord:
        """
        Run a lookup, superseding any other in-flight one.

        Raises:
            ValidationError: If the domain fails validation
            asyncio.CancelledError: If this lookup is superseded or cancelled
        """
        canonical, _ = self._router.route(domain)

        if self._task is not None and not self._task.done():
            if self._domain == canonical:
                return await asyncio.shield(self._task)
            self._task.cancel()

        self._domain = canonical
        self._task = asyncio.ensure_future(self._router.lookup(canonical))
        return await asyncio.shield(self._task)

    def cancel(self) -> bool:
        """Cancel the in-flight lookup. Returns True if one was cancelled."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
            return True
        return False
