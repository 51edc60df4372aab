"""
Property-based tests for WHOIS routing.

Verifies suffix routing, rejection before any network call, ordered batch
lookups and the single-slot LookupSession.
"""

import asyncio

import httpx
import pytest
from hypothesis import assume, given, settings
from hypothesis import strategies as st

from expiry_monitor.config import WhoisConfig
from expiry_monitor.domain_validator import MULTI_LABEL_SUFFIXES
from expiry_monitor.exceptions import ValidationError
from expiry_monitor.models import WhoisRecord
from expiry_monitor.whois_providers import (
    DigitalPlatProvider,
    NicUaProvider,
    WhoisJsonProvider,
    WhoisProvider,
)
from expiry_monitor.whois_router import LookupSession, WhoisRouter


class RecordingProvider(WhoisProvider):
    """Provider that answers from memory and records every request."""

    label = "Recording"

    def __init__(self, name: str = "recording", delay: float = 0.0) -> None:
        super().__init__(WhoisConfig())
        self._name = name
        self.delay = delay
        self.calls: list[str] = []
        self.active = 0
        self.max_active = 0

    @property
    def name(self) -> str:
        return self._name

    async def _fetch(self, domain: str) -> WhoisRecord:
        self.calls.append(domain)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self.delay)
        finally:
            self.active -= 1
        return WhoisRecord(domain=domain, success=True, registered=True)


@st.composite
def label_strategy(draw) -> str:
    alphabet = "abcdefghijklmnopqrstuvwxyz0123456789"
    return draw(st.text(alphabet=alphabet, min_size=1, max_size=15))


class TestDefaultRoutesProperty:
    """Suffixes select the registry family."""

    @given(label=label_strategy())
    @settings(max_examples=50)
    def test_pp_ua_routes_to_nic_ua(self, label: str) -> None:
        """*For any* ``label.pp.ua``, the NIC.UA provider SHALL be chosen."""
        canonical, provider = WhoisRouter().route(f"{label}.pp.ua")
        assert canonical == f"{label}.pp.ua"
        assert isinstance(provider, NicUaProvider)

    @given(
        label=label_strategy(),
        suffix=st.sampled_from(["qzz.io", "dpdns.org", "us.kg", "xx.kg"]),
    )
    @settings(max_examples=50)
    def test_digitalplat_suffixes(self, label: str, suffix: str) -> None:
        """*For any* DigitalPlat suffix, the relay provider SHALL be chosen."""
        _, provider = WhoisRouter().route(f"{label}.{suffix}")
        assert isinstance(provider, DigitalPlatProvider)

    @given(
        label=label_strategy(),
        tld=st.sampled_from(["com", "net", "org", "io", "de", "ua", "kg"]),
    )
    @settings(max_examples=50)
    def test_other_domains_use_fallback(self, label: str, tld: str) -> None:
        """*For any* ordinary apex domain, the JSON registry SHALL be chosen."""
        assume(f"{label}.{tld}" not in MULTI_LABEL_SUFFIXES)
        _, provider = WhoisRouter().route(f"{label}.{tld}")
        assert isinstance(provider, WhoisJsonProvider)

    def test_every_allow_listed_suffix_has_a_route(self) -> None:
        router = WhoisRouter()
        for suffix in MULTI_LABEL_SUFFIXES:
            assert not isinstance(router.provider_for(f"x.{suffix}"), WhoisJsonProvider)

    def test_providers_are_distinct(self) -> None:
        providers = WhoisRouter().providers
        assert len(providers) == 3
        assert isinstance(providers[-1], WhoisJsonProvider)


class TestRejectionBeforeNetwork:
    """Invalid domains never reach a provider."""

    @pytest.mark.parametrize("domain", ["", "localhost", "www.example.com", "bad_name.com"])
    def test_lookup_raises_validation_error(self, domain: str) -> None:
        provider = RecordingProvider()
        router = WhoisRouter(routes=[], fallback=provider)

        with pytest.raises(ValidationError):
            asyncio.run(router.lookup(domain))
        assert provider.calls == []

    def test_transport_never_called(self) -> None:
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, json={})

        async def _run():
            async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
                router = WhoisRouter(WhoisConfig(api_key="k"), client=client)
                with pytest.raises(ValidationError):
                    await router.lookup("shop.example.com")

        asyncio.run(_run())
        assert calls == []


class TestLookupManyProperty:
    """Batch lookups keep input order."""

    @given(labels=st.lists(label_strategy(), min_size=1, max_size=8, unique=True))
    @settings(max_examples=30, deadline=None)
    def test_sequential_order_preserved(self, labels: list[str]) -> None:
        """*For any* list of domains, results SHALL come back in input order."""
        provider = RecordingProvider()
        router = WhoisRouter(routes=[], fallback=provider)
        domains = [f"{label}.com" for label in labels]

        records = asyncio.run(router.lookup_many(domains))

        assert [r.domain for r in records] == domains
        assert provider.calls == domains
        assert provider.max_active == 1

    @given(
        labels=st.lists(label_strategy(), min_size=2, max_size=10, unique=True),
        concurrency=st.integers(min_value=1, max_value=4),
    )
    @settings(max_examples=30, deadline=None)
    def test_concurrency_bounded(self, labels: list[str], concurrency: int) -> None:
        """*For any* concurrency limit, no more requests SHALL be in flight."""
        provider = RecordingProvider(delay=0.001)
        router = WhoisRouter(routes=[], fallback=provider)
        domains = [f"{label}.net" for label in labels]

        records = asyncio.run(router.lookup_many(domains, concurrency=concurrency))

        assert [r.domain for r in records] == domains
        assert provider.max_active <= concurrency

    def test_invalid_entries_become_failures(self) -> None:
        provider = RecordingProvider()
        router = WhoisRouter(routes=[], fallback=provider)

        records = asyncio.run(router.lookup_many(["good.com", "www.bad.com", "also.org"]))

        assert [r.success for r in records] == [True, False, True]
        assert records[1].domain == "www.bad.com"
        assert provider.calls == ["good.com", "also.org"]

    def test_concurrency_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            asyncio.run(WhoisRouter().lookup_many(["a.com"], concurrency=0))


class TestLookupSession:
    """At most one interactive lookup is in flight."""

    def test_new_domain_cancels_previous(self) -> None:
        provider = RecordingProvider(delay=0.05)
        session = LookupSession(WhoisRouter(routes=[], fallback=provider))

        async def _run():
            first = asyncio.ensure_future(session.lookup("first.com"))
            await asyncio.sleep(0.01)
            assert session.in_flight == "first.com"
            second = await session.lookup("second.com")
            with pytest.raises(asyncio.CancelledError):
                await first
            return second

        record = asyncio.run(_run())
        assert record.domain == "second.com"

    def test_same_domain_joins_running_lookup(self) -> None:
        provider = RecordingProvider(delay=0.02)
        session = LookupSession(WhoisRouter(routes=[], fallback=provider))

        async def _run():
            return await asyncio.gather(
                session.lookup("same.com"),
                session.lookup("SAME.com"),
            )

        first, second = asyncio.run(_run())
        assert first is second
        assert provider.calls == ["same.com"]

    def test_cancel_reports_whether_anything_ran(self) -> None:
        provider = RecordingProvider(delay=0.05)
        session = LookupSession(WhoisRouter(routes=[], fallback=provider))

        async def _run():
            assert session.cancel() is False
            task = asyncio.ensure_future(session.lookup("slow.com"))
            await asyncio.sleep(0.01)
            assert session.cancel() is True
            with pytest.raises(asyncio.CancelledError):
                await task
            assert session.in_flight is None

        asyncio.run(_run())

    def test_invalid_domain_keeps_current_lookup(self) -> None:
        provider = RecordingProvider(delay=0.02)
        session = LookupSession(WhoisRouter(routes=[], fallback=provider))

        async def _run():
            task = asyncio.ensure_future(session.lookup("keep.com"))
            await asyncio.sleep(0.005)
            with pytest.raises(ValidationError):
                await session.lookup("not a domain")
            return await task

        assert asyncio.run(_run()).domain == "keep.com"
