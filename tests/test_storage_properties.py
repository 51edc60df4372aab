"""
Property-based tests for the key-value stores and the domain repository.

Uses Hypothesis to verify HMAC protection of the state file and that
domain records survive a round trip with their extra fields intact.
"""

import json
import tempfile
from pathlib import Path

import pytest
from hypothesis import assume, given, settings
from hypothesis import strategies as st

from expiry_monitor.config import TelegramConfig
from expiry_monitor.enums import RenewUnit
from expiry_monitor.exceptions import PersistenceError, RecordNotFoundError, TamperingError
from expiry_monitor.models import DomainRecord, NotifySettings, RenewCycle
from expiry_monitor.storage import (
    DOMAINS_KEY,
    DomainRepository,
    InMemoryStore,
    JsonFileStore,
    KeyValueStore,
)


keys = st.text(alphabet=st.sampled_from("abcdefghijklmnopqrstuvwxyz_"), min_size=1, max_size=20)
values = st.text(min_size=0, max_size=100)
secrets = st.text(
    alphabet=st.sampled_from("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"),
    min_size=8,
    max_size=40,
)


@st.composite
def domain_record_strategy(draw) -> DomainRecord:
    """Generate stored domain records, including dashboard-only fields."""
    label = draw(st.text(alphabet="abcdefghijklmnopqrstuvwxyz", min_size=1, max_size=12))
    return DomainRecord(
        id=draw(st.uuids()).hex,
        name=f"{label}.com",
        registration_date=draw(st.dates()).isoformat(),
        expiry_date=draw(st.dates()).isoformat(),
        renew_cycle=RenewCycle(
            draw(st.integers(min_value=1, max_value=10)),
            draw(st.sampled_from(list(RenewUnit))),
        ),
        last_renewed=draw(st.one_of(st.none(), st.dates().map(lambda d: d.isoformat()))),
        registrar=draw(st.one_of(st.none(), st.text(min_size=1, max_size=20))),
        renew_link=draw(st.one_of(st.none(), st.just("https://registrar.example/renew"))),
        notify_settings=NotifySettings(
            use_global_settings=draw(st.booleans()),
            enabled=draw(st.booleans()),
            notify_days=draw(st.integers(min_value=1, max_value=365)),
        ),
        extra={
            "category": draw(st.sampled_from(["personal", "work", ""])),
            "notes": draw(st.text(max_size=30)),
            "price": draw(st.integers(min_value=0, max_value=1000)),
        },
    )


class TestHMACProtectionProperty:
    """The state file is HMAC protected."""

    @given(key=keys, value=values, secret=secrets)
    @settings(max_examples=50, deadline=None)
    def test_round_trip(self, key: str, value: str, secret: str) -> None:
        """*For any* stored value, a fresh store with the same secret SHALL read it back."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "state.json"
            JsonFileStore(path, secret).put(key, value)

            assert JsonFileStore(path, secret).get(key) == value

    @given(key=keys, value=values, secret=secrets)
    @settings(max_examples=50, deadline=None)
    def test_modified_file_rejected(self, key: str, value: str, secret: str) -> None:
        """*For any* edit made outside the store, loading SHALL raise TamperingError."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "state.json"
            JsonFileStore(path, secret).put(key, value)

            data = json.loads(path.read_text(encoding="utf-8"))
            data["entries"][key] = value + "x"
            path.write_text(json.dumps(data), encoding="utf-8")

            with pytest.raises(TamperingError) as exc_info:
                JsonFileStore(path, secret).get(key)
            assert exc_info.value.code == "hmac_mismatch"

    @given(key=keys, value=values, secret=secrets, other=secrets)
    @settings(max_examples=50, deadline=None)
    def test_wrong_secret_rejected(self, key: str, value: str, secret: str, other: str) -> None:
        assume(secret != other)
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "state.json"
            JsonFileStore(path, secret).put(key, value)

            with pytest.raises(TamperingError):
                JsonFileStore(path, other).get(key)

    def test_missing_file_is_empty(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            store = JsonFileStore(Path(tmpdir) / "absent.json", "secret")
            assert store.get("domains") is None

    def test_corrupt_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "state.json"
            path.write_text("{broken", encoding="utf-8")

            with pytest.raises(PersistenceError) as exc_info:
                JsonFileStore(path, "secret").get("domains")
            assert exc_info.value.code == "parse_error"

    def test_reload_sees_external_write(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "state.json"
            reader = JsonFileStore(path, "secret")
            assert reader.get("k") is None

            JsonFileStore(path, "secret").put("k", "v")
            assert reader.get("k") is None
            reader.reload()
            assert reader.get("k") == "v"


class TestRepositoryProperty:
    """Typed access to the stored documents."""

    @given(domains=st.lists(domain_record_strategy(), max_size=5))
    @settings(max_examples=50)
    def test_domains_round_trip(self, domains: list[DomainRecord]) -> None:
        """*For any* domains, write then read SHALL return equal records in order."""
        repository = DomainRepository(InMemoryStore())
        repository.put_domains(domains)

        assert repository.get_domains() == domains

    def test_unknown_fields_survive(self) -> None:
        raw = [{
            "id": "1",
            "name": "example.com",
            "registrationDate": "2020-01-01",
            "expiryDate": "2026-01-01",
            "renewCycle": {"value": 1, "unit": "year"},
            "category": "work",
            "tags": ["a", "b"],
        }]
        store = InMemoryStore({DOMAINS_KEY: json.dumps(raw)})
        repository = DomainRepository(store)

        repository.put_domains(repository.get_domains())

        stored = json.loads(store.get(DOMAINS_KEY))[0]
        assert stored["category"] == "work"
        assert stored["tags"] == ["a", "b"]

    def test_missing_sub_objects_get_defaults(self) -> None:
        store = InMemoryStore({DOMAINS_KEY: json.dumps([
            {"id": "1", "name": "a.com", "expiryDate": "2026-01-01",
             "renewCycle": {"value": 2, "unit": "fortnight"}},
        ])})
        domain = DomainRepository(store).get_domain("1")

        assert domain.renew_cycle == RenewCycle()
        assert domain.notify_settings == NotifySettings()

    def test_get_domain_not_found(self) -> None:
        repository = DomainRepository(InMemoryStore())
        with pytest.raises(RecordNotFoundError) as exc_info:
            repository.get_domain("missing")
        assert exc_info.value.code == "domain_not_found"

    def test_non_json_value(self) -> None:
        repository = DomainRepository(InMemoryStore({DOMAINS_KEY: "not json"}))
        with pytest.raises(PersistenceError):
            repository.get_domains()

    def test_telegram_config_round_trip(self) -> None:
        repository = DomainRepository(InMemoryStore())
        assert repository.get_telegram_config() == TelegramConfig()

        config = TelegramConfig(enabled=True, bot_token="t", chat_id="42", notify_days=7)
        repository.put_telegram_config(config)

        assert repository.get_telegram_config() == config

    def test_file_store_backs_repository(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            store = JsonFileStore(Path(tmpdir) / "state.json", "secret")
            DomainRepository(store).put_telegram_config(TelegramConfig(enabled=True))

            reopened = DomainRepository(JsonFileStore(Path(tmpdir) / "state.json", "secret"))
            assert reopened.get_telegram_config().enabled

    def test_stores_satisfy_protocol(self) -> None:
        assert isinstance(InMemoryStore(), KeyValueStore)
        assert isinstance(JsonFileStore(Path("unused.json"), "s"), KeyValueStore)
