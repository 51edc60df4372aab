"""
Key-value storage for tracked domains and Telegram settings.

The core treats storage as an opaque string key-value store. Two stores
are provided:

- InMemoryStore: process-local dict, used by tests and dry runs
- JsonFileStore: one JSON file protected by an HMAC-SHA256 over its
  contents; a mismatch raises TamperingError

DomainRepository reads and writes the two collections the core needs,
``domains`` and ``telegram_config``, always as whole JSON documents. There
is no locking: two concurrent read-modify-write cycles on the same key
are last-write-wins.
"""

import hashlib
import hmac
import json
from abc import abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Protocol, runtime_checkable

from .config import TelegramConfig
from .exceptions import PersistenceError, RecordNotFoundError, TamperingError
from .models import DomainRecord

DOMAINS_KEY = "domains"
TELEGRAM_CONFIG_KEY = "telegram_config"


@runtime_checkable
class KeyValueStore(Protocol):
    """Protocol for string key-value stores."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the stored value, or None if the key is absent."""
        ...

    @abstractmethod
    def put(self, key: str, value: str) -> None:
        """Store a value, replacing any previous one."""
        ...


class InMemoryStore:
    """Dictionary-backed store."""

    def __init__(self, initial: Optional[dict[str, str]] = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def put(self, key: str, value: str) -> None:
        self._data[key] = value

    def keys(self) -> list[str]:
        return list(self._data)


class JsonFileStore:
    """
    File-backed store with HMAC protection.

    The file holds ``{"version", "entries", "last_updated", "hmac"}``. The
    HMAC covers everything except itself, so any edit made outside this
    class is detected on the next load.
    """

    VERSION = 1

    def __init__(self, file_path: Path, hmac_secret: str) -> None:
        """
        Args:
            file_path: Path to the JSON state file
            hmac_secret: Secret key for HMAC computation
        """
        self._file_path = Path(file_path)
        self._hmac_secret = hmac_secret.encode("utf-8")
        self._entries: Optional[dict[str, str]] = None

    @property
    def file_path(self) -> Path:
        return self._file_path

    def get(self, key: str) -> Optional[str]:
        """
        Raises:
            TamperingError: If the file fails HMAC validation
            PersistenceError: If the file cannot be read or parsed
        """
        return self._load().get(key)

    def put(self, key: str, value: str) -> None:
        """
        Raises:
            PersistenceError: If the file cannot be written
        """
        entries = dict(self._load())
        entries[key] = value
        self._save(entries)

    def reload(self) -> None:
        """Drop the cached contents so the next access re-reads the file."""
        self._entries = None

    def _load(self) -> dict[str, str]:
        if self._entries is not None:
            return self._entries

        if not self._file_path.exists():
            self._entries = {}
            return self._entries

        try:
            with open(self._file_path, "r", encoding="utf-8") as f:
                raw_data = json.load(f)
        except json.JSONDecodeError as e:
            raise PersistenceError(
                code="parse_error",
                message=f"Failed to parse state file: {e}",
                details={"file_path": str(self._file_path)},
            )
        except OSError as e:
            raise PersistenceError(
                code="io_error",
                message=f"Failed to read state file: {e}",
                details={"file_path": str(self._file_path)},
            )

        if not isinstance(raw_data, dict):
            raise PersistenceError(
                code="parse_error",
                message="State file does not contain a JSON object",
                details={"file_path": str(self._file_path)},
            )

        stored_hmac = str(raw_data.get("hmac", ""))
        computed_hmac = self.compute_hmac({
            "version": raw_data.get("version"),
            "entries": raw_data.get("entries", {}),
            "last_updated": raw_data.get("last_updated"),
        })
        if not hmac.compare_digest(stored_hmac, computed_hmac):
            raise TamperingError(
                code="hmac_mismatch",
                message="HMAC validation failed - state file may have been tampered with",
                details={"file_path": str(self._file_path)},
            )

        entries = raw_data.get("entries", {})
        if not isinstance(entries, dict):
            raise PersistenceError(
                code="parse_error",
                message="State file entries are not an object",
                details={"file_path": str(self._file_path)},
            )
        self._entries = {str(k): str(v) for k, v in entries.items()}
        return self._entries

    def _save(self, entries: dict[str, str]) -> None:
        now = datetime.now(timezone.utc).isoformat()
        body = {
            "version": self.VERSION,
            "entries": entries,
            "last_updated": now,
        }
        output = dict(body, hmac=self.compute_hmac(body))

        try:
            self._file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self._file_path, "w", encoding="utf-8") as f:
                json.dump(output, f, indent=2, sort_keys=True, ensure_ascii=False)
        except OSError as e:
            raise PersistenceError(
                code="io_error",
                message=f"Failed to write state file: {e}",
                details={"file_path": str(self._file_path)},
            )
        self._entries = entries

    def compute_hmac(self, data: dict) -> str:
        """HMAC-SHA256 over the canonical JSON serialization of ``data``."""
        serialized = json.dumps(data, sort_keys=True, separators=(",", ":"))
        return hmac.new(
            self._hmac_secret,
            serialized.encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()


class DomainRepository:
    """Typed access to the ``domains`` and ``telegram_config`` documents."""

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    @property
    def store(self) -> KeyValueStore:
        return self._store

    def _get_json(self, key: str, default):
        raw = self._store.get(key)
        if raw is None or raw == "":
            return default
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise PersistenceError(
                code="parse_error",
                message=f"Stored value for '{key}' is not valid JSON: {e}",
                details={"key": key},
            )

    def get_domains(self) -> list[DomainRecord]:
        """Return every tracked domain in stored order."""
        data = self._get_json(DOMAINS_KEY, [])
        if not isinstance(data, list):
            raise PersistenceError(
                code="parse_error",
                message="Stored domains are not a list",
                details={"key": DOMAINS_KEY},
            )
        return [DomainRecord.from_dict(item) for item in data if isinstance(item, dict)]

    def get_domain(self, domain_id: str) -> DomainRecord:
        """
        Raises:
            RecordNotFoundError: If no domain has this id
        """
        for domain in self.get_domains():
            if domain.id == domain_id:
                return domain
        raise RecordNotFoundError(
            code="domain_not_found",
            message=f"Domain not found: {domain_id}",
            details={"domain_id": domain_id},
        )

    def put_domains(self, domains: list[DomainRecord]) -> None:
        self._store.put(
            DOMAINS_KEY,
            json.dumps([d.to_dict() for d in domains], ensure_ascii=False),
        )

    def get_telegram_config(self) -> TelegramConfig:
        return TelegramConfig.from_dict(self._get_json(TELEGRAM_CONFIG_KEY, {}))

    def put_telegram_config(self, config: TelegramConfig) -> None:
        self._store.put(
            TELEGRAM_CONFIG_KEY,
            json.dumps(config.to_dict(), ensure_ascii=False),
        )
