"""
Configuration for the expiry monitor.

This module defines the configuration dataclasses (WHOIS providers,
Telegram, persistence, logging, schedule), reads platform secrets from the
environment, and resolves the Telegram credentials through an explicit,
ordered list of named sources:

    stored value > platform secret (environment) > compiled-in default > empty

The chain is applied independently to the bot token and the chat id and is
resolved once into an immutable ResolvedTelegramConfig.
"""

import json
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from .models import DEFAULT_NOTIFY_DAYS

# Compiled-in defaults. Leave empty and use TG_TOKEN / TG_ID instead.
DEFAULT_TG_TOKEN = ""
DEFAULT_TG_ID = ""
DEFAULT_WHOISJSON_API_KEY = ""

DEFAULT_STATE_FILE = Path.home() / ".expiry_monitor" / "state.json"
DEFAULT_CONFIG_FILE = Path.home() / ".expiry_monitor" / "config.json"
DEFAULT_HMAC_SECRET = "default-secret-change-me"

SOURCE_STORED = "stored"
SOURCE_ENVIRONMENT = "environment"
SOURCE_DEFAULT = "default"
SOURCE_NONE = "none"


@dataclass
class EnvironmentSettings:
    """Platform-provided secrets and overrides read from the environment."""

    tg_token: Optional[str] = None
    tg_id: Optional[str] = None
    whoisjson_api_key: Optional[str] = None
    state_file: Optional[str] = None
    hmac_secret: Optional[str] = None
    language: Optional[str] = None

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "EnvironmentSettings":
        env = os.environ if environ is None else environ

        def _get(name: str) -> Optional[str]:
            value = env.get(name)
            if value is None or not value.strip():
                return None
            return value.strip()

        return cls(
            tg_token=_get("TG_TOKEN"),
            tg_id=_get("TG_ID"),
            whoisjson_api_key=_get("WHOISJSON_API_KEY"),
            state_file=_get("EXPIRY_MONITOR_STATE_FILE"),
            hmac_secret=_get("EXPIRY_MONITOR_HMAC_SECRET"),
            language=_get("EXPIRY_MONITOR_LANGUAGE"),
        )


@dataclass
class TelegramDefaults:
    """Compiled-in Telegram credentials, the last source before empty."""

    bot_token: str = DEFAULT_TG_TOKEN
    chat_id: str = DEFAULT_TG_ID


@dataclass
class TelegramConfig:
    """Telegram settings as stored by the dashboard (key ``telegram_config``)."""

    enabled: bool = False
    bot_token: str = ""
    chat_id: str = ""
    notify_days: int = DEFAULT_NOTIFY_DAYS

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "TelegramConfig":
        if not isinstance(data, dict):
            return cls()
        try:
            notify_days = int(data.get("notifyDays") or DEFAULT_NOTIFY_DAYS)
        except (TypeError, ValueError):
            notify_days = DEFAULT_NOTIFY_DAYS
        return cls(
            enabled=bool(data.get("enabled")),
            bot_token=data.get("botToken") or "",
            chat_id=str(data.get("chatId") or ""),
            notify_days=notify_days,
        )

    def to_dict(self) -> dict:
        return {
            "enabled": self.enabled,
            "botToken": self.bot_token,
            "chatId": self.chat_id,
            "notifyDays": self.notify_days,
        }


@dataclass(frozen=True)
class ResolvedTelegramConfig:
    """Effective Telegram settings for one request or run."""

    enabled: bool
    bot_token: str = field(repr=False)
    chat_id: str
    notify_days: int
    token_source: str
    chat_id_source: str

    @property
    def is_complete(self) -> bool:
        return bool(self.bot_token) and bool(self.chat_id)

    def missing(self) -> list[str]:
        """Names of the credentials that no source provided."""
        missing = []
        if not self.bot_token:
            missing.append("bot_token")
        if not self.chat_id:
            missing.append("chat_id")
        return missing


def _first_present(candidates: list[tuple[str, Optional[str]]]) -> tuple[str, str]:
    for source, value in candidates:
        if value is not None and str(value).strip():
            return str(value).strip(), source
    return "", SOURCE_NONE


def resolve_telegram_config(
    stored: Optional[TelegramConfig],
    environment: Optional[EnvironmentSettings] = None,
    defaults: Optional[TelegramDefaults] = None,
) -> ResolvedTelegramConfig:
    """
    Resolve effective Telegram credentials.

    Args:
        stored: Configuration saved through the dashboard
        environment: Platform secrets (TG_TOKEN / TG_ID)
        defaults: Compiled-in defaults

    Returns:
        ResolvedTelegramConfig; credentials no source provides are empty
    """
    stored = stored or TelegramConfig()
    environment = environment or EnvironmentSettings()
    defaults = defaults or TelegramDefaults()

    bot_token, token_source = _first_present([
        (SOURCE_STORED, stored.bot_token),
        (SOURCE_ENVIRONMENT, environment.tg_token),
        (SOURCE_DEFAULT, defaults.bot_token),
    ])
    chat_id, chat_id_source = _first_present([
        (SOURCE_STORED, stored.chat_id),
        (SOURCE_ENVIRONMENT, environment.tg_id),
        (SOURCE_DEFAULT, defaults.chat_id),
    ])

    return ResolvedTelegramConfig(
        enabled=stored.enabled,
        bot_token=bot_token,
        chat_id=chat_id,
        notify_days=stored.notify_days or DEFAULT_NOTIFY_DAYS,
        token_source=token_source,
        chat_id_source=chat_id_source,
    )


@dataclass
class WhoisConfig:
    """Upstream WHOIS provider settings."""

    api_key: str = DEFAULT_WHOISJSON_API_KEY
    timeout_seconds: float = 15.0
    # Relay used for registries whose TLS handshake fails from this network
    proxy_template: str = "https://corsproxy.io/?url={url}"
    user_agent: str = (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/143.0.0.0 Safari/537.36"
    )


@dataclass
class PersistenceConfig:
    """Key-value state file configuration."""

    state_file_path: Path = DEFAULT_STATE_FILE
    hmac_secret: str = DEFAULT_HMAC_SECRET


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "info"
    output_format: str = "text"  # 'json', 'text', 'both'


@dataclass
class ScheduleConfig:
    """Scheduled check configuration."""

    cron: str = "0 0 * * *"
    default_notify_days: int = DEFAULT_NOTIFY_DAYS


@dataclass
class SystemConfig:
    """Main configuration combining all sub-configurations."""

    whois: WhoisConfig = field(default_factory=WhoisConfig)
    telegram_defaults: TelegramDefaults = field(default_factory=TelegramDefaults)
    persistence: PersistenceConfig = field(default_factory=PersistenceConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    schedule: ScheduleConfig = field(default_factory=ScheduleConfig)
    language: str = "zh"  # 'zh' or 'en'
    environment: EnvironmentSettings = field(default_factory=EnvironmentSettings)


def create_default_config(
    environment: Optional[EnvironmentSettings] = None,
) -> SystemConfig:
    """
    Create the default configuration, letting environment values fill in.

    Args:
        environment: Environment settings (read from os.environ if None)

    Returns:
        SystemConfig with default settings
    """
    env = environment if environment is not None else EnvironmentSettings.from_env()
    config = SystemConfig(environment=env)
    _apply_environment(config, env, explicit=set())
    return config


def _apply_environment(
    config: SystemConfig, env: EnvironmentSettings, explicit: set[str]
) -> None:
    """Fill settings the config file left unset from the environment."""
    if "whois.api_key" not in explicit and env.whoisjson_api_key:
        config.whois.api_key = env.whoisjson_api_key
    if "persistence.state_file_path" not in explicit and env.state_file:
        config.persistence.state_file_path = Path(env.state_file)
    if "persistence.hmac_secret" not in explicit and env.hmac_secret:
        config.persistence.hmac_secret = env.hmac_secret
    if "language" not in explicit and env.language:
        config.language = env.language


def _section(data: dict, key: str) -> dict:
    value = data.get(key) or {}
    if not isinstance(value, dict):
        raise TypeError(f"'{key}' must be a JSON object")
    return value


def load_config_from_file(
    config_path: Path,
    environment: Optional[EnvironmentSettings] = None,
) -> Optional[SystemConfig]:
    """
    Load configuration from a JSON file.

    Values present in the file win over the environment.

    Args:
        config_path: Path to the configuration file
        environment: Environment settings (read from os.environ if None)

    Returns:
        SystemConfig if successful, None otherwise
    """
    env = environment if environment is not None else EnvironmentSettings.from_env()
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise TypeError("configuration root must be a JSON object")

        explicit: set[str] = set()

        whois_data = _section(data, "whois")
        whois = WhoisConfig()
        if whois_data.get("api_key"):
            whois.api_key = whois_data["api_key"]
            explicit.add("whois.api_key")
        whois.timeout_seconds = float(whois_data.get("timeout_seconds", whois.timeout_seconds))
        whois.proxy_template = whois_data.get("proxy_template", whois.proxy_template)
        whois.user_agent = whois_data.get("user_agent", whois.user_agent)

        telegram_data = _section(data, "telegram_defaults")
        telegram_defaults = TelegramDefaults(
            bot_token=telegram_data.get("bot_token", DEFAULT_TG_TOKEN),
            chat_id=str(telegram_data.get("chat_id", DEFAULT_TG_ID)),
        )

        persistence_data = _section(data, "persistence")
        persistence = PersistenceConfig()
        if persistence_data.get("state_file_path"):
            persistence.state_file_path = Path(persistence_data["state_file_path"])
            explicit.add("persistence.state_file_path")
        if persistence_data.get("hmac_secret"):
            persistence.hmac_secret = persistence_data["hmac_secret"]
            explicit.add("persistence.hmac_secret")

        logging_data = _section(data, "logging")
        logging_config = LoggingConfig(
            level=logging_data.get("level", "info"),
            output_format=logging_data.get("output_format", "text"),
        )

        schedule_data = _section(data, "schedule")
        schedule = ScheduleConfig(
            cron=schedule_data.get("cron", "0 0 * * *"),
            default_notify_days=int(
                schedule_data.get("default_notify_days", DEFAULT_NOTIFY_DAYS)
            ),
        )

        language = data.get("language")
        if language:
            explicit.add("language")

        config = SystemConfig(
            whois=whois,
            telegram_defaults=telegram_defaults,
            persistence=persistence,
            logging=logging_config,
            schedule=schedule,
            language=language or "zh",
            environment=env,
        )
        _apply_environment(config, env, explicit)
        return config

    except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        return None
    except FileNotFoundError:
        return None


def save_config_to_file(config: SystemConfig, config_path: Path) -> bool:
    """
    Save configuration to a JSON file.

    Environment-provided secrets are not written back.

    Args:
        config: SystemConfig to save
        config_path: Path to save the configuration

    Returns:
        True if successful, False otherwise
    """
    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "whois": {
                "timeout_seconds": config.whois.timeout_seconds,
                "proxy_template": config.whois.proxy_template,
                "user_agent": config.whois.user_agent,
            },
            "persistence": {
                "state_file_path": str(config.persistence.state_file_path),
            },
            "logging": {
                "level": config.logging.level,
                "output_format": config.logging.output_format,
            },
            "schedule": {
                "cron": config.schedule.cron,
                "default_notify_days": config.schedule.default_notify_days,
            },
            "language": config.language,
        }

        with open(config_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)

        return True

    except (OSError, TypeError) as e:
        print(f"Error saving config: {e}", file=sys.stderr)
        return False
