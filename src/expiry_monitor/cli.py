"""
Command-line interface for the expiry monitor.

Commands:
- whois: Look up a domain through the routed WHOIS providers
- check: Run one expiry check (optionally without sending)
- daemon: Run the expiry check on a cron schedule
- test-telegram: Send the Telegram test message
- test-notify: Send the notification preview for one stored domain
- config: Configuration management (show, init, validate)

A ``.env`` file in the working directory is loaded before anything reads
the environment.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from . import __version__
from .audit_logger import AuditLogger
from .config import (
    DEFAULT_CONFIG_FILE,
    EnvironmentSettings,
    SystemConfig,
    create_default_config,
    load_config_from_file,
    resolve_telegram_config,
    save_config_to_file,
)
from .enums import RunOutcome
from .exceptions import ExpiryMonitorError, ValidationError
from .i18n import SUPPORTED_LANGUAGES, get_message
from .notifications import TelegramDispatcher
from .orchestrator import ExpiryCheckOrchestrator
from .renewal import format_remaining
from .scheduler import CronParseError, CronParser, Scheduler
from .storage import DomainRepository, JsonFileStore
from .whois_router import WhoisRouter


def load_config(args: argparse.Namespace) -> Optional[SystemConfig]:
    """Load the config file named on the command line, or the default one."""
    environment = EnvironmentSettings.from_env()
    config_path = Path(args.config) if getattr(args, "config", None) else DEFAULT_CONFIG_FILE

    config = load_config_from_file(config_path, environment)
    if config is None:
        if getattr(args, "config", None):
            print(f"Error: Could not load config from {args.config}", file=sys.stderr)
            return None
        config = create_default_config(environment)

    if getattr(args, "language", None):
        config.language = args.language
    if getattr(args, "verbose", False):
        config.logging.level = "debug"
    return config


def create_logger(config: SystemConfig) -> AuditLogger:
    return AuditLogger.from_level_name(
        config.logging.level,
        output_format=config.logging.output_format,
    )


def create_orchestrator(config: SystemConfig, logger: AuditLogger) -> ExpiryCheckOrchestrator:
    store = JsonFileStore(
        config.persistence.state_file_path,
        config.persistence.hmac_secret,
    )
    return ExpiryCheckOrchestrator(
        repository=DomainRepository(store),
        dispatcher=TelegramDispatcher(logger=logger),
        environment=config.environment,
        telegram_defaults=config.telegram_defaults,
        language=config.language,
        logger=logger,
    )


async def run_whois(domain: str, config: SystemConfig, as_json: bool) -> int:
    """
    Look up and print one domain.

    Returns:
        Exit code (0 on a successful lookup)
    """
    language = config.language
    logger = create_logger(config)

    async with WhoisRouter(config.whois, logger=logger) as router:
        try:
            record = await router.lookup(domain)
        except ValidationError as e:
            print(get_message(f"validation.{e.code}", language), file=sys.stderr)
            return 2

    if as_json:
        print(json.dumps(record.to_dict(), indent=2, ensure_ascii=False, default=str))
        return 0 if record.success else 1

    if not record.success:
        print(get_message("error.whois_failed", language, error=record.error), file=sys.stderr)
        return 1

    if record.registered is False:
        print(get_message("cli.unregistered", language, domain=record.domain))
        return 0

    print(record.domain)
    rows = [
        ("registrar", record.registrar.name if record.registrar else None),
        ("registered", record.registration_date),
        ("expires", record.expiry_date),
        ("updated", record.last_updated),
        ("nameservers", ", ".join(record.nameservers or []) or None),
        ("status", ", ".join(record.status or []) or None),
    ]
    for label, value in rows:
        if value:
            print(f"  {label:<12} {value}")
    return 0


async def run_check(config: SystemConfig, dry_run: bool) -> int:
    """
    Run one expiry check and print a summary.

    Returns:
        Exit code (1 when the run or the dispatch failed)
    """
    language = config.language
    logger = create_logger(config)
    orchestrator = create_orchestrator(config, logger)

    report = await orchestrator.run_scheduled_check(dry_run=dry_run)

    if report.outcome == RunOutcome.RUN_FAILED:
        print(get_message("cli.check_failed", language, error="; ".join(report.errors)), file=sys.stderr)
        return 1
    if report.outcome == RunOutcome.NOTHING_TO_NOTIFY:
        print(get_message("cli.check_nothing", language))
        return 0

    print(get_message(
        "cli.check_summary",
        language,
        expiring=len(report.batch.expiring),
        expired=len(report.batch.expired),
    ))
    for entry in report.batch.expiring:
        remaining = format_remaining(entry.days_left, language)
        print(f"  {entry.name:<30} {entry.expiry_date}  {remaining}")
    for entry in report.batch.expired:
        print(f"  {entry.name:<30} {entry.expiry_date}  ({entry.days_left})")

    if report.outcome == RunOutcome.DRY_RUN:
        print()
        print(report.message)
        return 0
    if report.outcome == RunOutcome.NOTIFICATIONS_DISABLED:
        print(get_message("cli.check_disabled", language))
        return 0
    if report.outcome == RunOutcome.DISPATCH_FAILED:
        print(get_message("cli.check_failed", language, error="; ".join(report.errors)), file=sys.stderr)
        return 1

    print(get_message("cli.check_notified", language))
    return 0


async def run_daemon(config: SystemConfig, cron: str) -> int:
    """Run scheduled checks until interrupted."""
    logger = create_logger(config)
    orchestrator = create_orchestrator(config, logger)
    scheduler = Scheduler(logger=logger)
    scheduler.schedule("expiry-check", cron, orchestrator.run_scheduled_check)

    print(get_message("cli.daemon_started", config.language, cron=cron))
    try:
        await scheduler.run()
    finally:
        print(get_message("cli.daemon_stopped", config.language))
    return 0


def cmd_whois(args: argparse.Namespace) -> int:
    """Handle the 'whois' command."""
    config = load_config(args)
    if config is None:
        return 1
    return asyncio.run(run_whois(args.domain, config, args.json))


def cmd_check(args: argparse.Namespace) -> int:
    """Handle the 'check' command."""
    config = load_config(args)
    if config is None:
        return 1
    return asyncio.run(run_check(config, args.dry_run))


def cmd_daemon(args: argparse.Namespace) -> int:
    """Handle the 'daemon' command."""
    config = load_config(args)
    if config is None:
        return 1

    cron = args.cron or config.schedule.cron
    try:
        CronParser().parse(cron)
    except CronParseError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    try:
        return asyncio.run(run_daemon(config, cron))
    except KeyboardInterrupt:
        return 0


def _run_test(args: argparse.Namespace, domain_id: Optional[str]) -> int:
    config = load_config(args)
    if config is None:
        return 1

    orchestrator = create_orchestrator(config, create_logger(config))
    try:
        if domain_id is None:
            message = asyncio.run(orchestrator.send_test_notification())
        else:
            message = asyncio.run(orchestrator.send_domain_test_notification(domain_id))
    except ExpiryMonitorError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1

    print(message)
    return 0


def cmd_test_telegram(args: argparse.Namespace) -> int:
    """Handle the 'test-telegram' command."""
    return _run_test(args, None)


def cmd_test_notify(args: argparse.Namespace) -> int:
    """Handle the 'test-notify' command."""
    return _run_test(args, args.domain_id)


def cmd_config(args: argparse.Namespace) -> int:
    """Handle the 'config' command."""
    config_path = Path(args.config) if args.config else DEFAULT_CONFIG_FILE
    language = args.language
    environment = EnvironmentSettings.from_env()

    if args.action == "show":
        config = load_config_from_file(config_path, environment)
        if config is None:
            print(f"No configuration found at: {config_path}")
            print("Use 'config init' to create a default configuration.")
            return 1

        telegram = resolve_telegram_config(None, environment, config.telegram_defaults)
        print(f"Configuration from: {config_path}")
        print(f"  Language: {config.language}")
        print(f"  State file: {config.persistence.state_file_path}")
        print(f"  Schedule: {config.schedule.cron}")
        print(f"  Log level: {config.logging.level} ({config.logging.output_format})")
        print(f"  WhoisJSON API key: {'set' if config.whois.api_key else 'not set'}")
        print(f"  Telegram bot token source: {telegram.token_source}")
        print(f"  Telegram chat id source: {telegram.chat_id_source}")
        return 0

    if args.action == "init":
        if config_path.exists() and not args.force:
            print(get_message("cli.config_exists", language, path=config_path))
            print("Use --force to overwrite.")
            return 1

        config = create_default_config(environment)
        if language:
            config.language = language
        if save_config_to_file(config, config_path):
            print(get_message("cli.config_created", language, path=config_path))
            return 0
        return 1

    if args.action == "validate":
        config = load_config_from_file(config_path, environment)
        if config is None:
            print(f"Error: Could not load config from {config_path}", file=sys.stderr)
            return 1
        try:
            CronParser().parse(config.schedule.cron)
        except CronParseError as e:
            print(get_message("cli.config_invalid", language, error=e), file=sys.stderr)
            return 1
        if config.language not in SUPPORTED_LANGUAGES:
            print(
                get_message("cli.config_invalid", language, error=f"language '{config.language}'"),
                file=sys.stderr,
            )
            return 1
        print(get_message("cli.config_valid", language))
        return 0

    return 1


def _add_common(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config", "-c",
        help="Path to configuration file",
    )
    parser.add_argument(
        "--language", "-l",
        choices=sorted(SUPPORTED_LANGUAGES),
        default=None,
        help="Output language (default: from configuration, zh)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging",
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="expiry-monitor",
        description="Domain expiry monitor with WHOIS lookup and Telegram reminders",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    whois_parser = subparsers.add_parser("whois", help="Look up a domain's WHOIS record")
    whois_parser.add_argument("domain", help="Apex domain to look up")
    whois_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the canonical record as JSON",
    )
    _add_common(whois_parser)
    whois_parser.set_defaults(func=cmd_whois)

    check_parser = subparsers.add_parser("check", help="Run one expiry check")
    check_parser.add_argument(
        "--dry-run", "-n",
        action="store_true",
        help="Print the notification instead of sending it",
    )
    _add_common(check_parser)
    check_parser.set_defaults(func=cmd_check)

    daemon_parser = subparsers.add_parser("daemon", help="Run expiry checks on a cron schedule")
    daemon_parser.add_argument(
        "--cron",
        help="Cron expression (default: from configuration, '0 0 * * *')",
    )
    _add_common(daemon_parser)
    daemon_parser.set_defaults(func=cmd_daemon)

    test_telegram_parser = subparsers.add_parser(
        "test-telegram",
        help="Send the Telegram test message",
    )
    _add_common(test_telegram_parser)
    test_telegram_parser.set_defaults(func=cmd_test_telegram)

    test_notify_parser = subparsers.add_parser(
        "test-notify",
        help="Send the notification preview for one domain",
    )
    test_notify_parser.add_argument("domain_id", help="Stored domain id")
    _add_common(test_notify_parser)
    test_notify_parser.set_defaults(func=cmd_test_notify)

    config_parser = subparsers.add_parser("config", help="Configuration management")
    config_parser.add_argument(
        "action",
        choices=["show", "init", "validate"],
        help="Configuration action",
    )
    config_parser.add_argument(
        "--force", "-f",
        action="store_true",
        help="Force overwrite existing configuration",
    )
    _add_common(config_parser)
    config_parser.set_defaults(func=cmd_config)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    load_dotenv()

    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
