"""CLI entry point for the SafeSpace alert service.

Usage:
    python -m safespace_alerts [options]
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import logging.config
import sys
from typing import NoReturn

from pydantic import ValidationError

from safespace_alerts import __version__
from safespace_alerts.config import Settings, clear_settings_cache, get_settings
from safespace_alerts.detector.audio import AudioAlertDetector
from safespace_alerts.detector.geofence import GeofenceMonitor
from safespace_alerts.detector.scorer import TextThreatMonitor
from safespace_alerts.notifier.dispatcher import NotificationDispatcher
from safespace_alerts.notifier.gateway import close_gateway, get_gateway
from safespace_alerts.notifier.health import GatewayHealthMonitor, service_status
from safespace_alerts.server import AlertServer
from safespace_alerts.service import AlertService
from safespace_alerts.shutdown import ServiceShutdown
from safespace_alerts.storage.database import Database
from safespace_alerts.storage.repos import OutcomeLog

APP_NAME = "SafeSpace Alerts"
APP_VERSION = __version__

# Exit codes
EXIT_SUCCESS = 0
EXIT_ERROR = 1
EXIT_CONFIG_ERROR = 2
EXIT_INTERRUPTED = 130


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI.

    Returns:
        Configured ArgumentParser instance.
    """
    parser = argparse.ArgumentParser(
        prog="safespace-alerts",
        description="Notify emergency contacts when SafeSpace alerts are raised.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m safespace_alerts                    Run the alert service
  python -m safespace_alerts --config-check     Validate config and exit
  python -m safespace_alerts --dry-run          Record notifications without sending
  python -m safespace_alerts --log-level DEBUG  Enable debug logging
        """,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {APP_VERSION}",
    )
    parser.add_argument(
        "--config-check",
        action="store_true",
        help="Validate configuration and exit without serving",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Override logging level (default: from settings)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Render and record notifications but don't send email",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Override HTTP port (default: from settings)",
    )

    return parser


def configure_logging(level: str) -> None:
    """Configure logging for the application.

    Args:
        level: Logging level string (DEBUG, INFO, etc.)
    """
    config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "detailed": {
                "format": (
                    "%(asctime)s [%(levelname)s] %(name)s (%(filename)s:%(lineno)d): %(message)s"
                ),
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": "detailed" if level == "DEBUG" else "standard",
                "stream": "ext://sys.stdout",
            },
        },
        "root": {
            "level": level,
            "handlers": ["console"],
        },
        "loggers": {
            "httpx": {"level": "WARNING"},
            "httpcore": {"level": "WARNING"},
            "aiohttp.access": {"level": "WARNING"},
            "sqlalchemy.engine": {"level": "WARNING"},
        },
    }
    logging.config.dictConfig(config)


def print_banner() -> None:
    """Print the startup banner."""
    print(f"\n{APP_NAME} v{APP_VERSION}\n{'=' * 40}\n")


def print_config_summary(settings: Settings, dry_run: bool) -> None:
    """Print a summary of the configuration.

    Args:
        settings: Application settings.
        dry_run: Whether dry-run mode is enabled.
    """
    summary = settings.redacted_summary()
    print("Configuration:")
    print(f"  Database: {summary['database_url']}")
    print(f"  Resend API Key: {summary['resend_api_key']}")
    print(f"  Sender: {summary['resend_from_address']}")
    print(f"  Log Level: {summary['log_level']}")
    print(f"  HTTP Port: {summary['http_port']}")
    print(f"  Probe Before Send: {summary['probe_before_send']}")
    print(f"  Dry Run: {dry_run}")
    print()


def validate_config() -> Settings | None:
    """Validate and load configuration.

    Returns:
        Settings instance if valid, None if invalid.
    """
    try:
        clear_settings_cache()
        return get_settings()
    except ValidationError as e:
        print("Configuration validation failed:", file=sys.stderr)
        for error in e.errors():
            field = ".".join(str(loc) for loc in error["loc"])
            print(f"  {field}: {error['msg']}", file=sys.stderr)
        return None


def run_config_check(settings: Settings) -> int:
    """Print the configuration and report which components are usable.

    Args:
        settings: Validated settings.

    Returns:
        Exit code (0 for success).
    """
    print("Configuration is valid!")
    print()
    print_config_summary(settings, dry_run=settings.dry_run)

    print("Checking component availability...")
    if settings.resend.enabled:
        print("  Email delivery: configured")
    else:
        print("  Email delivery: not configured (notifications will be skipped)")

    print()
    print("All checks passed. Ready to run.")
    return EXIT_SUCCESS


async def run_service(
    settings: Settings,
    dry_run: bool,
    port: int | None = None,
) -> int:
    """Run the HTTP service until a shutdown signal arrives.

    Args:
        settings: Application settings.
        dry_run: Whether to skip sending email.
        port: HTTP port override.

    Returns:
        Exit code.
    """
    logger = logging.getLogger(__name__)
    shutdown = ServiceShutdown()

    try:
        async with shutdown:
            database = Database(settings.database.url)
            shutdown.register_cleanup(database.close)
            await database.create_tables()

            gateway = get_gateway(settings.resend)
            shutdown.register_cleanup(close_gateway)

            health_monitor = GatewayHealthMonitor(
                gateway, cache_seconds=settings.health_cache_seconds
            )
            health = await health_monitor.check_health()
            logger.info("Email delivery: %s", service_status(health))

            dispatcher = NotificationDispatcher(
                gateway,
                OutcomeLog(database),
                health_monitor=health_monitor,
                probe_before_send=settings.probe_before_send,
                dry_run=dry_run,
            )
            service = AlertService(database, dispatcher)
            server = AlertServer(
                dispatcher,
                health_monitor,
                service,
                text_monitor=TextThreatMonitor(service),
                audio_detector=AudioAlertDetector(
                    service,
                    threshold=settings.detector.audio_threshold,
                    cooldown_seconds=settings.detector.audio_cooldown_seconds,
                ),
                geofence=GeofenceMonitor(service),
            )

            await server.start(settings.http_host, port or settings.http_port)
            shutdown.register_cleanup(server.stop)

            logger.info("Service running. Press Ctrl+C to stop.")
            await shutdown.wait()

        return EXIT_SUCCESS
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return EXIT_INTERRUPTED
    except Exception as e:
        logger.exception("Service failed: %s", e)
        return EXIT_ERROR


def main(argv: list[str] | None = None) -> NoReturn:
    """Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:]).
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    settings = validate_config()
    if settings is None:
        sys.exit(EXIT_CONFIG_ERROR)

    configure_logging(args.log_level or settings.log_level)
    print_banner()

    if args.config_check:
        sys.exit(run_config_check(settings))

    dry_run = args.dry_run or settings.dry_run
    print_config_summary(settings, dry_run)

    exit_code = asyncio.run(run_service(settings, dry_run, args.port))
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
