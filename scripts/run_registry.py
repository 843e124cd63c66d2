#!/usr/bin/env python3
"""
Scheduled entry point for the Drive registry.

Each invocation performs one time-bounded run and exits; progress that
does not fit in the time budget is checkpointed for the next invocation.
Designed to be run on a schedule (e.g., via cron or Cloud Scheduler).

Usage:
    python scripts/run_registry.py crawl [--config CONFIG_PATH] [--verbose]
    python scripts/run_registry.py sync
    python scripts/run_registry.py reset
    python scripts/run_registry.py status
"""

import argparse
import json
import sys

import structlog

from drive_registry.models.reports import RunStatus
from drive_registry.remote.errors import RemoteError
from drive_registry.service import RegistryService
from drive_registry.utils.config_loader import ConfigLoader, ConfigurationError
from drive_registry.utils.logging_config import configure_logging

log = structlog.stdlib.get_logger()

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_INTERRUPTED = 3


def parse_arguments() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Crawl and incrementally track a Google Drive folder tree",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Start or resume the full crawl
  python scripts/run_registry.py crawl

  # Apply pending changes since the last successful sync
  python scripts/run_registry.py sync --config config/production.yaml

  # Forget the frontier and take a fresh cursor
  python scripts/run_registry.py reset
        """,
    )
    parser.add_argument(
        "command",
        choices=["crawl", "sync", "reset", "status"],
        help="Operation to run",
    )
    parser.add_argument(
        "--config",
        "-c",
        type=str,
        help="Path to configuration YAML file (default: config/default.yaml)",
        default=None,
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging (DEBUG level)",
        default=False,
    )
    return parser.parse_args()


def print_summary(command: str, summary: dict) -> None:
    print("\n" + "=" * 60)
    print(f"{command.upper()} SUMMARY")
    print("=" * 60)
    for key, value in summary.items():
        print(f"{key}: {value}")
    print("=" * 60)


def main() -> None:
    """Main entry point for scheduled runs."""
    args = parse_arguments()

    try:
        config = ConfigLoader().load_config(args.config)
    except ConfigurationError as e:
        configure_logging(log_level="INFO", json_logs=False)
        log.error("configuration_error", error=str(e))
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(EXIT_FAILED)

    configure_logging(
        log_level="DEBUG" if args.verbose else config.logging.log_level,
        json_logs=config.logging.json_logs,
        log_file=config.logging.log_file,
    )

    service = RegistryService.from_config(config)

    if args.command == "status":
        print(json.dumps(service.describe_state(), indent=2))
        sys.exit(EXIT_OK)

    if args.command == "reset":
        try:
            cursor = service.reset_state()
        except RemoteError as e:
            log.error("reset_failed", error=str(e))
            sys.exit(EXIT_FAILED)
        print_summary("reset", {"Status": "reset", "Cursor": cursor})
        sys.exit(EXIT_OK)

    if args.command == "crawl":
        report = service.run_full_crawl()
    else:
        report = service.run_incremental_sync()

    summary = report.model_dump(mode="json", exclude={"errors"})
    summary["error_count"] = len(report.errors)
    print_summary(args.command, summary)

    if report.status is RunStatus.FAILED:
        sys.exit(EXIT_FAILED)
    if report.status is RunStatus.INTERRUPTED:
        sys.exit(EXIT_INTERRUPTED)
    sys.exit(EXIT_OK)


if __name__ == "__main__":
    main()
