#!/usr/bin/env python3
"""
CLI for Zotero → vault sync passes.

Usage:
    zotsync sync  [--library /users/123] [--offline] [--dry-run] [--watch] [--json]
    zotsync plan  [--library /users/123] [--offline]
    zotsync clear --library /users/123
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from zotsync.config.config_loader import SyncConfig
from zotsync.core.errors import ConfigurationError
from zotsync.core.models import Library
from zotsync.runner.sync_runner import PassStatus, SyncReport, SyncRunner, SyncTrigger


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    log_level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def resolve_library(runner: SyncRunner, prefix: str) -> Library:
    """Find a library by prefix among the known ones, or make one up."""
    for library in runner.libraries + runner.snapshot_store.list_libraries():
        if library.prefix == prefix:
            return library
    library_type = "group" if prefix.startswith("/groups/") else "user"
    return Library(prefix=prefix, type=library_type)


def run_reports(runner: SyncRunner, args, trigger: SyncTrigger, dry_run: bool) -> List[SyncReport]:
    if args.library:
        return [runner.sync_library(resolve_library(runner, args.library), trigger, dry_run)]
    return runner.sync_all(trigger, dry_run)


def print_reports(reports: List[SyncReport], as_json: bool, show_plan: bool = False) -> None:
    for report in reports:
        print(report.summary())
        if show_plan:
            for line in report.planned:
                print(f"    {line}")
    if as_json:
        print("\n" + json.dumps([r.to_dict() for r in reports], indent=2))


def cmd_sync(args, config: SyncConfig) -> int:
    """Run sync passes."""
    logger = logging.getLogger(__name__)

    runner = SyncRunner.from_config(config, fetch=not args.offline)
    try:
        reports = run_reports(runner, args, SyncTrigger.STARTUP if args.watch else SyncTrigger.MANUAL, args.dry_run)
        print_reports(reports, args.json)

        if args.watch:
            interval = float(config.get("sync.interval_seconds", 0.0)) or 300.0
            runner.start_timer(interval)
            logger.info("Watching for changes, press Ctrl+C to stop")
            try:
                while not runner.wait_for_timer(3600):
                    pass
            except KeyboardInterrupt:
                logger.info("Stopping periodic sync")
            finally:
                runner.stop_timer(timeout=5)
    finally:
        if runner.connector is not None:
            runner.connector.close()

    failed = [r for r in reports if r.status == PassStatus.FAILED.value or r.has_errors]
    return 0 if not failed else 1


def cmd_plan(args, config: SyncConfig) -> int:
    """Show the operations a sync would perform."""
    runner = SyncRunner.from_config(config, fetch=not args.offline)
    try:
        reports = run_reports(runner, args, SyncTrigger.MANUAL, dry_run=True)
    finally:
        if runner.connector is not None:
            runner.connector.close()

    print_reports(reports, args.json, show_plan=True)
    return 0 if all(r.status != PassStatus.FAILED.value for r in reports) else 1


def cmd_clear(args, config: SyncConfig) -> int:
    """Forget the sync status of a library."""
    logger = logging.getLogger(__name__)

    runner = SyncRunner.from_config(config, fetch=False)
    library = resolve_library(runner, args.library)
    if runner.clear_status(library):
        logger.info(f"Cleared status of {library.prefix}; the next sync rebuilds all notes")
    else:
        logger.info(f"No status stored for {library.prefix}")
    return 0


def parse_args(argv: Optional[List[str]] = None):
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Sync Zotero libraries into a Markdown vault",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose/debug logging",
    )
    parser.add_argument("--config", help="Path to YAML config file")

    # Also accepted after the command name
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("-v", "--verbose", action="store_true", default=argparse.SUPPRESS,
                        help="Enable verbose/debug logging")
    common.add_argument("--config", default=argparse.SUPPRESS, help="Path to YAML config file")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Sync command
    sync_parser = subparsers.add_parser("sync", parents=[common], help="Run a sync pass")
    sync_parser.add_argument("--library", help="Library prefix, e.g. /users/123 (default: all)")
    sync_parser.add_argument("--offline", action="store_true", help="Use stored snapshots, do not fetch")
    sync_parser.add_argument("--dry-run", action="store_true", help="Report without making changes")
    sync_parser.add_argument("--watch", action="store_true", help="Keep running and sync periodically")
    sync_parser.add_argument("--json", action="store_true", help="Output report as JSON")

    # Plan command
    plan_parser = subparsers.add_parser("plan", parents=[common], help="Show planned operations")
    plan_parser.add_argument("--library", help="Library prefix (default: all)")
    plan_parser.add_argument("--offline", action="store_true", help="Use stored snapshots, do not fetch")
    plan_parser.add_argument("--json", action="store_true", help="Output report as JSON")

    # Clear command
    clear_parser = subparsers.add_parser("clear", parents=[common], help="Clear stored status of a library")
    clear_parser.add_argument("--library", required=True, help="Library prefix")

    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    setup_logging(verbose=args.verbose)
    logger = logging.getLogger(__name__)

    try:
        config = SyncConfig(Path(args.config) if args.config else None)

        if args.command == "sync":
            return cmd_sync(args, config)
        elif args.command == "plan":
            return cmd_plan(args, config)
        elif args.command == "clear":
            return cmd_clear(args, config)
        else:
            print("No command specified. Use --help for usage.", file=sys.stderr)
            return 1
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
