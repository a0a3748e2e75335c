#!/usr/bin/env python3
"""
Where-to-Buy Store Locator CLI

Usage:
    python run.py --all                       # Collect every active brand
    python run.py --brand cann                # Single brand
    python run.py --all --dry-run             # Show where each brand's locator comes from
    python run.py --all --max-concurrent 4    # Collect 4 brands in parallel
    python run.py --validate-config           # Check config/brands.yaml and exit
    python run.py --history                   # Show recent runs
"""

import argparse
import dataclasses
import logging
import os
import sys
from typing import List

from dotenv import load_dotenv

from src.collect.runner import RunFailed, run_locations_collection
from src.shared.app_config import AppConfig, ConfigError, load_app_config
from src.shared.brands import load_brands, validate_brands_config
from src.shared.constants import LOGGING, RUN_HISTORY
from src.shared.logging_config import setup_logging
from src.shared.persistence import JsonLocationStore
from src.shared.run_tracker import get_run_history
from src.shared.sentry_integration import flush as flush_sentry
from src.shared.sentry_integration import init_sentry


def setup_parser() -> argparse.ArgumentParser:
    """Setup command line argument parser"""
    parser = argparse.ArgumentParser(
        description="Where-to-Buy Store Locator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )

    brand_group = parser.add_mutually_exclusive_group()
    brand_group.add_argument(
        '--all', '-a',
        action='store_true',
        help='Collect locations for every active brand'
    )
    brand_group.add_argument(
        '--brand', '-b',
        type=str,
        metavar='SLUG',
        help='Collect locations for a single brand'
    )

    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='List the brands and locator sources without fetching anything'
    )
    parser.add_argument(
        '--max-concurrent',
        type=int,
        default=None,
        metavar='N',
        help='Brands collected in parallel (overrides LOCATOR_MAX_CONCURRENT_BRANDS)'
    )
    parser.add_argument(
        '--validate-config',
        action='store_true',
        help='Validate configuration and exit'
    )
    parser.add_argument(
        '--history',
        action='store_true',
        help='Show recent collection runs and exit'
    )
    parser.add_argument(
        '--log-file',
        type=str,
        default=LOGGING.LOG_FILE,
        help=f'Log file path (default: {LOGGING.LOG_FILE})'
    )
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable debug logging'
    )

    return parser


def validate_config_on_startup(settings: AppConfig) -> List[str]:
    """Validate the brand registry before running.

    Returns:
        List of validation errors (empty if config is valid)
    """
    return validate_brands_config(settings.brands_file)


def validate_cli_options(args) -> List[str]:
    """Validate CLI option combinations.

    Returns:
        List of validation errors (empty if valid)
    """
    errors = []
    if args.max_concurrent is not None and args.max_concurrent < 1:
        errors.append("--max-concurrent must be >= 1")
    return errors


def show_history(settings: AppConfig) -> None:
    runs = get_run_history(os.path.join(settings.data_dir, "runs"), RUN_HISTORY.HISTORY_LIMIT)
    print("\n" + "=" * 60)
    print("RECENT LOCATION RUNS")
    print("=" * 60)
    if not runs:
        print("  No runs recorded")
    for run in runs:
        summary = run.get("summary") or {}
        print(f"  {run.get('run_id')}: {run.get('status')} "
              f"(started {run.get('started_at')}, "
              f"{summary.get('total_active', 0)} active, "
              f"{summary.get('failed', 0)}/{summary.get('brand_count', 0)} failed)")
    print("=" * 60)


def main():
    """Main entry point"""
    load_dotenv()

    parser = setup_parser()
    args = parser.parse_args()

    log_level = logging.DEBUG if args.verbose else logging.INFO
    setup_logging(args.log_file, level=log_level)
    init_sentry()

    try:
        settings = load_app_config()
    except ConfigError as e:
        print(f"Configuration error: {e}")
        return 1

    config_errors = validate_config_on_startup(settings)
    if config_errors:
        print("Configuration errors found:")
        for error in config_errors:
            print(f"  - {error}")
        return 1

    if args.validate_config:
        print("Configuration is valid")
        return 0

    if args.history:
        show_history(settings)
        return 0

    cli_errors = validate_cli_options(args)
    if cli_errors:
        print("Invalid command line options:")
        for error in cli_errors:
            print(f"  - {error}")
        return 1

    if not args.all and not args.brand:
        print("No brands specified. Use --brand <slug> or --all")
        return 1

    if args.max_concurrent is not None:
        settings = dataclasses.replace(settings, max_concurrent_brands=args.max_concurrent)

    store = JsonLocationStore(settings.data_dir, load_brands(settings.brands_file))

    try:
        run_locations_collection(store, settings, brand_filter=args.brand, dry_run=args.dry_run)
        return 0
    except ValueError as e:
        print(f"Error: {e}")
        return 1
    except RunFailed as e:
        logging.error(f"Run failed: {e}")
        return 1
    except KeyboardInterrupt:
        logging.info("Collection interrupted by user")
        return 130
    finally:
        flush_sentry()


if __name__ == '__main__':
    sys.exit(main())
