"""Scraping service CLI entry points.
This module exposes the live service, backfill and upload verification.
It maps argparse commands onto service and runner calls.
"""

from __future__ import annotations

import argparse
from typing import Sequence

from botocore.exceptions import BotoCoreError, ClientError

from cli.backfill_command import add_backfill_command, run_backfill_command
from cli.run_command import add_run_command, run_run_command
from cli.verify_command import add_verify_command, run_verify_command
from core.config import AppConfig, load_app_config
from core.constants import EXIT_CONFIG_ERROR, EXIT_FAILURE
from core.errors import ConfigError, ScraperError


def build_parser() -> argparse.ArgumentParser:
    """Build the top-level CLI parser.

    Returns:
        Configured argument parser.
    """
    parser = argparse.ArgumentParser(
        prog="scraping-service",
        description="Energy-market scraping service",
    )
    parser.add_argument("--config", help="Override SCRAPER_CONFIG for this command")
    parser.add_argument("--data-root", help="Override SCRAPER_DATA_ROOT for this command")
    subparsers = parser.add_subparsers(dest="command", required=True)
    add_run_command(subparsers)
    add_backfill_command(subparsers)
    add_verify_command(subparsers)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the scraping service CLI.

    Args:
        argv: Optional argument vector.

    Returns:
        Process exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        config = _load_config(args)
        if args.command == "run":
            return run_run_command(config, args)
        if args.command == "backfill":
            return run_backfill_command(config, args)
        if args.command == "verify":
            return run_verify_command(config, args)
    except ConfigError as error:
        print(f"error={error}")
        return EXIT_CONFIG_ERROR
    except (ScraperError, BotoCoreError, ClientError) as error:
        print(f"error={error}")
        return EXIT_FAILURE
    parser.error(f"Unsupported command: {args.command}")
    return EXIT_CONFIG_ERROR


def _load_config(args: argparse.Namespace) -> AppConfig:
    return load_app_config(config_path=args.config, data_root=args.data_root)
