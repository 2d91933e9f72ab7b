"""Live service command wiring for the scraping CLI."""

from __future__ import annotations

import argparse
import asyncio
from typing import Any

from core.config import AppConfig
from core.constants import EXIT_OK
from core.types import SourceState
from ingest.service import run_service


def add_run_command(subparsers: Any) -> None:
    """Register run subcommand."""
    subparsers.add_parser("run", help="Run periodic collection until interrupted")


def run_run_command(config: AppConfig, args: argparse.Namespace) -> int:
    """Run the live service and print the final state of each source."""
    statuses = asyncio.run(run_service(config))
    for name in sorted(statuses):
        status = statuses[name]
        print(
            f"source={name}\tstate={status.state.value}\t"
            f"cycles={status.cycles_completed}\trows_written={status.rows_written}"
        )
    suspended = [
        name for name, status in statuses.items() if status.state is SourceState.SUSPENDED
    ]
    if suspended:
        print(f"suspended={','.join(sorted(suspended))}")
    return EXIT_OK
