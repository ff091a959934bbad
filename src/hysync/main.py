#!/usr/bin/env python3
"""hysync application entry point.

This module provides a unified entry point for both interfaces:
- CLI: Account, local library and sync commands
- Server: The remote sync endpoint (HTTP API)

Usage:
    hysync cli login user@example.com     # Sign in and run a full sync
    hysync cli sync now                   # Download-merge, then upload
    hysync server [--port 3000]           # Start the sync endpoint
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, NoReturn, Optional

logger = logging.getLogger(__name__)


def create_parser() -> argparse.ArgumentParser:
    """Create the unified argument parser.

    Returns:
        Configured ArgumentParser instance
    """
    parser = argparse.ArgumentParser(
        prog="hysync",
        description="hysync - HYMusic library sync client and server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  hysync cli login user@example.com      Sign in, then run a full sync
  hysync cli like VIDEO_ID --title Song  Add a song to favorites
  hysync cli sync status                 Show the last sync time
  hysync server --port 8080              Start the sync endpoint on port 8080
""",
    )

    parser.add_argument(
        "-d", "--config-dir",
        type=Path,
        default=None,
        help="Custom configuration directory (default: ~/.config/hysync/)"
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging"
    )

    subparsers = parser.add_subparsers(dest="interface", help="Interface to use")

    from hysync.cli import add_cli_subparser
    add_cli_subparser(subparsers)

    from hysync.server import add_server_subparser
    add_server_subparser(subparsers)

    return parser


def main(argv: Optional[List[str]] = None) -> NoReturn:
    """Main entry point for hysync.

    Parses arguments and dispatches to the appropriate interface.
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    if args.interface == "cli":
        from hysync.cli import run as run_cli
        exit_code = run_cli(args.config_dir, args)
    elif args.interface == "server":
        from hysync.server import run as run_server
        exit_code = run_server(args.config_dir, args)
    else:
        parser.print_help()
        exit_code = 1

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
