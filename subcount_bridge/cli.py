"""Command-line interface for subcount-bridge."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from . import constants
from .app import BridgeApp
from .config import load_config
from .render import diff_count_plan, full_count_plan, to_commands

LOGGER = logging.getLogger(__name__)


def _non_negative_int(value: str) -> int:
    number = int(value)
    if number < 0:
        raise argparse.ArgumentTypeError("count must be non-negative")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="subcount-bridge",
        description="Minecraft websocket bridge that renders YouTube subscriber counts",
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=constants.DEFAULT_CONFIG_PATH,
        help=f"Path to configuration file (default: {constants.DEFAULT_CONFIG_PATH})",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("start", help="Start the websocket bridge")

    subparsers.add_parser(
        "show-config", help="Print the resolved configuration and exit"
    )

    plan_parser = subparsers.add_parser(
        "plan", help="Print the commands that would render a subscriber count"
    )
    plan_parser.add_argument("count", type=_non_negative_int)
    plan_parser.add_argument(
        "--previous",
        type=_non_negative_int,
        default=None,
        help="Currently displayed count; prints only the changed digits",
    )

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    config = load_config(args.config)

    if args.command == "start":
        BridgeApp.start(config)
        return 0

    if args.command == "show-config":
        print(f"Configuration loaded from {config.path!s}\n")
        for section in config.raw.sections():
            print(f"[{section}]")
            for key, value in config.raw[section].items():
                print(f"{key} = {value}")
            print()
        return 0

    if args.command == "plan":
        if args.previous is None:
            plan = full_count_plan(args.count, config.display)
        else:
            plan = diff_count_plan(args.count, args.previous, config.display)
        for line in to_commands(plan):
            print(f"/{line}")
        return 0

    LOGGER.error("Unknown command: %s", args.command)
    return 1


if __name__ == "__main__":
    sys.exit(main())
