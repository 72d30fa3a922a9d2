"""Streamlined CLI interface with modular command structure."""

from __future__ import annotations

import argparse
import sys
from collections.abc import Callable
from typing import cast

from .commands.discovery import (  # noqa: F401
    add_discovery_parser,
    handle_discovery_command,
)
from .commands.extraction import (  # noqa: F401
    add_extraction_parser,
    handle_extraction_command,
)
from .commands.recent import (  # noqa: F401
    add_recent_parser,
    handle_recent_command,
)
from .commands.targets import (  # noqa: F401
    add_targets_parser,
    handle_targets_command,
)

CommandHandler = Callable[[argparse.Namespace], int]

COMMAND_HANDLER_ATTRS: dict[str, str] = {
    "extract": "handle_extraction_command",
    "discover": "handle_discovery_command",
    "targets": "handle_targets_command",
    "recent": "handle_recent_command",
}


def create_parser() -> argparse.ArgumentParser:
    """Create the main argument parser with all subcommands."""
    parser = argparse.ArgumentParser(
        prog="secintel",
        description="secintel - Security news discovery and extraction",
    )

    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (e.g. INFO, DEBUG)",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        help="Available commands",
        required=False,
    )

    add_extraction_parser(subparsers)
    add_discovery_parser(subparsers)
    add_targets_parser(subparsers)
    add_recent_parser(subparsers)

    return parser


def _resolve_handler(
    args: argparse.Namespace,
    overrides: dict[str, CommandHandler] | None = None,
) -> CommandHandler | None:
    command = getattr(args, "command", None)
    if overrides and command and command in overrides:
        return overrides[command]

    func = getattr(args, "func", None)
    if callable(func):
        return cast(CommandHandler, func)

    if command is None:
        return None

    attr_name = COMMAND_HANDLER_ATTRS.get(command)
    if not attr_name:
        return None

    handler = globals().get(attr_name)
    if callable(handler):
        return cast(CommandHandler, handler)

    return None


def main(
    argv: list[str] | None = None,
    *,
    setup_logging_func: Callable[[str], None] | None = None,
    handler_overrides: dict[str, CommandHandler] | None = None,
) -> int:
    """Main CLI entry point."""

    parser = create_parser()
    args = parser.parse_args(argv)

    log_level = getattr(args, "log_level", "INFO") or "INFO"
    if setup_logging_func is None:
        from .context import setup_logging as default_setup_logging

        setup_logging_func = default_setup_logging

    setup_logging_func(log_level)

    handler = _resolve_handler(args, overrides=handler_overrides)
    if handler is None:
        parser.print_help()
        return 1

    return handler(args)


if __name__ == "__main__":
    sys.exit(main())
