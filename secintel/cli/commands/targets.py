"""List and register crawl targets."""

from __future__ import annotations

import argparse
import json
import logging

from secintel.crawler.site_registry import Target, TargetRegistry
from secintel.models.database import DatabaseManager, SQLAlchemyArticleRepository
from secintel.utils.url_utils import extract_base_url

logger = logging.getLogger(__name__)


def add_targets_parser(subparsers) -> argparse.ArgumentParser:
    parser = subparsers.add_parser("targets", help="Manage crawl targets")
    target_subparsers = parser.add_subparsers(dest="targets_command")

    list_parser = target_subparsers.add_parser(
        "list",
        help="List built-in and stored targets",
    )
    list_parser.add_argument(
        "--format",
        choices=["table", "json"],
        default="table",
        help="Output format (default: table)",
    )

    add_parser = target_subparsers.add_parser("add", help="Register a new target")
    add_parser.add_argument("id", help="Target id")
    add_parser.add_argument("url", help="Base URL of the site")
    add_parser.add_argument("--name", help="Display name (defaults to the id)")

    parser.set_defaults(func=handle_targets_command)
    return parser


def handle_targets_command(args, repository: SQLAlchemyArticleRepository | None = None) -> int:
    command = getattr(args, "targets_command", None)
    if command not in ("list", "add"):
        print("Usage: secintel targets {list,add} ...")
        return 1

    try:
        repository = repository or SQLAlchemyArticleRepository(DatabaseManager())
    except Exception as exc:
        logger.error("Failed to open database: %s", exc)
        return 1

    registry = TargetRegistry(store=repository)
    if command == "add":
        return _add_target(args, repository, registry)
    return _list_targets(args, repository, registry)


def _add_target(args, repository: SQLAlchemyArticleRepository, registry: TargetRegistry) -> int:
    if registry.is_builtin(args.id):
        print(f"Target {args.id} is a built-in platform")
        return 1
    if not extract_base_url(args.url):
        print(f"Invalid URL: {args.url}")
        return 1

    target = Target(id=args.id, name=args.name or args.id, base_url=args.url)
    repository.upsert_target(target)
    print(f"Saved target {target.id} ({target.base_url})")
    return 0


def _list_targets(args, repository: SQLAlchemyArticleRepository, registry: TargetRegistry) -> int:
    rows = [
        {"id": t.id, "name": t.name, "base_url": t.base_url, "source": "built-in"}
        for t in registry.builtin_targets()
    ]
    rows.extend(
        {"id": t.id, "name": t.name, "base_url": t.base_url, "source": "stored"}
        for t in repository.list_targets()
        if not registry.is_builtin(t.id)
    )

    if args.format == "json":
        print(json.dumps(rows, indent=2))
        return 0

    print("\n=== Available Targets ===")
    print(f"Found {len(rows)} targets")
    print()
    for row in rows:
        print(f"ID:   {row['id']}")
        print(f"Name: {row['name']}")
        print(f"URL:  {row['base_url']} ({row['source']})")
        print("-" * 60)
    return 0
