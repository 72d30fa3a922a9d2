"""Show recently published records stored for a target."""

from __future__ import annotations

import argparse
import json
import logging

from secintel.config import RECENCY_MONTHS
from secintel.models.database import DatabaseManager, SQLAlchemyArticleRepository

logger = logging.getLogger(__name__)


def add_recent_parser(subparsers) -> argparse.ArgumentParser:
    parser = subparsers.add_parser(
        "recent",
        help="List stored articles published within the recency window",
    )
    parser.add_argument("target", help="Target id")
    parser.add_argument(
        "--months",
        type=int,
        default=RECENCY_MONTHS,
        help=f"Recency window in months (default: {RECENCY_MONTHS})",
    )
    parser.add_argument(
        "--format",
        choices=["text", "json"],
        default="text",
        help="Output format (default: text)",
    )
    parser.set_defaults(func=handle_recent_command)
    return parser


def handle_recent_command(args, repository: SQLAlchemyArticleRepository | None = None) -> int:
    repository = repository or SQLAlchemyArticleRepository(DatabaseManager())
    records = repository.list_recent(args.target, months=args.months)

    if args.format == "json":
        payload = [
            {
                "title": r.title,
                "url": r.url,
                "content_type": r.content_type,
                "published_at": r.published_at.isoformat() if r.published_at else None,
            }
            for r in records
        ]
        print(json.dumps(payload, indent=2))
        return 0

    if not records:
        print(f"No articles from the last {args.months} months for {args.target}")
        return 0

    for record in records:
        published = record.published_at.date().isoformat() if record.published_at else "unknown"
        print(f"{published}  [{record.content_type}] {record.title}")
        print(f"            {record.url}")
    logger.info("Listed %d recent articles for %s", len(records), args.target)
    return 0
