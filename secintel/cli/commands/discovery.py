"""Discover candidate article URLs for a target without extracting them."""

from __future__ import annotations

import argparse
import json
import logging

from secintel.config import load_crawl_settings
from secintel.crawler.discovery import UrlDiscovery
from secintel.crawler.fetcher import Fetcher
from secintel.crawler.site_registry import TargetNotFoundError, TargetRegistry
from secintel.models.database import DatabaseManager, SQLAlchemyArticleRepository

logger = logging.getLogger(__name__)


def add_discovery_parser(subparsers) -> argparse.ArgumentParser:
    """Add discovery command parser to subparsers."""
    discover_parser = subparsers.add_parser(
        "discover",
        help="List candidate article URLs found on a target's listing pages",
    )
    discover_parser.add_argument("target", help="Target id")
    discover_parser.add_argument(
        "--quota",
        type=int,
        help="Stop after roughly this many candidate URLs",
    )
    discover_parser.add_argument(
        "--format",
        choices=["text", "json"],
        default="text",
        help="Output format (default: text)",
    )
    discover_parser.set_defaults(func=handle_discovery_command)
    return discover_parser


def handle_discovery_command(
    args,
    registry: TargetRegistry | None = None,
    discovery: UrlDiscovery | None = None,
) -> int:
    settings = load_crawl_settings(discovery_url_quota=getattr(args, "quota", None))

    if registry is None:
        repository = SQLAlchemyArticleRepository(DatabaseManager())
        registry = TargetRegistry(store=repository)

    try:
        target = registry.resolve(args.target)
    except TargetNotFoundError as exc:
        logger.error("%s", exc)
        print(str(exc))
        return 1

    if discovery is None:
        fetcher = Fetcher(timeout=settings.request_timeout, use_cloudscraper=settings.use_cloudscraper)
        discovery = UrlDiscovery(fetcher, settings)

    candidates = discovery.discover(target)

    if args.format == "json":
        payload = [
            {"url": c.url, "method": c.discovery_method, "target_id": c.source_target_id}
            for c in candidates
        ]
        print(json.dumps(payload, indent=2))
    else:
        print(f"Found {len(candidates)} candidate URLs for {target.name}")
        for candidate in candidates:
            print(f"  [{candidate.discovery_method}] {candidate.url}")

    logger.info("Discovered %d candidates for %s", len(candidates), target.id)
    return 0
