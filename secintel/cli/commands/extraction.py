"""
Extraction command module for the modular CLI.
"""

from __future__ import annotations

import argparse
import json
import logging

from secintel.config import EXTRACTION_ORDERS
from secintel.pipeline.runner import ExtractionPipeline

logger = logging.getLogger(__name__)


def add_extraction_parser(subparsers) -> argparse.ArgumentParser:
    """Add extraction command parser to subparsers."""
    extract_parser = subparsers.add_parser(
        "extract",
        help="Extract and store security articles for a target",
    )
    extract_parser.add_argument("target", help="Target id (built-in platform or stored target)")
    extract_parser.add_argument(
        "--url",
        dest="direct_url",
        help="Extract a single post from this URL instead of crawling the target",
    )
    extract_parser.add_argument(
        "--prompt",
        dest="custom_prompt",
        help="Custom instruction for AI extraction",
    )
    extract_parser.add_argument(
        "--order",
        dest="extraction_order",
        choices=list(EXTRACTION_ORDERS),
        help="Whether AI extraction runs before or after the heuristic stages",
    )
    extract_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the result envelope as JSON",
    )
    extract_parser.set_defaults(func=handle_extraction_command)
    return extract_parser


def handle_extraction_command(args, pipeline: ExtractionPipeline | None = None) -> int:
    """Run one extraction and print the outcome."""
    pipeline = pipeline or ExtractionPipeline.from_config()
    result = pipeline.run_extraction(
        args.target,
        getattr(args, "direct_url", None),
        getattr(args, "custom_prompt", None),
        extraction_order=getattr(args, "extraction_order", None),
    )

    if getattr(args, "json", False):
        print(json.dumps(result.to_dict(), indent=2))
    else:
        print(result.message)
        if result.extraction_method:
            print(f"Method: {result.extraction_method}")
        print(f"Stored: {result.items_stored}")

    return 0 if result.success else 1
