"""Structured logging configuration for the secintel crawler.

This module sets up structured logging with:
- JSON output for production (Cloud Logging compatible)
- Human-readable output for local development
- Per-run context (target id, run id) bound through contextvars
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any

import structlog


def is_cloud_environment() -> bool:
    """Check if running in a cloud environment (GKE, Cloud Run, etc.)."""
    return bool(
        os.getenv("KUBERNETES_SERVICE_HOST")
        or os.getenv("K_SERVICE")  # Cloud Run
        or os.getenv("GAE_ENV")  # App Engine
    )


def setup_logging(
    level: str = "INFO",
    force_json: bool = False,
    service_name: str | None = None,
) -> None:
    """Configure structured logging for the application.

    Module loggers created with ``logging.getLogger(__name__)`` are routed
    through the same structlog processor chain, so records from the pipeline
    and from structlog loggers render identically.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        force_json: Force JSON output even in non-cloud environments
        service_name: Name of the service for log identification
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    use_json = force_json or is_cloud_environment()

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    if service_name:
        shared_processors.insert(
            0,
            structlog.processors.CallsiteParameterAdder(
                {
                    structlog.processors.CallsiteParameter.FILENAME,
                    structlog.processors.CallsiteParameter.LINENO,
                }
            ),
        )

    if use_json:
        renderer: Any = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=shared_processors
        + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(log_level)

    # Reduce noise from verbose libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def bind_run_context(
    target_id: str | None = None,
    run_id: str | None = None,
    **kwargs: Any,
) -> None:
    """Bind extraction-run context to the current execution context."""
    context: dict[str, Any] = {}
    if target_id:
        context["target_id"] = target_id
    if run_id:
        context["run_id"] = run_id
    context.update(kwargs)

    if context:
        structlog.contextvars.bind_contextvars(**context)


def clear_run_context() -> None:
    """Clear run context from current execution context."""
    structlog.contextvars.clear_contextvars()
