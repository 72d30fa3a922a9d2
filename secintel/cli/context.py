"""Shared utilities for CLI command modules."""

from __future__ import annotations

from secintel.utils.logging_config import setup_logging as _setup_structured_logging


def setup_logging(log_level: str = "INFO") -> None:
    """Configure structured logging for CLI commands.

    Parameters
    ----------
    log_level:
        Logging level name (e.g., ``"INFO"``).
    """
    _setup_structured_logging(level=log_level, service_name="secintel-cli")
