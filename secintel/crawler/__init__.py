"""Fetching, target registry and URL discovery."""

from .discovery import CandidateURL, UrlDiscovery
from .fetcher import FetchResult, Fetcher, NetworkUnavailable
from .site_registry import (
    GENERIC_PROFILE,
    KNOWN_PLATFORMS,
    SPECIALIZED_SOURCES,
    SelectorProfile,
    SpecializedSource,
    Target,
    TargetNotFoundError,
    TargetRegistry,
)

__all__ = [
    "CandidateURL",
    "FetchResult",
    "Fetcher",
    "GENERIC_PROFILE",
    "KNOWN_PLATFORMS",
    "NetworkUnavailable",
    "SPECIALIZED_SOURCES",
    "SelectorProfile",
    "SpecializedSource",
    "Target",
    "TargetNotFoundError",
    "TargetRegistry",
    "UrlDiscovery",
]
