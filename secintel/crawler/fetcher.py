"""Rate-limited HTTP retrieval with header profiles."""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Mapping, Optional
from urllib.parse import urlparse

import cloudscraper
import requests

from secintel.utils.url_utils import extract_base_url

logger = logging.getLogger(__name__)

BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
CRAWLER_USER_AGENT = (
    "Mozilla/5.0 (compatible; Googlebot/2.1; +http://www.google.com/bot.html)"
)

HEADER_PROFILES: Mapping[str, Dict[str, str]] = {
    "browser": {
        "User-Agent": BROWSER_USER_AGENT,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.9",
        "Accept-Encoding": "gzip, deflate, br",
        "Connection": "keep-alive",
        "Upgrade-Insecure-Requests": "1",
        "Cache-Control": "no-cache",
        "DNT": "1",
    },
    "listing": {
        "User-Agent": BROWSER_USER_AGENT,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.5",
        "Connection": "keep-alive",
    },
    "article": {
        "User-Agent": BROWSER_USER_AGENT,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.5",
        "Connection": "keep-alive",
    },
    "feed": {
        "User-Agent": CRAWLER_USER_AGENT,
        "Accept": "application/rss+xml,application/atom+xml,application/xml;q=0.9,*/*;q=0.8",
    },
}


class NetworkUnavailable(Exception):
    """Raised when a URL could not be retrieved (timeout, DNS, refused, backoff)."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"{url}: {reason}")
        self.url = url
        self.reason = reason


@dataclass(frozen=True)
class FetchResult:
    url: str
    final_url: str
    status_code: int
    headers: Dict[str, str] = field(default_factory=dict)
    text: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class Fetcher:
    """HTTP GET with header profiles, per-host politeness and 429 backoff.

    ``delay`` is the minimum interval between two requests to the same host.
    A 429 response puts the host into exponential backoff (the server's
    ``Retry-After`` wins when it is longer); fetches to that host raise
    ``NetworkUnavailable`` until the backoff expires.
    """

    base_backoff = 60.0
    max_backoff = 3600.0

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        *,
        timeout: float = 20,
        delay: float = 0.0,
        use_cloudscraper: bool = False,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if session is None:
            session = cloudscraper.create_scraper() if use_cloudscraper else requests.Session()
            logger.debug(
                "Created new %s session",
                "cloudscraper" if use_cloudscraper else "requests",
            )
        self.session = session
        self.timeout = timeout
        self.delay = delay
        self._clock = clock
        self._sleep = sleep

        self.domain_request_times: Dict[str, float] = {}
        self.domain_backoff_until: Dict[str, float] = {}
        self.domain_error_counts: Dict[str, int] = {}

    def fetch(self, url: str, profile: str = "browser") -> FetchResult:
        """GET ``url`` using the named header profile, following redirects."""
        domain = urlparse(url).netloc.lower()

        if self._check_rate_limit(domain):
            remaining = self.domain_backoff_until[domain] - self._clock()
            logger.info(
                "Domain %s is rate limited, backing off for %.0f more seconds",
                domain,
                remaining,
            )
            raise NetworkUnavailable(url, "rate limited")

        headers = self._headers_for(url, profile)
        self._apply_rate_limit(domain)

        try:
            response = self.session.get(
                url, headers=headers, timeout=self.timeout, allow_redirects=True
            )
        except requests.Timeout as exc:
            raise NetworkUnavailable(url, f"timed out after {self.timeout}s") from exc
        except requests.RequestException as exc:
            raise NetworkUnavailable(url, str(exc)) from exc

        if response.status_code == 429:
            self._handle_rate_limit_error(domain, response)
        elif 200 <= response.status_code < 300:
            self._reset_error_count(domain)

        return FetchResult(
            url=url,
            final_url=str(getattr(response, "url", None) or url),
            status_code=response.status_code,
            headers=dict(response.headers or {}),
            text=response.text or "",
        )

    def get_text(self, url: str, profile: str = "browser") -> Optional[str]:
        """Return the body of ``url`` or None on any non-2xx or network failure."""
        try:
            result = self.fetch(url, profile)
        except NetworkUnavailable as exc:
            logger.info("Skipping %s: %s", url, exc.reason)
            return None

        if not result.ok:
            logger.info("Skipping %s: HTTP %s", url, result.status_code)
            return None
        return result.text

    def _headers_for(self, url: str, profile: str) -> Dict[str, str]:
        try:
            headers = dict(HEADER_PROFILES[profile])
        except KeyError:
            raise ValueError(f"Unknown header profile: {profile}") from None
        if profile == "article":
            origin = extract_base_url(url)
            if origin:
                headers["Referer"] = origin
        return headers

    def _check_rate_limit(self, domain: str) -> bool:
        """Check if domain is currently rate limited."""
        until = self.domain_backoff_until.get(domain)
        if until is None:
            return False
        if self._clock() < until:
            return True
        del self.domain_backoff_until[domain]
        return False

    def _apply_rate_limit(self, domain: str) -> None:
        """Sleep until ``delay`` has elapsed since the last request to ``domain``."""
        if self.delay > 0 and domain in self.domain_request_times:
            since_last = self._clock() - self.domain_request_times[domain]
            if since_last < self.delay:
                sleep_time = self.delay - since_last
                logger.debug("Rate limiting: sleeping %.2fs for %s", sleep_time, domain)
                self._sleep(sleep_time)

        self.domain_request_times[domain] = self._clock()

    def _handle_rate_limit_error(self, domain: str, response: requests.Response) -> None:
        """Handle rate limit errors with exponential backoff."""
        error_count = self.domain_error_counts.get(domain, 0) + 1
        self.domain_error_counts[domain] = error_count

        backoff = min(self.base_backoff * (2 ** (error_count - 1)), self.max_backoff)
        backoff *= random.uniform(0.8, 1.2)

        retry_after = (response.headers or {}).get("Retry-After")
        if retry_after:
            try:
                backoff = max(backoff, float(int(retry_after)))
            except ValueError:
                pass

        self.domain_backoff_until[domain] = self._clock() + backoff
        logger.warning(
            "Rate limited by %s, backing off for %.0fs (attempt %d)",
            domain,
            backoff,
            error_count,
        )

    def _reset_error_count(self, domain: str) -> None:
        self.domain_error_counts.pop(domain, None)
