"""Immutable catalog of crawl targets and their selector profiles.

Well-known platforms ship with hand-tuned CSS selector profiles. Targets
added at runtime live in the database and are resolved through
``TargetRegistry`` with the generic profile. The maps here are read-only so
components can share them across concurrent crawls; tests build their own
registries with synthetic targets.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from types import MappingProxyType
from typing import Iterable, Mapping, Optional, Protocol

from secintel.utils.url_utils import hostname

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SelectorProfile:
    """CSS selector hints for a listing page (comma-separated groups)."""

    articles: str
    title: str
    content: str
    link: str


@dataclass(frozen=True)
class Target:
    id: str
    name: str
    base_url: str
    selector_profile: Optional[SelectorProfile] = None
    direct_url: Optional[str] = None

    @property
    def hostname(self) -> str:
        return hostname(self.base_url)

    def with_direct_url(self, direct_url: Optional[str]) -> "Target":
        if not direct_url:
            return self
        return replace(self, direct_url=direct_url)


@dataclass(frozen=True)
class SpecializedSource:
    """A source whose markup needs a dedicated listing endpoint and anchor rule."""

    key: str
    host_suffix: str
    listing_path: str
    anchor_pattern: str
    content_type: str
    title_prefix: str = ""
    title_must_contain: str = ""
    min_title_length: int = 0
    max_items: int = 20
    summary_template: str = "{title}"

    def matches(self, host: str) -> bool:
        host = (host or "").lower()
        return host == self.host_suffix or host.endswith("." + self.host_suffix)


GENERIC_PROFILE = SelectorProfile(
    articles="article, .post, .news-item, .story",
    title="h1, h2, h3, .title, .headline",
    content=".content, .excerpt, .summary, p",
    link="a",
)


def _platform(key: str, name: str, url: str, articles: str, title: str, content: str, link: str):
    return key, Target(
        id=key,
        name=name,
        base_url=url,
        selector_profile=SelectorProfile(articles, title, content, link),
    )


KNOWN_PLATFORMS: Mapping[str, Target] = MappingProxyType(
    dict(
        [
            _platform(
                "thehackernews",
                "The Hacker News",
                "https://thehackernews.com",
                ".story-block, .clear.home-right .body-post, article, .story-link",
                ".home-title, .story-title, h2, h3",
                ".home-desc, .story-desc, .excerpt, p",
                'a[href*="/20"]',
            ),
            _platform(
                "darkreading",
                "Dark Reading",
                "https://www.darkreading.com",
                ".ListPreview-item, .story-package, .content-item, .river-well",
                ".ListPreview-title, .headline, h3, h2",
                ".ListPreview-description, .dek, .summary, p",
                'a[href*="/article/"]',
            ),
            _platform(
                "securityweek",
                "SecurityWeek",
                "https://www.securityweek.com",
                ".post, .news-item, .story, .article-item",
                ".post-title, .entry-title, h2, h3",
                ".post-excerpt, .excerpt, .summary, p",
                'a[href*="/news/"]',
            ),
            _platform(
                "krebsonsecurity",
                "Krebs on Security",
                "https://krebsonsecurity.com",
                ".post, .entry, article, .hentry",
                ".entry-title, .post-title, h1, h2",
                ".entry-summary, .excerpt, p",
                'a[href*="krebsonsecurity.com"]',
            ),
            _platform(
                "cso",
                "CSO",
                "https://www.csoonline.com",
                ".river-well, .listing-item, article, .item",
                ".headline, .river-well h3, h2",
                ".dek, .summary, .excerpt, p",
                'a[href*="/article/"]',
            ),
            _platform(
                "infosecurity",
                "Infosecurity Magazine",
                "https://www.infosecurity-magazine.com",
                ".news-item, .item, .post, .article",
                ".title, .headline, h3, h2",
                ".description, .summary, .excerpt, p",
                'a[href*="/news/"]',
            ),
            _platform(
                "cybersecuritydive",
                "Cybersecurity Dive",
                "https://cybersecuritydive.com",
                ".feed__item, .story, .news-item",
                ".headline__text, .feed__title, h3",
                ".deck, .feed__excerpt, .summary",
                'a[href*="/news/"]',
            ),
            _platform(
                "cyberscoop",
                "CyberScoop",
                "https://www.cyberscoop.com",
                ".post-item, .story-item, article",
                ".entry-title, .post-title, h2",
                ".post-excerpt, .excerpt, .summary",
                'a[href*="cyberscoop.com"]',
            ),
            _platform(
                "threatpost",
                "Threatpost",
                "https://threatpost.com",
                ".post, .story, .news-item",
                ".entry-title, .post-title, h2",
                ".post-excerpt, .excerpt, .summary",
                'a[href*="threatpost.com"]',
            ),
            _platform(
                "schneier",
                "Schneier on Security",
                "https://www.schneier.com",
                ".entry, .post, .blog-post",
                ".entry-title, .post-title, h2",
                ".entry-content, .content, p",
                'a[href*="schneier.com"]',
            ),
            _platform(
                "troyhunt",
                "Troy Hunt Blog",
                "https://www.troyhunt.com",
                ".post, .blog-post, article",
                ".post-title, .entry-title, h1, h2",
                ".post-excerpt, .excerpt, .content",
                'a[href*="troyhunt.com"]',
            ),
            _platform(
                "wired",
                "Wired Security",
                "https://www.wired.com/category/security",
                ".archive-item-component, .summary-item, article",
                ".archive-item-component__title, .summary-item__hed, h3",
                ".archive-item-component__desc, .summary-item__dek, .excerpt",
                'a[href*="/story/"]',
            ),
            _platform(
                "helpnetsecurity",
                "Help Net Security",
                "https://www.helpnetsecurity.com",
                ".post, .news-item, article",
                ".entry-title, .post-title, h2",
                ".post-excerpt, .excerpt, .summary",
                'a[href*="helpnetsecurity.com"]',
            ),
            _platform(
                "cybercrimemagazine",
                "Cybercrime Magazine",
                "https://cybercrimemagazine.com",
                ".post, .story, .news-item",
                ".entry-title, .post-title, h2",
                ".post-excerpt, .excerpt, .summary",
                'a[href*="cybercrimemagazine.com"]',
            ),
        ]
    )
)


SPECIALIZED_SOURCES: Mapping[str, SpecializedSource] = MappingProxyType(
    {
        "cve": SpecializedSource(
            key="cve",
            host_suffix="cve.org",
            listing_path="/ResourcesSupport/Resources",
            anchor_pattern=r"CVE-\d{4}-\d+",
            content_type="cve",
            title_must_contain="CVE-",
            summary_template=(
                "CVE Entry: {title}. Visit the full CVE details for complete vulnerability "
                "information. The CVE record lists the affected products and versions, the "
                "assigning CNA, public references and the current publication state of the "
                "identifier."
            ),
        ),
        "nvd": SpecializedSource(
            key="nvd",
            host_suffix="nvd.nist.gov",
            listing_path="/vuln/search",
            anchor_pattern=r"/vuln/detail/CVE-\d{4}-\d+",
            content_type="vulnerability",
            title_prefix="NVD: ",
            summary_template=(
                "National Vulnerability Database entry for {title}. Contains detailed "
                "vulnerability analysis and scoring. The NVD record adds CVSS severity "
                "metrics, the weakness enumeration (CWE), known affected configurations and "
                "links to vendor advisories and patches."
            ),
        ),
        "sap": SpecializedSource(
            key="sap",
            host_suffix="sap.com",
            listing_path="/notes",
            anchor_pattern=r"(?i)note",
            content_type="security_note",
            title_prefix="SAP Note: ",
            min_title_length=11,
            summary_template=(
                "SAP Security Note containing important security updates and patches. "
                "{title}. Review the note for the affected components and releases, the "
                "correction instructions and any manual steps required before applying "
                "the fix."
            ),
        ),
        "cisco": SpecializedSource(
            key="cisco",
            host_suffix="cisco.com",
            listing_path="/security/center/publicationListing.x",
            anchor_pattern=r"(?i)advisory",
            content_type="security_advisory",
            title_prefix="Cisco Advisory: ",
            min_title_length=11,
            summary_template=(
                "Cisco Security Advisory providing details about security vulnerabilities "
                "and recommended actions. {title}. The advisory lists vulnerable products, "
                "products confirmed not vulnerable, available workarounds and the fixed "
                "software releases."
            ),
        ),
    }
)


def find_specialized_source(
    host: str, sources: Mapping[str, SpecializedSource] = SPECIALIZED_SOURCES
) -> Optional[SpecializedSource]:
    for source in sources.values():
        if source.matches(host):
            return source
    return None


class TargetStore(Protocol):
    """Anything able to look up a stored target by id."""

    def get_target(self, target_id: str) -> Optional[Target]:
        ...


class TargetNotFoundError(LookupError):
    """Raised when a target id is neither built in nor stored."""

    def __init__(self, target_id: str):
        super().__init__(f"Target {target_id} not found in database or built-in platforms")
        self.target_id = target_id


class TargetRegistry:
    """Resolve target ids against a static map first, then an optional store."""

    def __init__(
        self,
        static_targets: Mapping[str, Target] = KNOWN_PLATFORMS,
        store: Optional[TargetStore] = None,
    ):
        self._static = MappingProxyType(dict(static_targets))
        self._store = store

    @classmethod
    def from_targets(cls, targets: Iterable[Target], store: Optional[TargetStore] = None):
        return cls({target.id: target for target in targets}, store)

    def is_builtin(self, target_id: str) -> bool:
        return target_id in self._static

    def builtin_targets(self) -> list[Target]:
        return list(self._static.values())

    def resolve(self, target_id: str) -> Target:
        target = self._static.get(target_id)
        if target is not None:
            return target

        if self._store is not None:
            stored = self._store.get_target(target_id)
            if stored is not None:
                if stored.selector_profile is None:
                    stored = replace(stored, selector_profile=GENERIC_PROFILE)
                return stored

        logger.info("Target %s not found", target_id)
        raise TargetNotFoundError(target_id)
