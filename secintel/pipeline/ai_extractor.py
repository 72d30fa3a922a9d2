"""Language-model assisted extraction of article lists from raw HTML."""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Optional

from secintel.pipeline.extractors import ArticleExtractor, ExtractionAttempt, ExtractionContext
from secintel.pipeline.text_cleaning import collapse_whitespace
from secintel.pipeline.validation import AI_THRESHOLDS, validate
from secintel.services.llm import LLMOrchestrator, LLMTaskConfig
from secintel.utils.url_utils import normalize_url, resolve_url

logger = logging.getLogger(__name__)

AI_METHOD = "ai_daily_news_v6"
AI_STRATEGY = "daily_security_focus"

SYSTEM_PROMPT = """You are an expert cybersecurity news extractor. Extract ONLY recent daily security news articles from the provided HTML. Focus on:

1. Recent articles published today or within the last few days
2. Cybersecurity-related content (vulnerabilities, breaches, threats, security tools, etc.)
3. Skip old articles, advertisements, navigation items, or promotional content
4. Extract actual article titles and meaningful summaries
5. Include full URLs when possible

Return ONLY a valid JSON array of recent security articles:
[
  {
    "title": "Exact article title here",
    "content": "Detailed article summary or excerpt (3-5 sentences with key security details)",
    "url": "Complete article URL here"
  }
]

Requirements:
- Focus on articles with URLs containing /{year}/ or the current year
- Prioritize vulnerability reports, security incidents, threat analysis
- Extract 5-15 of the most recent and relevant articles
- Ensure JSON is valid and parseable
- Include substantive content summaries with security context
- Skip duplicate or similar articles"""

DEFAULT_USER_PROMPT = (
    "Extract recent daily cybersecurity news articles from this {name} webpage. "
    "Focus on articles published today or in the last few days."
)

TITLE_KEYWORDS = ("security", "cyber", "vulnerability", "breach", "hack", "threat", "malware")
CONTENT_KEYWORDS = ("security", "cyber")

_FENCE_RE = re.compile(r"```(?:json)?\s*", re.IGNORECASE)


class AIServiceError(Exception):
    """The completion service failed or returned an unusable response."""


def parse_ai_response(text: Optional[str]) -> List[Dict[str, Any]]:
    """Isolate and parse the JSON array in a model response.

    Code fences are stripped and the span between the first ``[`` and the
    last ``]`` is decoded. Anything unparseable yields an empty list.
    """
    if not text:
        return []

    cleaned = _FENCE_RE.sub("", text.strip())
    start = cleaned.find("[")
    end = cleaned.rfind("]")
    if start == -1 or end == -1 or end < start:
        logger.debug("No JSON array found in AI response")
        return []

    try:
        parsed = json.loads(cleaned[start : end + 1])
    except json.JSONDecodeError as exc:
        logger.debug("Failed to parse AI JSON response: %s", exc)
        return []

    if not isinstance(parsed, list):
        return []
    return [item for item in parsed if isinstance(item, dict)]


def _is_security_item(title: str, content: str) -> bool:
    title_lower = title.lower()
    content_lower = content.lower()
    return any(word in title_lower for word in TITLE_KEYWORDS) or any(
        word in content_lower for word in CONTENT_KEYWORDS
    )


class AIExtractor(ArticleExtractor):
    """Ask a language model to list the security articles on a page."""

    method = AI_METHOD

    def __init__(
        self,
        context: ExtractionContext,
        orchestrator: LLMOrchestrator,
        *,
        prefix_chars: Optional[int] = None,
        max_output_tokens: int = 4000,
        temperature: float = 0.1,
    ):
        super().__init__(context)
        self.orchestrator = orchestrator
        self.prefix_chars = prefix_chars or context.settings.ai_html_prefix_chars
        self.max_output_tokens = max_output_tokens
        self.temperature = temperature

    def build_prompt(self, html: str) -> str:
        instruction = (self.context.custom_prompt or "").strip() or DEFAULT_USER_PROMPT.format(
            name=self.context.target.name
        )
        return (
            f"{instruction} HTML content (first {self.prefix_chars} chars):\n\n"
            f"{html[: self.prefix_chars]}"
        )

    def extract(self, html: Optional[str], url: str) -> ExtractionAttempt:
        if not html:
            return ExtractionAttempt(self.method, reason="page_unavailable")

        try:
            raw = self._complete(html)
            items = parse_ai_response(raw)
            if not items:
                raise AIServiceError("response did not contain a JSON array of articles")
        except AIServiceError as exc:
            logger.warning(
                "AI extraction failed for %s, falling back to heuristics: %s",
                self.context.target.id,
                exc,
            )
            return ExtractionAttempt(self.method, reason="ai_service_error")

        attempt = ExtractionAttempt(self.method, stats={"items": len(items)})
        seen: set[str] = set()
        for item in items:
            title = collapse_whitespace(str(item.get("title") or ""))
            content = collapse_whitespace(str(item.get("content") or ""))
            if len(title) <= 10 or len(content) <= 20 or not _is_security_item(title, content):
                attempt.rejected += 1
                continue

            item_url = resolve_url(str(item.get("url") or ""), url) or url
            item_url = normalize_url(item_url)
            verdict = validate(title, content, item_url, thresholds=AI_THRESHOLDS)
            if not verdict.accepted:
                attempt.rejected += 1
                continue
            if title.lower() in seen:
                continue
            seen.add(title.lower())

            attempt.articles.append(
                self._article(
                    title=title,
                    content=content,
                    url=item_url,
                    published_at=self.context.now,
                    content_type=verdict.content_type,
                    strategy=AI_STRATEGY,
                    source_url=url,
                    recent=True,
                )
            )

        logger.info(
            "AI extracted %d valid security articles for %s (%d rejected)",
            len(attempt.articles),
            self.context.target.id,
            attempt.rejected,
        )
        if not attempt.articles:
            attempt.reason = "no_valid_items"
        return attempt

    def _complete(self, html: str) -> str:
        result = self.orchestrator.generate(
            self.build_prompt(html),
            LLMTaskConfig(
                system=SYSTEM_PROMPT.replace("{year}", str(self.context.now.year)),
                max_output_tokens=self.max_output_tokens,
                temperature=self.temperature,
                metadata={"target_id": self.context.target.id},
            ),
        )
        if not result.succeeded:
            raise AIServiceError(result.failure_summary())
        logger.debug("AI response from %s: %s", result.provider, (result.content or "")[:500])
        return result.content or ""
