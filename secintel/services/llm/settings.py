"""Configuration helpers for the LLM orchestration layer."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List, Optional

DEFAULT_PROVIDER_ORDER: List[str] = [
    "openai-gpt4o-mini",
    "openai-gpt4.1-mini",
    "claude-3.5-sonnet",
]


@dataclass(slots=True)
class LLMSettings:
    """Aggregated configuration for the LLM orchestration stack."""

    provider_order: List[str] = field(default_factory=list)
    openai_api_key: Optional[str] = None
    openai_organization: Optional[str] = None
    anthropic_api_key: Optional[str] = None
    request_timeout: int = 60
    max_retries: int = 2
    default_max_output_tokens: int = 4000
    default_temperature: float = 0.1

    def provider_names(self) -> List[str]:
        return list(self.provider_order)

    def has_api_key(self, provider: str) -> bool:
        provider = provider.lower()
        if provider.startswith("openai"):
            return bool(self.openai_api_key)
        if provider.startswith("claude") or provider.startswith("anthropic"):
            return bool(self.anthropic_api_key)
        return False

    def any_credentials(self) -> bool:
        """True when at least one configured provider has an API key."""
        return any(self.has_api_key(name) for name in self.provider_order)


def _parse_provider_order(raw: Optional[str]) -> List[str]:
    if not raw:
        return list(DEFAULT_PROVIDER_ORDER)
    parts = [segment.strip() for segment in raw.split(",") if segment.strip()]
    if not parts:
        return list(DEFAULT_PROVIDER_ORDER)
    return parts


def _int_env(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


def _float_env(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except ValueError:
        return default


def load_llm_settings() -> LLMSettings:
    """Load LLM settings from the environment (dotenv already applied)."""

    return LLMSettings(
        provider_order=_parse_provider_order(os.getenv("LLM_PROVIDER_SEQUENCE")),
        openai_api_key=os.getenv("OPENAI_API_KEY") or None,
        openai_organization=os.getenv("OPENAI_ORGANIZATION") or None,
        anthropic_api_key=os.getenv("ANTHROPIC_API_KEY") or None,
        request_timeout=_int_env("LLM_REQUEST_TIMEOUT", 60),
        max_retries=_int_env("LLM_MAX_RETRIES", 2),
        default_max_output_tokens=_int_env("LLM_DEFAULT_MAX_OUTPUT_TOKENS", 4000),
        default_temperature=_float_env("LLM_DEFAULT_TEMPERATURE", 0.1),
    )
