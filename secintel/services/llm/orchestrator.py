"""Sequential orchestration across LLM providers with graceful fallbacks."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from .providers import (
    LLMConfigurationError,
    LLMProvider,
    LLMProviderError,
    LLMProviderResponse,
    LLMRateLimitError,
    ProviderRegistry,
)
from .settings import LLMSettings, load_llm_settings

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ProviderFailure:
    """Record of a provider failure during orchestration."""

    provider: str
    reason: str
    error_type: str


@dataclass(slots=True)
class OrchestrationResult:
    """Aggregated result of orchestrating a single LLM task."""

    response: Optional[LLMProviderResponse] = None
    failures: List[ProviderFailure] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.response is not None

    @property
    def provider(self) -> Optional[str]:
        if self.response is None:
            return None
        return self.response.provider

    @property
    def content(self) -> Optional[str]:
        if self.response is None:
            return None
        return self.response.content

    def failure_summary(self) -> str:
        if not self.failures:
            return "no providers configured"
        return "; ".join(
            f"{failure.provider}: {failure.error_type} ({failure.reason})"
            for failure in self.failures
        )


@dataclass(slots=True)
class LLMTaskConfig:
    """Runtime overrides for a single LLM request."""

    system: Optional[str] = None
    max_output_tokens: Optional[int] = None
    temperature: Optional[float] = None
    metadata: Optional[Dict[str, object]] = None


class LLMOrchestrator:
    """Sequential orchestration of multiple LLM providers with fallback."""

    def __init__(
        self,
        settings: LLMSettings,
        providers: Sequence[LLMProvider],
    ) -> None:
        self._settings = settings
        self._providers = list(providers)

    @classmethod
    def from_settings(cls, settings: Optional[LLMSettings] = None) -> "LLMOrchestrator":
        resolved = settings or load_llm_settings()
        providers = []
        for name in resolved.provider_names():
            try:
                providers.append(ProviderRegistry.create(name, resolved))
            except KeyError:
                logger.warning("Ignoring unknown LLM provider %s", name)
        return cls(resolved, providers)

    def list_providers(self) -> List[str]:
        return [provider.name for provider in self._providers]

    def is_configured(self) -> bool:
        """True when at least one provider has credentials."""
        return any(provider.is_available() for provider in self._providers)

    def generate(
        self,
        prompt: str,
        config: Optional[LLMTaskConfig] = None,
    ) -> OrchestrationResult:
        config = config or LLMTaskConfig()
        result = OrchestrationResult()

        for provider in self._providers:
            if not provider.is_available():
                result.failures.append(
                    ProviderFailure(
                        provider=provider.name,
                        reason="provider not configured",
                        error_type="configuration",
                    )
                )
                continue

            try:
                response = provider.generate(
                    prompt,
                    system=config.system,
                    max_output_tokens=config.max_output_tokens,
                    temperature=config.temperature,
                    metadata=config.metadata,
                )
            except LLMRateLimitError as exc:
                result.failures.append(
                    ProviderFailure(provider.name, str(exc), "rate_limit")
                )
                continue
            except LLMConfigurationError as exc:
                result.failures.append(
                    ProviderFailure(provider.name, str(exc), "configuration")
                )
                continue
            except LLMProviderError as exc:
                result.failures.append(
                    ProviderFailure(provider.name, str(exc), "provider")
                )
                continue

            result.response = response
            return result

        # Exhausted providers without success
        return result


__all__ = [
    "LLMOrchestrator",
    "LLMTaskConfig",
    "OrchestrationResult",
    "ProviderFailure",
]
