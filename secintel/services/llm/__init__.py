"""Pluggable large language model providers and orchestration helpers."""

from .orchestrator import (
    LLMOrchestrator,
    LLMTaskConfig,
    OrchestrationResult,
    ProviderFailure,
)
from .providers import (
    Claude35SonnetProvider,
    GPT4oMiniProvider,
    GPT41MiniProvider,
    LLMConfigurationError,
    LLMProvider,
    LLMProviderError,
    LLMProviderResponse,
    LLMRateLimitError,
    ProviderRegistry,
)
from .settings import LLMSettings, load_llm_settings

__all__ = [
    "LLMOrchestrator",
    "LLMTaskConfig",
    "OrchestrationResult",
    "ProviderFailure",
    "LLMProvider",
    "LLMProviderError",
    "LLMProviderResponse",
    "LLMRateLimitError",
    "LLMConfigurationError",
    "ProviderRegistry",
    "GPT4oMiniProvider",
    "GPT41MiniProvider",
    "Claude35SonnetProvider",
    "LLMSettings",
    "load_llm_settings",
]
