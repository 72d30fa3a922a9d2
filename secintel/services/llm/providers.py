"""LLM provider implementations and registration utilities."""

from __future__ import annotations

import importlib
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional, Tuple, Type

from .settings import LLMSettings

logger = logging.getLogger(__name__)

ErrorType = Optional[Type[BaseException]]
ClientTuple = Tuple[Any, ErrorType, ErrorType]


def _import_module(module_name: str) -> Optional[Any]:
    """Import a provider SDK lazily, returning None when it is not installed."""

    try:  # pragma: no cover - import side effects only when available
        return importlib.import_module(module_name)
    except ModuleNotFoundError as exc:  # pragma: no cover - optional extra
        logger.debug("Module %s not available: %s", module_name, exc)
        return None


class LLMProviderError(RuntimeError):
    """Base exception raised when a provider fails to produce an output."""


class LLMRateLimitError(LLMProviderError):
    """Raised when a provider reports a rate limit condition."""


class LLMConfigurationError(LLMProviderError):
    """Raised when required configuration for a provider is missing."""


@dataclass(slots=True)
class LLMProviderResponse:
    """Normalized response payload returned by providers."""

    provider: str
    model: str
    content: str
    metadata: Dict[str, object]


class LLMProvider(ABC):
    """Abstract base class implemented by concrete LLM providers."""

    provider_name: str
    model_name: str
    max_context_tokens: int

    def __init__(self, settings: LLMSettings):
        self._settings = settings
        self._client: Optional[Any] = None

    @property
    def name(self) -> str:
        return self.provider_name

    @property
    def model(self) -> str:
        return self.model_name

    @abstractmethod
    def is_available(self) -> bool:
        """Return True when the provider can be invoked safely."""

    @abstractmethod
    def _client_tuple(self) -> ClientTuple:
        """Return the cached client and error types."""

    @abstractmethod
    def generate(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        max_output_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        metadata: Optional[Dict[str, object]] = None,
    ) -> LLMProviderResponse:
        """Produce a response for the supplied prompt."""

    def _default_temperature(self, override: Optional[float]) -> float:
        if override is not None:
            return override
        return self._settings.default_temperature

    def _default_output_tokens(self, override: Optional[int]) -> int:
        if override is not None:
            return override
        return self._settings.default_max_output_tokens

    def _decorate_metadata(
        self, metadata: Optional[Dict[str, object]]
    ) -> Dict[str, object]:
        payload = metadata.copy() if metadata else {}
        payload.setdefault("provider", self.provider_name)
        payload.setdefault("model", self.model_name)
        payload.setdefault("timestamp", datetime.now(timezone.utc).isoformat())
        return payload

    @staticmethod
    def _translate_error(exc: Exception, error_cls: ErrorType, rate_cls: ErrorType) -> None:
        if rate_cls and isinstance(exc, rate_cls):
            raise LLMRateLimitError(str(exc)) from exc
        if error_cls and isinstance(exc, error_cls):
            raise LLMProviderError(str(exc)) from exc


class GPT4oMiniProvider(LLMProvider):
    provider_name = "openai-gpt4o-mini"
    model_name = "gpt-4o-mini"
    max_context_tokens = 128_000

    def is_available(self) -> bool:
        return bool(self._settings.openai_api_key)

    def _client_tuple(self) -> ClientTuple:
        module = _import_module("openai")
        if module is None:
            return (None, None, None)

        openai_cls = getattr(module, "OpenAI", None)
        error_cls = getattr(module, "OpenAIError", None)
        rate_cls = getattr(module, "RateLimitError", None)

        if openai_cls is None:
            logger.debug("OpenAI class missing in openai module")
            return (None, error_cls, rate_cls)

        if self._client is None:
            self._client = openai_cls(
                api_key=self._settings.openai_api_key,
                organization=self._settings.openai_organization,
                timeout=self._settings.request_timeout,
                max_retries=self._settings.max_retries,
            )
        return (self._client, error_cls, rate_cls)

    def generate(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        max_output_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        metadata: Optional[Dict[str, object]] = None,
    ) -> LLMProviderResponse:
        if not self._settings.openai_api_key:
            raise LLMConfigurationError("OPENAI_API_KEY is not configured")
        client, error_cls, rate_cls = self._client_tuple()
        if client is None:
            raise LLMConfigurationError("OpenAI client is unavailable")

        request: Dict[str, Any] = {
            "model": self.model_name,
            "input": prompt,
            "max_output_tokens": self._default_output_tokens(max_output_tokens),
            "temperature": self._default_temperature(temperature),
        }
        if system:
            request["instructions"] = system

        try:
            response = client.responses.create(**request)  # type: ignore[call-arg]
        except Exception as exc:  # pragma: no cover - client specific
            self._translate_error(exc, error_cls, rate_cls)
            raise

        return LLMProviderResponse(
            provider=self.provider_name,
            model=self.model_name,
            content=_coalesce_response_text(response),
            metadata=self._decorate_metadata(metadata),
        )


class GPT41MiniProvider(GPT4oMiniProvider):
    provider_name = "openai-gpt4.1-mini"
    model_name = "gpt-4.1-mini"


class Claude35SonnetProvider(LLMProvider):
    provider_name = "claude-3.5-sonnet"
    model_name = "claude-3-5-sonnet-latest"
    max_context_tokens = 200_000

    def is_available(self) -> bool:
        return bool(self._settings.anthropic_api_key)

    def _client_tuple(self) -> ClientTuple:
        module = _import_module("anthropic")
        if module is None:
            return (None, None, None)

        client_cls = getattr(module, "Anthropic", None)
        error_cls = getattr(module, "AnthropicError", None)
        rate_cls = getattr(module, "RateLimitError", None)

        if client_cls is None:
            logger.debug("Anthropic client class missing")
            return (None, error_cls, rate_cls)

        if self._client is None:
            self._client = client_cls(
                api_key=self._settings.anthropic_api_key,
                timeout=self._settings.request_timeout,
                max_retries=self._settings.max_retries,
            )
        return (self._client, error_cls, rate_cls)

    def generate(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        max_output_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        metadata: Optional[Dict[str, object]] = None,
    ) -> LLMProviderResponse:
        if not self._settings.anthropic_api_key:
            raise LLMConfigurationError("ANTHROPIC_API_KEY is not configured")
        client, error_cls, rate_cls = self._client_tuple()
        if client is None:
            raise LLMConfigurationError("Anthropic client is unavailable")

        request: Dict[str, Any] = {
            "model": self.model_name,
            "max_tokens": self._default_output_tokens(max_output_tokens),
            "temperature": self._default_temperature(temperature),
            "messages": [{"role": "user", "content": prompt}],
        }
        if system:
            request["system"] = system

        try:
            result = client.messages.create(**request)  # type: ignore[call-arg]
        except Exception as exc:  # pragma: no cover - client specific
            self._translate_error(exc, error_cls, rate_cls)
            raise

        return LLMProviderResponse(
            provider=self.provider_name,
            model=self.model_name,
            content=_coalesce_claude_text(result),
            metadata=self._decorate_metadata(metadata),
        )


class ProviderRegistry:
    """Registry for mapping provider slugs to implementations."""

    _registry: Dict[str, Type[LLMProvider]] = {
        GPT4oMiniProvider.provider_name: GPT4oMiniProvider,
        GPT41MiniProvider.provider_name: GPT41MiniProvider,
        Claude35SonnetProvider.provider_name: Claude35SonnetProvider,
    }

    @classmethod
    def register(cls, slug: str, provider_cls: Type[LLMProvider]) -> None:
        cls._registry[slug] = provider_cls

    @classmethod
    def create(cls, slug: str, settings: LLMSettings) -> LLMProvider:
        provider_cls = cls._registry.get(slug)
        if not provider_cls:
            raise KeyError(f"Unknown provider '{slug}'")
        return provider_cls(settings)

    @classmethod
    def names(cls) -> Iterable[str]:
        return sorted(cls._registry)


def _coalesce_response_text(response: Any) -> str:
    output_text = getattr(response, "output_text", None)
    if output_text:
        return str(output_text)
    choices = getattr(response, "choices", None)
    if choices:
        message = getattr(choices[0], "message", None)
        content = getattr(message, "content", None)
        if content:
            return str(content)
    return ""


def _coalesce_claude_text(response: Any) -> str:
    content = getattr(response, "content", None)
    if isinstance(content, list):
        parts = [str(item.text) for item in content if getattr(item, "text", None)]
        if parts:
            return "\n".join(parts)
    text_value = getattr(response, "text", None)
    if text_value:
        return str(text_value)
    return ""
