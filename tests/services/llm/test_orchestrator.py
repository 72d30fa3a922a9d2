from typing import Dict, List, Optional, Type

import pytest

from secintel.services.llm.orchestrator import LLMOrchestrator, LLMTaskConfig
from secintel.services.llm.providers import (
    LLMConfigurationError,
    LLMProvider,
    LLMProviderError,
    LLMProviderResponse,
    LLMRateLimitError,
    ProviderRegistry,
)
from secintel.services.llm.settings import LLMSettings


class FakeProvider(LLMProvider):
    provider_name = "fake"
    model_name = "model"
    max_context_tokens = 1000

    def __init__(
        self,
        settings: LLMSettings,
        *,
        name: Optional[str] = None,
        available: bool = True,
        error: Optional[Exception] = None,
    ) -> None:
        super().__init__(settings)
        if name:
            self.provider_name = name
        self._available = available
        self._error = error
        self.calls: List[Dict[str, object]] = []

    def is_available(self) -> bool:
        return self._available

    def _client_tuple(self):  # pragma: no cover - interface stub
        return (None, None, None)

    def generate(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        max_output_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        metadata: Optional[Dict[str, object]] = None,
    ) -> LLMProviderResponse:
        self.calls.append(
            {
                "prompt": prompt,
                "system": system,
                "max_output_tokens": max_output_tokens,
                "temperature": temperature,
                "metadata": metadata,
            }
        )
        if self._error:
            raise self._error
        return LLMProviderResponse(
            provider=self.provider_name,
            model=self.model_name,
            content=f"{prompt}-{self.provider_name}",
            metadata=(metadata or {}).copy(),
        )


def _settings(**overrides) -> LLMSettings:
    return LLMSettings(
        provider_order=overrides.get("provider_order", ["p1", "p2"]),
        openai_api_key=overrides.get("openai_api_key", "key"),
        anthropic_api_key=overrides.get("anthropic_api_key", "anthropic"),
        request_timeout=overrides.get("request_timeout", 30),
        default_max_output_tokens=overrides.get("default_max_output_tokens", 200),
        default_temperature=overrides.get("default_temperature", 0.5),
    )


def _provider(name: str, **kwargs) -> FakeProvider:
    return FakeProvider(_settings(), name=name, **kwargs)


class _RegistryPatch:
    def __init__(self, registry: Dict[str, Type[LLMProvider]]) -> None:
        self.registry = registry

    def __enter__(self) -> None:
        self.original = dict(ProviderRegistry._registry)
        ProviderRegistry._registry.update(self.registry)

    def __exit__(self, exc_type, exc, tb) -> None:
        ProviderRegistry._registry = self.original


def test_from_settings_builds_providers_in_order():
    settings = _settings(provider_order=["first", "second"])
    with _RegistryPatch(
        {
            "first": type("ProviderFirst", (FakeProvider,), {"provider_name": "first"}),
            "second": type("ProviderSecond", (FakeProvider,), {"provider_name": "second"}),
        }
    ):
        orchestrator = LLMOrchestrator.from_settings(settings)
        assert orchestrator.list_providers() == ["first", "second"]


def test_from_settings_skips_unknown_providers():
    orchestrator = LLMOrchestrator.from_settings(
        _settings(provider_order=["does-not-exist", "claude-3.5-sonnet"])
    )
    assert orchestrator.list_providers() == ["claude-3.5-sonnet"]


@pytest.mark.parametrize(
    "error, expected_type",
    [
        (LLMRateLimitError("boom"), "rate_limit"),
        (LLMConfigurationError("missing"), "configuration"),
        (LLMProviderError("nope"), "provider"),
    ],
)
def test_generate_collects_failures_and_falls_back(error, expected_type):
    providers = [
        _provider("unavailable", available=False),
        _provider("failing", error=error),
        _provider("success"),
    ]
    orchestrator = LLMOrchestrator(_settings(), providers)

    result = orchestrator.generate("PROMPT", LLMTaskConfig(metadata={"base": True}))

    assert result.succeeded is True
    assert result.provider == "success"
    assert result.content == "PROMPT-success"
    assert [(failure.provider, failure.error_type) for failure in result.failures] == [
        ("unavailable", "configuration"),
        ("failing", expected_type),
    ]


def test_generate_returns_failures_when_all_providers_fail():
    providers = [
        _provider("unavailable", available=False),
        _provider("misconfigured", error=LLMConfigurationError("missing")),
    ]
    orchestrator = LLMOrchestrator(_settings(), providers)

    result = orchestrator.generate("PROMPT")

    assert result.succeeded is False
    assert result.response is None
    assert result.content is None
    assert result.failure_summary() == (
        "unavailable: configuration (provider not configured); "
        "misconfigured: configuration (missing)"
    )


def test_failure_summary_without_providers():
    result = LLMOrchestrator(_settings(), []).generate("PROMPT")
    assert result.failure_summary() == "no providers configured"


def test_generate_uses_task_config_values():
    provider = _provider("configured")
    orchestrator = LLMOrchestrator(_settings(), [provider])

    config = LLMTaskConfig(
        system="Return JSON",
        max_output_tokens=512,
        temperature=0.7,
        metadata={"topic": "news"},
    )

    orchestrator.generate("PROMPT", config)

    assert provider.calls == [
        {
            "prompt": "PROMPT",
            "system": "Return JSON",
            "max_output_tokens": 512,
            "temperature": 0.7,
            "metadata": {"topic": "news"},
        }
    ]


def test_is_configured():
    assert LLMOrchestrator(_settings(), [_provider("ok")]).is_configured()
    assert not LLMOrchestrator(_settings(), [_provider("off", available=False)]).is_configured()
    assert not LLMOrchestrator(_settings(), []).is_configured()
