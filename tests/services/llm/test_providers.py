"""Tests for LLM provider implementations and registry utilities."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import Mock, patch

import pytest

from secintel.services.llm.providers import (
    Claude35SonnetProvider,
    GPT4oMiniProvider,
    GPT41MiniProvider,
    LLMConfigurationError,
    LLMProviderError,
    LLMProviderResponse,
    LLMRateLimitError,
    ProviderRegistry,
    _coalesce_claude_text,
    _coalesce_response_text,
    _import_module,
)
from secintel.services.llm.settings import LLMSettings

PATCH_TARGET = "secintel.services.llm.providers._import_module"


@pytest.fixture
def mock_settings():
    """Create mock LLM settings for testing."""
    settings = Mock(spec=LLMSettings)
    settings.openai_api_key = "test-openai-key"
    settings.openai_organization = "test-org"
    settings.anthropic_api_key = "test-anthropic-key"
    settings.request_timeout = 30
    settings.max_retries = 2
    settings.default_temperature = 0.1
    settings.default_max_output_tokens = 1000
    return settings


class TestImportModule:
    def test_imports_existing_module(self):
        json_module = _import_module("json")
        assert json_module is not None
        assert hasattr(json_module, "loads")

    def test_returns_none_for_missing_module(self):
        assert _import_module("nonexistent_module_12345") is None


class TestGPT4oMiniProvider:
    """Tests for the OpenAI provider implementation."""

    def test_provider_attributes(self, mock_settings):
        provider = GPT4oMiniProvider(mock_settings)
        assert provider.name == "openai-gpt4o-mini"
        assert provider.model == "gpt-4o-mini"
        assert provider.max_context_tokens == 128_000

    def test_is_available_depends_on_api_key(self, mock_settings):
        assert GPT4oMiniProvider(mock_settings).is_available() is True
        mock_settings.openai_api_key = None
        assert GPT4oMiniProvider(mock_settings).is_available() is False

    @patch(PATCH_TARGET)
    def test_client_tuple_with_missing_module(self, mock_import, mock_settings):
        mock_import.return_value = None
        provider = GPT4oMiniProvider(mock_settings)
        assert provider._client_tuple() == (None, None, None)

    @patch(PATCH_TARGET)
    def test_client_is_created_once(self, mock_import, mock_settings):
        mock_module = Mock()
        mock_module.OpenAIError = Exception
        mock_module.RateLimitError = Exception
        mock_import.return_value = mock_module

        provider = GPT4oMiniProvider(mock_settings)
        client, error_cls, rate_cls = provider._client_tuple()
        provider._client_tuple()

        mock_module.OpenAI.assert_called_once_with(
            api_key="test-openai-key",
            organization="test-org",
            timeout=30,
            max_retries=2,
        )
        assert client == mock_module.OpenAI.return_value
        assert error_cls is Exception
        assert rate_cls is Exception

    @patch(PATCH_TARGET)
    def test_generate_raises_config_error_no_key(self, mock_import, mock_settings):
        mock_settings.openai_api_key = None
        provider = GPT4oMiniProvider(mock_settings)

        with pytest.raises(LLMConfigurationError, match="OPENAI_API_KEY is not configured"):
            provider.generate("test prompt")
        mock_import.assert_not_called()

    @patch(PATCH_TARGET)
    def test_generate_raises_config_error_no_client(self, mock_import, mock_settings):
        mock_import.return_value = None
        provider = GPT4oMiniProvider(mock_settings)

        with pytest.raises(LLMConfigurationError, match="OpenAI client is unavailable"):
            provider.generate("test prompt")

    @patch(PATCH_TARGET)
    def test_generate_success(self, mock_import, mock_settings):
        mock_module = Mock()
        mock_client = mock_module.OpenAI.return_value
        mock_client.responses.create.return_value = SimpleNamespace(output_text="[]")
        mock_module.OpenAIError = Exception
        mock_module.RateLimitError = Exception
        mock_import.return_value = mock_module

        provider = GPT4oMiniProvider(mock_settings)
        result = provider.generate(
            "test prompt",
            system="Return JSON",
            max_output_tokens=500,
            metadata={"target_id": "acme"},
        )

        mock_client.responses.create.assert_called_once_with(
            model="gpt-4o-mini",
            input="test prompt",
            max_output_tokens=500,
            temperature=0.1,
            instructions="Return JSON",
        )
        assert isinstance(result, LLMProviderResponse)
        assert result.content == "[]"
        assert result.metadata["target_id"] == "acme"
        assert result.metadata["provider"] == "openai-gpt4o-mini"
        assert "timestamp" in result.metadata

    @patch(PATCH_TARGET)
    def test_generate_converts_rate_limit_error(self, mock_import, mock_settings):
        class FakeRateLimitError(Exception):
            pass

        mock_module = Mock()
        mock_module.OpenAI.return_value.responses.create.side_effect = FakeRateLimitError(
            "rate limited"
        )
        mock_module.OpenAIError = Exception
        mock_module.RateLimitError = FakeRateLimitError
        mock_import.return_value = mock_module

        with pytest.raises(LLMRateLimitError, match="rate limited"):
            GPT4oMiniProvider(mock_settings).generate("prompt")

    @patch(PATCH_TARGET)
    def test_generate_converts_provider_error(self, mock_import, mock_settings):
        class FakeProviderError(Exception):
            pass

        mock_module = Mock()
        mock_module.OpenAI.return_value.responses.create.side_effect = FakeProviderError("boom")
        mock_module.OpenAIError = FakeProviderError
        mock_module.RateLimitError = None
        mock_import.return_value = mock_module

        with pytest.raises(LLMProviderError, match="boom"):
            GPT4oMiniProvider(mock_settings).generate("prompt")


def test_gpt41_mini_shares_openai_client(mock_settings):
    provider = GPT41MiniProvider(mock_settings)
    assert provider.name == "openai-gpt4.1-mini"
    assert provider.model == "gpt-4.1-mini"
    assert isinstance(provider, GPT4oMiniProvider)


class TestClaude35SonnetProvider:
    """Tests for the Anthropic provider implementation."""

    def test_provider_attributes(self, mock_settings):
        provider = Claude35SonnetProvider(mock_settings)
        assert provider.provider_name == "claude-3.5-sonnet"
        assert provider.model_name == "claude-3-5-sonnet-latest"
        assert provider.max_context_tokens == 200_000

    def test_is_available_without_api_key(self, mock_settings):
        mock_settings.anthropic_api_key = None
        assert Claude35SonnetProvider(mock_settings).is_available() is False

    @patch(PATCH_TARGET)
    def test_generate_success(self, mock_import, mock_settings):
        mock_module = Mock()
        mock_client = mock_module.Anthropic.return_value
        mock_client.messages.create.return_value = SimpleNamespace(
            content=[SimpleNamespace(text="Claude response")]
        )
        mock_module.AnthropicError = Exception
        mock_module.RateLimitError = Exception
        mock_import.return_value = mock_module

        result = Claude35SonnetProvider(mock_settings).generate("prompt", system="Be terse")

        mock_client.messages.create.assert_called_once_with(
            model="claude-3-5-sonnet-latest",
            max_tokens=1000,
            temperature=0.1,
            messages=[{"role": "user", "content": "prompt"}],
            system="Be terse",
        )
        assert result.provider == "claude-3.5-sonnet"
        assert result.content == "Claude response"

    @patch(PATCH_TARGET)
    def test_generate_missing_client_raises_configuration(self, mock_import, mock_settings):
        mock_import.return_value = None

        with pytest.raises(LLMConfigurationError, match="Anthropic client is unavailable"):
            Claude35SonnetProvider(mock_settings).generate("prompt")

    def test_generate_missing_api_key(self, mock_settings):
        mock_settings.anthropic_api_key = None

        with pytest.raises(LLMConfigurationError, match="ANTHROPIC_API_KEY"):
            Claude35SonnetProvider(mock_settings).generate("prompt")

    @patch(PATCH_TARGET)
    def test_generate_translates_rate_limit(self, mock_import, mock_settings):
        class FakeRateLimitError(Exception):
            pass

        mock_module = Mock()
        mock_module.Anthropic.return_value.messages.create.side_effect = FakeRateLimitError(
            "too fast"
        )
        mock_module.AnthropicError = Exception
        mock_module.RateLimitError = FakeRateLimitError
        mock_import.return_value = mock_module

        with pytest.raises(LLMRateLimitError, match="too fast"):
            Claude35SonnetProvider(mock_settings).generate("prompt")


class TestCoalesceHelpers:
    def test_response_text_prefers_output_text(self):
        assert _coalesce_response_text(SimpleNamespace(output_text="hello")) == "hello"

    def test_response_text_reads_chat_choices(self):
        response = SimpleNamespace(
            output_text=None,
            choices=[SimpleNamespace(message=SimpleNamespace(content="from choices"))],
        )
        assert _coalesce_response_text(response) == "from choices"

    def test_response_text_empty(self):
        assert _coalesce_response_text(SimpleNamespace()) == ""

    def test_claude_text_joins_blocks(self):
        response = SimpleNamespace(
            content=[SimpleNamespace(text="one"), SimpleNamespace(text=None), SimpleNamespace(text="two")]
        )
        assert _coalesce_claude_text(response) == "one\ntwo"

    def test_claude_text_fallback(self):
        assert _coalesce_claude_text(SimpleNamespace(content=None, text="plain")) == "plain"


def test_registry_lists_and_creates_providers(mock_settings):
    assert list(ProviderRegistry.names()) == [
        "claude-3.5-sonnet",
        "openai-gpt4.1-mini",
        "openai-gpt4o-mini",
    ]
    assert isinstance(ProviderRegistry.create("claude-3.5-sonnet", mock_settings), Claude35SonnetProvider)
    with pytest.raises(KeyError):
        ProviderRegistry.create("unknown", mock_settings)
