"""Tests for the Anthropic generation backend adapter."""

from types import SimpleNamespace
from unittest.mock import MagicMock

import httpx
import pytest
from anthropic import APIConnectionError, APITimeoutError

from src.errors.domain import GenerationError
from src.services.generation_backend import AnthropicGenerationBackend


def _request() -> httpx.Request:
    return httpx.Request("POST", "https://api.anthropic.com/v1/messages")


def _client_returning(*blocks) -> MagicMock:
    client = MagicMock()
    client.with_options.return_value.messages.create.return_value = SimpleNamespace(
        content=list(blocks)
    )
    return client


def test_complete_joins_text_blocks():
    client = _client_returning(
        SimpleNamespace(type="text", text="Hello Ana. "),
        SimpleNamespace(type="tool_use", name="ignored"),
        SimpleNamespace(type="text", text="The agent will follow up."),
    )
    backend = AnthropicGenerationBackend(client=client, model="claude-test")

    text = backend.complete("system", "user", 12.0)

    assert text == "Hello Ana. The agent will follow up."
    client.with_options.assert_called_once_with(timeout=12.0)
    kwargs = client.with_options.return_value.messages.create.call_args.kwargs
    assert kwargs["model"] == "claude-test"
    assert kwargs["system"] == "system"
    assert kwargs["messages"] == [{"role": "user", "content": "user"}]


def test_timeout_maps_to_generation_error():
    client = MagicMock()
    client.with_options.return_value.messages.create.side_effect = APITimeoutError(
        request=_request()
    )
    backend = AnthropicGenerationBackend(client=client)

    with pytest.raises(GenerationError) as exc_info:
        backend.complete("system", "user", 1.0)

    assert exc_info.value.detail.startswith("APITimeoutError")


def test_connection_error_maps_to_generation_error():
    client = MagicMock()
    client.with_options.return_value.messages.create.side_effect = APIConnectionError(
        request=_request()
    )
    backend = AnthropicGenerationBackend(client=client)

    with pytest.raises(GenerationError):
        backend.complete("system", "user", 1.0)


def test_malformed_response_maps_to_generation_error():
    client = MagicMock()
    client.with_options.return_value.messages.create.return_value = SimpleNamespace(
        content=42
    )
    backend = AnthropicGenerationBackend(client=client)

    with pytest.raises(GenerationError):
        backend.complete("system", "user", 1.0)


def test_empty_content_returns_empty_string():
    backend = AnthropicGenerationBackend(client=_client_returning())
    assert backend.complete("system", "user", 1.0) == ""


class TestConfiguration:
    def test_not_configured_without_key(self):
        assert AnthropicGenerationBackend().is_configured() is False

    def test_configured_with_key(self, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")
        assert AnthropicGenerationBackend().is_configured() is True

    def test_blank_key_is_not_configured(self, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "   ")
        assert AnthropicGenerationBackend().is_configured() is False

    def test_model_from_env(self, monkeypatch):
        monkeypatch.setenv("AUTO_REPLY_MODEL", "claude-other")
        assert AnthropicGenerationBackend().model == "claude-other"
