"""Summary: Tests for AI abstraction layer.

Importance: The classifier depends on every provider returning plain completion text.
Alternatives: Skip AI testing and rely on manual verification.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any

import pytest

from inboxforge.ai import AiProviderFactory, MockAiProvider, OllamaProvider, OpenAiProvider
from inboxforge.config import AppConfig
from inboxforge.errors import ConfigurationError, ProviderError


def _build_config(ai_provider: str = "mock", openai_api_key: str | None = None) -> AppConfig:
    """Summary: Build an AppConfig with the given AI settings."""

    return AppConfig(
        db_path="test.db",
        ai_provider=ai_provider,
        openai_api_key=openai_api_key,
        openai_model="gpt-4o-mini",
        ollama_url="http://localhost:11434/",
        ollama_model="llama3.1",
        api_host="127.0.0.1",
        api_port=8000,
        api_key="",
        gmail_api_base="https://gmail.googleapis.com",
        graph_api_base="https://graph.microsoft.com/v1.0",
        http_timeout_seconds=10,
        http_max_attempts=2,
        similarity_minor=0.9,
        similarity_moderate=0.7,
        similarity_major=0.4,
        refinement_threshold=10,
        min_voice_confidence=0.35,
        learning_lock_timeout_seconds=600,
        log_level="INFO",
    )


def test_mock_ai_provider_returns_response() -> None:
    """Summary: Verify mock AI provider echoes content and records calls.

    Importance: Confirms basic AI abstraction behavior for tests.
    Alternatives: Use live providers in integration tests only.
    """

    provider = MockAiProvider()
    response, latency = provider.complete("system", "Hello")
    assert response == "[mock] Hello"
    assert latency >= 0
    assert provider.calls == [("system", "Hello")]
    assert MockAiProvider('{"primary_category": "Sales"}').complete("s", "u")[0].startswith("{")


def test_factory_selects_provider() -> None:
    """Summary: Verify provider selection follows configuration."""

    assert isinstance(AiProviderFactory(_build_config()).build(), MockAiProvider)
    assert isinstance(AiProviderFactory(_build_config("ollama")).build(), OllamaProvider)
    openai = AiProviderFactory(_build_config("openai", openai_api_key="sk-test")).build()
    assert isinstance(openai, OpenAiProvider)


def test_factory_requires_openai_key() -> None:
    """Summary: Verify the OpenAI provider is not built without a key."""

    config = replace(_build_config(), ai_provider="openai")
    with pytest.raises(ConfigurationError):
        AiProviderFactory(config).build()


def test_openai_provider_sends_system_and_user_turns(monkeypatch: pytest.MonkeyPatch) -> None:
    """Summary: Verify OpenAI requests carry the prompt as the system message.

    Importance: The compiled prompt must never be mixed into the email content.
    Alternatives: Concatenate the prompt and email.
    """

    captured: dict[str, Any] = {}

    def fake_send_json(method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        captured.update(kwargs, method=method, url=url)
        return {"choices": [{"message": {"content": "{\"primary_category\": \"Sales\"}"}}]}

    monkeypatch.setattr("inboxforge.ai.send_json", fake_send_json)
    text, _ = OpenAiProvider("sk-test", "gpt-4o-mini", max_attempts=2).complete("prompt", "email")
    assert text == "{\"primary_category\": \"Sales\"}"
    assert captured["access_token"] == "sk-test"
    assert captured["max_attempts"] == 2
    assert captured["payload"]["response_format"] == {"type": "json_object"}
    assert captured["payload"]["messages"] == [
        {"role": "system", "content": "prompt"},
        {"role": "user", "content": "email"},
    ]


def test_openai_provider_rejects_empty_choices(monkeypatch: pytest.MonkeyPatch) -> None:
    """Summary: Verify responses without message content raise ProviderError."""

    monkeypatch.setattr("inboxforge.ai.send_json", lambda *args, **kwargs: {"choices": []})
    with pytest.raises(ProviderError):
        OpenAiProvider("sk-test", "gpt-4o-mini").complete("prompt", "email")


def test_ollama_provider_reads_message_content(monkeypatch: pytest.MonkeyPatch) -> None:
    """Summary: Verify Ollama requests hit the chat endpoint in JSON format."""

    captured: dict[str, Any] = {}

    def fake_send_json(method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        captured.update(kwargs, url=url)
        return {"message": {"content": "{}"}}

    monkeypatch.setattr("inboxforge.ai.send_json", fake_send_json)
    provider = AiProviderFactory(_build_config("ollama")).build()
    text, _ = provider.complete("prompt", "email")
    assert text == "{}"
    assert captured["url"] == "http://localhost:11434/api/chat"
    assert captured["payload"]["format"] == "json"
    assert captured["payload"]["model"] == "llama3.1"
