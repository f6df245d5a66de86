"""Summary: AI completion provider abstraction and implementations.

Importance: The compiled prompt is provider-agnostic, so any completion backend can classify with it.
Alternatives: Bind classification to one hosted model.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass

from inboxforge.config import AppConfig
from inboxforge.errors import ConfigurationError, ProviderError
from inboxforge.transport import send_json

AI_TIMEOUT_SECONDS = 60


class AiProvider(ABC):
    """Summary: Abstract interface for AI chat completions.

    Importance: Classification runs the same way against local and hosted models.
    Alternatives: Expose a vendor SDK client to the classifier.
    """

    @abstractmethod
    def complete(self, system_message: str, user_content: str) -> tuple[str, int]:
        """Summary: Complete a conversation made of a system message and one user turn.

        Importance: The compiled prompt travels as the system message, the email as the user turn.
        Alternatives: Concatenate both into a single prompt string.
        """


class MockAiProvider(AiProvider):
    """Summary: Deterministic AI provider for local runs and tests.

    Importance: Lets the CLI and tests classify without network access.
    Alternatives: Point tests at a local Ollama server.
    """

    def __init__(self, response: str | None = None) -> None:
        """Summary: Initialize the mock with an optional canned response.

        Importance: Tests can inject exact model output, including malformed JSON.
        Alternatives: Load fixture responses from files.
        """

        self._response = response
        self.calls: list[tuple[str, str]] = []

    def complete(self, system_message: str, user_content: str) -> tuple[str, int]:
        """Summary: Return the canned response or an echo of the user content."""

        started = time.time()
        self.calls.append((system_message, user_content))
        response = self._response if self._response is not None else f"[mock] {user_content[:240]}"
        latency_ms = int((time.time() - started) * 1000)
        return response, latency_ms


class OllamaProvider(AiProvider):
    """Summary: Chat completions from a self-hosted Ollama server.

    Importance: Keeps customer email on hardware the business controls.
    Alternatives: Embed a model runtime in the service process.
    """

    def __init__(self, base_url: str, model: str, max_attempts: int = 3) -> None:
        """Summary: Store the Ollama endpoint, model, and retry limit.

        Importance: One instance serves every classification call.
        Alternatives: Read the endpoint from the environment per call.
        """

        self._base_url = base_url.rstrip("/")
        self._model = model
        self._max_attempts = max_attempts

    def complete(self, system_message: str, user_content: str) -> tuple[str, int]:
        """Summary: Complete using the Ollama chat API with JSON output.

        Importance: Enables local inference for classification.
        Alternatives: Use the generate endpoint with a flattened prompt.
        """

        payload = {
            "model": self._model,
            "messages": [
                {"role": "system", "content": system_message},
                {"role": "user", "content": user_content},
            ],
            "format": "json",
            "stream": False,
        }
        started = time.time()
        raw = send_json(
            "POST",
            f"{self._base_url}/api/chat",
            payload=payload,
            timeout=AI_TIMEOUT_SECONDS,
            max_attempts=self._max_attempts,
            provider_name="Ollama",
        )
        latency_ms = int((time.time() - started) * 1000)
        message = raw.get("message") or {}
        return str(message.get("content", "")), latency_ms


class OpenAiProvider(AiProvider):
    """Summary: Chat completions from the hosted OpenAI API.

    Importance: Enables higher-quality classification when configured.
    Alternatives: Route every business through Ollama.
    """

    def __init__(self, api_key: str, model: str, max_attempts: int = 3) -> None:
        """Summary: Store the API key, model, and retry limit.

        Importance: The key is sent as a bearer token on each request.
        Alternatives: Accept a key per classification call.
        """

        self._api_key = api_key
        self._model = model
        self._max_attempts = max_attempts

    def complete(self, system_message: str, user_content: str) -> tuple[str, int]:
        """Summary: Complete using OpenAI chat completions in JSON mode.

        Importance: JSON mode keeps responses parseable by the classifier.
        Alternatives: Parse free-form text and hope it is JSON.
        """

        payload = {
            "model": self._model,
            "messages": [
                {"role": "system", "content": system_message},
                {"role": "user", "content": user_content},
            ],
            "temperature": 0.2,
            "response_format": {"type": "json_object"},
        }
        started = time.time()
        raw = send_json(
            "POST",
            "https://api.openai.com/v1/chat/completions",
            access_token=self._api_key,
            payload=payload,
            timeout=AI_TIMEOUT_SECONDS,
            max_attempts=self._max_attempts,
            provider_name="OpenAI",
        )
        latency_ms = int((time.time() - started) * 1000)
        try:
            content = raw["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise ProviderError("OpenAI response had no message content") from exc
        return str(content or ""), latency_ms


@dataclass(frozen=True)
class AiProviderFactory:
    """Summary: Picks the completion backend named by the ai_provider setting.

    Importance: The CLI and API build the same provider from one config.
    Alternatives: Let each entrypoint choose its own backend.
    """

    config: AppConfig

    def build(self) -> AiProvider:
        """Summary: Build the provider, defaulting to the mock.

        Importance: A missing OpenAI key fails at startup, not on the first email.
        Alternatives: Fail lazily on the first request.
        """

        attempts = self.config.http_max_attempts
        if self.config.ai_provider == "ollama":
            return OllamaProvider(self.config.ollama_url, self.config.ollama_model, attempts)
        if self.config.ai_provider == "openai":
            if not self.config.openai_api_key:
                raise ConfigurationError("OPENAI_API_KEY is required for openai provider")
            return OpenAiProvider(self.config.openai_api_key, self.config.openai_model, attempts)
        return MockAiProvider()
