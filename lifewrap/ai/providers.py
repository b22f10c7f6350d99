"""
Wire shapes of the two supported remote chat APIs.

    OpenAI     {model, messages, temperature, max_tokens} -> choices[0].message.content
    Anthropic  {model, max_tokens, system, messages}      -> content[0].text

Each provider also knows its auth headers, which model names belong to it,
and the key prefix used for a quick format check.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from lifewrap.config import (
    ANTHROPIC_API_URL,
    ANTHROPIC_API_VERSION,
    ANTHROPIC_DEFAULT_MODEL,
    OPENAI_API_URL,
    OPENAI_DEFAULT_MODEL,
)
from lifewrap.errors import ConfigurationError
from lifewrap.prompting.builder import PromptMessages


class RemoteProvider(str, Enum):
    OPENAI = "openai"
    ANTHROPIC = "anthropic"

    @property
    def display_name(self) -> str:
        return "OpenAI" if self is RemoteProvider.OPENAI else "Anthropic"

    @property
    def endpoint(self) -> str:
        return OPENAI_API_URL if self is RemoteProvider.OPENAI else ANTHROPIC_API_URL

    @property
    def default_model(self) -> str:
        return OPENAI_DEFAULT_MODEL if self is RemoteProvider.OPENAI else ANTHROPIC_DEFAULT_MODEL

    @property
    def model_prefixes(self) -> tuple[str, ...]:
        if self is RemoteProvider.OPENAI:
            return ("gpt-", "o1", "o3", "o4", "chatgpt-")
        return ("claude-",)

    @property
    def key_prefix(self) -> str:
        return "sk-" if self is RemoteProvider.OPENAI else "sk-ant-"

    def validate_model(self, model: str) -> None:
        """
        Raises:
            ConfigurationError: If ``model`` belongs to the other provider
                or to neither.
        """
        if not model or not model.startswith(self.model_prefixes):
            raise ConfigurationError(
                f"Model {model!r} is not a {self.display_name} model"
            )

    def key_format_ok(self, api_key: str) -> bool:
        """Cheap prefix check; the provider has the final word."""
        if not api_key or not api_key.startswith(self.key_prefix):
            return False
        # OpenAI keys must not be Anthropic keys
        if self is RemoteProvider.OPENAI and api_key.startswith("sk-ant-"):
            return False
        return True

    def headers(self, api_key: str) -> dict[str, str]:
        if self is RemoteProvider.OPENAI:
            return {
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            }
        return {
            "x-api-key": api_key,
            "anthropic-version": ANTHROPIC_API_VERSION,
            "Content-Type": "application/json",
        }

    def build_payload(
        self,
        model: str,
        messages: PromptMessages,
        temperature: float,
        max_tokens: int,
    ) -> dict[str, Any]:
        if self is RemoteProvider.OPENAI:
            return {
                "model": model,
                "messages": messages.as_chat(),
                "temperature": temperature,
                "max_tokens": max_tokens,
            }
        return {
            "model": model,
            "max_tokens": max_tokens,
            "system": messages.system,
            "messages": [{"role": "user", "content": messages.user}],
        }

    def extract_text(self, body: dict[str, Any]) -> str:
        """
        Raises:
            KeyError, IndexError, TypeError: On an unexpected body shape.
        """
        if self is RemoteProvider.OPENAI:
            return body["choices"][0]["message"]["content"]
        return body["content"][0]["text"]

    def extract_usage(self, body: dict[str, Any]) -> tuple[int, int]:
        """(input tokens, output tokens); zeros if the body has no usage block."""
        usage = body.get("usage") or {}
        if self is RemoteProvider.OPENAI:
            return usage.get("prompt_tokens", 0), usage.get("completion_tokens", 0)
        return usage.get("input_tokens", 0), usage.get("output_tokens", 0)
