"""Shared types for model provider clients."""

import os
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Protocol

from rapport.models.llm import Message
from rapport.streaming.decoders import StreamDecoder
from rapport.tools.base import ToolDefinition


class Provider(StrEnum):
    """Supported model providers."""

    OPENAI = "openai"
    GEMINI = "gemini"


DEFAULT_MODELS = {
    Provider.OPENAI: "gpt-4o-mini",
    Provider.GEMINI: "gemini-2.0-flash",
}

DEFAULT_BASE_URLS = {
    Provider.OPENAI: "https://api.openai.com/v1",
    Provider.GEMINI: "https://generativelanguage.googleapis.com/v1beta",
}

API_KEY_ENV_VARS = {
    Provider.OPENAI: "OPENAI_API_KEY",
    Provider.GEMINI: "GEMINI_API_KEY",
}


@dataclass
class ProviderConfig:
    """Configuration for a model provider client."""

    provider: Provider = Provider.OPENAI
    model: str = ""
    api_key: str | None = None
    base_url: str = ""
    max_tokens: int = 2000
    timeout: float = 60.0
    max_retries: int = 3
    retry_delay: float = 1.0

    # Client-side rate limits
    requests_per_minute: int = 50
    tokens_per_minute: int = 200_000

    def __post_init__(self):
        self.provider = Provider(self.provider)
        self.model = self.model or DEFAULT_MODELS[self.provider]
        self.base_url = (self.base_url or DEFAULT_BASE_URLS[self.provider]).rstrip("/")

    @classmethod
    def from_env(cls, provider: Provider | str | None = None) -> "ProviderConfig":
        """Build a config from RAPPORT_PROVIDER, RAPPORT_MODEL and the provider's API key variable."""
        default_provider = Provider(os.getenv("RAPPORT_PROVIDER", Provider.OPENAI))
        selected = Provider(provider) if provider else default_provider

        # RAPPORT_MODEL names a model of the default provider
        model = os.getenv("RAPPORT_MODEL", "") if selected == default_provider else ""

        return cls(provider=selected, model=model, api_key=os.getenv(API_KEY_ENV_VARS[selected]))

    @property
    def api_key_env_var(self) -> str:
        return API_KEY_ENV_VARS[self.provider]


@dataclass
class ProviderRequest:
    """A fully built streaming request for one turn step."""

    provider: str
    url: str
    headers: dict[str, str]
    body: dict[str, Any] = field(default_factory=dict)


class ProviderAdapter(Protocol):
    """Everything provider specific: request format and stream decoding."""

    name: str

    def build_request(
        self, messages: list[Message], system_prompt: str, tools: list[ToolDefinition]
    ) -> ProviderRequest:
        """Build the streaming request for the conversation so far.

        Raises:
            ProviderError: If the provider is not configured
        """
        ...

    def new_decoder(self) -> StreamDecoder:
        """Create a decoder for one response stream."""
        ...


def answered_history(messages: list[Message]) -> list[Message]:
    """History with every tool call paired to a result.

    A turn that was cancelled or truncated can leave a tool call without its
    result, or a result whose call was dropped. Both providers reject such
    history, so unpaired calls and results are removed along with any
    assistant message left empty by the removal.
    """
    called = {call.id for message in messages for call in message.tool_calls or []}
    answered = {result.tool_call_id for message in messages for result in message.tool_results or []}
    paired = called & answered

    cleaned: list[Message] = []
    for message in messages:
        if message.is_streaming:
            continue
        if message.role == "assistant":
            calls = [call for call in message.tool_calls or [] if call.id in paired]
            if not message.content and not calls:
                continue
            message = message.model_copy(update={"tool_calls": calls or None})
        elif message.role == "tool":
            results = [result for result in message.tool_results or [] if result.tool_call_id in paired]
            if not results:
                continue
            message = message.model_copy(update={"tool_results": results})
        cleaned.append(message)

    return cleaned
