"""OpenAI chat completions adapter."""

import json
from typing import Any

from rapport.clients.base import ProviderConfig, ProviderRequest, answered_history
from rapport.errors import ProviderError
from rapport.models.llm import Message
from rapport.streaming.decoders import OpenAIStreamDecoder
from rapport.tools.base import ToolDefinition
from rapport.tools.translator import to_openai_tools


class OpenAIAdapter:
    """Builds streaming chat completion requests and decodes their responses."""

    name = "openai"

    def __init__(self, config: ProviderConfig):
        self.config = config

    def build_request(
        self, messages: list[Message], system_prompt: str, tools: list[ToolDefinition]
    ) -> ProviderRequest:
        """Build a streaming chat completion request."""
        if not self.config.api_key:
            raise ProviderError(f"{self.config.api_key_env_var} environment variable is required", provider=self.name)

        body: dict[str, Any] = {
            "model": self.config.model,
            "messages": format_messages(messages, system_prompt),
            "max_tokens": self.config.max_tokens,
            "stream": True,
        }
        if tools:
            body["tools"] = to_openai_tools(tools)

        return ProviderRequest(
            provider=self.name,
            url=f"{self.config.base_url}/chat/completions",
            headers={
                "Authorization": f"Bearer {self.config.api_key}",
                "Content-Type": "application/json",
            },
            body=body,
        )

    def new_decoder(self) -> OpenAIStreamDecoder:
        return OpenAIStreamDecoder()


def format_messages(messages: list[Message], system_prompt: str) -> list[dict[str, Any]]:
    """Convert history to chat completion messages, system prompt first."""
    formatted: list[dict[str, Any]] = [{"role": "system", "content": system_prompt}]

    for message in answered_history(messages):
        if message.role == "tool":
            for result in message.tool_results or []:
                formatted.append(
                    {
                        "role": "tool",
                        "tool_call_id": result.tool_call_id,
                        "content": json.dumps(result.payload(), default=str),
                    }
                )
        elif message.role == "assistant" and message.tool_calls:
            formatted.append(
                {
                    "role": "assistant",
                    "content": message.content or None,
                    "tool_calls": [
                        {
                            "id": call.id,
                            "type": "function",
                            "function": {"name": call.name, "arguments": json.dumps(call.arguments)},
                        }
                        for call in message.tool_calls
                    ],
                }
            )
        else:
            formatted.append({"role": message.role, "content": message.content})

    return formatted
