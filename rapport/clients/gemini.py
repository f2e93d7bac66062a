"""Gemini streamGenerateContent adapter."""

from typing import Any

from rapport.clients.base import ProviderConfig, ProviderRequest, answered_history
from rapport.errors import ProviderError
from rapport.models.llm import Message
from rapport.streaming.decoders import GeminiStreamDecoder
from rapport.tools.base import ToolDefinition
from rapport.tools.translator import to_gemini_tools

SYSTEM_ACKNOWLEDGEMENT = "I understand. I will follow these instructions."


class GeminiAdapter:
    """Builds server-sent-event generateContent requests and decodes their responses."""

    name = "gemini"

    def __init__(self, config: ProviderConfig):
        self.config = config

    def build_request(
        self, messages: list[Message], system_prompt: str, tools: list[ToolDefinition]
    ) -> ProviderRequest:
        """Build a streaming generateContent request."""
        if not self.config.api_key:
            raise ProviderError(f"{self.config.api_key_env_var} environment variable is required", provider=self.name)

        body: dict[str, Any] = {
            "contents": format_contents(messages, system_prompt),
            "generationConfig": {"maxOutputTokens": self.config.max_tokens},
        }
        if tools:
            body["tools"] = to_gemini_tools(tools)

        # API key goes in a header so it stays out of logged URLs
        return ProviderRequest(
            provider=self.name,
            url=f"{self.config.base_url}/models/{self.config.model}:streamGenerateContent?alt=sse",
            headers={
                "x-goog-api-key": self.config.api_key,
                "Content-Type": "application/json",
            },
            body=body,
        )

    def new_decoder(self) -> GeminiStreamDecoder:
        return GeminiStreamDecoder()


def format_contents(messages: list[Message], system_prompt: str) -> list[dict[str, Any]]:
    """Convert history to Gemini contents.

    The system prompt is sent as an opening user/model exchange, assistant
    messages use the ``model`` role and tool results go back as
    ``functionResponse`` parts of a user turn.
    """
    contents: list[dict[str, Any]] = [
        {"role": "user", "parts": [{"text": f"System Instructions: {system_prompt}"}]},
        {"role": "model", "parts": [{"text": SYSTEM_ACKNOWLEDGEMENT}]},
    ]

    for message in answered_history(messages):
        if message.role == "tool":
            contents.append(
                {
                    "role": "user",
                    "parts": [
                        {"functionResponse": {"name": result.name, "response": _as_object(result.payload())}}
                        for result in message.tool_results or []
                    ],
                }
            )
        elif message.role == "assistant":
            parts: list[dict[str, Any]] = []
            if message.content:
                parts.append({"text": message.content})
            for call in message.tool_calls or []:
                parts.append({"functionCall": {"name": call.name, "args": call.arguments}})
            contents.append({"role": "model", "parts": parts})
        else:
            contents.append({"role": "user", "parts": [{"text": message.content}]})

    return contents


def _as_object(value: Any) -> dict[str, Any]:
    """functionResponse.response must be a JSON object."""
    return value if isinstance(value, dict) else {"result": value}
