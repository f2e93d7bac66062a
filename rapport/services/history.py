"""Token budgeting for conversation history."""

import json
from dataclasses import dataclass

import tiktoken

from rapport.models.llm import Message
from rapport.tools.base import ToolDefinition
from rapport.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class TokenBudget:
    """Token limits for validation and truncation."""

    max_message_tokens: int = 2000  # Maximum tokens per user message
    max_conversation_tokens: int = 128_000  # gpt-4o-mini context window
    token_headroom: int = 2000  # Reserve tokens for response


class HistoryTruncator:
    """Estimates token usage and trims history to fit the context window."""

    tokenizer: tiktoken.Encoding | None = None

    def __init__(self, budget: TokenBudget | None = None, load_tokenizer: bool = True):
        """Initialize truncator.

        Args:
            budget: Token limits (defaults to TokenBudget())
            load_tokenizer: Load the tiktoken encoding; without it estimates fall back to len // 4
        """
        self.budget = budget or TokenBudget()

        if load_tokenizer:
            try:
                self.tokenizer = tiktoken.get_encoding("o200k_base")
            except Exception as e:
                logger.warning(f"Tokenizer unavailable, estimating tokens from length: {e}")
                self.tokenizer = None

    def estimate_tokens(self, text: str) -> int:
        """Estimate token count for a piece of text."""
        try:
            return len(self.tokenizer.encode(text)) if self.tokenizer else len(text) // 4
        except Exception:
            # Fallback: roughly 4 characters per token
            return len(text) // 4

    def estimate_message_tokens(self, message: Message) -> int:
        """Estimate token count for a message including its tool calls and results."""
        text = message.content
        for call in message.tool_calls or []:
            text += call.name + json.dumps(call.arguments, default=str)
        for result in message.tool_results or []:
            text += json.dumps(result.payload(), default=str)
        return self.estimate_tokens(text)

    def estimate_request_tokens(self, messages: list[Message], system_prompt: str) -> int:
        """Estimate prompt size for rate limiting."""
        return self.estimate_tokens(system_prompt) + sum(self.estimate_message_tokens(m) for m in messages)

    def validate_message_tokens(self, message: str) -> None:
        """Validate that a user message doesn't exceed the token limit.

        Raises:
            ValueError: If message exceeds token limit
        """
        token_count = self.estimate_tokens(message)
        if token_count > self.budget.max_message_tokens:
            raise ValueError(
                f"Message exceeds token limit: {token_count} tokens > {self.budget.max_message_tokens} limit"
            )

    def truncate(
        self, messages: list[Message], system_prompt: str, tools: list[ToolDefinition] | None = None
    ) -> list[Message]:
        """Drop the oldest messages until the conversation fits the token budget.

        The newest message is always kept. The kept history starts at a user
        message so that no tool result is separated from the call it answers.

        Args:
            messages: Conversation messages
            system_prompt: System prompt
            tools: Available tools

        Returns:
            Truncated message list that fits within limits
        """
        if not messages:
            return messages

        available_tokens = self.budget.max_conversation_tokens - self.budget.token_headroom
        available_tokens -= self.estimate_tokens(system_prompt)
        if tools:
            tool_content = "".join(tool.name + tool.description + str(tool.get_json_schema()) for tool in tools)
            available_tokens -= self.estimate_tokens(tool_content)

        kept: list[Message] = []
        current_tokens = 0
        for message in reversed(messages):
            message_tokens = self.estimate_message_tokens(message)
            if kept and current_tokens + message_tokens > available_tokens:
                break
            kept.insert(0, message)
            current_tokens += message_tokens

        if len(kept) < len(messages):
            start = next((i for i, message in enumerate(kept) if message.role == "user"), len(kept) - 1)
            kept = kept[start:]
            logger.warning(
                f"Truncated conversation from {len(messages)} to {len(kept)} messages "
                f"to fit within {available_tokens} token limit"
            )

        return kept
