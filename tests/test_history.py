"""Tests for token validation and history truncation."""

from unittest.mock import Mock

import pytest

from rapport.models.llm import Message, ToolCall, ToolResult
from rapport.services.history import HistoryTruncator, TokenBudget
from rapport.tools.registry import ToolsRegistry


class TestTokenValidation:
    """Tests for message token validation."""

    @pytest.fixture
    def truncator(self):
        """Truncator with a mock tokenizer for consistent counts."""
        truncator = HistoryTruncator(TokenBudget(max_message_tokens=1000), load_tokenizer=False)
        truncator.tokenizer = Mock()
        return truncator

    def test_within_limit(self, truncator):
        """Test that messages within the token limit pass validation."""
        truncator.tokenizer.encode.return_value = ["token"] * 500

        truncator.validate_message_tokens("Short message")

    def test_exceeds_limit(self, truncator):
        """Test that messages over the token limit raise ValueError."""
        truncator.tokenizer.encode.return_value = ["token"] * 1500

        with pytest.raises(ValueError, match="Message exceeds token limit"):
            truncator.validate_message_tokens("Very long message")

    def test_fallback_without_tokenizer(self, truncator):
        """Test the length-based estimate when no tokenizer is available."""
        truncator.tokenizer = None

        truncator.validate_message_tokens("a" * 3000)
        with pytest.raises(ValueError, match="Message exceeds token limit"):
            truncator.validate_message_tokens("a" * 5000)

    def test_fallback_on_tokenizer_error(self, truncator):
        """Test that a failing tokenizer falls back to the length estimate."""
        truncator.tokenizer.encode.side_effect = RuntimeError("broken")

        assert truncator.estimate_tokens("a" * 400) == 100

    def test_tool_content_counts(self, truncator):
        """Test that tool calls and results add to a message's estimate."""
        truncator.tokenizer = None
        plain = Message(role="assistant", content="ok")
        with_call = Message(
            role="assistant",
            content="ok",
            tool_calls=[ToolCall(id="c1", name="searchContacts", arguments={"query": "a long query string"})],
        )
        with_result = Message(
            role="tool",
            tool_results=[ToolResult(tool_call_id="c1", name="searchContacts", result={"total": 0}, success=True)],
        )

        assert truncator.estimate_message_tokens(with_call) > truncator.estimate_message_tokens(plain)
        assert truncator.estimate_message_tokens(with_result) > 0


class TestConversationTruncation:
    """Tests for conversation truncation."""

    @pytest.fixture
    def truncator(self):
        """Truncator with a 10k context, 1k headroom and 100 tokens per item."""
        truncator = HistoryTruncator(
            TokenBudget(max_conversation_tokens=10000, token_headroom=1000), load_tokenizer=False
        )
        truncator.tokenizer = Mock()
        truncator.tokenizer.encode.return_value = ["token"] * 100
        return truncator

    def test_within_limit(self, truncator):
        """Test that conversations within limits are not truncated."""
        messages = [
            Message(role="user", content="Message 1"),
            Message(role="assistant", content="Response 1"),
            Message(role="user", content="Message 2"),
        ]

        assert truncator.truncate(messages, "System prompt") == messages

    def test_exceeds_limit(self, truncator):
        """Test that old messages are dropped when over the limit."""
        messages = [Message(role="user" if i % 2 == 0 else "assistant", content=f"Message {i}") for i in range(100)]

        result = truncator.truncate(messages, "System prompt")

        assert len(result) < len(messages)
        assert result[-1] == messages[-1]
        assert result[0].role == "user"

    def test_keeps_newest_message(self, truncator):
        """Test that the newest message is kept even if it alone exceeds the budget."""
        truncator.tokenizer.encode.return_value = ["token"] * 20000
        messages = [Message(role="user", content="Old"), Message(role="user", content="Huge")]

        assert truncator.truncate(messages, "System prompt") == [messages[-1]]

    def test_does_not_start_with_tool_result(self, truncator):
        """Test that truncation never leaves a tool result without its call."""
        call = ToolCall(id="c1", name="getStats", arguments={})
        result_message = Message(
            role="tool", tool_results=[ToolResult(tool_call_id="c1", name="getStats", result={}, success=True)]
        )
        messages = [
            Message(role="user", content="Stats?"),
            Message(role="assistant", tool_calls=[call]),
            result_message,
            Message(role="assistant", content="Here they are"),
            Message(role="user", content="Thanks"),
        ]
        counts = {"Stats?": 9000}
        truncator.tokenizer.encode.side_effect = lambda text: ["token"] * counts.get(text, 10)

        result = truncator.truncate(messages, "System prompt")

        assert result == [messages[-1]]

    def test_tools_reduce_budget(self, truncator):
        """Test that tool definitions count against the budget."""
        messages = [Message(role="user", content=f"Message {i}") for i in range(89)]
        tools = ToolsRegistry().get_tool_definitions()

        without_tools = truncator.truncate(messages, "System prompt")
        with_tools = truncator.truncate(messages, "System prompt", tools)

        assert len(without_tools) == 89
        assert len(with_tools) < 89

    def test_empty(self, truncator):
        """Test that an empty conversation is returned unchanged."""
        assert truncator.truncate([], "System prompt") == []
