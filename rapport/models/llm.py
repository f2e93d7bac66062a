"""LLM-related data models and types (provider-agnostic)."""

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, Field

from rapport.utils.ids import new_id


class ToolCall(BaseModel):
    """A function invocation requested by the model."""

    id: str
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


class ToolResult(BaseModel):
    """Outcome of executing one tool call."""

    tool_call_id: str
    name: str
    result: Any = None
    success: bool
    error: str | None = None

    def payload(self) -> Any:
        """Value reported back to the model for this call."""
        if self.success:
            return self.result
        return {"error": self.error}


class Message(BaseModel):
    """A message in a conversation session.

    Messages are append-only. While an assistant message is streaming only
    ``content`` grows; ``is_streaming`` is cleared once the response completes.
    """

    id: str = Field(default_factory=new_id)
    role: Literal["user", "assistant", "tool"]
    content: str = ""
    tool_calls: list[ToolCall] | None = None
    tool_results: list[ToolResult] | None = None
    is_streaming: bool = False


# Stream events produced by the decoders
class TextDelta(BaseModel):
    """A piece of assistant text."""

    type: Literal["text"] = "text"
    text: str


class ToolCallFragment(BaseModel):
    """Part of an incrementally streamed tool call, keyed by its stream index."""

    type: Literal["tool_call_fragment"] = "tool_call_fragment"
    index: int
    id: str | None = None
    name: str | None = None
    arguments: str | None = None


class FunctionCallPart(BaseModel):
    """A complete function call delivered in a single event."""

    type: Literal["function_call"] = "function_call"
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


class StreamEnd(BaseModel):
    """The provider signalled the logical end of its response."""

    type: Literal["end"] = "end"


class StreamError(BaseModel):
    """The provider reported an error inside the stream."""

    type: Literal["error"] = "error"
    message: str


StreamEvent = TextDelta | ToolCallFragment | FunctionCallPart | StreamEnd | StreamError


class TurnState(StrEnum):
    """States of a conversation turn."""

    IDLE = "idle"
    SENDING = "sending"
    STREAMING_RESPONSE = "streaming_response"
    TOOL_CALLS_COLLECTED = "tool_calls_collected"
    EXECUTING = "executing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass
class TurnResult:
    """Result from running one conversation turn."""

    state: TurnState
    messages: list[Message]
    error: str | None = None
    rounds: int = 0
    states: list[TurnState] = field(default_factory=list)

    @property
    def response_text(self) -> str:
        """Text of the latest assistant message produced in this turn."""
        for message in reversed(self.messages):
            if message.role == "assistant" and message.content:
                return message.content
        return ""

    @property
    def tool_calls(self) -> list[ToolCall]:
        return [call for message in self.messages for call in message.tool_calls or []]

    @property
    def tool_results(self) -> list[ToolResult]:
        return [result for message in self.messages for result in message.tool_results or []]
