"""Conversation request and response models."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from rapport.clients.base import Provider
from rapport.models.llm import ToolCall, ToolResult, TurnState


class ConversationRequest(BaseModel):
    """Request model for conversation endpoint."""

    message: str
    session_id: str | None = None
    provider: Provider | None = None  # Only used when a new session is created
    owner_id: str = "local"


class ConversationResponse(BaseModel):
    """Response model for conversation endpoint."""

    response: str
    session_id: str
    status: TurnState
    error: str | None = None
    tool_calls: list[ToolCall] = Field(default_factory=list)
    tool_results: list[ToolResult] = Field(default_factory=list)


class CancelResponse(BaseModel):
    """Response model for turn cancellation."""

    session_id: str
    cancelled: bool


class HealthResponse(BaseModel):
    """Response model for health check endpoint."""

    status: str
    timestamp: datetime
    version: str
    details: dict[str, Any] = Field(default_factory=dict)
