"""Session state for conversation management."""

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from rapport.clients.base import Provider
from rapport.errors import TurnInProgressError
from rapport.models.llm import Message
from rapport.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class Session:
    """Conversation history and the turn currently running, if any."""

    session_id: str
    owner_id: str = "local"
    provider: Provider = Provider.OPENAI
    messages: list[Message] = field(default_factory=list)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    last_activity: datetime = field(default_factory=lambda: datetime.now(UTC))
    cancel_event: asyncio.Event | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return the session as a dictionary."""
        return {
            "session_id": self.session_id,
            "owner_id": self.owner_id,
            "provider": str(self.provider),
            "message_count": len(self.messages),
            "turn_active": self.turn_active,
            "created_at": self.created_at.isoformat(),
            "last_activity": self.last_activity.isoformat(),
        }

    @property
    def turn_active(self) -> bool:
        return self.cancel_event is not None

    def update_activity(self) -> None:
        """Update the last activity timestamp."""
        self.last_activity = datetime.now(UTC)

    def begin_turn(self) -> asyncio.Event:
        """Mark a turn as running and return its cancellation event.

        Raises:
            TurnInProgressError: If another turn is still running
        """
        if self.cancel_event is not None:
            raise TurnInProgressError(f"Session {self.session_id} already has a turn in progress")
        self.cancel_event = asyncio.Event()
        self.update_activity()
        return self.cancel_event

    def end_turn(self) -> None:
        self.cancel_event = None
        self.update_activity()

    def cancel_turn(self) -> bool:
        """Request cancellation of the running turn.

        Returns:
            True if a turn was running, False otherwise
        """
        if self.cancel_event is None:
            return False
        logger.info(f"Cancelling turn for session {self.session_id}")
        self.cancel_event.set()
        return True
