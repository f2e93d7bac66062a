"""Session management for in-memory storage."""

from datetime import UTC, datetime, timedelta

from rapport.clients.base import Provider
from rapport.models.session import Session
from rapport.utils.ids import new_id


class InMemorySessionManager:
    """Keeps conversation sessions in memory until they go idle."""

    def __init__(self, session_timeout_minutes: int = 60):
        """Initialize session manager.

        Args:
            session_timeout_minutes: Minutes of inactivity before a session expires
        """
        self.sessions: dict[str, Session] = {}
        self.session_timeout = timedelta(minutes=session_timeout_minutes)

    def create_session(self, owner_id: str = "local", provider: Provider | str | None = None) -> Session:
        """Create a new session.

        Args:
            owner_id: Owner of the CRM data the session works on
            provider: Model provider for the session (defaults to OpenAI)

        Returns:
            The new session
        """
        self._cleanup_expired_sessions()

        session = Session(session_id=new_id(), owner_id=owner_id, provider=Provider(provider or Provider.OPENAI))
        self.sessions[session.session_id] = session
        return session

    def get_session(self, session_id: str) -> Session | None:
        """Get existing session by ID.

        Args:
            session_id: Session identifier

        Returns:
            Session if found and not expired, None otherwise
        """
        self._cleanup_expired_sessions()

        session = self.sessions.get(session_id)
        if session:
            session.update_activity()
        return session

    def delete_session(self, session_id: str) -> bool:
        """Delete a session, cancelling its running turn.

        Returns:
            True if session was deleted, False if not found
        """
        session = self.sessions.pop(session_id, None)
        if session is None:
            return False
        session.cancel_turn()
        return True

    def _cleanup_expired_sessions(self) -> None:
        """Remove expired sessions that have no turn running."""
        current_time = datetime.now(UTC)
        expired_sessions = [
            session_id
            for session_id, session in self.sessions.items()
            if not session.turn_active and current_time - session.last_activity > self.session_timeout
        ]

        for session_id in expired_sessions:
            del self.sessions[session_id]

    def get_session_count(self) -> int:
        """Get current number of active sessions."""
        self._cleanup_expired_sessions()
        return len(self.sessions)


session_manager = InMemorySessionManager()
