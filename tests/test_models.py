"""Tests for data models, sessions and date helpers."""

from datetime import UTC, date, datetime, timedelta

import pytest
from pydantic import ValidationError

from rapport.errors import ProviderError, TurnInProgressError
from rapport.models.conversation import ConversationRequest, ConversationResponse
from rapport.models.crm import Contact, CRMSnapshot, Task
from rapport.models.llm import Message, ToolResult, TurnState
from rapport.models.session import Session
from rapport.services.session_manager import InMemorySessionManager
from rapport.utils.dates import days_until_birthday, parse_day, require_day


class TestConversationModels:
    """Tests for conversation request/response models."""

    def test_request_defaults(self):
        """Test a request with only a message."""
        request = ConversationRequest(message="Hello")

        assert request.session_id is None
        assert request.provider is None
        assert request.owner_id == "local"

    def test_request_provider(self):
        """Test that the provider is parsed into the enum."""
        assert ConversationRequest.model_validate({"message": "Hi", "provider": "openai"}).provider == "openai"

    def test_response_status(self):
        """Test that the turn state serializes as its value."""
        response = ConversationResponse(response="Hi", session_id="s1", status=TurnState.CANCELLED)

        assert response.model_dump(mode="json")["status"] == "cancelled"


class TestCRMModels:
    """Tests for CRM documents."""

    def test_contact_from_document(self):
        """Test that camelCase documents populate snake_case fields."""
        contact = Contact.model_validate(
            {"id": "c1", "firstName": "Sam", "lastName": "Okafor", "relatedContactIds": ["c2"], "unknown": 1}
        )

        assert contact.full_name == "Sam Okafor"
        assert contact.related_contact_ids == ["c2"]
        assert contact.status == "active"

    def test_contact_to_document(self):
        """Test that documents are written back in camelCase without empty fields."""
        contact = Contact(id="c1", first_name="Sam", last_contacted="2025-01-01")

        assert contact.to_document() == {
            "id": "c1",
            "firstName": "Sam",
            "lastName": "",
            "tags": [],
            "lastContacted": "2025-01-01",
            "status": "active",
            "relatedContactIds": [],
        }

    def test_full_name_without_last_name(self):
        """Test that a missing last name leaves no trailing space."""
        assert Contact(id="c1", first_name="Cher").full_name == "Cher"

    def test_invalid_status(self):
        """Test that an unknown status is rejected."""
        with pytest.raises(ValidationError):
            Contact.model_validate({"id": "c1", "firstName": "Sam", "status": "archived"})

    def test_task_defaults(self):
        """Test task defaults."""
        task = Task(id="t1", title="Call")

        assert task.priority == "medium"
        assert task.frequency == "none"
        assert task.completed is False

    def test_snapshot_lookup(self):
        """Test contact lookup by id on a snapshot."""
        snapshot = CRMSnapshot(contacts=(Contact(id="c1", first_name="Sam"),))

        assert snapshot.contact_by_id("c1").first_name == "Sam"
        assert snapshot.contact_by_id("c2") is None
        assert snapshot.contact_by_id(None) is None


class TestLLMModels:
    """Tests for conversation messages and tool results."""

    def test_message_ids_unique(self):
        """Test that messages get distinct generated ids."""
        assert Message(role="user").id != Message(role="user").id

    def test_result_payload(self):
        """Test what the model sees for successful and failed calls."""
        ok = ToolResult(tool_call_id="c1", name="getStats", result={"a": 1}, success=True)
        failed = ToolResult(tool_call_id="c2", name="getStats", success=False, error="bad")

        assert ok.payload() == {"a": 1}
        assert failed.payload() == {"error": "bad"}


class TestSession:
    """Tests for session turn tracking."""

    def test_begin_and_end_turn(self):
        """Test that a turn marks the session busy until it ends."""
        session = Session(session_id="s1")

        cancel = session.begin_turn()
        assert session.turn_active
        assert not cancel.is_set()

        session.end_turn()
        assert not session.turn_active

    def test_concurrent_turn_rejected(self):
        """Test that a second turn cannot start while one runs."""
        session = Session(session_id="s1")
        session.begin_turn()

        with pytest.raises(TurnInProgressError):
            session.begin_turn()

    def test_cancel_turn(self):
        """Test that cancelling sets the running turn's event."""
        session = Session(session_id="s1")
        assert session.cancel_turn() is False

        cancel = session.begin_turn()
        assert session.cancel_turn() is True
        assert cancel.is_set()

    def test_as_dict(self):
        """Test the session summary."""
        data = Session(session_id="s1", owner_id="u1").as_dict()

        assert data["session_id"] == "s1"
        assert data["owner_id"] == "u1"
        assert data["provider"] == "openai"
        assert data["message_count"] == 0
        assert data["turn_active"] is False


class TestSessionManager:
    """Tests for in-memory session management."""

    def test_create_and_get(self):
        """Test that created sessions can be fetched by id."""
        manager = InMemorySessionManager()
        session = manager.create_session(owner_id="u1", provider="gemini")

        assert manager.get_session(session.session_id) is session
        assert session.provider == "gemini"
        assert manager.get_session("missing") is None

    def test_expired_sessions_removed(self):
        """Test that idle sessions expire."""
        manager = InMemorySessionManager(session_timeout_minutes=1)
        session = manager.create_session()
        session.last_activity = datetime.now(UTC) - timedelta(minutes=5)

        assert manager.get_session_count() == 0

    def test_busy_sessions_do_not_expire(self):
        """Test that a session with a running turn is kept."""
        manager = InMemorySessionManager(session_timeout_minutes=1)
        session = manager.create_session()
        session.begin_turn()
        session.last_activity = datetime.now(UTC) - timedelta(minutes=5)

        assert manager.get_session_count() == 1

    def test_delete_cancels_turn(self):
        """Test that deleting a session cancels its running turn."""
        manager = InMemorySessionManager()
        session = manager.create_session()
        cancel = session.begin_turn()

        assert manager.delete_session(session.session_id)
        assert cancel.is_set()
        assert not manager.delete_session(session.session_id)


class TestDates:
    """Tests for date helpers."""

    def test_parse_day(self):
        """Test parsing dates with and without a time component."""
        assert parse_day("2025-03-10") == date(2025, 3, 10)
        assert parse_day("2025-03-10T09:30:00Z") == date(2025, 3, 10)
        assert parse_day("next week") is None
        assert parse_day(None) is None

    def test_require_day(self):
        """Test that invalid tool dates raise."""
        with pytest.raises(ValueError, match="expected YYYY-MM-DD"):
            require_day("03/10/2025")

    def test_days_until_birthday(self):
        """Test upcoming, same-day and next-year birthdays."""
        today = date(2025, 3, 10)

        assert days_until_birthday("03-20", today) == 10
        assert days_until_birthday("03-10", today) == 0
        assert days_until_birthday("03-09", today) == 364
        assert days_until_birthday("1990-03-12", today) == 2
        assert days_until_birthday("13-01", today) is None
        assert days_until_birthday("soon", today) is None

    def test_leap_day_birthday(self):
        """Test that Feb 29 birthdays fall on Mar 1 in common years."""
        assert days_until_birthday("02-29", date(2025, 2, 27)) == 2
        assert days_until_birthday("02-29", date(2024, 2, 27)) == 2


class TestErrors:
    """Tests for error types."""

    @pytest.mark.parametrize(
        ("status_code", "retryable"), [(None, False), (400, False), (429, True), (500, True), (503, True)]
    )
    def test_provider_error_retryable(self, status_code, retryable):
        """Test which provider failures are worth retrying."""
        assert ProviderError("x", status_code=status_code).retryable is retryable
