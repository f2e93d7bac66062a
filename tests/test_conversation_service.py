"""Tests for the conversation service."""

from unittest.mock import AsyncMock, Mock, patch

import pytest

from rapport.clients.base import Provider
from rapport.errors import TurnInProgressError
from rapport.models.llm import TurnResult, TurnState
from rapport.models.session import Session
from rapport.services.conversation import ConversationService
from rapport.services.history import HistoryTruncator, TokenBudget


@pytest.fixture
def service(store, snapshots):
    truncator = HistoryTruncator(TokenBudget(max_message_tokens=100), load_tokenizer=False)
    return ConversationService(store, snapshots=snapshots, truncator=truncator)


def fake_controller(result: TurnResult | None = None) -> Mock:
    controller = Mock()
    controller.run_turn = AsyncMock(return_value=result or TurnResult(state=TurnState.COMPLETED, messages=[]))
    controller.transport.aclose = AsyncMock()
    return controller


class TestProcessMessage:
    """Tests for running turns through the service."""

    @pytest.mark.asyncio
    async def test_runs_turn_with_session_state(self, service):
        """Test that the session's history, owner and cancel event reach the controller."""
        controller = fake_controller()
        service.controllers[Provider.OPENAI] = controller
        session = Session(session_id="s1", owner_id="u1")

        result = await service.process_message("Hi", session)

        assert result.state == TurnState.COMPLETED
        args, kwargs = controller.run_turn.await_args
        assert args == (session.messages, "Hi", "u1")
        assert kwargs["cancel"] is not None
        assert not session.turn_active

    @pytest.mark.asyncio
    async def test_message_too_long(self, service):
        """Test that an oversized message is rejected before a turn starts."""
        controller = fake_controller()
        service.controllers[Provider.OPENAI] = controller

        with pytest.raises(ValueError, match="Message exceeds token limit"):
            await service.process_message("a" * 1000, Session(session_id="s1"))

        controller.run_turn.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_busy_session(self, service):
        """Test that a session with a running turn rejects another message."""
        service.controllers[Provider.OPENAI] = fake_controller()
        session = Session(session_id="s1")
        session.begin_turn()

        with pytest.raises(TurnInProgressError):
            await service.process_message("Hi", session)

    @pytest.mark.asyncio
    async def test_turn_released_after_error(self, service):
        """Test that the session is free again after an unexpected failure."""
        controller = fake_controller()
        controller.run_turn.side_effect = RuntimeError("boom")
        service.controllers[Provider.OPENAI] = controller
        session = Session(session_id="s1")

        with pytest.raises(RuntimeError):
            await service.process_message("Hi", session)

        assert not session.turn_active

    def test_cancel(self, service):
        """Test that cancel sets the running turn's event."""
        session = Session(session_id="s1")
        cancel = session.begin_turn()

        assert service.cancel(session)
        assert cancel.is_set()


class TestControllers:
    """Tests for per-provider controller creation."""

    def test_controller_per_provider(self, service):
        """Test that each provider gets one controller built from the environment."""
        with patch.dict("os.environ", {"OPENAI_API_KEY": "o", "GEMINI_API_KEY": "g"}, clear=True):
            openai = service.get_controller(Provider.OPENAI)
            gemini = service.get_controller(Provider.GEMINI)

        assert service.get_controller(Provider.OPENAI) is openai
        assert openai.adapter.name == "openai"
        assert gemini.adapter.name == "gemini"
        assert gemini.adapter.config.api_key == "g"
        assert len(openai.tools) == 10

    @pytest.mark.asyncio
    async def test_aclose(self, service):
        """Test that closing the service closes every provider connection."""
        controller = fake_controller()
        service.controllers[Provider.GEMINI] = controller

        await service.aclose()

        controller.transport.aclose.assert_awaited_once()
        assert service.controllers == {}
