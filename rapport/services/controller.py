"""Conversation turn controller: streaming, tool execution and cancellation."""

import asyncio
from collections.abc import Callable
from contextlib import aclosing
from dataclasses import dataclass, field

from rapport.clients.base import ProviderAdapter
from rapport.clients.transport import StreamingTransport
from rapport.errors import ProviderError
from rapport.models.crm import CRMSnapshot
from rapport.models.llm import (
    FunctionCallPart,
    Message,
    StreamError,
    StreamEvent,
    TextDelta,
    ToolCall,
    ToolCallFragment,
    ToolResult,
    TurnResult,
    TurnState,
)
from rapport.services.history import HistoryTruncator
from rapport.services.persistence import CRMStore
from rapport.services.prompts import build_system_prompt
from rapport.streaming.assembler import ToolCallAssembler
from rapport.tools.base import ToolContext, ToolDefinition
from rapport.tools.dispatcher import ToolDispatcher
from rapport.utils.logging import get_logger

logger = get_logger(__name__)

SnapshotProvider = Callable[[str], CRMSnapshot]
MessageListener = Callable[[Message], None]

MAX_ROUNDS_MESSAGE = (
    "I've reached the maximum number of tool steps for a single request. "
    "Let me know if you'd like me to keep going."
)

_TRANSITIONS: dict[TurnState, set[TurnState]] = {
    TurnState.IDLE: {TurnState.SENDING},
    TurnState.SENDING: {TurnState.STREAMING_RESPONSE, TurnState.CANCELLED, TurnState.FAILED},
    TurnState.STREAMING_RESPONSE: {
        TurnState.TOOL_CALLS_COLLECTED,
        TurnState.COMPLETED,
        TurnState.CANCELLED,
        TurnState.FAILED,
    },
    TurnState.TOOL_CALLS_COLLECTED: {TurnState.EXECUTING},
    TurnState.EXECUTING: {TurnState.SENDING, TurnState.COMPLETED, TurnState.CANCELLED},
}


@dataclass
class ControllerConfig:
    """Configuration for conversation turns."""

    max_tool_rounds: int = 5  # Tool round-trips allowed before a turn is stopped


@dataclass
class Turn:
    """Mutable state of one conversation turn."""

    history: list[Message]
    listener: MessageListener | None = None
    state: TurnState = TurnState.IDLE
    states: list[TurnState] = field(default_factory=lambda: [TurnState.IDLE])
    messages: list[Message] = field(default_factory=list)
    rounds: int = 0

    def transition(self, state: TurnState) -> None:
        """Move to a new state.

        Raises:
            RuntimeError: If the state machine does not allow the move
        """
        if state not in _TRANSITIONS.get(self.state, set()):
            raise RuntimeError(f"Invalid turn transition {self.state} -> {state}")
        logger.debug(f"Turn state {self.state} -> {state}")
        self.state = state
        self.states.append(state)

    def append(self, message: Message) -> None:
        """Append a message to the session history."""
        self.history.append(message)
        self.messages.append(message)
        self.notify(message)

    def notify(self, message: Message) -> None:
        if self.listener:
            self.listener(message)

    def finish(self, state: TurnState, error: str | None = None) -> TurnResult:
        self.transition(state)
        return TurnResult(state=state, messages=self.messages, error=error, rounds=self.rounds, states=self.states)


@dataclass
class StreamedResponse:
    """Assistant output collected from one provider response."""

    message: Message | None = None
    tool_calls: list[ToolCall] = field(default_factory=list)


class ConversationController:
    """Runs conversation turns against a model provider.

    A turn streams the provider's response into an assistant message, executes
    any tool calls it contains one after another, appends their results as a
    single tool message and asks the provider again, until a response has no
    tool calls. Setting the cancellation event stops the stream at once; a tool
    that is already running finishes first.
    """

    def __init__(
        self,
        adapter: ProviderAdapter,
        transport: StreamingTransport,
        dispatcher: ToolDispatcher,
        tools: list[ToolDefinition],
        snapshots: SnapshotProvider,
        store: CRMStore,
        config: ControllerConfig | None = None,
        truncator: HistoryTruncator | None = None,
    ):
        """Initialize controller.

        Args:
            adapter: Provider request builder and decoder factory
            transport: Streaming HTTP transport
            dispatcher: Tool call dispatcher
            tools: Tool definitions offered to the model
            snapshots: Returns the current CRM snapshot for an owner
            store: Persistence collaborator the write tools use
            config: Turn configuration
            truncator: Token budgeting for history (no truncation when omitted)
        """
        self.adapter = adapter
        self.transport = transport
        self.dispatcher = dispatcher
        self.tools = tools
        self.snapshots = snapshots
        self.store = store
        self.config = config or ControllerConfig()
        self.truncator = truncator

    async def run_turn(
        self,
        history: list[Message],
        user_text: str,
        owner_id: str,
        cancel: asyncio.Event | None = None,
        listener: MessageListener | None = None,
    ) -> TurnResult:
        """Run one conversation turn.

        Args:
            history: Session messages; the turn appends its messages to this list
            user_text: The user's message
            owner_id: Owner of the CRM data the tools operate on
            cancel: Event that cancels the turn when set
            listener: Called whenever a message is appended or its content grows

        Returns:
            Final state, appended messages and the error message if the turn failed
        """
        cancel = cancel or asyncio.Event()
        turn = Turn(history=history, listener=listener)
        assembler = ToolCallAssembler()

        turn.append(Message(role="user", content=user_text))
        logger.info(f"Starting turn for owner {owner_id} with {len(history)} messages, {len(self.tools)} tools")

        while True:
            turn.transition(TurnState.SENDING)
            if cancel.is_set():
                return turn.finish(TurnState.CANCELLED)

            try:
                response = await self._stream_response(turn, owner_id, assembler, cancel)
            except ProviderError as e:
                logger.error(f"Turn failed: {e.message}")
                return turn.finish(TurnState.FAILED, error=e.message)

            if cancel.is_set():
                logger.info("Turn cancelled while streaming")
                return turn.finish(TurnState.CANCELLED)

            if not response.tool_calls:
                logger.info(f"Turn completed after {turn.rounds} tool rounds")
                return turn.finish(TurnState.COMPLETED)

            turn.transition(TurnState.TOOL_CALLS_COLLECTED)
            assistant = response.message or Message(role="assistant")
            assistant.tool_calls = response.tool_calls
            if response.message is None:
                turn.append(assistant)
            else:
                turn.notify(assistant)

            turn.transition(TurnState.EXECUTING)
            results = await self._execute(response.tool_calls, owner_id, cancel)
            if results:
                turn.append(Message(role="tool", tool_results=results))
            turn.rounds += 1

            if cancel.is_set():
                logger.info(f"Turn cancelled after executing {len(results)}/{len(response.tool_calls)} tool calls")
                return turn.finish(TurnState.CANCELLED)

            if turn.rounds >= self.config.max_tool_rounds:
                logger.warning(f"Turn reached max tool rounds ({self.config.max_tool_rounds})")
                turn.append(Message(role="assistant", content=MAX_ROUNDS_MESSAGE))
                return turn.finish(TurnState.COMPLETED)

    async def _stream_response(
        self, turn: Turn, owner_id: str, assembler: ToolCallAssembler, cancel: asyncio.Event
    ) -> StreamedResponse:
        """Send the conversation and stream one response into the turn.

        The assistant message is appended as soon as its first text arrives,
        so callers see text while the response is still streaming.

        Raises:
            ProviderError: If the request fails or the provider reports an error
        """
        system_prompt = build_system_prompt(self.snapshots(owner_id))
        history = turn.history
        estimated_tokens = 0
        if self.truncator:
            history = self.truncator.truncate(history, system_prompt, self.tools)
            estimated_tokens = self.truncator.estimate_request_tokens(history, system_prompt)

        request = self.adapter.build_request(history, system_prompt, self.tools)
        decoder = self.adapter.new_decoder()
        assembler.start_response()
        response = StreamedResponse()

        try:
            async with aclosing(self.transport.stream(request, cancel, estimated_tokens)) as growth:
                async for buffer in growth:
                    if turn.state == TurnState.SENDING:
                        turn.transition(TurnState.STREAMING_RESPONSE)
                    self._apply_events(decoder.feed(buffer), turn, assembler, response)

            if not cancel.is_set():
                self._apply_events(decoder.finish(), turn, assembler, response)
        finally:
            if response.message is not None:
                response.message.is_streaming = False
                turn.notify(response.message)

        if turn.state == TurnState.SENDING and not cancel.is_set():
            turn.transition(TurnState.STREAMING_RESPONSE)

        response.tool_calls.extend(assembler.finish_response())
        if response.message is None and not response.tool_calls and not cancel.is_set():
            # Provider answered with nothing; record the empty reply
            response.message = Message(role="assistant")
            turn.append(response.message)

        return response

    def _apply_events(
        self, events: list[StreamEvent], turn: Turn, assembler: ToolCallAssembler, response: StreamedResponse
    ) -> None:
        for event in events:
            if isinstance(event, TextDelta):
                if response.message is None:
                    response.message = Message(role="assistant", content=event.text, is_streaming=True)
                    turn.append(response.message)
                else:
                    response.message.content += event.text
                    turn.notify(response.message)
            elif isinstance(event, ToolCallFragment):
                assembler.add_fragment(event)
            elif isinstance(event, FunctionCallPart):
                call = assembler.add_complete(event)
                if call:
                    response.tool_calls.append(call)
            elif isinstance(event, StreamError):
                raise ProviderError(event.message, provider=self.adapter.name)

    async def _execute(self, calls: list[ToolCall], owner_id: str, cancel: asyncio.Event) -> list[ToolResult]:
        """Dispatch calls in order, each against the snapshot current at its dispatch."""
        results: list[ToolResult] = []
        for call in calls:
            if cancel.is_set():
                logger.info(f"Skipping {len(calls) - len(results)} tool calls after cancellation")
                break
            context = ToolContext(owner_id=owner_id, snapshot=self.snapshots(owner_id), store=self.store)
            results.append(await self.dispatcher.dispatch(call, context))
        return results
