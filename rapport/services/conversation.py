"""Conversation service wiring sessions to provider-specific controllers."""

from rapport.clients.base import Provider, ProviderConfig
from rapport.clients.providers import create_provider_adapter
from rapport.clients.transport import StreamingTransport
from rapport.models.llm import TurnResult
from rapport.models.session import Session
from rapport.services.controller import ControllerConfig, ConversationController, MessageListener
from rapport.services.history import HistoryTruncator
from rapport.services.persistence import CRMStore, crm_store
from rapport.services.snapshots import SnapshotCache
from rapport.tools.dispatcher import ToolDispatcher
from rapport.tools.registry import ToolsRegistry, get_tools_registry
from rapport.utils.logging import get_logger

logger = get_logger(__name__)


class ConversationService:
    """Runs conversation turns for sessions.

    One controller is kept per provider and built on first use from the
    environment, so a provider without an API key only fails the sessions
    that ask for it.
    """

    def __init__(
        self,
        store: CRMStore,
        registry: ToolsRegistry | None = None,
        snapshots: SnapshotCache | None = None,
        truncator: HistoryTruncator | None = None,
        controller_config: ControllerConfig | None = None,
    ):
        """Initialize conversation service.

        Args:
            store: CRM persistence the tools read and write
            registry: Tools offered to the model (defaults to the full CRM tool set)
            snapshots: Snapshot cache over the store (defaults to a new one)
            truncator: Token budgeting for messages and history
            controller_config: Turn configuration shared by all providers
        """
        self.store = store
        self.registry = registry or get_tools_registry()
        self.dispatcher = ToolDispatcher(self.registry)
        self.snapshots = snapshots or SnapshotCache(store)
        self.truncator = truncator or HistoryTruncator()
        self.controller_config = controller_config or ControllerConfig()
        self.controllers: dict[Provider, ConversationController] = {}

        logger.info(f"ConversationService initialized with {len(self.registry.get_tool_names())} tools")

    def get_controller(self, provider: Provider) -> ConversationController:
        """Get or create the controller for a provider."""
        if provider not in self.controllers:
            config = ProviderConfig.from_env(provider)
            logger.info(f"Creating {provider} controller with model {config.model}")
            self.controllers[provider] = ConversationController(
                adapter=create_provider_adapter(config),
                transport=StreamingTransport(config),
                dispatcher=self.dispatcher,
                tools=self.registry.get_tool_definitions(),
                snapshots=self.snapshots.snapshot,
                store=self.store,
                config=self.controller_config,
                truncator=self.truncator,
            )
        return self.controllers[provider]

    async def process_message(
        self, message: str, session: Session, listener: MessageListener | None = None
    ) -> TurnResult:
        """Run one turn for a user message.

        Args:
            message: User's message
            session: Session whose history the turn extends
            listener: Called as messages are appended or streamed

        Returns:
            Outcome of the turn

        Raises:
            ValueError: If message exceeds token limit
            TurnInProgressError: If the session already has a turn running
        """
        logger.info(f"Processing message for session {session.session_id} ({session.provider})")
        self.truncator.validate_message_tokens(message)

        cancel = session.begin_turn()
        try:
            controller = self.get_controller(session.provider)
            result = await controller.run_turn(
                session.messages, message, session.owner_id, cancel=cancel, listener=listener
            )
        finally:
            session.end_turn()

        logger.info(f"Turn for session {session.session_id} ended {result.state} after {result.rounds} tool rounds")
        return result

    def cancel(self, session: Session) -> bool:
        """Cancel the session's running turn, if any."""
        return session.cancel_turn()

    async def aclose(self) -> None:
        """Close provider connections and store subscriptions."""
        for controller in self.controllers.values():
            await controller.transport.aclose()
        self.controllers.clear()
        self.snapshots.close()


_conversation_service: ConversationService | None = None


def get_conversation_service() -> ConversationService:
    """Get or create conversation service instance."""
    global _conversation_service

    if _conversation_service is None:
        _conversation_service = ConversationService(crm_store)

    return _conversation_service
