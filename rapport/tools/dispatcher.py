"""Routing of model tool calls to their handlers."""

from rapport.models.llm import ToolCall, ToolResult
from rapport.tools.base import ToolContext
from rapport.tools.registry import ToolsRegistry
from rapport.utils.logging import get_logger

logger = get_logger(__name__)


class ToolDispatcher:
    """Executes tool calls and normalizes every outcome into a ToolResult.

    ``dispatch`` never raises: unknown tools, invalid arguments and handler
    exceptions all become failed results, so one bad call cannot take down its
    sibling calls or the conversation turn.
    """

    def __init__(self, registry: ToolsRegistry):
        self.registry = registry

    async def dispatch(self, call: ToolCall, context: ToolContext) -> ToolResult:
        """Execute a single tool call.

        Args:
            call: Tool call requested by the model
            context: Owner, snapshot and store for this call

        Returns:
            Result carrying either the handler's output or the failure message
        """
        tool = self.registry.get_tool(call.name)
        if tool is None:
            logger.error(f"Unknown tool requested: {call.name}")
            return ToolResult(tool_call_id=call.id, name=call.name, success=False, error=f"Unknown tool: {call.name}")

        logger.debug(f"Executing tool: {call.name} with input: {call.arguments}")
        try:
            params = tool.parse_input(call.arguments)
            result = await tool.handler(params, context)
        except Exception as e:
            logger.error(f"Tool {call.name} failed: {e}")
            return ToolResult(tool_call_id=call.id, name=call.name, success=False, error=str(e))

        logger.debug(f"Tool {call.name} succeeded: {str(result)[:100]}...")
        return ToolResult(tool_call_id=call.id, name=call.name, result=result, success=True)
