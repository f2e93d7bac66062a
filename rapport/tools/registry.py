"""Tools registry for managing AI assistant tools."""

from rapport.tools.base import ToolDefinition, ToolName
from rapport.tools.mutations import create_mutation_tools
from rapport.tools.queries import create_query_tools


class ToolsRegistry:
    """Registry for managing AI assistant tools.

    The default registry must cover every ``ToolName``; a missing entry is a
    programming error reported at construction instead of on first use.
    """

    def __init__(self, tools: list[ToolDefinition] | None = None):
        """Initialize tools registry.

        Args:
            tools: Tool definitions to register (defaults to the full CRM tool set)
        """
        self._tools: dict[str, ToolDefinition] = {}
        for tool in tools if tools is not None else self._default_tools():
            self.register_tool(tool)
        self._check_complete()

    def _default_tools(self) -> list[ToolDefinition]:
        """Default set of tools for CRM management."""
        return [*create_query_tools(), *create_mutation_tools()]

    def _check_complete(self) -> None:
        missing = sorted(set(ToolName) - set(self._tools))
        if missing:
            raise RuntimeError(f"Tools registry has no handler for: {', '.join(missing)}")

    def register_tool(self, tool: ToolDefinition) -> None:
        """Register a new tool in the registry."""
        self._tools[tool.name] = tool

    def get_tool(self, name: str) -> ToolDefinition | None:
        """Get a registered tool by name."""
        return self._tools.get(name)

    def get_tool_definitions(self) -> list[ToolDefinition]:
        """Get all registered tool definitions."""
        return list(self._tools.values())

    def get_tool_names(self) -> list[str]:
        """Get list of all registered tool names."""
        return list(self._tools.keys())

    def has_tool(self, name: str) -> bool:
        """Check if a tool is registered."""
        return name in self._tools


_tools_registry: ToolsRegistry | None = None


def get_tools_registry() -> ToolsRegistry:
    """Get or create tools registry instance."""
    global _tools_registry

    if _tools_registry is None:
        _tools_registry = ToolsRegistry()

    return _tools_registry
