"""Tools for the conversational CRM assistant."""

from rapport.tools.dispatcher import ToolDispatcher
from rapport.tools.registry import ToolsRegistry, get_tools_registry

__all__ = ["ToolDispatcher", "ToolsRegistry", "get_tools_registry"]
