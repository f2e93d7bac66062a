"""Identifier generation."""

from cuid2 import cuid_wrapper

cuid = cuid_wrapper()


def new_id() -> str:
    """Generate a new CUID-based identifier."""
    return cuid()


def new_tool_call_id() -> str:
    """Generate an identifier for a tool call the provider did not name."""
    return f"call_{cuid()}"
