"""Translation of tool definitions into each provider's function-calling format."""

from typing import Any

from rapport.tools.base import ToolDefinition

# Schema keywords Gemini accepts besides type, items and properties
_GEMINI_KEYWORDS = ("description", "enum", "nullable", "required")


def to_openai_tools(definitions: list[ToolDefinition]) -> list[dict[str, Any]]:
    """OpenAI takes the JSON schema as is, wrapped in a function envelope."""
    return [
        {
            "type": "function",
            "function": {
                "name": definition.name,
                "description": definition.description,
                "parameters": definition.get_json_schema(),
            },
        }
        for definition in definitions
    ]


def to_gemini_tools(definitions: list[ToolDefinition]) -> list[dict[str, Any]]:
    """Gemini groups every function under a single ``functionDeclarations`` entry."""
    if not definitions:
        return []

    return [
        {
            "functionDeclarations": [
                {
                    "name": definition.name,
                    "description": definition.description,
                    "parameters": to_gemini_schema(definition.get_json_schema()),
                }
                for definition in definitions
            ]
        }
    ]


def to_gemini_schema(schema: dict[str, Any]) -> dict[str, Any]:
    """Convert a JSON schema node to Gemini's OpenAPI subset.

    Type names are upper-cased (``string`` -> ``STRING``) and keywords Gemini
    rejects, such as ``format`` or ``minimum``, are left out.
    """
    translated: dict[str, Any] = {}

    if "type" in schema:
        translated["type"] = str(schema["type"]).upper()

    for keyword in _GEMINI_KEYWORDS:
        if keyword in schema:
            translated[keyword] = schema[keyword]

    if "items" in schema:
        translated["items"] = to_gemini_schema(schema["items"])

    if "properties" in schema:
        translated["properties"] = {name: to_gemini_schema(prop) for name, prop in schema["properties"].items()}

    return translated
