"""Base types and definitions for tools."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import date
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from rapport.models.crm import CRMSnapshot
from rapport.services.persistence import CRMStore


class ToolName(StrEnum):
    """Every tool exposed to the model. There are deliberately no delete tools."""

    SEARCH_CONTACTS = "searchContacts"
    GET_CONTACT_DETAILS = "getContactDetails"
    SEARCH_INTERACTIONS = "searchInteractions"
    SEARCH_TASKS = "searchTasks"
    GET_STATS = "getStats"
    ADD_CONTACT = "addContact"
    ADD_INTERACTION = "addInteraction"
    ADD_TASK = "addTask"
    UPDATE_CONTACT = "updateContact"
    UPDATE_TASK = "updateTask"


class ToolInput(BaseModel):
    """Base for tool argument models; the model sends camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


@dataclass(frozen=True)
class ToolContext:
    """Everything a tool handler may touch while executing one call."""

    owner_id: str
    snapshot: CRMSnapshot
    store: CRMStore
    today: date = field(default_factory=date.today)


ToolHandler = Callable[[Any, ToolContext], Awaitable[Any]]


@dataclass
class ToolDefinition:
    """Definition of a tool available to the AI assistant."""

    name: str
    description: str
    input_schema_class: type[BaseModel]
    handler: ToolHandler

    def get_json_schema(self) -> dict[str, Any]:
        """Get the provider-agnostic JSON schema for this tool's input.

        Pydantic's output is flattened into the plain subset both providers
        accept: references are inlined, optional fields lose their null branch,
        and titles and defaults are dropped.
        """
        schema = self.input_schema_class.model_json_schema()
        definitions = schema.pop("$defs", {})
        schema.pop("description", None)
        return _simplify_schema(schema, definitions)

    def parse_input(self, raw_input: dict[str, Any]) -> BaseModel:
        """Parse and validate tool input."""
        return self.input_schema_class.model_validate(raw_input)


_DROPPED_KEYWORDS = frozenset({"title", "default", "examples"})


def _simplify_schema(node: dict[str, Any], definitions: dict[str, Any]) -> dict[str, Any]:
    if "$ref" in node:
        target = definitions[node["$ref"].rsplit("/", 1)[-1]]
        return _simplify_schema(_merge(target, node, "$ref"), definitions)

    if len(node.get("allOf", ())) == 1:
        return _simplify_schema(_merge(node["allOf"][0], node, "allOf"), definitions)

    if "anyOf" in node:
        options = [option for option in node["anyOf"] if option.get("type") != "null"]
        if len(options) == 1:
            return _simplify_schema(_merge(options[0], node, "anyOf"), definitions)

    simplified: dict[str, Any] = {}
    for key, value in node.items():
        if key in _DROPPED_KEYWORDS:
            continue
        if key == "properties":
            simplified[key] = {name: _simplify_schema(prop, definitions) for name, prop in value.items()}
        elif key == "items":
            simplified[key] = _simplify_schema(value, definitions)
        else:
            simplified[key] = value

    if "enum" in simplified and "type" not in simplified and all(isinstance(v, str) for v in simplified["enum"]):
        simplified["type"] = "string"

    return simplified


def _merge(base: dict[str, Any], overrides: dict[str, Any], consumed: str) -> dict[str, Any]:
    """Overlay a node's own keywords (like its description) on the schema it points to."""
    return {**base, **{key: value for key, value in overrides.items() if key != consumed}}
