"""Assembly of complete tool calls from streamed events."""

import json
from dataclasses import dataclass

from rapport.models.llm import FunctionCallPart, ToolCall, ToolCallFragment
from rapport.utils.ids import new_tool_call_id
from rapport.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class PartialToolCall:
    """Tool call fragments received so far for one stream index."""

    id: str | None = None
    name: str | None = None
    arguments_text: str = ""


class ToolCallAssembler:
    """Builds complete tool calls for a single conversation turn.

    Fragmented calls are collected per stream index and only parsed once the
    response is complete, since their arguments are not valid JSON until the
    last fragment arrives. Complete calls are returned right away unless an
    identical call (same name and arguments) was already seen in this turn.

    Create one assembler per turn and drop it when the turn ends.
    """

    def __init__(self):
        self._partials: dict[int, PartialToolCall] = {}
        self._seen_calls: set[tuple[str, str]] = set()
        self._used_ids: set[str] = set()

    def start_response(self) -> None:
        """Reset fragment state before a new provider response.

        Stream indexes restart at zero in every response. Duplicate tracking
        carries over for the rest of the turn.
        """
        self._partials.clear()

    def add_fragment(self, fragment: ToolCallFragment) -> None:
        """Accumulate one fragment of an incrementally streamed call."""
        partial = self._partials.setdefault(fragment.index, PartialToolCall())
        if fragment.id:
            partial.id = fragment.id
        if fragment.name:
            partial.name = fragment.name
        if fragment.arguments:
            partial.arguments_text += fragment.arguments

    def add_complete(self, part: FunctionCallPart) -> ToolCall | None:
        """Accept a call that arrived whole.

        Returns:
            The call, or None if an identical call was already emitted this turn
        """
        key = (part.name, json.dumps(part.arguments, sort_keys=True, separators=(",", ":"), default=str))
        if key in self._seen_calls:
            logger.debug(f"Suppressing repeated call to {part.name}")
            return None

        self._seen_calls.add(key)
        return ToolCall(id=self._claim_id(None), name=part.name, arguments=part.arguments)

    def finish_response(self) -> list[ToolCall]:
        """Parse the fragmented calls of the completed response in index order.

        A call whose arguments do not parse into an object is logged and left
        out. The other calls are still returned.
        """
        calls: list[ToolCall] = []

        for index in sorted(self._partials):
            partial = self._partials[index]
            if not partial.name:
                logger.warning(f"Dropping tool call at index {index}: no function name received")
                continue

            try:
                arguments = json.loads(partial.arguments_text) if partial.arguments_text.strip() else {}
            except json.JSONDecodeError as e:
                logger.warning(f"Dropping tool call {partial.name}: invalid arguments JSON ({e})")
                continue

            if not isinstance(arguments, dict):
                logger.warning(f"Dropping tool call {partial.name}: arguments are not an object")
                continue

            calls.append(ToolCall(id=self._claim_id(partial.id), name=partial.name, arguments=arguments))

        self._partials.clear()
        return calls

    def _claim_id(self, call_id: str | None) -> str:
        """Keep the provider's id unless it is missing or already used in this turn."""
        if not call_id or call_id in self._used_ids:
            call_id = new_tool_call_id()
        self._used_ids.add(call_id)
        return call_id
