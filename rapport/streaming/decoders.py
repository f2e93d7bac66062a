"""Incremental decoders for provider server-sent event streams."""

import json
from abc import ABC, abstractmethod
from typing import Any

from rapport.models.llm import (
    FunctionCallPart,
    StreamEnd,
    StreamError,
    StreamEvent,
    TextDelta,
    ToolCallFragment,
)
from rapport.utils.logging import get_logger

logger = get_logger(__name__)

DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"


class StreamDecoder(ABC):
    """Turns a growing response buffer into stream events.

    The transport reports the whole buffer received so far. Only the suffix
    past ``last_processed_length`` is decoded: it joins any held-back partial
    line, complete lines are decoded one at a time and an unterminated trailing
    line waits for the next call.

    Decoding is best effort. A ``data:`` line that does not parse is dropped
    for good and is never retried on a later pass.
    """

    def __init__(self):
        self.last_processed_length = 0
        self.ended = False
        self._partial_line = ""

    def feed(self, buffer: str) -> list[StreamEvent]:
        """Decode whatever was appended to the buffer since the last call.

        Args:
            buffer: Complete response text received so far

        Returns:
            Events for the newly completed lines, in stream order

        Raises:
            ValueError: If the buffer is shorter than what was already processed
        """
        if len(buffer) < self.last_processed_length:
            raise ValueError(
                f"Response buffer shrank from {self.last_processed_length} to {len(buffer)} characters"
            )

        suffix = buffer[self.last_processed_length :]
        self.last_processed_length = len(buffer)
        if not suffix:
            return []

        lines = (self._partial_line + suffix).split("\n")
        self._partial_line = lines.pop()

        events: list[StreamEvent] = []
        for line in lines:
            events.extend(self._decode_line(line))
        return events

    def finish(self) -> list[StreamEvent]:
        """Decode a final line left unterminated when the transport completed."""
        line, self._partial_line = self._partial_line, ""
        return self._decode_line(line) if line else []

    def _decode_line(self, line: str) -> list[StreamEvent]:
        line = line.rstrip("\r")
        if self.ended or not line.startswith(DATA_PREFIX):
            return []

        data = line[len(DATA_PREFIX) :].strip()
        if not data:
            return []
        if data == DONE_SENTINEL:
            return self._decode_sentinel()

        try:
            payload = json.loads(data)
        except json.JSONDecodeError:
            logger.debug(f"Skipping unparseable stream line: {data[:100]}")
            return []
        if not isinstance(payload, dict):
            logger.debug(f"Skipping non-object stream payload: {data[:100]}")
            return []

        if "error" in payload:
            return [StreamError(message=_error_message(payload["error"]))]

        try:
            return self._decode_payload(payload)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.debug(f"Skipping malformed stream payload ({e}): {data[:100]}")
            return []

    def _decode_sentinel(self) -> list[StreamEvent]:
        return []

    @abstractmethod
    def _decode_payload(self, payload: dict[str, Any]) -> list[StreamEvent]:
        """Translate one parsed JSON payload into events."""


class OpenAIStreamDecoder(StreamDecoder):
    """Decoder for OpenAI chat completion chunks.

    Text arrives in ``choices[0].delta.content``. Tool calls arrive as indexed
    fragments in ``choices[0].delta.tool_calls``; the id and function name come
    with the first fragment of an index and the argument JSON is spread over
    the following ones. ``data: [DONE]`` ends the response.
    """

    def _decode_sentinel(self) -> list[StreamEvent]:
        self.ended = True
        return [StreamEnd()]

    def _decode_payload(self, payload: dict[str, Any]) -> list[StreamEvent]:
        choices = payload.get("choices") or []
        if not choices:
            return []

        delta = choices[0].get("delta") or {}
        events: list[StreamEvent] = []

        content = delta.get("content")
        if content:
            events.append(TextDelta(text=content))

        for fragment in delta.get("tool_calls") or []:
            function = fragment.get("function") or {}
            events.append(
                ToolCallFragment(
                    index=fragment.get("index", 0),
                    id=fragment.get("id"),
                    name=function.get("name"),
                    arguments=function.get("arguments"),
                )
            )

        return events


class GeminiStreamDecoder(StreamDecoder):
    """Decoder for Gemini ``streamGenerateContent?alt=sse`` chunks.

    Each chunk carries ``candidates[0].content.parts``. A part holds either text
    or a complete ``functionCall`` with its arguments already materialized. The
    same call can be repeated in later chunks; suppressing repeats is up to the
    assembler.
    """

    def _decode_payload(self, payload: dict[str, Any]) -> list[StreamEvent]:
        candidates = payload.get("candidates") or []
        if not candidates:
            return []

        content = candidates[0].get("content") or {}
        events: list[StreamEvent] = []

        for part in content.get("parts") or []:
            try:
                events.extend(self._decode_part(part))
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                logger.debug(f"Skipping malformed part ({e}): {str(part)[:100]}")

        return events

    def _decode_part(self, part: dict[str, Any]) -> list[StreamEvent]:
        events: list[StreamEvent] = []
        text = part.get("text")
        if text and not part.get("thought"):
            events.append(TextDelta(text=text))

        function_call = part.get("functionCall")
        if function_call:
            events.append(FunctionCallPart(name=function_call["name"], arguments=function_call.get("args") or {}))

        return events


def _error_message(error: Any) -> str:
    if isinstance(error, dict):
        return str(error.get("message") or error.get("status") or "Unknown provider error")
    return str(error)
