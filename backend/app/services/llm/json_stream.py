"""Incremental parser for a JSON array that arrives in arbitrary text chunks."""

import json
from typing import Any

from app.core.errors import LLMProviderError

_decoder = json.JSONDecoder()
_SKIP = " \t\r\n,"


class JsonArrayParser:
    """Pull complete elements out of a streamed top-level JSON array.

    Elements are expected to be objects or arrays: a bare number at the end of
    a chunk could still be growing, objects are only complete at their brace.
    """

    def __init__(self) -> None:
        self._buffer = ""
        self._started = False
        self._done = False

    def feed(self, chunk: str) -> list[Any]:
        if self._done:
            return []
        self._buffer += chunk

        if not self._started:
            start = self._buffer.find("[")
            if start < 0:
                return []
            self._buffer = self._buffer[start + 1:]
            self._started = True

        elements = []
        while True:
            self._buffer = self._buffer.lstrip(_SKIP)
            if not self._buffer:
                break
            if self._buffer[0] == "]":
                self._done = True
                self._buffer = ""
                break
            try:
                element, end = _decoder.raw_decode(self._buffer)
            except json.JSONDecodeError:
                break  # incomplete, wait for more text
            elements.append(element)
            self._buffer = self._buffer[end:]
        return elements

    def finish(self) -> list[Any]:
        """Flush at end of stream. Raises if the array was cut short or malformed."""
        if self._done:
            return []
        if not self._started:
            raise LLMProviderError("Model output did not contain a JSON array")
        leftover = self._buffer.strip(_SKIP)
        if leftover:
            raise LLMProviderError(f"Model output ended inside a JSON array element: {leftover[:80]!r}")
        # Missing closing bracket after complete elements is tolerated
        self._done = True
        return []
