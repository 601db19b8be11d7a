"""Side channel that lets tools push events into the client-visible stream.

One ``StreamData`` lives for exactly one chat turn. Tools append events while
they run, the response writer forwards the model's own output parts into it,
and the turn closes it once every producer has finished. Items come out in the
order they went in.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, AsyncIterator, Literal

from app.core.errors import StreamClosedError

StreamEventType = Literal["id", "title", "clear", "text-delta", "suggestion", "finish"]


@dataclass
class DataItem:
    """A tool event, sent to the client as a data frame."""
    value: dict[str, Any]


@dataclass
class AnnotationItem:
    """Server metadata attached to the current assistant message."""
    value: dict[str, Any]


_CLOSED = object()


class StreamData:
    def __init__(self) -> None:
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def append(self, event_type: StreamEventType, content: Any = "") -> None:
        """Queue a ``{type, content}`` event. Never blocks."""
        self._put(DataItem({"type": event_type, "content": content}))

    def append_message_annotation(self, data: dict[str, Any]) -> None:
        self._put(AnnotationItem(dict(data)))

    def append_part(self, part: Any) -> None:
        """Queue a part of the primary model stream (text, tool call, finish...)."""
        self._put(part)

    def close(self) -> None:
        if self._closed:
            raise StreamClosedError("StreamData already closed")
        self._closed = True
        self._queue.put_nowait(_CLOSED)

    def _put(self, item: Any) -> None:
        if self._closed:
            raise StreamClosedError("Cannot append to a closed StreamData")
        self._queue.put_nowait(item)

    async def __aiter__(self) -> AsyncIterator[Any]:
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                return
            yield item
