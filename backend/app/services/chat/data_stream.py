"""Encoding of a chat turn as a data-stream response body.

Each frame is one line, ``<code>:<json>``::

    0  text delta             9  tool call
    2  tool data events       a  tool result
    3  error                  e  step finish
    8  message annotations    d  message finish
"""

import asyncio
import json
import logging
from typing import Any, AsyncIterator

from app.services.agent import Finish, ToolResult
from app.services.chat.stream_data import AnnotationItem, DataItem, StreamData
from app.services.llm.base import StepFinish, TextDelta, ToolCall, Usage

logger = logging.getLogger(__name__)

ERROR_MESSAGE = "An error occurred."


def format_frame(code: str, value: Any) -> str:
    return f"{code}:{json.dumps(value, default=str, ensure_ascii=False, separators=(',', ':'))}\n"


def _usage(usage: Usage) -> dict[str, int]:
    return {"promptTokens": usage.prompt_tokens, "completionTokens": usage.completion_tokens}


def encode_item(item: Any) -> str:
    if isinstance(item, TextDelta):
        return format_frame("0", item.text)
    if isinstance(item, DataItem):
        return format_frame("2", [item.value])
    if isinstance(item, AnnotationItem):
        return format_frame("8", [item.value])
    if isinstance(item, ToolCall):
        return format_frame("9", {"toolCallId": item.tool_call_id, "toolName": item.name, "args": item.arguments})
    if isinstance(item, ToolResult):
        return format_frame("a", {"toolCallId": item.tool_call_id, "result": item.result})
    if isinstance(item, StepFinish):
        return format_frame("e", {
            "finishReason": item.finish_reason,
            "usage": _usage(item.usage),
            "isContinued": False,
        })
    if isinstance(item, Finish):
        return format_frame("d", {"finishReason": item.finish_reason, "usage": _usage(item.usage)})
    raise TypeError(f"Cannot encode stream item of type {type(item).__name__}")


async def merge_data_stream(
    parts: AsyncIterator[Any],
    stream_data: StreamData,
    timeout: float | None = None,
) -> AsyncIterator[str]:
    """Merge the turn's primary parts with its StreamData into encoded frames.

    A background task forwards ``parts`` into ``stream_data`` so tool events
    and model output share one ordered queue. ``parts`` is expected to close
    ``stream_data`` when it ends; if it never started, the task does. Failures
    and the overall ``timeout`` end the body with an error frame.
    """
    failure: list[str] = []

    async def forward() -> None:
        async for part in parts:
            stream_data.append_part(part)

    async def pump() -> None:
        try:
            await asyncio.wait_for(forward(), timeout)
        except asyncio.TimeoutError:
            logger.error(f"Chat turn exceeded {timeout}s, aborting")
            failure.append(ERROR_MESSAGE)
        except Exception:
            logger.exception("Chat turn failed while streaming")
            failure.append(ERROR_MESSAGE)
        finally:
            if not stream_data.closed:
                stream_data.close()

    task = asyncio.create_task(pump())
    try:
        async for item in stream_data:
            yield encode_item(item)
        await task
        for message in failure:
            yield format_frame("3", message)
    finally:
        if not task.done():
            logger.info("Client went away before the turn finished, cancelling")
            task.cancel()
