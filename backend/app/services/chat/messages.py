"""Chat message types and the codec between wire, model and storage shapes.

Three representations meet here:

- ``ClientMessage``: what the chat UI posts (plain text plus optional
  ``toolInvocations`` for assistant turns that used tools).
- Core messages (``UserMessage``, ``AssistantMessage``, ``ToolMessage``,
  ``SystemMessage``): what the agent loop and the LLM providers work with.
  Content parts are tagged by ``type`` and messages by ``role``.
- The normalized string stored in ``Message.content``
  (see ``format_message_content``).
"""

import json
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class _Part(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class TextPart(_Part):
    type: Literal["text"] = "text"
    text: str


class ToolCallPart(_Part):
    type: Literal["tool-call"] = "tool-call"
    tool_call_id: str = Field(alias="toolCallId")
    tool_name: str = Field(alias="toolName")
    args: dict[str, Any] = Field(default_factory=dict)


class ToolResultPart(_Part):
    type: Literal["tool-result"] = "tool-result"
    tool_call_id: str = Field(alias="toolCallId")
    tool_name: str = Field(alias="toolName")
    result: Any = None


AssistantContentPart = Annotated[Union[TextPart, ToolCallPart], Field(discriminator="type")]


class SystemMessage(BaseModel):
    role: Literal["system"] = "system"
    content: str


class UserMessage(BaseModel):
    role: Literal["user"] = "user"
    content: str | list[TextPart]


class AssistantMessage(BaseModel):
    role: Literal["assistant"] = "assistant"
    content: str | list[AssistantContentPart]


class ToolMessage(BaseModel):
    role: Literal["tool"] = "tool"
    content: list[ToolResultPart]


CoreMessage = Annotated[
    Union[SystemMessage, UserMessage, AssistantMessage, ToolMessage],
    Field(discriminator="role"),
]


class ToolInvocation(_Part):
    state: Literal["partial-call", "call", "result"] = "call"
    tool_call_id: str = Field(alias="toolCallId")
    tool_name: str = Field(alias="toolName")
    args: dict[str, Any] = Field(default_factory=dict)
    result: Any = None


class ClientMessage(_Part):
    id: str | None = None
    role: Literal["system", "user", "assistant"]
    content: str = ""
    tool_invocations: list[ToolInvocation] | None = Field(default=None, alias="toolInvocations")


def _dumps(value: Any) -> str:
    return json.dumps(value, default=str, ensure_ascii=False)


def format_message_content(message: SystemMessage | UserMessage | AssistantMessage | ToolMessage) -> str:
    """Normalize a core message into the string stored in ``Message.content``.

    User text is stored as-is; everything structured is stored as a JSON array
    of camelCase parts. Roles without a storage form yield an empty string.
    """
    if isinstance(message, UserMessage):
        if isinstance(message.content, str):
            return message.content
        return _dumps([part.model_dump(by_alias=True) for part in message.content])

    if isinstance(message, ToolMessage):
        return _dumps([
            {
                "type": part.type or "tool-result",
                "toolCallId": part.tool_call_id,
                "toolName": part.tool_name,
                "result": part.result,
            }
            for part in message.content
        ])

    if isinstance(message, AssistantMessage):
        if isinstance(message.content, str):
            return _dumps([{"type": "text", "text": message.content}])

        formatted = []
        for part in message.content:
            if isinstance(part, TextPart):
                formatted.append({"type": "text", "text": part.text})
            else:
                formatted.append({
                    "type": "tool-call",
                    "toolCallId": part.tool_call_id,
                    "toolName": part.tool_name,
                    "args": part.args,
                })
        return _dumps(formatted)

    return ""


def convert_to_core_messages(messages: list[ClientMessage]) -> list[SystemMessage | UserMessage | AssistantMessage | ToolMessage]:
    """Turn UI messages into core messages.

    An assistant message that used tools becomes an assistant message with
    text and tool-call parts, followed by a tool message carrying the results
    of the invocations that finished. Unfinished invocations are dropped.
    """
    core: list[SystemMessage | UserMessage | AssistantMessage | ToolMessage] = []
    for message in messages:
        if message.role == "system":
            core.append(SystemMessage(content=message.content))
        elif message.role == "user":
            core.append(UserMessage(content=message.content))
        elif not message.tool_invocations:
            core.append(AssistantMessage(content=message.content))
        else:
            finished = [inv for inv in message.tool_invocations if inv.state == "result"]
            parts: list[TextPart | ToolCallPart] = []
            if message.content:
                parts.append(TextPart(text=message.content))
            parts.extend(
                ToolCallPart(tool_call_id=inv.tool_call_id, tool_name=inv.tool_name, args=inv.args)
                for inv in finished
            )
            core.append(AssistantMessage(content=parts))
            if finished:
                core.append(ToolMessage(content=[
                    ToolResultPart(tool_call_id=inv.tool_call_id, tool_name=inv.tool_name, result=inv.result)
                    for inv in finished
                ]))
    return core


def get_most_recent_user_message(messages: list) -> UserMessage | None:
    for message in reversed(messages):
        if isinstance(message, UserMessage):
            return message
    return None


def sanitize_response_messages(messages: list[AssistantMessage | ToolMessage]) -> list[AssistantMessage | ToolMessage]:
    """Drop tool calls that never got a result, and any message left empty.

    Keeps the stored transcript consistent: every persisted tool call has a
    persisted tool result.
    """
    result_ids = {
        part.tool_call_id
        for message in messages
        if isinstance(message, ToolMessage)
        for part in message.content
    }

    sanitized: list[AssistantMessage | ToolMessage] = []
    for message in messages:
        if isinstance(message, ToolMessage):
            if message.content:
                sanitized.append(message)
            continue

        if isinstance(message.content, str):
            if message.content:
                sanitized.append(message)
            continue

        parts = [
            part for part in message.content
            if (isinstance(part, TextPart) and part.text)
            or (isinstance(part, ToolCallPart) and part.tool_call_id in result_ids)
        ]
        if parts:
            sanitized.append(AssistantMessage(content=parts))
    return sanitized
