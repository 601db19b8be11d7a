"""Tests for the message codec."""

import json

from app.services.chat.messages import (
    AssistantMessage,
    ClientMessage,
    SystemMessage,
    TextPart,
    ToolCallPart,
    ToolMessage,
    ToolResultPart,
    UserMessage,
    convert_to_core_messages,
    format_message_content,
    get_most_recent_user_message,
    sanitize_response_messages,
)


def _call(call_id, name="getWeather"):
    return ToolCallPart(tool_call_id=call_id, tool_name=name, args={"latitude": 1.0})


def _result(call_id, name="getWeather"):
    return ToolResultPart(tool_call_id=call_id, tool_name=name, result={"ok": True})


def test_user_string_content_is_stored_unchanged():
    assert format_message_content(UserMessage(content="hello")) == "hello"


def test_user_structured_content_is_json():
    content = format_message_content(UserMessage(content=[TextPart(text="a"), TextPart(text="b")]))
    assert json.loads(content) == [{"type": "text", "text": "a"}, {"type": "text", "text": "b"}]


def test_assistant_string_content_becomes_single_text_part():
    content = format_message_content(AssistantMessage(content="hi"))
    assert json.loads(content) == [{"type": "text", "text": "hi"}]


def test_assistant_parts_keep_order_and_discriminants():
    message = AssistantMessage(content=[
        TextPart(text="Let me check."),
        _call("c1"),
        TextPart(text="And this."),
        _call("c2", "createDocument"),
    ])
    decoded = json.loads(format_message_content(message))
    assert [p["type"] for p in decoded] == ["text", "tool-call", "text", "tool-call"]
    assert decoded[1] == {
        "type": "tool-call",
        "toolCallId": "c1",
        "toolName": "getWeather",
        "args": {"latitude": 1.0},
    }
    assert decoded[3]["toolName"] == "createDocument"


def test_tool_message_is_json_array_of_results():
    decoded = json.loads(format_message_content(ToolMessage(content=[_result("c1")])))
    assert decoded == [{
        "type": "tool-result",
        "toolCallId": "c1",
        "toolName": "getWeather",
        "result": {"ok": True},
    }]


def test_tool_result_type_defaults_when_omitted():
    message = ToolMessage.model_validate({
        "content": [{"toolCallId": "c1", "toolName": "getWeather", "result": 3}],
    })
    assert json.loads(format_message_content(message))[0]["type"] == "tool-result"


def test_system_message_has_no_stored_form():
    assert format_message_content(SystemMessage(content="be nice")) == ""


def test_convert_plain_messages():
    core = convert_to_core_messages([
        ClientMessage(role="user", content="hi"),
        ClientMessage(role="assistant", content="hello"),
    ])
    assert core == [UserMessage(content="hi"), AssistantMessage(content="hello")]


def test_convert_assistant_tool_invocations():
    client_message = ClientMessage.model_validate({
        "role": "assistant",
        "content": "Checking",
        "toolInvocations": [
            {"state": "result", "toolCallId": "c1", "toolName": "getWeather",
             "args": {"latitude": 1.0}, "result": {"ok": True}},
            {"state": "call", "toolCallId": "c2", "toolName": "getWeather", "args": {}},
        ],
    })
    core = convert_to_core_messages([client_message])

    assert len(core) == 2
    assistant, tool = core
    assert isinstance(assistant, AssistantMessage)
    assert [type(p) for p in assistant.content] == [TextPart, ToolCallPart]
    assert isinstance(tool, ToolMessage)
    assert [p.tool_call_id for p in tool.content] == ["c1"]


def test_most_recent_user_message():
    messages = [UserMessage(content="one"), AssistantMessage(content="x"), UserMessage(content="two")]
    assert get_most_recent_user_message(messages).content == "two"
    assert get_most_recent_user_message([AssistantMessage(content="x")]) is None


def test_sanitize_drops_dangling_tool_calls():
    messages = [
        AssistantMessage(content=[TextPart(text="Working"), _call("c1"), _call("c2")]),
        ToolMessage(content=[_result("c1")]),
        AssistantMessage(content=[_call("c3")]),
    ]
    sanitized = sanitize_response_messages(messages)

    assert len(sanitized) == 2
    first, second = sanitized
    assert [getattr(p, "tool_call_id", None) for p in first.content] == [None, "c1"]
    assert isinstance(second, ToolMessage)


def test_sanitize_drops_empty_text():
    messages = [AssistantMessage(content=""), AssistantMessage(content=[TextPart(text="")])]
    assert sanitize_response_messages(messages) == []


def test_sanitized_transcript_has_a_result_for_every_call():
    messages = [
        AssistantMessage(content=[_call("a"), _call("b")]),
        ToolMessage(content=[_result("b")]),
        AssistantMessage(content=[TextPart(text="done"), _call("c")]),
    ]
    sanitized = sanitize_response_messages(messages)
    calls = {
        p.tool_call_id for m in sanitized if isinstance(m, AssistantMessage)
        for p in m.content if isinstance(p, ToolCallPart)
    }
    results = {p.tool_call_id for m in sanitized if isinstance(m, ToolMessage) for p in m.content}
    assert calls <= results
