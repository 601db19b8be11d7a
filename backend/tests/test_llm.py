"""Tests for provider helpers: Gemini message mapping, titles and structured streams."""

from app.core.errors import LLMProviderError
from app.services.chat.messages import (
    AssistantMessage,
    SystemMessage,
    TextPart,
    ToolCallPart,
    ToolMessage,
    ToolResultPart,
    UserMessage,
)
from app.services.chat.title import MAX_TITLE_LENGTH, generate_title
from app.services.llm.gemini import to_gemini_contents
from app.services.llm.models import get_model
from app.services.tools.document_tools import SuggestionElement
from tests.fakes import ScriptedProvider


def test_gemini_contents_mapping():
    system, contents = to_gemini_contents([
        SystemMessage(content="Be brief."),
        UserMessage(content="Weather in Berlin?"),
        AssistantMessage(content=[
            TextPart(text="Checking."),
            ToolCallPart(tool_call_id="c1", tool_name="getWeather", args={"latitude": 52.5, "longitude": 13.4}),
        ]),
        ToolMessage(content=[ToolResultPart(tool_call_id="c1", tool_name="getWeather", result={"temp": 14})]),
        AssistantMessage(content=""),
    ])

    assert system == ["Be brief."]
    assert [c.role for c in contents] == ["user", "model", "user"]
    assert contents[0].parts[0].text == "Weather in Berlin?"

    call = contents[1].parts[1].function_call
    assert (call.id, call.name, call.args) == ("c1", "getWeather", {"latitude": 52.5, "longitude": 13.4})

    response = contents[2].parts[0].function_response
    assert response.name == "getWeather"
    assert response.response == {"result": {"temp": 14}}


def test_model_lookup():
    assert get_model("gemini-flash").api_identifier == "gemini-2.0-flash"
    assert get_model("gpt-4o") is None


async def test_title_is_trimmed():
    provider = ScriptedProvider(title='  "Berlin weather"\n')
    assert await generate_title(provider, UserMessage(content="Weather in Berlin?")) == "Berlin weather"


async def test_title_falls_back_to_truncated_message():
    provider = ScriptedProvider(title=LLMProviderError("down"))
    title = await generate_title(provider, UserMessage(content="x" * 200))
    assert title == "x" * MAX_TITLE_LENGTH


async def test_object_array_yields_validated_elements():
    provider = ScriptedProvider(json_chunks=[
        '[{"originalSentence": "a", "suggestedSentence": "b", ',
        '"description": "c"}]',
    ])
    elements = [e async for e in provider.stream_object_array("sys", "prompt", SuggestionElement)]
    assert elements == [SuggestionElement(originalSentence="a", suggestedSentence="b", description="c")]
