"""Google Gemini LLM provider."""

import logging
from typing import Any, AsyncIterator
from uuid import uuid4

import httpx
from google import genai
from google.genai import errors, types
from pydantic import BaseModel

from app.core.errors import LLMProviderError
from app.services.chat.messages import (
    AssistantMessage,
    CoreMessage,
    SystemMessage,
    TextPart,
    ToolMessage,
    UserMessage,
)
from app.services.llm.base import BaseLLMProvider, StepFinish, StreamChunk, TextDelta, ToolCall, Usage
from app.services.llm.telemetry import GenerationHook

logger = logging.getLogger(__name__)

_FINISH_REASONS = {
    types.FinishReason.STOP: "stop",
    types.FinishReason.MAX_TOKENS: "length",
}


def to_gemini_contents(messages: list[CoreMessage]) -> tuple[list[str], list[types.Content]]:
    """Split core messages into extra system instructions and Gemini contents."""
    system_parts: list[str] = []
    contents: list[types.Content] = []

    for message in messages:
        if isinstance(message, SystemMessage):
            system_parts.append(message.content)
        elif isinstance(message, UserMessage):
            if isinstance(message.content, str):
                parts = [types.Part(text=message.content)]
            else:
                parts = [types.Part(text=p.text) for p in message.content]
            contents.append(types.Content(role="user", parts=parts))
        elif isinstance(message, AssistantMessage):
            if isinstance(message.content, str):
                parts = [types.Part(text=message.content)] if message.content else []
            else:
                parts = []
                for p in message.content:
                    if isinstance(p, TextPart):
                        parts.append(types.Part(text=p.text))
                    else:
                        parts.append(types.Part(function_call=types.FunctionCall(
                            id=p.tool_call_id, name=p.tool_name, args=p.args,
                        )))
            if parts:
                contents.append(types.Content(role="model", parts=parts))
        elif isinstance(message, ToolMessage):
            contents.append(types.Content(role="user", parts=[
                types.Part(function_response=types.FunctionResponse(
                    id=p.tool_call_id, name=p.tool_name, response={"result": p.result},
                ))
                for p in message.content
            ]))

    return system_parts, contents


class GeminiProvider(BaseLLMProvider):
    def __init__(
        self,
        api_identifier: str,
        api_key: str,
        base_url: str = "",
        hooks: list[GenerationHook] | None = None,
    ):
        super().__init__(api_identifier, hooks)
        http_options = types.HttpOptions(base_url=base_url) if base_url else None
        self.client = genai.Client(api_key=api_key, http_options=http_options)

    async def generate_text(self, system: str, prompt: str) -> str:
        self._notify("request", messages=1, tools=0)
        try:
            response = await self.client.aio.models.generate_content(
                model=self.api_identifier,
                contents=prompt,
                config=types.GenerateContentConfig(system_instruction=system),
            )
        except (errors.APIError, httpx.HTTPError) as e:
            self._notify("error", error=str(e))
            raise LLMProviderError(f"Gemini request failed: {e}") from e
        self._notify("response", finish_reason="stop", **self._usage_payload(response.usage_metadata))
        return response.text or ""

    async def stream_text(
        self,
        system: str,
        messages: list[CoreMessage],
        tools: list[dict] | None = None,
    ) -> AsyncIterator[StreamChunk]:
        extra_system, contents = to_gemini_contents(messages)
        config = types.GenerateContentConfig(
            system_instruction="\n\n".join([system, *extra_system]),
            tools=[types.Tool(function_declarations=tools)] if tools else None,
            automatic_function_calling=types.AutomaticFunctionCallingConfig(disable=True),
        )
        self._notify("request", messages=len(contents), tools=len(tools or []))

        usage = Usage()
        finish_reason = "stop"
        saw_tool_call = False
        try:
            stream = await self.client.aio.models.generate_content_stream(
                model=self.api_identifier,
                contents=contents,
                config=config,
            )
            async for chunk in stream:
                if chunk.usage_metadata:
                    usage = Usage(**self._usage_payload(chunk.usage_metadata))
                if not chunk.candidates:
                    continue
                candidate = chunk.candidates[0]
                if candidate.finish_reason:
                    finish_reason = _FINISH_REASONS.get(candidate.finish_reason, "other")
                if not candidate.content or not candidate.content.parts:
                    continue
                for part in candidate.content.parts:
                    if part.function_call:
                        saw_tool_call = True
                        fc = part.function_call
                        yield ToolCall(
                            tool_call_id=fc.id or f"call_{uuid4().hex[:12]}",
                            name=fc.name or "",
                            arguments=dict(fc.args or {}),
                        )
                    elif part.text and not getattr(part, "thought", False):
                        yield TextDelta(part.text)
        except (errors.APIError, httpx.HTTPError) as e:
            self._notify("error", error=str(e))
            raise LLMProviderError(f"Gemini request failed: {e}") from e

        if saw_tool_call:
            finish_reason = "tool-calls"
        self._notify(
            "response",
            finish_reason=finish_reason,
            prompt_tokens=usage.prompt_tokens,
            completion_tokens=usage.completion_tokens,
        )
        yield StepFinish(finish_reason=finish_reason, usage=usage)

    async def stream_json(self, system: str, prompt: str, item_model: type[BaseModel]) -> AsyncIterator[str]:
        config = types.GenerateContentConfig(
            system_instruction=system,
            response_mime_type="application/json",
            response_schema=list[item_model],
        )
        self._notify("request", messages=1, tools=0)
        try:
            stream = await self.client.aio.models.generate_content_stream(
                model=self.api_identifier,
                contents=prompt,
                config=config,
            )
            async for chunk in stream:
                if chunk.text:
                    yield chunk.text
        except (errors.APIError, httpx.HTTPError) as e:
            self._notify("error", error=str(e))
            raise LLMProviderError(f"Gemini request failed: {e}") from e
        self._notify("response", finish_reason="stop")

    @staticmethod
    def _usage_payload(usage: Any) -> dict[str, int]:
        if usage is None:
            return {"prompt_tokens": 0, "completion_tokens": 0}
        return {
            "prompt_tokens": usage.prompt_token_count or 0,
            "completion_tokens": usage.candidates_token_count or 0,
        }
