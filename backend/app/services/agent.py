"""Agent orchestration - drives the model through bounded rounds of tool use."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator

from pydantic import ValidationError

from app.services.chat.messages import (
    AssistantMessage,
    CoreMessage,
    TextPart,
    ToolCallPart,
    ToolMessage,
    ToolResultPart,
)
from app.services.llm.base import BaseLLMProvider, StepFinish, TextDelta, ToolCall, Usage
from app.services.prompts import SYSTEM_PROMPT
from app.services.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

DEFAULT_MAX_STEPS = 5


@dataclass
class ToolResult:
    tool_call_id: str
    name: str
    result: Any


@dataclass
class Finish:
    finish_reason: str
    usage: Usage = field(default_factory=Usage)


AgentPart = TextDelta | ToolCall | ToolResult | StepFinish | Finish


def _summarize(messages: list[CoreMessage]) -> str:
    lines = []
    for m in messages:
        if isinstance(m.content, str):
            text = m.content[:200]
        else:
            pieces = []
            for p in m.content:
                if isinstance(p, TextPart):
                    pieces.append(p.text[:200])
                elif isinstance(p, ToolCallPart):
                    pieces.append(f"[call:{p.tool_name}]")
                elif isinstance(p, ToolResultPart):
                    pieces.append(f"[result:{p.tool_name}]")
            text = " | ".join(pieces)
        lines.append(f"  {m.role}: {text}")
    return "\n".join(lines)


class Agent:
    """Runs the generate -> tool call -> generate loop for one turn.

    Every step streams one model call. If the model asks for tools, they run
    (concurrently when there are several), their results are appended to the
    history and the next step starts. The loop ends when a step makes no tool
    calls or after ``max_steps`` steps, whichever comes first.

    ``response_messages`` holds the assistant and tool messages produced by
    the last ``run``.
    """

    def __init__(
        self,
        provider: BaseLLMProvider,
        registry: ToolRegistry,
        system_prompt: str = SYSTEM_PROMPT,
        max_steps: int = DEFAULT_MAX_STEPS,
    ):
        if max_steps < 1:
            raise ValueError("max_steps must be at least 1")
        self.provider = provider
        self.registry = registry
        self.system_prompt = system_prompt
        self.max_steps = max_steps
        self.response_messages: list[AssistantMessage | ToolMessage] = []
        self.steps = 0

    async def run(self, messages: list[CoreMessage]) -> AsyncIterator[AgentPart]:
        history: list[CoreMessage] = list(messages)
        self.response_messages = []
        self.steps = 0
        declarations = self.registry.gemini_declarations()
        tool_names = self.registry.names()
        total = Usage()
        finish_reason = "stop"

        for step in range(self.max_steps):
            self.steps = step + 1
            logger.info(
                f"=== LLM API Call (step {step + 1}/{self.max_steps}) ===\n"
                f"  Model: {self.provider.api_identifier}\n"
                f"  Tools: {len(tool_names)} ({', '.join(tool_names)})\n"
                f"  Messages ({len(history)}):\n" + _summarize(history)
            )

            text: list[str] = []
            calls: list[ToolCall] = []
            step_finish: StepFinish | None = None
            async for chunk in self.provider.stream_text(self.system_prompt, history, declarations or None):
                if isinstance(chunk, TextDelta):
                    text.append(chunk.text)
                    yield chunk
                elif isinstance(chunk, ToolCall):
                    logger.info(f"Tool call: {chunk.name}({chunk.arguments})")
                    calls.append(chunk)
                    yield chunk
                elif isinstance(chunk, StepFinish):
                    step_finish = chunk

            if step_finish is None:
                step_finish = StepFinish(finish_reason="tool-calls" if calls else "stop")
            total = Usage(
                prompt_tokens=total.prompt_tokens + step_finish.usage.prompt_tokens,
                completion_tokens=total.completion_tokens + step_finish.usage.completion_tokens,
            )

            assistant = self._assistant_message("".join(text), calls)
            if assistant is not None:
                history.append(assistant)
                self.response_messages.append(assistant)

            if not calls:
                finish_reason = step_finish.finish_reason
                yield step_finish
                break

            # Let every tool finish emitting before an error ends the turn
            results = await asyncio.gather(*(self._execute(call) for call in calls), return_exceptions=True)
            for result in results:
                if isinstance(result, BaseException):
                    raise result
            tool_message = ToolMessage(content=[
                ToolResultPart(tool_call_id=call.tool_call_id, tool_name=call.name, result=result)
                for call, result in zip(calls, results)
            ])
            history.append(tool_message)
            self.response_messages.append(tool_message)
            for call, result in zip(calls, results):
                yield ToolResult(tool_call_id=call.tool_call_id, name=call.name, result=result)

            finish_reason = "tool-calls"
            yield StepFinish(finish_reason="tool-calls", usage=step_finish.usage)
        else:
            logger.warning(f"Agent reached maximum steps ({self.max_steps})")

        yield Finish(finish_reason=finish_reason, usage=total)

    async def _execute(self, call: ToolCall) -> Any:
        tool = self.registry.get(call.name)
        if tool is None:
            logger.warning(f"Model requested unknown tool {call.name}")
            return {"error": f"Unknown tool: {call.name}"}

        try:
            args = self.registry.validate(call.name, call.arguments)
        except ValidationError as e:
            logger.info(f"Rejected arguments for {call.name}: {e}")
            return {"error": f"Invalid arguments for {call.name}: {e}"}

        result = await tool.execute(**args)
        logger.info(f"Tool {call.name} finished: {str(result)[:300]}")
        return result

    @staticmethod
    def _assistant_message(text: str, calls: list[ToolCall]) -> AssistantMessage | None:
        if not calls:
            return AssistantMessage(content=text) if text else None
        parts: list[TextPart | ToolCallPart] = []
        if text:
            parts.append(TextPart(text=text))
        parts.extend(
            ToolCallPart(tool_call_id=c.tool_call_id, tool_name=c.name, args=c.arguments)
            for c in calls
        )
        return AssistantMessage(content=parts)
