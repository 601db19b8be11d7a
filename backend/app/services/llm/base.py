"""Abstract LLM provider interface. All providers must implement this."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, TypeVar

from pydantic import BaseModel, ValidationError

from app.core.errors import LLMProviderError
from app.services.chat.messages import CoreMessage
from app.services.llm.json_stream import JsonArrayParser
from app.services.llm.telemetry import GenerationHook

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


@dataclass
class TextDelta:
    text: str


@dataclass
class ToolCall:
    tool_call_id: str
    name: str
    arguments: dict[str, Any]


@dataclass
class Usage:
    prompt_tokens: int = 0
    completion_tokens: int = 0


@dataclass
class StepFinish:
    finish_reason: str  # "stop" | "tool-calls" | "length" | "error" | "other"
    usage: Usage = field(default_factory=Usage)


StreamChunk = TextDelta | ToolCall | StepFinish


class BaseLLMProvider(ABC):
    def __init__(self, api_identifier: str, hooks: list[GenerationHook] | None = None):
        self.api_identifier = api_identifier
        self.hooks = list(hooks or [])

    def _notify(self, event: str, **payload: Any) -> None:
        for hook in self.hooks:
            try:
                hook(event, {"model": self.api_identifier, **payload})
            except Exception:
                logger.exception(f"Telemetry hook failed on {event}")

    @abstractmethod
    async def generate_text(self, system: str, prompt: str) -> str:
        """Single non-streaming completion for a plain prompt."""
        ...

    @abstractmethod
    def stream_text(
        self,
        system: str,
        messages: list[CoreMessage],
        tools: list[dict] | None = None,
    ) -> AsyncIterator[StreamChunk]:
        """Stream one model step: text deltas and tool calls, then a StepFinish."""
        ...

    @abstractmethod
    def stream_json(self, system: str, prompt: str, item_model: type[BaseModel]) -> AsyncIterator[str]:
        """Stream raw JSON text of an array whose elements match ``item_model``."""
        ...

    async def stream_object_array(
        self, system: str, prompt: str, item_model: type[T]
    ) -> AsyncIterator[T]:
        """Generate a JSON array of ``item_model`` and yield each element as soon as it is complete."""
        parser = JsonArrayParser()
        async for chunk in self.stream_json(system, prompt, item_model):
            for element in parser.feed(chunk):
                yield self._validate_element(item_model, element)
        for element in parser.finish():
            yield self._validate_element(item_model, element)

    @staticmethod
    def _validate_element(item_model: type[T], element: Any) -> T:
        try:
            return item_model.model_validate(element)
        except ValidationError as e:
            raise LLMProviderError(f"Model returned an invalid {item_model.__name__}: {e}") from e
