"""Base tool interface. All tools the agent can use implement this."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, create_model

if TYPE_CHECKING:
    from app.core.auth import User
    from app.services.chat.stream_data import StreamData
    from app.services.llm.base import BaseLLMProvider
    from app.services.store import TranscriptStore

_PYTHON_TYPES: dict[str, type] = {
    "string": str,
    "integer": int,
    "number": float,
    "boolean": bool,
}


@dataclass
class ToolParameter:
    name: str
    type: str  # "string" | "integer" | "boolean" | "number"
    description: str = ""
    required: bool = True
    enum: list[str] | None = None


@dataclass
class ToolDefinition:
    name: str
    description: str
    parameters: list[ToolParameter] = field(default_factory=list)

    def to_gemini_schema(self) -> dict:
        """Convert to Gemini function declaration format."""
        properties = {}
        required = []
        for param in self.parameters:
            prop: dict[str, Any] = {"type": param.type}
            if param.description:
                prop["description"] = param.description
            if param.enum:
                prop["enum"] = param.enum
            properties[param.name] = prop
            if param.required:
                required.append(param.name)

        return {
            "name": self.name,
            "description": self.description,
            "parameters": {
                "type": "object",
                "properties": properties,
                "required": required,
            },
        }

    def validation_model(self) -> type[BaseModel]:
        """Pydantic model that checks call arguments against the declared parameters."""
        fields: dict[str, Any] = {}
        for param in self.parameters:
            py_type: Any = _PYTHON_TYPES[param.type]
            if param.required:
                fields[param.name] = (py_type, ...)
            else:
                fields[param.name] = (py_type | None, None)
        return create_model(
            f"{self.name}Args",
            __config__=ConfigDict(extra="forbid", strict=False),
            **fields,
        )


@dataclass
class ToolContext:
    """Per-turn collaborators handed to tools that stream or persist."""
    user: "User"
    provider: "BaseLLMProvider"
    stream_data: "StreamData"
    store: "TranscriptStore"


class BaseTool(ABC):
    def __init__(self, context: ToolContext | None = None):
        self.context = context

    @abstractmethod
    def definition(self) -> ToolDefinition:
        """Return the tool's definition for LLM function calling."""
        ...

    @abstractmethod
    async def execute(self, **kwargs: Any) -> dict[str, Any]:
        """Execute the tool with validated arguments.

        Expected failures come back as ``{"error": reason}`` so the model can
        react to them; anything else raises.
        """
        ...
