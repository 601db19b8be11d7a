"""Tool registry - central place to register and look up the tools of a turn."""

from typing import Any

from pydantic import BaseModel

from app.services.tools.base import BaseTool, ToolContext, ToolDefinition
from app.services.tools.document_tools import CreateDocumentTool, RequestSuggestionsTool, UpdateDocumentTool
from app.services.tools.weather_tools import GetWeatherTool


class ToolRegistry:
    def __init__(self) -> None:
        self._tools: dict[str, BaseTool] = {}
        self._capabilities: dict[str, str] = {}
        self._validators: dict[str, type[BaseModel]] = {}

    def register(self, tool: BaseTool, capability: str) -> None:
        defn = tool.definition()
        self._tools[defn.name] = tool
        self._capabilities[defn.name] = capability
        self._validators[defn.name] = defn.validation_model()

    def get(self, name: str) -> BaseTool | None:
        return self._tools.get(name)

    def names(self) -> list[str]:
        return list(self._tools)

    def capabilities(self) -> set[str]:
        return set(self._capabilities.values())

    def restrict(self, capabilities: list[str] | set[str]) -> "ToolRegistry":
        """Registry holding only the tools of the given capability sets."""
        wanted = set(capabilities)
        restricted = ToolRegistry()
        for name, tool in self._tools.items():
            if self._capabilities[name] in wanted:
                restricted.register(tool, self._capabilities[name])
        return restricted

    def validate(self, name: str, args: dict[str, Any]) -> dict[str, Any]:
        """Check arguments for ``name``. Raises pydantic.ValidationError on mismatch."""
        validated = self._validators[name].model_validate(args)
        return validated.model_dump(exclude_none=True)

    def definitions(self) -> list[ToolDefinition]:
        return [tool.definition() for tool in self._tools.values()]

    def gemini_declarations(self) -> list[dict]:
        return [defn.to_gemini_schema() for defn in self.definitions()]


def create_default_registry(context: ToolContext) -> ToolRegistry:
    """Create a registry with all chat tools bound to this turn's context."""
    registry = ToolRegistry()

    # Document tools
    registry.register(CreateDocumentTool(context), "document")
    registry.register(UpdateDocumentTool(context), "document")
    registry.register(RequestSuggestionsTool(context), "document")

    # Weather tools
    registry.register(GetWeatherTool(), "weather")

    return registry
