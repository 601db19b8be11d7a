"""Generation telemetry hooks passed to provider factories."""

import logging
from typing import Any, Callable

logger = logging.getLogger(__name__)

# hook(event, payload) with event in "request" | "response" | "error"
GenerationHook = Callable[[str, dict[str, Any]], None]


class LoggingTelemetry:
    """Default hook: writes one log line per model call."""

    def __init__(self, function_id: str = "stream-text"):
        self.function_id = function_id

    def __call__(self, event: str, payload: dict[str, Any]) -> None:
        if event == "request":
            logger.info(
                f"[{self.function_id}] LLM request model={payload.get('model')} "
                f"messages={payload.get('messages', 0)} tools={payload.get('tools', 0)}"
            )
        elif event == "response":
            logger.info(
                f"[{self.function_id}] LLM response model={payload.get('model')} "
                f"finish={payload.get('finish_reason')} "
                f"prompt_tokens={payload.get('prompt_tokens', 0)} "
                f"completion_tokens={payload.get('completion_tokens', 0)}"
            )
        elif event == "error":
            logger.warning(f"[{self.function_id}] LLM error model={payload.get('model')}: {payload.get('error')}")
