"""LLM provider factory."""

from app.core.config import settings
from app.services.llm.base import BaseLLMProvider
from app.services.llm.telemetry import GenerationHook, LoggingTelemetry


def get_llm_provider(
    api_identifier: str,
    *,
    api_key: str | None = None,
    base_url: str | None = None,
    hooks: list[GenerationHook] | None = None,
) -> BaseLLMProvider:
    """Build a provider handle for one model. Each call returns a fresh handle."""
    from app.services.llm.gemini import GeminiProvider
    return GeminiProvider(
        api_identifier,
        api_key=settings.gemini_api_key if api_key is None else api_key,
        base_url=settings.llm_base_url if base_url is None else base_url,
        hooks=[LoggingTelemetry()] if hooks is None else hooks,
    )
