import logging

from app.core.errors import LLMProviderError
from app.services.chat.messages import UserMessage, format_message_content
from app.services.llm.base import BaseLLMProvider
from app.services.prompts import TITLE_PROMPT

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 80


async def generate_title(provider: BaseLLMProvider, message: UserMessage) -> str:
    """Short chat title for the first user message. Falls back to the message text."""
    text = format_message_content(message)
    try:
        title = (await provider.generate_text(TITLE_PROMPT, text)).strip().strip('"')
    except LLMProviderError as e:
        logger.warning(f"Title generation failed, using message text: {e}")
        title = ""
    return (title or text.strip() or "New Chat")[:MAX_TITLE_LENGTH]
