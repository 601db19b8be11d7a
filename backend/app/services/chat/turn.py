"""One chat turn, from the posted messages to a closed response stream.

States::

    AWAIT_USER_MESSAGE -> VALIDATE -> ENSURE_CHAT -> PERSIST_USER_MESSAGE
        -> GENERATE (-> TOOL_CALL -> TOOL_EXEC -> GENERATE)* -> PERSIST_RESPONSE -> CLOSE

``prepare`` covers everything up to the user message being stored and raises
domain errors the router turns into HTTP statuses. ``stream`` runs the agent
and always ends by closing the turn's StreamData.
"""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, AsyncIterator, Callable
from uuid import uuid4

from app.core.auth import User
from app.core.config import settings
from app.core.errors import (
    ChatAlreadyExistsError,
    InvalidRequestError,
    ModelNotFoundError,
    PersistenceError,
    UnauthorizedError,
)
from app.models.chat import Message
from app.services.agent import Agent, Finish, ToolResult
from app.services.chat.messages import (
    AssistantMessage,
    ClientMessage,
    ToolMessage,
    convert_to_core_messages,
    format_message_content,
    get_most_recent_user_message,
    sanitize_response_messages,
)
from app.services.chat.stream_data import StreamData
from app.services.chat.title import generate_title
from app.services.llm.base import BaseLLMProvider, ToolCall
from app.services.llm.models import get_model
from app.services.store import TranscriptStore
from app.services.tools.base import ToolContext
from app.services.tools.registry import ToolRegistry, create_default_registry

logger = logging.getLogger(__name__)


class TurnState(str, Enum):
    AWAIT_USER_MESSAGE = "await_user_message"
    VALIDATE = "validate"
    ENSURE_CHAT = "ensure_chat"
    PERSIST_USER_MESSAGE = "persist_user_message"
    GENERATE = "generate"
    TOOL_CALL = "tool_call"
    TOOL_EXEC = "tool_exec"
    PERSIST_RESPONSE = "persist_response"
    CLOSE = "close"


class ChatTurn:
    def __init__(
        self,
        chat_id: str,
        user: User,
        model_id: str,
        messages: list[ClientMessage],
        store: TranscriptStore,
        provider_factory: Callable[[str], BaseLLMProvider],
        registry_factory: Callable[[ToolContext], ToolRegistry] = create_default_registry,
        capabilities: list[str] | None = None,
        max_steps: int | None = None,
    ):
        self.chat_id = chat_id
        self.user = user
        self.model_id = model_id
        self.client_messages = messages
        self.store = store
        self.provider_factory = provider_factory
        self.registry_factory = registry_factory
        self.capabilities = settings.active_capabilities if capabilities is None else capabilities
        self.max_steps = settings.max_steps if max_steps is None else max_steps

        self.stream_data = StreamData()
        self.state = TurnState.AWAIT_USER_MESSAGE
        self.core_messages: list = []
        self.provider: BaseLLMProvider | None = None
        self.saved_message_ids: list[str] = []

    def _close(self) -> None:
        self.state = TurnState.CLOSE
        if not self.stream_data.closed:
            self.stream_data.close()

    async def finalize(self) -> None:
        """Close the turn if its response body never ran."""
        if not self.stream_data.closed:
            logger.info(f"Closing chat turn {self.chat_id} that never streamed")
            self._close()

    async def prepare(self) -> None:
        """Validate the request, make sure the chat is ours, and store the user message."""
        try:
            await self._prepare()
        except BaseException:
            self._close()
            raise

    async def _prepare(self) -> None:
        self.state = TurnState.VALIDATE
        model = get_model(self.model_id)
        if model is None:
            raise ModelNotFoundError(f"Model not found: {self.model_id}")
        if not self.client_messages:
            raise InvalidRequestError("No messages provided")

        self.core_messages = convert_to_core_messages(self.client_messages)
        user_message = get_most_recent_user_message(self.core_messages)
        if user_message is None:
            raise InvalidRequestError("No user message found")

        self.provider = self.provider_factory(model.api_identifier)

        self.state = TurnState.ENSURE_CHAT
        chat = self.store.get_chat_by_id(self.chat_id)
        if chat is None:
            title = await generate_title(self.provider, user_message)
            try:
                self.store.save_chat(self.chat_id, self.user.id, title)
                logger.info(f"Created chat {self.chat_id} for user {self.user.id}")
            except ChatAlreadyExistsError:
                # Lost a creation race; keep going if the winner is the same user
                logger.warning(f"Chat {self.chat_id} was created concurrently, reusing it")
                chat = self.store.get_chat_by_id(self.chat_id)
                if chat is None or chat.user_id != self.user.id:
                    raise UnauthorizedError(f"Chat {self.chat_id} belongs to another user")
        elif chat.user_id != self.user.id:
            raise UnauthorizedError(f"Chat {self.chat_id} belongs to another user")

        self.state = TurnState.PERSIST_USER_MESSAGE
        self.store.save_messages(self.chat_id, [
            Message(
                id=str(uuid4()),
                chat_id=self.chat_id,
                role=user_message.role,
                content=format_message_content(user_message),
                created_at=datetime.now(timezone.utc),
            ),
        ])

    async def stream(self) -> AsyncIterator[Any]:
        """Run the agent, yielding its parts, then persist the response and close."""
        if self.provider is None:
            raise RuntimeError("prepare() must succeed before stream()")
        try:
            context = ToolContext(
                user=self.user,
                provider=self.provider,
                stream_data=self.stream_data,
                store=self.store,
            )
            registry = self.registry_factory(context).restrict(self.capabilities)
            agent = Agent(self.provider, registry, max_steps=self.max_steps)

            finish: Finish | None = None
            self.state = TurnState.GENERATE
            async for part in agent.run(self.core_messages):
                if isinstance(part, Finish):
                    finish = part
                    continue
                if isinstance(part, ToolCall):
                    self.state = TurnState.TOOL_CALL
                elif isinstance(part, ToolResult):
                    self.state = TurnState.TOOL_EXEC
                else:
                    self.state = TurnState.GENERATE
                yield part

            self.state = TurnState.PERSIST_RESPONSE
            self._persist_response(agent.response_messages)
            if finish is not None:
                yield finish
        finally:
            self._close()

    def _persist_response(self, response_messages: list[AssistantMessage | ToolMessage]) -> None:
        sanitized = sanitize_response_messages(response_messages)
        if not sanitized:
            return

        records = []
        message_ids = []
        annotations = []
        for message in sanitized:
            message_id = str(uuid4())
            message_ids.append(message_id)
            if isinstance(message, AssistantMessage):
                annotations.append({"messageIdFromServer": message_id})
            records.append(Message(
                id=message_id,
                chat_id=self.chat_id,
                role=message.role,
                content=format_message_content(message),
                created_at=datetime.now(timezone.utc),
            ))

        try:
            self.store.save_messages(self.chat_id, records)
        except PersistenceError:
            # The client already has the streamed reply; losing it from storage is an ops problem
            logger.exception(f"Failed to save response messages for chat {self.chat_id}")
            return

        self.saved_message_ids = message_ids
        for annotation in annotations:
            self.stream_data.append_message_annotation(annotation)
