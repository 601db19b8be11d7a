"""Transcript persistence: chats, messages, documents and suggestions.

The store trusts the chat and user ids it is handed; ownership checks belong
to the caller. Every write method runs in a single transaction, so a batch is
stored completely or not at all.
"""

import logging

from sqlalchemy import Engine, delete
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from app.core.errors import ChatAlreadyExistsError, ChatNotFoundError, PersistenceError, UnauthorizedError
from app.models.chat import Chat, Message
from app.models.document import Document, Suggestion

logger = logging.getLogger(__name__)


class TranscriptStore:
    def __init__(self, engine: Engine | None = None):
        if engine is None:
            from app.core.database import engine as default_engine
            engine = default_engine
        self.engine = engine

    # Chats

    def get_chat_by_id(self, chat_id: str) -> Chat | None:
        with Session(self.engine) as session:
            return session.get(Chat, chat_id)

    def get_chats_by_user_id(self, user_id: str) -> list[Chat]:
        with Session(self.engine) as session:
            return list(session.exec(
                select(Chat)
                .where(Chat.user_id == user_id)
                .order_by(Chat.created_at.desc())  # type: ignore
            ).all())

    def save_chat(self, chat_id: str, user_id: str, title: str) -> Chat:
        with Session(self.engine) as session:
            chat = Chat(id=chat_id, user_id=user_id, title=title)
            session.add(chat)
            try:
                session.commit()
            except IntegrityError as e:
                raise ChatAlreadyExistsError(f"Chat ID already exists: {chat_id}") from e
            except SQLAlchemyError as e:
                raise PersistenceError(f"Failed to save chat {chat_id}: {e}") from e
            session.refresh(chat)
            return chat

    def delete_chat_by_id(self, chat_id: str, user_id: str) -> None:
        """Delete a chat and all of its messages, if ``user_id`` owns it."""
        with Session(self.engine) as session:
            chat = session.get(Chat, chat_id)
            if not chat:
                raise ChatNotFoundError(f"Chat not found: {chat_id}")
            if chat.user_id != user_id:
                raise UnauthorizedError(f"Chat {chat_id} is not owned by {user_id}")
            try:
                session.execute(delete(Message).where(Message.chat_id == chat_id))  # type: ignore
                session.delete(chat)
                session.commit()
            except SQLAlchemyError as e:
                raise PersistenceError(f"Failed to delete chat {chat_id}: {e}") from e
        logger.debug(f"Deleted chat {chat_id}")

    # Messages

    def save_messages(self, chat_id: str, messages: list[Message]) -> None:
        with Session(self.engine) as session:
            for message in messages:
                message.chat_id = chat_id
                session.add(message)
            try:
                session.commit()
            except SQLAlchemyError as e:
                raise PersistenceError(f"Failed to save {len(messages)} messages for chat {chat_id}: {e}") from e

    def get_messages_by_chat_id(self, chat_id: str) -> list[Message]:
        with Session(self.engine) as session:
            return list(session.exec(
                select(Message)
                .where(Message.chat_id == chat_id)
                .order_by(Message.created_at)  # type: ignore
            ).all())

    # Documents

    def get_document_by_id(self, document_id: str) -> Document | None:
        with Session(self.engine) as session:
            return session.get(Document, document_id)

    def save_document(self, document_id: str, title: str, content: str, user_id: str) -> Document:
        """Insert the document, or replace title and content if the id exists."""
        with Session(self.engine) as session:
            document = session.get(Document, document_id)
            if document is None:
                document = Document(id=document_id, title=title, content=content, user_id=user_id)
            else:
                document.title = title
                document.content = content
            session.add(document)
            try:
                session.commit()
            except SQLAlchemyError as e:
                raise PersistenceError(f"Failed to save document {document_id}: {e}") from e
            session.refresh(document)
            return document

    # Suggestions

    def save_suggestions(self, suggestions: list[Suggestion]) -> None:
        with Session(self.engine) as session:
            session.add_all(suggestions)
            try:
                session.commit()
            except SQLAlchemyError as e:
                raise PersistenceError(f"Failed to save {len(suggestions)} suggestions: {e}") from e

    def get_suggestions_by_document_id(self, document_id: str) -> list[Suggestion]:
        with Session(self.engine) as session:
            return list(session.exec(
                select(Suggestion)
                .where(Suggestion.document_id == document_id)
                .order_by(Suggestion.created_at)  # type: ignore
            ).all())
