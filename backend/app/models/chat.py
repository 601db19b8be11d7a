"""Chat and message models for transcript persistence."""

from datetime import datetime, timezone

from sqlmodel import Field, SQLModel


class Chat(SQLModel, table=True):
    id: str = Field(primary_key=True)
    user_id: str = Field(index=True)
    title: str = Field(default="New Chat")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class Message(SQLModel, table=True):
    id: str = Field(primary_key=True)
    chat_id: str = Field(foreign_key="chat.id", index=True)
    role: str  # "user" | "assistant" | "tool"
    content: str  # normalized by format_message_content
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
