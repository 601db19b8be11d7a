from app.models.chat import Chat, Message
from app.models.document import Document, Suggestion

__all__ = ["Chat", "Message", "Document", "Suggestion"]
