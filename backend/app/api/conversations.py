"""REST API for the caller's chat history."""

import json
import logging

from fastapi import APIRouter, Depends, HTTPException

from app.core.auth import User, get_current_user
from app.core.database import engine
from app.services.store import TranscriptStore

router = APIRouter()
logger = logging.getLogger(__name__)


def _decode_content(role: str, content: str):
    """Stored user text stays a string; structured content goes back to JSON."""
    if role == "user":
        return content
    try:
        return json.loads(content)
    except json.JSONDecodeError:
        return content


@router.get("")
async def list_chats(user: User = Depends(get_current_user)):
    chats = TranscriptStore(engine).get_chats_by_user_id(user.id)
    return [
        {
            "id": c.id,
            "title": c.title,
            "created_at": c.created_at.isoformat(),
        }
        for c in chats
    ]


@router.get("/{chat_id}")
async def get_chat(chat_id: str, user: User = Depends(get_current_user)):
    store = TranscriptStore(engine)
    chat = store.get_chat_by_id(chat_id)
    if not chat:
        logger.debug(f"Chat {chat_id} not found")
        raise HTTPException(status_code=404, detail="Chat not found")
    if chat.user_id != user.id:
        raise HTTPException(status_code=401, detail="Unauthorized")

    messages = store.get_messages_by_chat_id(chat_id)
    return {
        "id": chat.id,
        "title": chat.title,
        "created_at": chat.created_at.isoformat(),
        "messages": [
            {
                "id": m.id,
                "role": m.role,
                "content": _decode_content(m.role, m.content),
                "created_at": m.created_at.isoformat(),
            }
            for m in messages
        ],
    }
