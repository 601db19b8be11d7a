"""Chat turn endpoint: POST streams a reply, DELETE removes a chat."""

import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import PlainTextResponse, StreamingResponse
from pydantic import BaseModel, Field
from starlette.background import BackgroundTask

from app.core.auth import User, get_current_user
from app.core.config import settings
from app.core.database import engine
from app.core.errors import (
    ChatError,
    ChatNotFoundError,
    InvalidRequestError,
    ModelNotFoundError,
    UnauthorizedError,
)
from app.services.chat.data_stream import merge_data_stream
from app.services.chat.messages import ClientMessage
from app.services.chat.turn import ChatTurn
from app.services.llm import get_llm_provider
from app.services.store import TranscriptStore

router = APIRouter()
logger = logging.getLogger(__name__)


class ChatRequest(BaseModel):
    id: str
    messages: list[ClientMessage] = Field(default_factory=list)
    modelId: str = Field(default_factory=lambda: settings.default_model_id)


@router.post("")
async def post_chat(body: ChatRequest, user: User = Depends(get_current_user)):
    turn = ChatTurn(
        chat_id=body.id,
        user=user,
        model_id=body.modelId,
        messages=body.messages,
        store=TranscriptStore(engine),
        provider_factory=get_llm_provider,
    )
    loop = asyncio.get_running_loop()
    started = loop.time()
    try:
        await asyncio.wait_for(turn.prepare(), settings.max_duration_sec)
    except asyncio.TimeoutError:
        logger.error(f"Chat {body.id} did not start within {settings.max_duration_sec}s")
        raise HTTPException(status_code=500, detail="An error occurred while processing your request")
    except UnauthorizedError as e:
        logger.info(f"Rejected chat {body.id} for user {user.id}: {e}")
        raise HTTPException(status_code=401, detail="Unauthorized")
    except ModelNotFoundError:
        raise HTTPException(status_code=404, detail="Model not found")
    except InvalidRequestError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ChatError:
        logger.exception(f"Error in chat route for chat {body.id}")
        raise HTTPException(status_code=500, detail="An error occurred while processing your request")

    # One ceiling for the whole turn, preparation included
    remaining = max(settings.max_duration_sec - (loop.time() - started), 0.0)
    return StreamingResponse(
        merge_data_stream(turn.stream(), turn.stream_data, timeout=remaining),
        media_type="text/plain; charset=utf-8",
        headers={"X-Vercel-AI-Data-Stream": "v1"},
        background=BackgroundTask(turn.finalize),
    )


@router.delete("")
async def delete_chat(id: str | None = None, user: User = Depends(get_current_user)):
    if not id:
        raise HTTPException(status_code=404, detail="Not Found")

    try:
        TranscriptStore(engine).delete_chat_by_id(id, user.id)
    except ChatNotFoundError:
        raise HTTPException(status_code=404, detail="Chat not found")
    except UnauthorizedError:
        raise HTTPException(status_code=401, detail="Unauthorized")
    except Exception:
        logger.exception(f"Error deleting chat {id}")
        raise HTTPException(status_code=500, detail="An error occurred while processing your request")

    return PlainTextResponse("Chat deleted", status_code=200)
