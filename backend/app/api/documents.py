"""Read access to documents and suggestions produced by the document tools."""

from fastapi import APIRouter, Depends, HTTPException, Query

from app.core.auth import User, get_current_user
from app.core.database import engine
from app.services.store import TranscriptStore

router = APIRouter()


@router.get("/document")
async def get_document(id: str | None = None, user: User = Depends(get_current_user)):
    if not id:
        raise HTTPException(status_code=404, detail="Missing id")

    document = TranscriptStore(engine).get_document_by_id(id)
    if not document:
        raise HTTPException(status_code=404, detail="Not Found")
    if document.user_id != user.id:
        raise HTTPException(status_code=401, detail="Unauthorized")

    return {
        "id": document.id,
        "title": document.title,
        "content": document.content,
        "created_at": document.created_at.isoformat(),
    }


@router.get("/suggestions")
async def get_suggestions(
    document_id: str | None = Query(default=None, alias="documentId"),
    user: User = Depends(get_current_user),
):
    if not document_id:
        raise HTTPException(status_code=404, detail="Not Found")

    suggestions = TranscriptStore(engine).get_suggestions_by_document_id(document_id)
    if not suggestions:
        return []
    if suggestions[0].user_id != user.id:
        raise HTTPException(status_code=401, detail="Unauthorized")

    return [
        {
            "id": s.id,
            "documentId": s.document_id,
            "originalText": s.original_text,
            "suggestedText": s.suggested_text,
            "description": s.description,
            "isResolved": s.is_resolved,
            "createdAt": s.created_at.isoformat(),
        }
        for s in suggestions
    ]
