"""Document tools: write, rewrite and review documents shown beside the chat.

Each tool streams its progress to the client through the turn's StreamData
while it generates, then persists the result once generation is complete.
"""

import logging
from contextlib import aclosing
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field

from app.core.config import settings
from app.core.errors import LLMProviderError, PersistenceError
from app.models.document import Suggestion
from app.services.chat.messages import UserMessage
from app.services.llm.base import TextDelta
from app.services.prompts import CREATE_DOCUMENT_PROMPT, SUGGESTIONS_PROMPT, UPDATE_DOCUMENT_PROMPT
from app.services.tools.base import BaseTool, ToolDefinition, ToolParameter

logger = logging.getLogger(__name__)


class SuggestionElement(BaseModel):
    originalSentence: str = Field(description="The original sentence")
    suggestedSentence: str = Field(description="The suggested sentence")
    description: str = Field(description="The description of the suggestion")


class _DocumentTool(BaseTool):
    async def _stream_draft(self, system: str, messages: list[UserMessage]) -> str:
        """Run a nested generation, forwarding each delta to the client."""
        stream_data = self.context.stream_data
        draft: list[str] = []
        async for chunk in self.context.provider.stream_text(system, messages):
            if isinstance(chunk, TextDelta):
                draft.append(chunk.text)
                stream_data.append("text-delta", chunk.text)
        return "".join(draft)

    def _load_owned_document(self, document_id: str):
        document = self.context.store.get_document_by_id(document_id)
        if document is None or document.user_id != self.context.user.id:
            return None
        return document


class CreateDocumentTool(_DocumentTool):
    def definition(self) -> ToolDefinition:
        return ToolDefinition(
            name="createDocument",
            description="Create a document for a writing activity",
            parameters=[
                ToolParameter(name="title", type="string"),
            ],
        )

    async def execute(self, **kwargs: Any) -> dict[str, Any]:
        title = kwargs["title"]
        document_id = str(uuid4())
        stream_data = self.context.stream_data

        # Let the client open an empty editor before any content arrives
        stream_data.append("id", document_id)
        stream_data.append("title", title)
        stream_data.append("clear", "")

        try:
            draft = await self._stream_draft(CREATE_DOCUMENT_PROMPT, [UserMessage(content=title)])
        except LLMProviderError as e:
            stream_data.append("finish", "")
            return {"error": f"Failed to generate document: {e}"}

        stream_data.append("finish", "")

        try:
            self.context.store.save_document(document_id, title, draft, self.context.user.id)
        except PersistenceError:
            logger.exception(f"Failed to save document {document_id}")
            return {"error": "Failed to save document"}

        logger.info(f"Created document {document_id} ({len(draft)} chars)")
        return {
            "id": document_id,
            "title": title,
            "content": "A document was created and is now visible to the user.",
        }


class UpdateDocumentTool(_DocumentTool):
    def definition(self) -> ToolDefinition:
        return ToolDefinition(
            name="updateDocument",
            description="Update a document with the given description",
            parameters=[
                ToolParameter(name="id", type="string", description="The ID of the document to update"),
                ToolParameter(
                    name="description", type="string",
                    description="The description of changes that need to be made",
                ),
            ],
        )

    async def execute(self, **kwargs: Any) -> dict[str, Any]:
        document_id = kwargs["id"]
        description = kwargs["description"]

        document = self._load_owned_document(document_id)
        if document is None:
            return {"error": "Document not found"}

        stream_data = self.context.stream_data
        stream_data.append("clear", document.title)

        try:
            draft = await self._stream_draft(
                UPDATE_DOCUMENT_PROMPT,
                [UserMessage(content=description), UserMessage(content=document.content)],
            )
        except LLMProviderError as e:
            stream_data.append("finish", "")
            return {"error": f"Failed to update document: {e}"}

        stream_data.append("finish", "")

        try:
            self.context.store.save_document(document_id, document.title, draft, self.context.user.id)
        except PersistenceError:
            logger.exception(f"Failed to save document {document_id}")
            return {"error": "Failed to save document"}

        return {
            "id": document_id,
            "title": document.title,
            "content": "The document has been updated successfully.",
        }


class RequestSuggestionsTool(_DocumentTool):
    def definition(self) -> ToolDefinition:
        return ToolDefinition(
            name="requestSuggestions",
            description="Request suggestions for a document",
            parameters=[
                ToolParameter(
                    name="documentId", type="string",
                    description="The ID of the document to request edits",
                ),
            ],
        )

    async def execute(self, **kwargs: Any) -> dict[str, Any]:
        document_id = kwargs["documentId"]

        document = self._load_owned_document(document_id)
        if document is None or not document.content:
            return {"error": "Document not found"}

        stream_data = self.context.stream_data
        user_id = self.context.user.id
        suggestions: list[Suggestion] = []

        elements = self.context.provider.stream_object_array(SUGGESTIONS_PROMPT, document.content, SuggestionElement)
        try:
            async with aclosing(elements):
                async for element in elements:
                    suggestion = Suggestion(
                        id=str(uuid4()),
                        document_id=document_id,
                        document_created_at=document.created_at,
                        user_id=user_id,
                        original_text=element.originalSentence,
                        suggested_text=element.suggestedSentence,
                        description=element.description,
                        is_resolved=False,
                    )
                    stream_data.append("suggestion", {
                        "id": suggestion.id,
                        "documentId": document_id,
                        "originalText": suggestion.original_text,
                        "suggestedText": suggestion.suggested_text,
                        "description": suggestion.description,
                        "isResolved": False,
                    })
                    suggestions.append(suggestion)
                    if len(suggestions) >= settings.max_suggestions:
                        break
        except LLMProviderError as e:
            return {"error": f"Failed to generate suggestions: {e}"}

        try:
            self.context.store.save_suggestions(suggestions)
        except PersistenceError:
            logger.exception(f"Failed to save suggestions for document {document_id}")
            return {"error": "Failed to save suggestions"}

        return {
            "id": document_id,
            "title": document.title,
            "message": "Suggestions have been added to the document",
        }
