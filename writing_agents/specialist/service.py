"""
Writing Service

Request surface consumed by the transport and HTTP layers:
- conversational events (user_message, analyze_text, find_similar)
- corpus operations (stats, add, fetch by id, similarity search)

Event payloads use the camelCase field names of the wire contract.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..common.document_store import DocumentStore
from ..common.embedding_service import EmbeddingService
from ..common.errors import DocumentNotFound, ModelNotReady
from ..common.schemas import CorpusStats, Document, ScoredDocument, utcnow
from .orchestrator import NOT_READY_APOLOGY, WritingSpecialist

logger = logging.getLogger("writing_agents.specialist.service")

DEFAULT_SESSION = "default"


# ============================================================================
# Event payloads
# ============================================================================

class _Payload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class UserMessage(_Payload):
    message: str
    session_id: str = DEFAULT_SESSION


class AnalyzeTextRequest(_Payload):
    text: str
    analysis_type: str = "deep_analysis"
    session_id: str = DEFAULT_SESSION


class FindSimilarRequest(_Payload):
    query: str
    category: Optional[str] = None
    limit: int = 5
    session_id: str = DEFAULT_SESSION


class AgentTyping(_Payload):
    typing: bool


class AgentMessage(_Payload):
    message: str
    timestamp: datetime = Field(default_factory=utcnow)
    session_id: str = DEFAULT_SESSION


class TextAnalysisEvent(_Payload):
    analysis: str
    timestamp: datetime = Field(default_factory=utcnow)
    session_id: str = DEFAULT_SESSION


class SimilarDocumentsEvent(_Payload):
    results: str
    timestamp: datetime = Field(default_factory=utcnow)
    session_id: str = DEFAULT_SESSION


class ErrorEvent(_Payload):
    message: str


@dataclass
class OutboundEvent:
    """A named event ready for the transport"""
    event: str
    payload: _Payload

    def wire(self) -> Dict[str, Any]:
        return {"event": self.event, "data": self.payload.wire()}


# ============================================================================
# Service
# ============================================================================

class WritingService:
    """
    Facade over the specialist agent and the corpus.

    Usage:
        service = WritingService(agent, encoder, store)
        events = await service.handle_user_message(UserMessage(message="Hi"))
    """

    def __init__(
        self,
        agent: WritingSpecialist,
        encoder: EmbeddingService,
        store: DocumentStore,
        search_threshold: float = 0.78,
    ):
        self._agent = agent
        self._encoder = encoder
        self._store = store
        self._threshold = search_threshold

    @property
    def is_ready(self) -> bool:
        return self._encoder.is_ready

    # ---------- Conversational events ---------- #

    async def handle_user_message(self, request: UserMessage) -> List[OutboundEvent]:
        return await self._converse(
            request.message, request.session_id,
            lambda answer: OutboundEvent(
                event="agent_message",
                payload=AgentMessage(message=answer, session_id=request.session_id),
            ),
        )

    async def handle_analyze_text(self, request: AnalyzeTextRequest) -> List[OutboundEvent]:
        message = f'Please analyze this essay using {request.analysis_type}: "{request.text}"'
        return await self._converse(
            message, request.session_id,
            lambda answer: OutboundEvent(
                event="text_analysis",
                payload=TextAnalysisEvent(analysis=answer, session_id=request.session_id),
            ),
        )

    async def handle_find_similar(self, request: FindSimilarRequest) -> List[OutboundEvent]:
        message = (
            f'Find up to {request.limit} similar essays for: "{request.query}" '
            f"of type: {request.category or 'all'}"
        )
        return await self._converse(
            message, request.session_id,
            lambda answer: OutboundEvent(
                event="similar_documents",
                payload=SimilarDocumentsEvent(results=answer, session_id=request.session_id),
            ),
        )

    async def _converse(self, message: str, session_id: str, build_reply) -> List[OutboundEvent]:
        if not self.is_ready:
            logger.info("Rejecting message for session %s: encoder not ready", session_id)
            return [OutboundEvent(event="error", payload=ErrorEvent(message=NOT_READY_APOLOGY))]

        answer = await self._agent.process_message(message, session_id)
        return [
            OutboundEvent(event="agent_typing", payload=AgentTyping(typing=True)),
            build_reply(answer),
            OutboundEvent(event="agent_typing", payload=AgentTyping(typing=False)),
        ]

    # ---------- Corpus operations ---------- #

    async def stats(self) -> CorpusStats:
        return await self._store.get_stats()

    async def add_document(self, document: Document) -> Document:
        """Insert a document, embedding its content when the encoder is ready."""
        if document.embedding is None and self.is_ready:
            embedding = await self._encoder.encode(document.content)
            document = document.model_copy(update={"embedding": embedding})
        return await self._store.insert(document)

    async def get_document(self, document_id: str) -> Document:
        document = await self._store.get_by_id(document_id)
        if document is None:
            raise DocumentNotFound(document_id)
        return document

    async def search(
        self,
        query: str,
        category: Optional[str] = None,
        limit: int = 5,
    ) -> List[ScoredDocument]:
        """
        Raises:
            ModelNotReady: the encoder has not finished loading
        """
        if not self.is_ready:
            raise ModelNotReady("Embedding service not ready")

        if category == "all":
            category = None
        query_vector = await self._encoder.encode(query)
        return await self._store.query(
            query_vector, category=category, threshold=self._threshold, limit=limit
        )
