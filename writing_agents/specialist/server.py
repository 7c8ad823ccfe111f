"""
Writing Specialist Server

FastAPI shell around WritingService.

Endpoints:
- GET /health: Service status
- GET /api/documents/stats: Corpus statistics
- POST /api/documents: Add a document (embedded when the encoder is ready)
- GET /api/documents/{document_id}: Fetch a document
- POST /api/documents/search: Similarity search
- WS /ws: Conversational events ({"event": name, "data": {...}})
"""

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ValidationError

from ..common.config import WritingConfig, load_config
from ..common.document_store import DocumentStore, InMemoryDocumentStore, SupabaseDocumentStore
from ..common.embedding_service import EmbeddingService
from ..common.errors import DocumentNotFound, DocumentStoreError, ModelNotReady
from ..common.llm_client import LLMClient
from ..common.schemas import Document, utcnow
from .orchestrator import WritingSpecialist
from .service import (
    AnalyzeTextRequest,
    ErrorEvent,
    FindSimilarRequest,
    OutboundEvent,
    UserMessage,
    WritingService,
)

load_dotenv()

logger = logging.getLogger("writing_agents.specialist.server")

# Global state
config: Optional[WritingConfig] = None
encoder: Optional[EmbeddingService] = None
store: Optional[DocumentStore] = None
llm_client: Optional[LLMClient] = None
service: Optional[WritingService] = None
_model_task: Optional[asyncio.Task] = None


def build_store(cfg: WritingConfig) -> DocumentStore:
    if cfg.supabase.url and cfg.supabase.key:
        return SupabaseDocumentStore.from_credentials(
            cfg.supabase.url,
            cfg.supabase.key,
            table=cfg.supabase.table,
            match_function=cfg.supabase.match_function,
            ivfflat_probes=cfg.supabase.ivfflat_probes,
        )
    logger.warning("Supabase not configured, using in-memory document store")
    return InMemoryDocumentStore()


async def _initialize_encoder() -> None:
    try:
        await encoder.initialize()
        await encoder.warm_up()
        logger.info("Embedding service initialized and warmed up")
    except ModelNotReady as e:
        logger.error("Error initializing embedding service: %s", e)

    connected = await store.test_connection()
    logger.info("Database connected" if connected else "Database connection failed")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize components on startup"""
    global config, encoder, store, llm_client, service, _model_task

    config = load_config()

    encoder = EmbeddingService(
        model_name=config.embedding.model,
        dimension=config.embedding.dimension,
        batch_size=config.embedding.batch_size,
        batch_delay=config.embedding.batch_delay,
    )
    store = build_store(config)
    llm_client = LLMClient(
        api_key=config.llm.anthropic_api_key or None,
        model=config.llm.anthropic_model,
        max_tokens=config.llm.max_tokens,
    )
    agent = WritingSpecialist(
        llm_client,
        encoder,
        store,
        search_threshold=config.search.threshold,
        topic_limit=config.search.topic_limit,
    )
    service = WritingService(agent, encoder, store, search_threshold=config.search.threshold)

    # Model load runs in the background; requests arriving first get a not-ready reply
    _model_task = asyncio.create_task(_initialize_encoder())
    logger.info("Writing specialist ready (LLM configured: %s)", llm_client.is_available)

    yield

    if _model_task and not _model_task.done():
        _model_task.cancel()
    logger.info("Shutting down...")


app = FastAPI(
    title="Writing Specialist",
    description="Retrieval-augmented writing feedback over a document corpus",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[os.getenv("FRONTEND_URL", "http://localhost:3000")],
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


# =============================================================================
# Request Models
# =============================================================================

class SearchRequest(BaseModel):
    query: str
    category: Optional[str] = None
    limit: int = 5


# =============================================================================
# Endpoints
# =============================================================================

def _require_service() -> WritingService:
    if service is None:
        raise HTTPException(status_code=503, detail="Service not initialized")
    return service


@app.get("/health")
async def health():
    """Health check endpoint"""
    db_connected = await store.test_connection() if store else False
    return {
        "status": "ok",
        "timestamp": utcnow().isoformat(),
        "services": {
            "embedding": {
                "ready": encoder.is_ready if encoder else False,
                "model": encoder.model_info() if encoder else None,
            },
            "database": {"connected": db_connected},
            "anthropic": {"configured": llm_client.is_available if llm_client else False},
        },
    }


@app.get("/api/documents/stats")
async def get_stats():
    svc = _require_service()
    try:
        stats = await svc.stats()
    except DocumentStoreError as e:
        logger.error("Error fetching corpus stats: %s", e)
        raise HTTPException(status_code=500, detail="Failed to fetch corpus stats")
    return stats.model_dump()


@app.post("/api/documents")
async def add_document(document: Document):
    svc = _require_service()
    try:
        stored = await svc.add_document(document)
    except DocumentStoreError as e:
        logger.error("Error adding document: %s", e)
        raise HTTPException(status_code=500, detail="Failed to add document")
    return stored.model_dump(mode="json")


@app.get("/api/documents/{document_id}")
async def get_document(document_id: str):
    svc = _require_service()
    try:
        document = await svc.get_document(document_id)
    except DocumentNotFound:
        raise HTTPException(status_code=404, detail="Document not found")
    except DocumentStoreError as e:
        logger.error("Error fetching document %s: %s", document_id, e)
        raise HTTPException(status_code=500, detail="Failed to fetch document")
    return document.model_dump(mode="json")


@app.post("/api/documents/search")
async def search_documents(request: SearchRequest):
    svc = _require_service()
    try:
        matches = await svc.search(request.query, request.category, request.limit)
    except ModelNotReady:
        raise HTTPException(status_code=503, detail="Embedding service not ready")
    except DocumentStoreError as e:
        logger.error("Error searching documents: %s", e)
        raise HTTPException(status_code=500, detail="Failed to search documents")
    return [m.model_dump(mode="json", exclude={"embedding"}) for m in matches]


_EVENT_HANDLERS = {
    "user_message": (UserMessage, "handle_user_message"),
    "analyze_text": (AnalyzeTextRequest, "handle_analyze_text"),
    "find_similar": (FindSimilarRequest, "handle_find_similar"),
}


@app.websocket("/ws")
async def conversation(websocket: WebSocket):
    """Conversational transport: one JSON event in, a sequence of events out."""
    await websocket.accept()
    logger.info("Client connected")

    try:
        while True:
            try:
                frame = await websocket.receive_json()
            except ValueError:
                logger.warning("Received a non-JSON frame")
                await websocket.send_json(OutboundEvent(
                    event="error", payload=ErrorEvent(message="Invalid message format")
                ).wire())
                continue
            for event in await _dispatch(frame):
                await websocket.send_json(event.wire())
    except WebSocketDisconnect:
        logger.info("Client disconnected")


async def _dispatch(frame) -> list:
    svc = service
    name = frame.get("event") if isinstance(frame, dict) else None
    if svc is None or name not in _EVENT_HANDLERS:
        return [OutboundEvent(event="error", payload=ErrorEvent(message=f"Unsupported event: {name}"))]

    model, method = _EVENT_HANDLERS[name]
    try:
        request = model.model_validate(frame.get("data") or {})
    except ValidationError:
        return [OutboundEvent(event="error", payload=ErrorEvent(message=f"Invalid payload for {name}"))]

    try:
        return await getattr(svc, method)(request)
    except Exception as e:
        logger.error("Error processing %s: %s", name, e, exc_info=True)
        return [OutboundEvent(
            event="error",
            payload=ErrorEvent(
                message="Sorry, I encountered an error processing your request. Please try again."
            ),
        )]


# =============================================================================
# CLI Entry Point
# =============================================================================

def run_server():
    """Run the writing specialist server"""
    import uvicorn

    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    cfg = load_config()

    logger.info("Starting server on port %d", cfg.server.port)
    uvicorn.run(
        "writing_agents.specialist.server:app",
        host=cfg.server.host,
        port=cfg.server.port,
        reload=False,
    )


if __name__ == "__main__":
    run_server()
