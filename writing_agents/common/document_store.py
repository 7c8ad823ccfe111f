"""
Document Store

Persisted corpus of reference documents with approximate nearest-neighbor search.

Backends:
- SupabaseDocumentStore: Postgres + pgvector via Supabase. Similarity search runs
  server-side in the `match_documents` RPC over an ivfflat index (see sql/schema.sql).
- InMemoryDocumentStore: exhaustive ranking in process, for tests and local use.

Failures raise DocumentStoreError. Whether a read failure is degraded to an
empty result is decided by the caller, never here.
"""

import asyncio
import logging
import uuid
from abc import ABC, abstractmethod
from collections import Counter
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from .errors import DimensionMismatch, DocumentNotFound, DocumentStoreError
from .schemas import EMBEDDING_DIMENSION, CorpusStats, Document, ScoredDocument, utcnow
from .similarity import top_k

logger = logging.getLogger("writing_agents.common.document_store")

DEFAULT_MATCH_THRESHOLD = 0.78
DEFAULT_MATCH_COUNT = 5
DEFAULT_TOPIC_LIMIT = 10


def _decode_rows(model, rows: Optional[List[Dict[str, Any]]], action: str) -> list:
    """Validate raw rows into `model`; a malformed row is a store failure."""
    try:
        return [model.model_validate(row) for row in (rows or [])]
    except ValidationError as e:
        raise DocumentStoreError(f"{action}: malformed row: {e}") from e


def _check_dimension(vector: List[float]) -> None:
    if len(vector) != EMBEDDING_DIMENSION:
        raise DimensionMismatch(EMBEDDING_DIMENSION, len(vector))


def _rank_matches(
    matches: List[ScoredDocument],
    threshold: float,
    limit: int,
) -> List[ScoredDocument]:
    """Keep similarity > threshold, order descending, cap at limit."""
    kept = [m for m in matches if m.similarity > threshold]
    kept.sort(key=lambda m: m.similarity, reverse=True)
    return kept[:limit]


class DocumentStore(ABC):
    """Async interface shared by all document store backends."""

    @abstractmethod
    async def insert(self, document: Document) -> Document:
        """Persist a document, assigning timestamps and an id if missing."""
        pass

    @abstractmethod
    async def query(
        self,
        query_vector: List[float],
        category: Optional[str] = None,
        threshold: float = DEFAULT_MATCH_THRESHOLD,
        limit: int = DEFAULT_MATCH_COUNT,
    ) -> List[ScoredDocument]:
        """
        Nearest-neighbor search over documents that have an embedding.

        Returns only matches with similarity strictly above threshold,
        ordered by descending similarity, at most `limit` items. The
        category filter is an exact match applied before ranking.
        """
        pass

    @abstractmethod
    async def get_by_id(self, document_id: str) -> Optional[Document]:
        pass

    @abstractmethod
    async def get_by_tag(
        self,
        tag: str,
        category: Optional[str] = None,
        limit: int = DEFAULT_TOPIC_LIMIT,
    ) -> List[Document]:
        pass

    @abstractmethod
    async def update_embedding(self, document_id: str, embedding: List[float]) -> None:
        pass

    @abstractmethod
    async def delete(self, document_id: str) -> None:
        pass

    @abstractmethod
    async def get_stats(self) -> CorpusStats:
        pass

    @abstractmethod
    async def test_connection(self) -> bool:
        pass


class SupabaseDocumentStore(DocumentStore):
    """
    Supabase / pgvector document store.

    The `match_documents` RPC searches an ivfflat index. `ivfflat_probes` is the
    recall/latency knob: each probe scans one more of the index's lists, so more
    probes give better recall at the cost of slower queries. With lists=100 and
    probes=10, roughly a tenth of the corpus is scanned per query.

    The supabase client is synchronous; calls run in a worker thread.
    """

    def __init__(
        self,
        client,
        table: str = "documents",
        match_function: str = "match_documents",
        ivfflat_probes: int = 10,
    ):
        """
        Args:
            client: supabase.Client instance
            table: Documents table name
            match_function: Name of the similarity search RPC
            ivfflat_probes: Number of ivfflat lists probed per query
        """
        self._client = client
        self._table = table
        self._match_function = match_function
        self._probes = ivfflat_probes

    @classmethod
    def from_credentials(cls, url: str, key: str, **kwargs) -> "SupabaseDocumentStore":
        if not url or not key:
            raise DocumentStoreError("Supabase URL and key must be provided")

        from supabase import create_client

        try:
            client = create_client(url, key)
        except Exception as e:
            raise DocumentStoreError(f"Failed to initialize Supabase client: {e}") from e
        return cls(client, **kwargs)

    async def insert(self, document: Document) -> Document:
        now = utcnow()
        row = document.model_copy(update={"created_at": now, "updated_at": now}).to_row()

        try:
            response = await asyncio.to_thread(
                lambda: self._client.table(self._table).insert(row).execute()
            )
        except Exception as e:
            raise DocumentStoreError(f"Failed to insert document: {e}") from e

        if not response.data:
            raise DocumentStoreError("Failed to insert document: no row returned")

        stored = _decode_rows(Document, response.data[:1], "Failed to insert document")[0]
        logger.info("Inserted document %s (%s)", stored.id, stored.category.value)
        return stored

    async def query(
        self,
        query_vector: List[float],
        category: Optional[str] = None,
        threshold: float = DEFAULT_MATCH_THRESHOLD,
        limit: int = DEFAULT_MATCH_COUNT,
    ) -> List[ScoredDocument]:
        _check_dimension(query_vector)

        params = {
            "query_embedding": query_vector,
            "match_threshold": threshold,
            "match_count": limit,
            "filter_category": category,
            "probes": self._probes,
        }

        try:
            response = await asyncio.to_thread(
                lambda: self._client.rpc(self._match_function, params).execute()
            )
        except Exception as e:
            raise DocumentStoreError(f"Similarity search failed: {e}") from e

        matches = _decode_rows(ScoredDocument, response.data, "Similarity search failed")
        logger.debug(
            "Found %d matching documents (threshold=%.2f, category=%s)",
            len(matches), threshold, category,
        )
        return _rank_matches(matches, threshold, limit)

    async def get_by_id(self, document_id: str) -> Optional[Document]:
        try:
            response = await asyncio.to_thread(
                lambda: self._client.table(self._table)
                .select("*")
                .eq("id", document_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise DocumentStoreError(f"Failed to get document: {e}") from e

        if not response.data:
            return None
        return _decode_rows(Document, response.data[:1], "Failed to get document")[0]

    async def get_by_tag(
        self,
        tag: str,
        category: Optional[str] = None,
        limit: int = DEFAULT_TOPIC_LIMIT,
    ) -> List[Document]:
        def _run():
            request = (
                self._client.table(self._table)
                .select("*")
                .contains("tags", [tag])
                .limit(limit)
            )
            if category:
                request = request.eq("category", category)
            return request.execute()

        try:
            response = await asyncio.to_thread(_run)
        except Exception as e:
            raise DocumentStoreError(f"Failed to get documents by tag: {e}") from e

        return _decode_rows(Document, response.data, "Failed to get documents by tag")

    async def update_embedding(self, document_id: str, embedding: List[float]) -> None:
        _check_dimension(embedding)
        update = {"embedding": embedding, "updated_at": utcnow().isoformat()}

        try:
            response = await asyncio.to_thread(
                lambda: self._client.table(self._table)
                .update(update)
                .eq("id", document_id)
                .execute()
            )
        except Exception as e:
            raise DocumentStoreError(f"Failed to update document embedding: {e}") from e

        if not response.data:
            raise DocumentNotFound(document_id)

    async def delete(self, document_id: str) -> None:
        try:
            response = await asyncio.to_thread(
                lambda: self._client.table(self._table)
                .delete()
                .eq("id", document_id)
                .execute()
            )
        except Exception as e:
            raise DocumentStoreError(f"Failed to delete document: {e}") from e

        if not response.data:
            raise DocumentNotFound(document_id)

    async def get_stats(self) -> CorpusStats:
        try:
            response = await asyncio.to_thread(
                lambda: self._client.table(self._table)
                .select("category, tags", count="exact")
                .execute()
            )
        except Exception as e:
            raise DocumentStoreError(f"Failed to get corpus stats: {e}") from e

        rows = response.data or []
        total = response.count if response.count is not None else len(rows)
        return _build_stats(rows, total)

    async def test_connection(self) -> bool:
        try:
            await asyncio.to_thread(
                lambda: self._client.table(self._table).select("id").limit(1).execute()
            )
            return True
        except Exception as e:
            logger.error("Database connection test failed: %s", e)
            return False


class InMemoryDocumentStore(DocumentStore):
    """
    Process-local document store with exhaustive similarity ranking.

    Intended for tests and small local corpora.
    """

    def __init__(self, documents: Optional[List[Document]] = None):
        self._documents: Dict[str, Document] = {}
        for doc in documents or []:
            doc_id = doc.id or str(uuid.uuid4())
            self._documents[doc_id] = doc.model_copy(update={"id": doc_id})

    def __len__(self) -> int:
        return len(self._documents)

    async def insert(self, document: Document) -> Document:
        now = utcnow()
        doc_id = document.id or str(uuid.uuid4())
        if doc_id in self._documents:
            raise DocumentStoreError(f"Failed to insert document: duplicate id {doc_id}")

        stored = document.model_copy(
            update={"id": doc_id, "created_at": now, "updated_at": now}, deep=True
        )
        self._documents[doc_id] = stored
        return stored.model_copy(deep=True)

    async def query(
        self,
        query_vector: List[float],
        category: Optional[str] = None,
        threshold: float = DEFAULT_MATCH_THRESHOLD,
        limit: int = DEFAULT_MATCH_COUNT,
    ) -> List[ScoredDocument]:
        _check_dimension(query_vector)

        candidates = [
            (doc.embedding, doc)
            for doc in self._documents.values()
            if doc.embedding is not None
            and (category is None or doc.category.value == category)
        ]
        ranked = top_k(query_vector, candidates, len(candidates))

        matches = [
            ScoredDocument(**item.payload.model_dump(), similarity=item.score)
            for item in ranked
        ]
        return _rank_matches(matches, threshold, limit)

    async def get_by_id(self, document_id: str) -> Optional[Document]:
        doc = self._documents.get(document_id)
        return doc.model_copy(deep=True) if doc else None

    async def get_by_tag(
        self,
        tag: str,
        category: Optional[str] = None,
        limit: int = DEFAULT_TOPIC_LIMIT,
    ) -> List[Document]:
        matches = [
            doc.model_copy(deep=True)
            for doc in self._documents.values()
            if tag in doc.tags and (category is None or doc.category.value == category)
        ]
        return matches[:limit]

    async def update_embedding(self, document_id: str, embedding: List[float]) -> None:
        _check_dimension(embedding)
        doc = self._documents.get(document_id)
        if doc is None:
            raise DocumentNotFound(document_id)
        self._documents[document_id] = doc.model_copy(
            update={"embedding": list(embedding), "updated_at": utcnow()}
        )

    async def delete(self, document_id: str) -> None:
        if self._documents.pop(document_id, None) is None:
            raise DocumentNotFound(document_id)

    async def get_stats(self) -> CorpusStats:
        rows = [
            {"category": doc.category.value, "tags": doc.tags}
            for doc in self._documents.values()
        ]
        return _build_stats(rows, len(rows))

    async def test_connection(self) -> bool:
        return True


def _build_stats(rows: List[Dict[str, Any]], total: int) -> CorpusStats:
    by_category = Counter(row.get("category") for row in rows if row.get("category"))
    by_tag: Counter = Counter()
    for row in rows:
        by_tag.update(row.get("tags") or [])

    return CorpusStats(total=total, by_category=dict(by_category), by_tag=dict(by_tag))
