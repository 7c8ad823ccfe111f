"""
Writing Agents Common Module

Shared infrastructure: configuration, embeddings, similarity, document store, LLM client.
"""

from .config import WritingConfig, load_config
from .document_store import DocumentStore, InMemoryDocumentStore, SupabaseDocumentStore
from .embedding_service import EmbeddingService, preprocess_text
from .llm_client import LLMClient
from .similarity import RankedItem, batch_cosine_similarity, cosine_similarity, top_k

__all__ = [
    "WritingConfig",
    "load_config",
    "DocumentStore",
    "InMemoryDocumentStore",
    "SupabaseDocumentStore",
    "EmbeddingService",
    "preprocess_text",
    "LLMClient",
    "RankedItem",
    "batch_cosine_similarity",
    "cosine_similarity",
    "top_k",
]
