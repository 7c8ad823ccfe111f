"""
Embedding Service

On-device sentence embeddings using fastembed.
The model is loaded once per process; concurrent first use shares a single load.
"""

import asyncio
import logging
import re
from typing import Any, Callable, Dict, List, Optional

import numpy as np

from .errors import DimensionMismatch, ModelNotReady

logger = logging.getLogger("writing_agents.common.embedding_service")

DEFAULT_MODEL = "sentence-transformers/all-MiniLM-L6-v2"
WARM_UP_TEXT = "This is a test sentence for warming up the model."

_DISALLOWED_CHARS = re.compile(r"[^\w\s.,!?;:()\-'\"]", re.ASCII)
_WHITESPACE_RUN = re.compile(r"\s+", re.ASCII)


def preprocess_text(text: str) -> str:
    """
    Normalize text before embedding.

    Drops characters outside basic alphanumerics and punctuation, collapses
    whitespace runs to one space, trims and lowercases. Idempotent.
    """
    text = _DISALLOWED_CHARS.sub("", text)
    text = _WHITESPACE_RUN.sub(" ", text)
    return text.strip().lower()


def _load_fastembed(model_name: str):
    from fastembed import TextEmbedding

    return TextEmbedding(model_name=model_name)


class EmbeddingService:
    """
    Text encoder producing fixed-dimension, L2-normalized vectors.

    Usage:
        service = EmbeddingService()
        await service.initialize()
        vector = await service.encode("Some essay text")
    """

    def __init__(
        self,
        model_name: str = DEFAULT_MODEL,
        dimension: int = 384,
        batch_size: int = 10,
        batch_delay: float = 0.1,
        loader: Optional[Callable[[str], Any]] = None,
    ):
        """
        Args:
            model_name: fastembed model identifier
            dimension: Expected output dimension
            batch_size: Chunk size for encode_batch
            batch_delay: Pause in seconds between encode_batch chunks
            loader: Callable returning a model with an ``embed(texts)`` method
        """
        self.model_name = model_name
        self.dimension = dimension
        self.batch_size = max(1, batch_size)
        self.batch_delay = batch_delay
        self._loader = loader or _load_fastembed
        self._model = None
        self._load_task: Optional[asyncio.Task] = None

    @property
    def is_ready(self) -> bool:
        return self._model is not None

    async def initialize(self) -> None:
        """
        Load the embedding model.

        Idempotent. Callers arriving while a load is in flight await that
        same load and see its outcome. After a failure the next call retries.

        Raises:
            ModelNotReady: if the model fails to load
        """
        if self._model is not None:
            return

        if self._load_task is None:
            self._load_task = asyncio.ensure_future(self._load())
        task = self._load_task

        try:
            # shielded: a cancelled caller must not abort the shared load
            await asyncio.shield(task)
        finally:
            if task.done() and self._model is None and self._load_task is task:
                self._load_task = None

    async def _load(self) -> None:
        logger.info("Loading embedding model: %s", self.model_name)
        try:
            self._model = await asyncio.to_thread(self._loader, self.model_name)
        except Exception as e:
            logger.error("Error loading embedding model: %s", e)
            raise ModelNotReady(f"Failed to load embedding model: {e}") from e
        logger.info("Embedding model loaded successfully")

    async def encode(self, text: str) -> List[float]:
        """
        Generate an embedding for a single text.

        Loads the model lazily on first use.

        Raises:
            ModelNotReady: if the model is not loaded and cannot be loaded
        """
        await self.initialize()
        clean = preprocess_text(text)
        return await asyncio.to_thread(self._embed_one, clean)

    async def encode_batch(self, texts: List[str]) -> List[List[float]]:
        """
        Generate embeddings for many texts.

        Equivalent element-for-element to calling encode() on each text.
        Processes in chunks of ``batch_size`` with a pause between chunks.
        """
        if not texts:
            return []

        await self.initialize()

        embeddings: List[List[float]] = []
        for start in range(0, len(texts), self.batch_size):
            chunk = [preprocess_text(t) for t in texts[start:start + self.batch_size]]
            vectors = await asyncio.to_thread(self._embed_many, chunk)
            embeddings.extend(vectors)

            if start + self.batch_size < len(texts):
                await asyncio.sleep(self.batch_delay)

        return embeddings

    async def warm_up(self) -> None:
        """Generate a dummy embedding to warm up the model"""
        logger.info("Warming up embedding model...")
        await self.encode(WARM_UP_TEXT)
        logger.info("Embedding model warmed up successfully")

    def model_info(self) -> Dict[str, Any]:
        return {
            "name": self.model_name,
            "dimension": self.dimension,
            "is_loaded": self.is_ready,
        }

    def _embed_many(self, clean_texts: List[str]) -> List[List[float]]:
        return [self._embed_one(t) for t in clean_texts]

    def _embed_one(self, clean_text: str) -> List[float]:
        if self._model is None:
            raise ModelNotReady("Embedding model not initialized")

        raw = next(iter(self._model.embed([clean_text])))
        vector = np.asarray(raw, dtype=np.float32).reshape(-1)

        if vector.shape[0] != self.dimension:
            raise DimensionMismatch(self.dimension, vector.shape[0])

        norm = np.linalg.norm(vector)
        if norm > 0:
            vector = vector / norm
        return vector.tolist()
