"""
Tests for Embedding Service

Preprocessing, lazy model loading, normalization and batch equivalence.
The fastembed model is replaced by a deterministic fake.
"""

import asyncio
import threading
import time

import numpy as np
import pytest


class TestPreprocessText:
    """Tests for preprocess_text"""

    def test_lowercases_and_trims(self):
        from writing_agents.common.embedding_service import preprocess_text

        assert preprocess_text("  Hello World  ") == "hello world"

    def test_collapses_whitespace(self):
        from writing_agents.common.embedding_service import preprocess_text

        assert preprocess_text("one\t\ttwo\n\nthree") == "one two three"

    def test_strips_disallowed_characters(self):
        from writing_agents.common.embedding_service import preprocess_text

        assert preprocess_text("I <3 essays & #goals!") == "i 3 essays goals!"

    def test_keeps_basic_punctuation(self):
        from writing_agents.common.embedding_service import preprocess_text

        text = "It's (mostly) fine: yes; no? \"maybe\" - ok."
        assert preprocess_text(text) == text.lower()

    def test_drops_non_ascii(self):
        from writing_agents.common.embedding_service import preprocess_text

        assert preprocess_text("café résumé") == "caf rsum"

    def test_idempotent(self):
        from writing_agents.common.embedding_service import preprocess_text

        samples = [
            "  Mixed CASE   with   spaces ",
            "emoji 🎉 between words",
            "a  @  b",
            "\n\ttabs\tand\nnewlines\n",
            "",
        ]
        for text in samples:
            once = preprocess_text(text)
            assert preprocess_text(once) == once


class TestEmbeddingService:
    """Tests for EmbeddingService"""

    def test_not_ready_before_initialize(self, encoder):
        assert encoder.is_ready is False
        assert encoder.model_info()["is_loaded"] is False

    @pytest.mark.asyncio
    async def test_initialize(self, encoder):
        await encoder.initialize()

        assert encoder.is_ready is True
        info = encoder.model_info()
        assert info["name"] == "sentence-transformers/all-MiniLM-L6-v2"
        assert info["dimension"] == 384
        assert info["is_loaded"] is True

    @pytest.mark.asyncio
    async def test_encode_is_normalized(self, encoder):
        vector = await encoder.encode("A short essay about growth.")

        assert len(vector) == 384
        assert np.linalg.norm(vector) == pytest.approx(1.0, abs=1e-5)

    @pytest.mark.asyncio
    async def test_encode_loads_lazily(self, encoder):
        await encoder.encode("hello")
        assert encoder.is_ready is True

    @pytest.mark.asyncio
    async def test_encode_preprocesses(self, encoder, fake_model):
        first = await encoder.encode("  Hello,   WORLD  ")
        second = await encoder.encode("hello, world")

        assert first == second
        assert fake_model.calls == ["hello, world", "hello, world"]

    @pytest.mark.asyncio
    async def test_encode_batch_matches_encode(self, fake_model):
        from writing_agents.common.embedding_service import EmbeddingService

        service = EmbeddingService(batch_size=3, batch_delay=0, loader=lambda name: fake_model)
        texts = [f"Essay number {i} about identity" for i in range(8)]

        batch = await service.encode_batch(texts)
        singles = [await service.encode(t) for t in texts]

        assert len(batch) == len(texts)
        for b, s in zip(batch, singles):
            assert b == pytest.approx(s)

    @pytest.mark.asyncio
    async def test_encode_batch_empty(self, encoder):
        assert await encoder.encode_batch([]) == []
        assert encoder.is_ready is False

    @pytest.mark.asyncio
    async def test_warm_up(self, encoder, fake_model):
        from writing_agents.common.embedding_service import WARM_UP_TEXT, preprocess_text

        await encoder.warm_up()

        assert encoder.is_ready is True
        assert fake_model.calls == [preprocess_text(WARM_UP_TEXT)]

    @pytest.mark.asyncio
    async def test_wrong_dimension(self):
        from writing_agents.common.embedding_service import EmbeddingService
        from writing_agents.common.errors import DimensionMismatch

        class ShortModel:
            def embed(self, texts):
                for _ in texts:
                    yield np.ones(10, dtype=np.float32)

        service = EmbeddingService(loader=lambda name: ShortModel())

        with pytest.raises(DimensionMismatch):
            await service.encode("text")


class TestModelLoading:
    """Tests for single-load and failure behavior"""

    @pytest.mark.asyncio
    async def test_concurrent_initialize_loads_once(self, fake_model):
        from writing_agents.common.embedding_service import EmbeddingService

        loads = []
        lock = threading.Lock()

        def slow_loader(name):
            with lock:
                loads.append(name)
            time.sleep(0.05)
            return fake_model

        service = EmbeddingService(loader=slow_loader)

        vectors = await asyncio.gather(
            service.encode("first"),
            service.encode("second"),
            service.initialize(),
            service.encode("third"),
        )

        assert len(loads) == 1
        assert service.is_ready is True
        assert len(vectors[0]) == 384
        assert vectors[2] is None

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_failed_load(self, fake_model):
        from writing_agents.common.embedding_service import EmbeddingService
        from writing_agents.common.errors import ModelNotReady

        loads = []
        lock = threading.Lock()

        def failing_then_ok(name):
            with lock:
                loads.append(name)
                attempt = len(loads)
            time.sleep(0.05)
            if attempt == 1:
                raise OSError("disk full")
            return fake_model

        service = EmbeddingService(loader=failing_then_ok)

        outcomes = await asyncio.gather(
            service.initialize(),
            service.encode("first"),
            service.encode("second"),
            return_exceptions=True,
        )

        assert len(loads) == 1
        assert all(isinstance(o, ModelNotReady) for o in outcomes)
        assert service.is_ready is False

        await service.initialize()

        assert len(loads) == 2
        assert service.is_ready is True

    @pytest.mark.asyncio
    async def test_load_failure_raises_model_not_ready(self):
        from writing_agents.common.embedding_service import EmbeddingService
        from writing_agents.common.errors import ModelNotReady

        def broken_loader(name):
            raise OSError("model files unavailable")

        service = EmbeddingService(loader=broken_loader)

        with pytest.raises(ModelNotReady):
            await service.encode("text")
        assert service.is_ready is False

    @pytest.mark.asyncio
    async def test_retry_after_failure(self, fake_model):
        from writing_agents.common.embedding_service import EmbeddingService
        from writing_agents.common.errors import ModelNotReady

        attempts = []

        def flaky_loader(name):
            attempts.append(name)
            if len(attempts) == 1:
                raise OSError("download interrupted")
            return fake_model

        service = EmbeddingService(loader=flaky_loader)

        with pytest.raises(ModelNotReady):
            await service.initialize()

        vector = await service.encode("text")

        assert len(attempts) == 2
        assert service.is_ready is True
        assert len(vector) == 384

    def test_dimension_mismatch_is_not_model_not_ready(self):
        from writing_agents.common.errors import DimensionMismatch, ModelNotReady

        assert not issubclass(DimensionMismatch, ModelNotReady)
