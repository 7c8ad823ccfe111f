"""Shared fixtures: a deterministic stand-in for the fastembed model."""

import hashlib

import numpy as np
import pytest

DIM = 384


class FakeEmbeddingModel:
    """
    Mimics fastembed.TextEmbedding.embed().

    Texts listed in `vectors` (keyed by their preprocessed form) embed to the
    given vector; anything else gets a pseudo-random vector seeded by its hash.
    """

    def __init__(self, vectors=None):
        self.vectors = dict(vectors or {})
        self.calls = []

    def embed(self, texts):
        for text in texts:
            self.calls.append(text)
            if text in self.vectors:
                yield np.asarray(self.vectors[text], dtype=np.float32)
                continue
            seed = int(hashlib.sha256(text.encode("utf-8")).hexdigest()[:8], 16)
            yield np.random.RandomState(seed).uniform(-1.0, 1.0, DIM).astype(np.float32)


def basis(*weights):
    """A DIM-length vector whose leading components are `weights`."""
    vector = [0.0] * DIM
    for i, w in enumerate(weights):
        vector[i] = float(w)
    return vector


@pytest.fixture
def fake_model():
    return FakeEmbeddingModel()


@pytest.fixture
def encoder(fake_model):
    from writing_agents.common.embedding_service import EmbeddingService

    return EmbeddingService(batch_delay=0, loader=lambda name: fake_model)
