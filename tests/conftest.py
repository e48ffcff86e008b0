"""Shared fixtures for Doc Index tests."""

import hashlib
import threading
import time

import numpy as np
import pytest

from doc_index.schemas import ChunkInput
from doc_index.store import VectorStore


DIM = 8


def vector_for(text, dim=DIM):
    """Deterministic pseudo-embedding of a text."""
    seed = int(hashlib.sha256(text.encode("utf-8")).hexdigest()[:8], 16)
    return np.random.default_rng(seed).random(dim).astype("float32").tolist()


class StubClient:
    """Embedding client that records calls and peak concurrency."""

    def __init__(self, dim=DIM, delay=0.0, fail_on=(), slow_on=(), slow_delay=0.5, empty_on=(), as_mapping=False):
        self.dim = dim
        self.delay = delay
        self.fail_on = set(fail_on)
        self.slow_on = set(slow_on)
        self.slow_delay = slow_delay
        self.empty_on = set(empty_on)
        self.as_mapping = as_mapping
        self.calls = []
        self.active = 0
        self.peak = 0
        self._lock = threading.Lock()

    def embed(self, model, text):
        with self._lock:
            self.calls.append((model, text))
            self.active += 1
            self.peak = max(self.peak, self.active)
        try:
            if self.delay:
                time.sleep(self.delay)
            if text in self.slow_on:
                time.sleep(self.slow_delay)
            if text in self.fail_on:
                raise ConnectionError("provider unavailable")
            if text in self.empty_on:
                return {"embeddings": []}
            vector = vector_for(text, self.dim)
            return {"embeddings": [vector]} if self.as_mapping else vector
        finally:
            with self._lock:
                self.active -= 1


def make_chunk(text, source_file="docs/index.md", **extra):
    return ChunkInput(text=text, source_file=source_file, **extra)


@pytest.fixture
def store(tmp_path):
    """File-backed SQLite store; worker threads open their own connections."""
    vector_store = VectorStore(f"sqlite:///{tmp_path / 'embeddings.db'}", dimension=DIM)
    vector_store.create_tables()
    yield vector_store
    vector_store.close()


@pytest.fixture
def client():
    return StubClient()


@pytest.fixture
def chunks():
    return [
        make_chunk("Install the package with pip.", source_file="docs/install.md", url="https://example.org/install"),
        make_chunk("Sessions keep connections alive between requests.", source_file="docs/sessions.md"),
        make_chunk("Pass timeout= to avoid hanging forever.", source_file="docs/timeouts.md"),
    ]
