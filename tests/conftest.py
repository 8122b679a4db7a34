"""Pytest configuration and fixtures for memgraft tests."""

from __future__ import annotations

import hashlib
import shutil
import threading
import time

import numpy as np
import pytest

from memgraft.config import EmbeddingConfig
from memgraft.embeddings import EmbeddingService
from memgraft.vector_store import VectorStore

DIMENSION = 384


def hashed_vector(text: str, dimension: int = DIMENSION) -> list[float]:
    """Deterministic unit vector seeded from the text's sha256."""
    seed = int.from_bytes(hashlib.sha256(text.encode("utf-8")).digest()[:8], "big")
    vector = np.random.default_rng(seed).standard_normal(dimension)
    return (vector / np.linalg.norm(vector)).tolist()


class HashBackend:
    """Embedding backend returning hash-seeded vectors; counts calls."""

    def __init__(self, dimension: int = DIMENSION) -> None:
        self.dimension = dimension
        self.calls = 0
        self.initialized = 0
        self._lock = threading.Lock()

    def initialize(self) -> None:
        self.initialized += 1

    def is_ready(self) -> bool:
        return self.initialized > 0

    def embed(self, text: str) -> list[float]:
        with self._lock:
            self.calls += 1
        return hashed_vector(text, self.dimension)


class LookupBackend(HashBackend):
    """HashBackend with fixed vectors for chosen (normalized) texts."""

    def __init__(self, table: dict[str, list[float]], dimension: int = DIMENSION) -> None:
        super().__init__(dimension)
        self.table = table

    def embed(self, text: str) -> list[float]:
        if text in self.table:
            with self._lock:
                self.calls += 1
            return self.table[text]
        return super().embed(text)


class FailingBackend(HashBackend):
    """Backend whose initialize() or embed() raises."""

    def __init__(self, fail_on: str = "embed") -> None:
        super().__init__()
        self.fail_on = fail_on

    def initialize(self) -> None:
        if self.fail_on == "initialize":
            raise OSError("model files missing")
        super().initialize()

    def embed(self, text: str) -> list[float]:
        if self.fail_on == "embed":
            raise RuntimeError("inference exploded")
        return super().embed(text)


class SlowBackend(HashBackend):
    """Backend that sleeps before answering."""

    def __init__(self, delay: float) -> None:
        super().__init__()
        self.delay = delay

    def embed(self, text: str) -> list[float]:
        time.sleep(self.delay)
        return super().embed(text)


class StaggeredBackend(HashBackend):
    """Backend whose delay depends on the text."""

    def __init__(self, delays: dict[str, float]) -> None:
        super().__init__()
        self.delays = delays

    def embed(self, text: str) -> list[float]:
        time.sleep(self.delays.get(text, 0.0))
        return super().embed(text)


@pytest.fixture
def hash_backend():
    return HashBackend()


@pytest.fixture
def embedding_service(hash_backend):
    """EmbeddingService over the deterministic hash backend."""
    service = EmbeddingService(EmbeddingConfig(batch_size=4), backend=hash_backend)
    yield service
    service.close()


@pytest.fixture
def vector_store(embedding_service):
    return VectorStore(embedding_service)


@pytest.fixture
def temp_storage(tmp_path):
    """Provide explicit temporary storage path for kuzu databases."""
    storage_path = tmp_path / "graph_storage"
    storage_path.mkdir(parents=True, exist_ok=True)
    yield storage_path
    if storage_path.exists():
        shutil.rmtree(storage_path, ignore_errors=True)
