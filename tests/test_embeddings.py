"""Tests for embeddings module (EmbeddingService and vector math)."""

from __future__ import annotations

import pytest
from conftest import DIMENSION, FailingBackend, HashBackend, SlowBackend, StaggeredBackend

from memgraft.config import EmbeddingConfig
from memgraft.embeddings import (
    EmbeddingBackend,
    EmbeddingService,
    SentenceTransformerBackend,
    cosine_similarity,
    euclidean_distance,
)
from memgraft.exceptions import (
    DimensionMismatchError,
    EmbeddingBackendError,
    EmbeddingError,
    EmbeddingInitializationError,
    EmbeddingTimeoutError,
)


class TestVectorMath:
    """Cosine similarity and Euclidean distance."""

    def test_identical_vectors(self):
        """Identical vectors have similarity 1."""
        assert cosine_similarity([1.0, 2.0, 3.0], [1.0, 2.0, 3.0]) == pytest.approx(1.0)

    def test_orthogonal_vectors(self):
        """Orthogonal vectors have similarity 0."""
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)

    def test_opposite_vectors(self):
        """Opposite vectors have similarity -1."""
        assert cosine_similarity([1.0, 1.0], [-1.0, -1.0]) == pytest.approx(-1.0)

    def test_symmetric(self):
        """cosine(a, b) equals cosine(b, a)."""
        a = [0.3, -1.2, 2.5, 0.0]
        b = [1.1, 0.4, -0.7, 2.0]
        assert cosine_similarity(a, b) == pytest.approx(cosine_similarity(b, a))
        assert euclidean_distance(a, b) == pytest.approx(euclidean_distance(b, a))

    def test_zero_vector(self):
        """A zero-magnitude vector has similarity 0 with anything."""
        assert cosine_similarity([0.0, 0.0], [1.0, 2.0]) == 0.0

    def test_dimension_mismatch(self):
        """Vectors of different lengths cannot be compared."""
        with pytest.raises(DimensionMismatchError):
            cosine_similarity([1.0, 2.0], [1.0, 2.0, 3.0])
        with pytest.raises(DimensionMismatchError):
            euclidean_distance([1.0], [1.0, 2.0])

    def test_euclidean(self):
        """Euclidean distance of a 3-4-5 triangle."""
        assert euclidean_distance([0.0, 0.0], [3.0, 4.0]) == pytest.approx(5.0)


class TestEmbeddingService:
    """Embedding, caching and batching with an injected backend."""

    def test_embed_dimension(self, embedding_service):
        """Embeddings have the configured dimension."""
        result = embedding_service.embed("Authentication flow")
        assert result.dimension == DIMENSION
        assert len(result.embedding) == DIMENSION
        assert result.text == "Authentication flow"
        assert result.model_version == "all-MiniLM-L6-v2"

    def test_deterministic(self, embedding_service):
        """The same text embeds to the same vector."""
        first = embedding_service.embed("token refresh")
        embedding_service.clear_cache()
        second = embedding_service.embed("token refresh")
        assert first.embedding == second.embedding

    def test_cache_hit_on_normalized_text(self, embedding_service, hash_backend):
        """Case and whitespace variants share one cached embedding."""
        embedding_service.embed("Token  Refresh")
        embedding_service.embed("  token refresh ")
        assert hash_backend.calls == 1
        assert embedding_service.cache_size == 1

    def test_clear_cache(self, embedding_service):
        """clear_cache() empties the cache."""
        embedding_service.embed("one")
        embedding_service.clear_cache()
        assert embedding_service.cache_size == 0

    def test_cache_disabled(self, hash_backend):
        """cache_size=0 disables caching."""
        service = EmbeddingService(EmbeddingConfig(cache_size=0), backend=hash_backend)
        service.embed("same")
        service.embed("same")
        assert hash_backend.calls == 2
        assert service.cache_size == 0

    def test_cache_evicts_lru(self, hash_backend):
        """The cache never exceeds cache_size entries."""
        service = EmbeddingService(EmbeddingConfig(cache_size=2), backend=hash_backend)
        for text in ("a1", "b2", "c3"):
            service.embed(text)
        assert service.cache_size == 2

    def test_normalize_text(self, hash_backend):
        """Normalization trims, lowercases, collapses whitespace and truncates."""
        service = EmbeddingService(EmbeddingConfig(max_sequence_length=8), backend=hash_backend)
        assert service.normalize_text("  Hello \n  World  ") == "hello wo"

    def test_initialize_idempotent(self, embedding_service, hash_backend):
        """initialize() loads the backend once."""
        embedding_service.initialize()
        embedding_service.initialize()
        embedding_service.embed("x1")
        assert hash_backend.initialized == 1
        assert embedding_service.is_ready()

    def test_batch_preserves_order(self, embedding_service):
        """embed_batch output order matches input order across batches."""
        texts = [f"text number {i}" for i in range(10)]
        batch = embedding_service.embed_batch(texts)
        assert [r.text for r in batch] == texts
        assert [r.embedding for r in batch] == [embedding_service.embed(t).embedding for t in texts]

    def test_batch_empty(self, embedding_service):
        """An empty batch returns an empty list."""
        assert embedding_service.embed_batch([]) == []

    def test_context_manager(self, hash_backend):
        """The service can be used as a context manager."""
        with EmbeddingService(backend=hash_backend) as service:
            assert service.embed("ctx").dimension == DIMENSION


class TestEmbeddingErrors:
    """Failures at the embedding boundary."""

    def test_initialization_failure(self):
        """Backend load failures raise EmbeddingInitializationError with the cause."""
        service = EmbeddingService(backend=FailingBackend(fail_on="initialize"))
        with pytest.raises(EmbeddingInitializationError, match="model files missing"):
            service.initialize()
        assert not service.is_ready()

    def test_backend_failure(self):
        """Inference failures raise EmbeddingBackendError."""
        service = EmbeddingService(backend=FailingBackend(fail_on="embed"))
        with pytest.raises(EmbeddingBackendError):
            service.embed("boom")

    def test_batch_failure(self):
        """A failing item fails the whole batch."""
        service = EmbeddingService(backend=FailingBackend(fail_on="embed"))
        with pytest.raises(EmbeddingError):
            service.embed_batch(["a1", "b2"])

    def test_dimension_check(self):
        """Backend vectors of the wrong length raise DimensionMismatchError."""
        service = EmbeddingService(EmbeddingConfig(dimension=384), backend=HashBackend(dimension=16))
        with pytest.raises(DimensionMismatchError):
            service.embed("short")

    def test_dimension_check_disabled(self):
        """dimension=None accepts any vector length."""
        service = EmbeddingService(EmbeddingConfig(dimension=None), backend=HashBackend(dimension=16))
        assert service.embed("short").dimension == 16

    def test_timeout(self):
        """Slow backends raise EmbeddingTimeoutError."""
        service = EmbeddingService(
            EmbeddingConfig(timeout_seconds=0.05, cache_size=0), backend=SlowBackend(0.5)
        )
        with pytest.raises(EmbeddingTimeoutError):
            service.embed("slow")
        service.close()

    def test_batch_timeout_bounds_whole_batch(self):
        """A batch times out once the batch as a whole exceeds timeout_seconds."""
        backend = StaggeredBackend({"t1": 0.15, "t2": 0.3, "t3": 0.45})
        service = EmbeddingService(
            EmbeddingConfig(timeout_seconds=0.2, cache_size=0, batch_size=3), backend=backend
        )
        with pytest.raises(EmbeddingTimeoutError):
            service.embed_batch(["t1", "t2", "t3"])
        service.close()

    def test_failures_are_not_cached(self):
        """A failed embed leaves nothing in the cache."""
        service = EmbeddingService(backend=FailingBackend(fail_on="embed"))
        with pytest.raises(EmbeddingBackendError):
            service.embed("boom")
        assert service.cache_size == 0


class TestBackends:
    """Backend protocol conformance."""

    def test_fake_backend_satisfies_protocol(self):
        """Test doubles satisfy EmbeddingBackend."""
        assert isinstance(HashBackend(), EmbeddingBackend)

    def test_sentence_transformer_backend_lazy(self):
        """The default backend loads nothing until initialize()."""
        backend = SentenceTransformerBackend("all-MiniLM-L6-v2")
        assert isinstance(backend, EmbeddingBackend)
        assert not backend.is_ready()
        with pytest.raises(RuntimeError):
            backend.embed("not loaded")
