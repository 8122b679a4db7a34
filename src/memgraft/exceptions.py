"""Custom exceptions for memgraft."""


class MemgraftError(Exception):
    """Base exception for memgraft operations."""


class ConfigurationError(MemgraftError, ValueError):
    """Raised when a configuration value has the wrong type."""


class EmbeddingError(MemgraftError):
    """Base exception for failures at the embedding boundary."""


class EmbeddingInitializationError(EmbeddingError):
    """Raised when the embedding backend or model fails to load."""


class EmbeddingBackendError(EmbeddingError):
    """Raised when the embedding backend fails to embed a text."""


class EmbeddingTimeoutError(EmbeddingError):
    """Raised when an embedding call exceeds its timeout."""


class DimensionMismatchError(EmbeddingError, ValueError):
    """Raised when vectors of different dimensions meet."""


class GraphStoreError(MemgraftError):
    """Raised when a graph store rejects a required write."""
