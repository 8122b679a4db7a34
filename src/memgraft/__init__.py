"""memgraft: text-to-graph extraction and semantic indexing for agent memory."""

__version__ = "0.1.0"

from .config import (
    AutoGrafizerConfig,
    EmbeddingConfig,
    EntityExtractionConfig,
    RelationshipDetectionConfig,
    SearchWeights,
)
from .embeddings import (
    EmbeddingBackend,
    EmbeddingService,
    SentenceTransformerBackend,
    TextEmbedding,
    cosine_similarity,
    euclidean_distance,
)
from .entity_extraction import EntityExtractor, ExtractedEntity, NodeKind, extract_entities
from .exceptions import (
    ConfigurationError,
    DimensionMismatchError,
    EmbeddingBackendError,
    EmbeddingError,
    EmbeddingInitializationError,
    EmbeddingTimeoutError,
    GraphStoreError,
    MemgraftError,
)
from .grafizer import (
    AutoGrafizer,
    GrafizableEdge,
    GrafizableNode,
    GrafizationPreview,
    GrafizationResult,
    GrafizationStats,
)
from .graph import GraphStore, InMemoryGraphStore, KuzuGraphStore
from .hybrid_search import HybridSearch, HybridSearchResult, SearchQuery, StructuralNode
from .ingest import GraphIngestor, IngestReport
from .relationship_detection import (
    DetectedRelationship,
    EdgeKind,
    RelationshipDetector,
    detect_relationships,
)
from .vector_store import EmbeddingStats, NodeEmbedding, SimilarityResult, VectorStore

__all__ = [
    # Extraction
    "EntityExtractor",
    "ExtractedEntity",
    "NodeKind",
    "extract_entities",
    "RelationshipDetector",
    "DetectedRelationship",
    "EdgeKind",
    "detect_relationships",
    # Grafization
    "AutoGrafizer",
    "GrafizableNode",
    "GrafizableEdge",
    "GrafizationStats",
    "GrafizationResult",
    "GrafizationPreview",
    # Embeddings and search
    "EmbeddingBackend",
    "EmbeddingService",
    "SentenceTransformerBackend",
    "TextEmbedding",
    "cosine_similarity",
    "euclidean_distance",
    "VectorStore",
    "NodeEmbedding",
    "SimilarityResult",
    "EmbeddingStats",
    "HybridSearch",
    "HybridSearchResult",
    "SearchQuery",
    "StructuralNode",
    # Graph persistence
    "GraphStore",
    "InMemoryGraphStore",
    "KuzuGraphStore",
    "GraphIngestor",
    "IngestReport",
    # Configuration
    "EntityExtractionConfig",
    "RelationshipDetectionConfig",
    "EmbeddingConfig",
    "AutoGrafizerConfig",
    "SearchWeights",
    # Exceptions
    "MemgraftError",
    "ConfigurationError",
    "EmbeddingError",
    "EmbeddingInitializationError",
    "EmbeddingBackendError",
    "EmbeddingTimeoutError",
    "DimensionMismatchError",
    "GraphStoreError",
]
