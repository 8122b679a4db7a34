"""Hybrid search: semantic similarity blended with structural importance.

Semantic scores come from a VectorStore. Structural scores come from
graph-node context handed in via set_graph_nodes() (frequency, number of
neighbors, node type). Without structural context the search degrades
to semantic-only scoring.

Public API:
    StructuralNode: Graph context for one node
    SearchQuery: Query text plus ranking parameters
    HybridSearchResult: One ranked node with scores and an explanation
    HybridSearch: search() over a VectorStore and optional graph context
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from dataclasses import dataclass, field

from .config import SearchWeights
from .vector_store import VectorStore

logger = logging.getLogger(__name__)

TYPE_BOOSTS: dict[str, float] = {
    "CLASS": 0.1,
    "FUNCTION": 0.08,
    "INTERFACE": 0.08,
    "CONCEPT": 0.06,
    "DECISION": 0.07,
    "ERROR": 0.05,
    "MODULE": 0.05,
    "TYPE": 0.06,
}
DEFAULT_TYPE_BOOST = 0.02

UNKNOWN_NODE_TYPE = "UNKNOWN"


@dataclass(frozen=True)
class StructuralNode:
    """Graph context used for structural scoring.

    Attributes:
        node_id: Graph node ID (matches VectorStore keys)
        label: Display label
        node_type: Node type, used for the type boost
        related_node_ids: IDs of neighboring nodes
        frequency: How often the node has been referenced
        description: Optional description
    """

    node_id: str
    label: str
    node_type: str
    related_node_ids: tuple[str, ...] = ()
    frequency: int = 0
    description: str = ""


@dataclass
class SearchQuery:
    """Parameters for one hybrid search."""

    text: str
    top_k: int = 5
    threshold: float = 0.3
    use_structural_search: bool = True
    weights: SearchWeights = field(default_factory=SearchWeights)


@dataclass(frozen=True)
class HybridSearchResult:
    """A node ranked by combined semantic and structural score."""

    node_id: str
    node_label: str
    node_type: str
    semantic_score: float
    structural_score: float
    combined_score: float
    explanation: str


def _clamp01(value: float) -> float:
    return min(1.0, max(0.0, value))


def structural_score(node: StructuralNode) -> float:
    """min(0.6, 0.1*frequency) + min(0.3, 0.05*connections) + type boost, capped at 1."""
    frequency_score = min(0.6, node.frequency * 0.1)
    connectivity_score = min(0.3, len(node.related_node_ids) * 0.05)
    type_boost = TYPE_BOOSTS.get(node.node_type, DEFAULT_TYPE_BOOST)
    return min(1.0, frequency_score + connectivity_score + type_boost)


def explain(
    label: str,
    semantic: float,
    structural: float,
    node: StructuralNode | None,
) -> str:
    """Human-readable summary of why a node ranked where it did."""
    if semantic > 0.8:
        parts = ["Strong semantic match"]
    elif semantic > 0.6:
        parts = ["Good semantic match"]
    else:
        parts = ["Fair semantic match"]

    if node is not None:
        if structural > 0.5:
            parts.append(f"highly connected ({len(node.related_node_ids)} links)")
        if node.frequency > 5:
            parts.append(f"frequently referenced ({node.frequency}x)")

    return f"{label}: {', '.join(parts)}"


class HybridSearch:
    """Rank graph nodes for a query by semantic + structural score.

    Args:
        vector_store: Store of node embeddings; a default VectorStore when None
    """

    def __init__(self, vector_store: VectorStore | None = None) -> None:
        self._vector_store = vector_store if vector_store is not None else VectorStore()
        self._graph_nodes: dict[str, StructuralNode] = {}
        self._lock = threading.RLock()

    @property
    def vector_store(self) -> VectorStore:
        return self._vector_store

    @property
    def graph_nodes(self) -> dict[str, StructuralNode]:
        """Snapshot of the structural context keyed by node ID."""
        with self._lock:
            return dict(self._graph_nodes)

    @property
    def has_structural_context(self) -> bool:
        with self._lock:
            return bool(self._graph_nodes)

    def set_graph_nodes(self, nodes: Iterable[StructuralNode]) -> None:
        """Replace the structural context."""
        context = {node.node_id: node for node in nodes}
        with self._lock:
            self._graph_nodes = context
        logger.debug("Structural context set with %d nodes", len(context))

    def search(self, query: SearchQuery | str, **kwargs) -> list[HybridSearchResult]:
        """Rank stored nodes for a query.

        Semantic candidates are oversampled (top_k * 2) at the query
        threshold, scored, sorted by combined score, sliced to top_k and
        then filtered by threshold, so fewer than top_k results may come
        back.

        Args:
            query: A SearchQuery, or plain text with SearchQuery fields as kwargs

        Raises:
            EmbeddingError: If embedding the query fails.
        """
        if isinstance(query, str):
            query = SearchQuery(text=query, **kwargs)
        if query.top_k <= 0:
            return []

        candidates = self._vector_store.search_similar(
            query.text, top_k=query.top_k * 2, threshold=query.threshold
        )
        if not candidates:
            return []

        with self._lock:
            context = self._graph_nodes

        weights = query.weights
        results: list[HybridSearchResult] = []
        for candidate in candidates:
            node = context.get(candidate.node_id)
            raw_structural = (
                structural_score(node) if query.use_structural_search and node is not None else 0.0
            )
            semantic = _clamp01(candidate.similarity)
            structural = _clamp01(raw_structural)
            results.append(
                HybridSearchResult(
                    node_id=candidate.node_id,
                    node_label=candidate.node_label,
                    node_type=node.node_type if node is not None else UNKNOWN_NODE_TYPE,
                    semantic_score=semantic,
                    structural_score=structural,
                    combined_score=weights.semantic * semantic + weights.structural * structural,
                    explanation=explain(candidate.node_label, candidate.similarity, raw_structural, node),
                )
            )

        results.sort(key=lambda r: r.combined_score, reverse=True)
        return [r for r in results[: query.top_k] if r.combined_score >= query.threshold]


__all__ = [
    "StructuralNode",
    "SearchQuery",
    "HybridSearchResult",
    "HybridSearch",
    "structural_score",
    "explain",
    "TYPE_BOOSTS",
]
