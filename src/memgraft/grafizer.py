"""Automatic grafization: text -> graph-ready nodes and edges.

Orchestrates entity extraction, optional embedding-based merging of
near-duplicate entities, and relationship detection, then projects the
result into GrafizableNode / GrafizableEdge records for an external
graph store. The grafizer never writes to a graph itself.

Public API:
    GrafizableNode: Graph-ready node descriptor
    GrafizableEdge: Graph-ready edge descriptor
    GrafizationStats: Counts and timing for one run
    GrafizationResult: nodes + edges + stats
    GrafizationPreview: Cheap summary from preview()
    AutoGrafizer: grafize(), grafize_delta(), preview(), merge_entities()
"""

from __future__ import annotations

import hashlib
import logging
import re
import time
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from typing import Any

from .config import AutoGrafizerConfig
from .embeddings import EmbeddingService
from .entity_extraction import EntityExtractor, ExtractedEntity
from .relationship_detection import DetectedRelationship, RelationshipDetector

logger = logging.getLogger(__name__)

MAX_CONTEXTS = 3
PREVIEW_TOP_ENTITIES = 5
PREVIEW_EDGE_CAP = 30

_SLUG_RE = re.compile(r"[^a-z0-9]+")


@dataclass
class GrafizableNode:
    """A node ready to be added to the graph.

    Attributes:
        suggested_id: Deterministic ID derived from the normalized label
        label: Entity surface text
        type: Node type value (e.g. "CODE_ENTITY")
        description: First context snippet, if any
        frequency: Mention count
        confidence: Extraction confidence 0.0-1.0
        metadata: Provenance (auto_grafized, extracted_from, normalized_text, source)
    """

    suggested_id: str
    label: str
    type: str
    description: str | None
    frequency: int
    confidence: float
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class GrafizableEdge:
    """An edge ready to be added to the graph, addressed by node labels."""

    suggested_id: str
    source_label: str
    target_label: str
    type: str
    weight: float
    evidence: str
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class GrafizationStats:
    """Counts and timing for one grafization run.

    Attributes:
        total_entities_found: Entities returned by extraction
        entities_after_filter: Nodes in the result
        total_relationships_found: Relationships returned by detection
        relationships_after_filter: Edges in the result
        processing_time_ms: Wall time of the run
        merged_entities: Entities folded into others by semantic merge
        semantic_merge_applied: False when merge was off or no embedding service
    """

    total_entities_found: int = 0
    entities_after_filter: int = 0
    total_relationships_found: int = 0
    relationships_after_filter: int = 0
    processing_time_ms: float = 0.0
    merged_entities: int = 0
    semantic_merge_applied: bool = False


@dataclass
class GrafizationResult:
    """Nodes, edges and stats produced from one text."""

    nodes: list[GrafizableNode] = field(default_factory=list)
    edges: list[GrafizableEdge] = field(default_factory=list)
    stats: GrafizationStats = field(default_factory=GrafizationStats)


@dataclass(frozen=True)
class GrafizationPreview:
    """Cheap summary of what grafize() would produce."""

    entity_count: int
    estimated_edges: int
    top_entities: list[str]


def slugify(text: str) -> str:
    """Lowercase, non-alphanumerics to '-', trimmed, at most 40 chars."""
    return _SLUG_RE.sub("-", text.lower()).strip("-")[:40]


class AutoGrafizer:
    """Turn raw text into graph-ready nodes and edges.

    The embedding service is optional. Without it (or with
    merge_semantic_duplicates off) the pipeline runs extraction-only and
    reports semantic_merge_applied=False.

    Args:
        config: Pipeline settings (defaults when None)
        embedding_service: Optional service used for semantic merging
    """

    def __init__(
        self,
        config: AutoGrafizerConfig | None = None,
        embedding_service: EmbeddingService | None = None,
    ) -> None:
        self._config = config or AutoGrafizerConfig()
        self._extractor = EntityExtractor(self._config.entity)
        self._detector = RelationshipDetector(self._config.relationship)
        self._embedding_service = embedding_service

    @property
    def config(self) -> AutoGrafizerConfig:
        """Effective pipeline settings."""
        return self._config

    @property
    def entity_extractor(self) -> EntityExtractor:
        return self._extractor

    @property
    def relationship_detector(self) -> RelationshipDetector:
        return self._detector

    @property
    def has_embedding_service(self) -> bool:
        return self._embedding_service is not None

    # ── public pipeline ───────────────────────────────────────

    def grafize(self, text: str) -> GrafizationResult:
        """Analyze text and return nodes and edges for the graph.

        Raises:
            EmbeddingError: If semantic merge is enabled and embedding fails.
        """
        started = time.perf_counter()

        raw_entities = self._extractor.extract(text)
        stats = GrafizationStats(total_entities_found=len(raw_entities))

        entities = raw_entities
        if self._config.merge_semantic_duplicates:
            if self.has_embedding_service:
                entities = self.merge_entities(raw_entities)
                stats.semantic_merge_applied = True
                stats.merged_entities = len(raw_entities) - len(entities)
            else:
                logger.warning(
                    "Semantic merge requested but no embedding service attached; "
                    "running extraction-only"
                )

        relationships = self._detector.detect(text, entities)
        stats.total_relationships_found = len(relationships)

        nodes = [self._to_node(entity) for entity in entities]
        edges = [self._to_edge(rel, index) for index, rel in enumerate(relationships)]

        if self._config.filter_orphan_edges:
            labels = {node.label for node in nodes}
            edges = [e for e in edges if e.source_label in labels and e.target_label in labels]

        stats.entities_after_filter = len(nodes)
        stats.relationships_after_filter = len(edges)
        stats.processing_time_ms = (time.perf_counter() - started) * 1000
        logger.debug(
            "Grafized %d nodes and %d edges in %.1fms",
            len(nodes),
            len(edges),
            stats.processing_time_ms,
        )
        return GrafizationResult(nodes=nodes, edges=edges, stats=stats)

    def grafize_delta(self, text: str, existing_labels: Iterable[str]) -> GrafizationResult:
        """Grafize text, keeping only material new relative to existing_labels.

        Nodes whose label matches an existing label (case-insensitive) are
        dropped. Edges are kept when their source node is new; the target
        may be a pre-existing node.
        """
        full = self.grafize(text)
        existing = {label.lower() for label in existing_labels}

        nodes = [n for n in full.nodes if n.label.lower() not in existing]
        new_labels = {n.label for n in nodes}
        edges = [e for e in full.edges if e.source_label in new_labels]

        stats = replace(
            full.stats,
            entities_after_filter=len(nodes),
            relationships_after_filter=len(edges),
        )
        return GrafizationResult(nodes=nodes, edges=edges, stats=stats)

    def preview(self, text: str) -> GrafizationPreview:
        """Summarize extraction without detecting relationships."""
        entities = self._extractor.extract(text)
        n = len(entities)
        return GrafizationPreview(
            entity_count=n,
            estimated_edges=max(0, min(n * (n - 1), PREVIEW_EDGE_CAP)),
            top_entities=[e.text for e in entities[:PREVIEW_TOP_ENTITIES]],
        )

    def merge_entities(self, entities: list[ExtractedEntity]) -> list[ExtractedEntity]:
        """Greedily merge entities whose embeddings are near-identical.

        Each pair with cosine similarity >= semantic_merge_threshold is
        folded together: frequencies sum, contexts concatenate (capped at
        3), and label/type come from the higher-confidence entity (ties
        keep the earlier one). O(n^2) comparisons over at most
        max_entities entities.

        Raises:
            EmbeddingError: If the embedding service fails.
        """
        service = self._embedding_service
        if service is None or len(entities) < 2:
            return list(entities)

        service.initialize()
        vectors = [e.embedding for e in service.embed_batch([entity.text for entity in entities])]
        threshold = self._config.semantic_merge_threshold

        working = list(entities)
        merged = [False] * len(working)
        for i in range(len(working)):
            if merged[i]:
                continue
            for j in range(i + 1, len(working)):
                if merged[j]:
                    continue
                if service.cosine_similarity(vectors[i], vectors[j]) < threshold:
                    continue

                keeper, absorbed = working[i], working[j]
                winner = absorbed if absorbed.confidence > keeper.confidence else keeper
                working[i] = replace(
                    winner,
                    frequency=keeper.frequency + absorbed.frequency,
                    contexts=(keeper.contexts + absorbed.contexts)[:MAX_CONTEXTS],
                    metadata=dict(winner.metadata),
                )
                merged[j] = True
                logger.debug("Merged entity %r into %r", absorbed.text, working[i].text)

        return [entity for entity, was_merged in zip(working, merged) if not was_merged]

    # ── private ───────────────────────────────────────────────

    @staticmethod
    def _to_node(entity: ExtractedEntity) -> GrafizableNode:
        digest = hashlib.sha256(entity.normalized_text.encode("utf-8")).hexdigest()[:8]
        return GrafizableNode(
            suggested_id=f"auto-{slugify(entity.text)}-{digest}",
            label=entity.text,
            type=entity.node_type.value,
            description=entity.contexts[0] if entity.contexts else None,
            frequency=entity.frequency,
            confidence=entity.confidence,
            metadata={
                **entity.metadata,
                "auto_grafized": True,
                "extracted_from": "text",
                "normalized_text": entity.normalized_text,
            },
        )

    @staticmethod
    def _to_edge(rel: DetectedRelationship, index: int) -> GrafizableEdge:
        return GrafizableEdge(
            suggested_id=f"auto-edge-{slugify(rel.source_text)}-{slugify(rel.target_text)}-{index}",
            source_label=rel.source_text,
            target_label=rel.target_text,
            type=rel.edge_type.value,
            weight=rel.confidence,
            evidence=rel.evidence,
            metadata={"auto_grafized": True, "bidirectional": rel.bidirectional},
        )


__all__ = [
    "GrafizableNode",
    "GrafizableEdge",
    "GrafizationStats",
    "GrafizationResult",
    "GrafizationPreview",
    "AutoGrafizer",
    "slugify",
]
