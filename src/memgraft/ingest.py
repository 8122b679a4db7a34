"""Feed grafization output into a graph store and a vector store.

The grafizer only describes nodes and edges; GraphIngestor is the
orchestrator that persists them. Nodes are matched to existing nodes of
the session by normalized label and reinforced rather than duplicated.
Edges are resolved from labels to node ids.

Public API:
    IngestReport: Counts and node ids from one ingest() call
    GraphIngestor: ingest(), existing_labels(), structural_nodes()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from .exceptions import GraphStoreError
from .grafizer import GrafizableNode, GrafizationResult
from .graph import Direction, GraphNode, GraphStore
from .hybrid_search import StructuralNode
from .vector_store import VectorStore

logger = logging.getLogger(__name__)

SCAN_LIMIT = 100_000


@dataclass
class IngestReport:
    """What one ingest() call wrote.

    Attributes:
        nodes_added: New nodes created
        nodes_updated: Existing nodes reinforced (frequency summed)
        edges_added: Edges created
        edges_skipped: Edges with an unresolvable endpoint or already present
        embeddings_indexed: Nodes (re)indexed in the vector store
        node_ids: Graph node id for each ingested node, in input order
    """

    nodes_added: int = 0
    nodes_updated: int = 0
    edges_added: int = 0
    edges_skipped: int = 0
    embeddings_indexed: int = 0
    node_ids: list[str] = field(default_factory=list)


def _index_text(label: str, description: str | None) -> str:
    return f"{label}: {description}" if description else label


class GraphIngestor:
    """Persist GrafizationResults into a session's graph.

    Args:
        store: Session-scoped graph store
        vector_store: Optional store to index ingested nodes in
    """

    def __init__(self, store: GraphStore, vector_store: VectorStore | None = None) -> None:
        self._store = store
        self._vector_store = vector_store

    @property
    def store(self) -> GraphStore:
        return self._store

    @property
    def vector_store(self) -> VectorStore | None:
        return self._vector_store

    def ingest(self, result: GrafizationResult) -> IngestReport:
        """Write nodes and edges of result into the graph.

        Raises:
            GraphStoreError: If the store rejects a node or edge write.
            EmbeddingError: If indexing in the vector store fails.
        """
        report = IngestReport()
        label_ids: dict[str, str] = {}
        to_index: list[dict[str, str]] = []

        for node in result.nodes:
            node_id, description = self._upsert_node(node, report)
            label_ids[node.label] = node_id
            report.node_ids.append(node_id)
            to_index.append(
                {
                    "node_id": node_id,
                    "node_label": node.label,
                    "text": _index_text(node.label, description),
                }
            )

        for edge in result.edges:
            source_id = self._resolve(edge.source_label, label_ids)
            target_id = self._resolve(edge.target_label, label_ids)
            if source_id is None or target_id is None:
                logger.debug(
                    "Skipping edge %s -> %s: unresolved endpoint",
                    edge.source_label,
                    edge.target_label,
                )
                report.edges_skipped += 1
                continue
            if source_id == target_id:
                logger.debug("Skipping self-loop on %s (%s)", source_id, edge.type)
                report.edges_skipped += 1
                continue
            if self._edge_exists(source_id, target_id, edge.type):
                report.edges_skipped += 1
                continue
            try:
                self._store.add_edge(
                    source_id,
                    target_id,
                    edge.type,
                    {
                        "weight": edge.weight,
                        "evidence": edge.evidence,
                        "bidirectional": edge.metadata.get("bidirectional", False),
                        "auto_grafized": True,
                    },
                )
            except KeyError as e:
                raise GraphStoreError(f"Store rejected edge {edge.suggested_id}: {e}") from e
            report.edges_added += 1

        if self._vector_store is not None and to_index:
            self._vector_store.add_node_embeddings_batch(to_index)
            report.embeddings_indexed = len(to_index)

        logger.debug(
            "Ingested into session %s: %d added, %d updated, %d edges (%d skipped)",
            self._store.session_id,
            report.nodes_added,
            report.nodes_updated,
            report.edges_added,
            report.edges_skipped,
        )
        return report

    def existing_labels(self) -> list[str]:
        """Labels of every node in the session, for AutoGrafizer.grafize_delta()."""
        return [node.label for node in self._store.query_nodes(limit=SCAN_LIMIT)]

    def structural_nodes(self) -> list[StructuralNode]:
        """Structural context for HybridSearch.set_graph_nodes()."""
        context: list[StructuralNode] = []
        for node in self._store.query_nodes(limit=SCAN_LIMIT):
            neighbors = self._store.query_neighbors(node.node_id, limit=SCAN_LIMIT)
            related = tuple(dict.fromkeys(neighbor.node_id for _, neighbor in neighbors))
            context.append(
                StructuralNode(
                    node_id=node.node_id,
                    label=node.label,
                    node_type=node.node_type,
                    related_node_ids=related,
                    frequency=int(node.properties.get("frequency", 0) or 0),
                    description=str(node.properties.get("description") or ""),
                )
            )
        return context

    # ── private ───────────────────────────────────────────────

    def _upsert_node(self, node: GrafizableNode, report: IngestReport) -> tuple[str, str | None]:
        normalized = str(node.metadata.get("normalized_text", node.label.lower()))
        existing = self._find_by_normalized(normalized)

        if existing is not None:
            props = existing.properties
            description = props.get("description") or node.description
            patch: dict[str, Any] = {
                "frequency": int(props.get("frequency", 0) or 0) + node.frequency,
                "confidence": max(float(props.get("confidence", 0.0) or 0.0), node.confidence),
            }
            if description and not props.get("description"):
                patch["description"] = description
            if not self._store.update_node(existing.node_id, patch):
                raise GraphStoreError(f"Store rejected update of node {existing.node_id}")
            report.nodes_updated += 1
            return existing.node_id, description

        properties: dict[str, Any] = {
            key: value for key, value in node.metadata.items() if key != "normalized_text"
        }
        properties.update(
            {
                "label": node.label,
                "normalized_label": normalized,
                "frequency": node.frequency,
                "confidence": node.confidence,
            }
        )
        if node.description:
            properties["description"] = node.description
        try:
            created = self._store.add_node(node.type, properties, node_id=node.suggested_id)
        except (RuntimeError, ValueError) as e:
            raise GraphStoreError(f"Store rejected node {node.suggested_id}: {e}") from e
        report.nodes_added += 1
        return created.node_id, node.description

    def _find_by_normalized(self, normalized: str) -> GraphNode | None:
        matches = self._store.query_nodes(filters={"normalized_label": normalized}, limit=1)
        return matches[0] if matches else None

    def _resolve(self, label: str, label_ids: dict[str, str]) -> str | None:
        if label in label_ids:
            return label_ids[label]
        existing = self._find_by_normalized(label.lower())
        return existing.node_id if existing is not None else None

    def _edge_exists(self, source_id: str, target_id: str, edge_type: str) -> bool:
        neighbors = self._store.query_neighbors(
            source_id, edge_type=edge_type, direction=Direction.OUTGOING, limit=SCAN_LIMIT
        )
        return any(neighbor.node_id == target_id for _, neighbor in neighbors)


__all__ = ["IngestReport", "GraphIngestor"]
