"""In-memory vector store keyed by graph node id.

Linear-scan similarity search over NodeEmbedding records, plus dict/JSON
export and import for persistence round-trips.

Public API:
    NodeEmbedding: Immutable embedding of one graph node
    SimilarityResult: One search hit
    EmbeddingStats: Store statistics
    VectorStore: Add/remove/search/export/import node embeddings
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Iterable, Mapping
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .embeddings import EmbeddingService, cosine_similarity, euclidean_distance

logger = logging.getLogger(__name__)

FORMAT_VERSION = "1.0"
BYTES_PER_COMPONENT = 8


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class NodeEmbedding:
    """Embedding of one graph node.

    Attributes:
        node_id: Graph node ID (store key)
        node_label: Node label, kept for display
        embedding: Vector components
        dimension: Vector length
        model_version: Version tag supplied by the caller
        created_at: ISO-8601 creation time
        updated_at: ISO-8601 last write time
    """

    node_id: str
    node_label: str
    embedding: tuple[float, ...]
    dimension: int
    model_version: str = "1.0"
    created_at: str = ""
    updated_at: str = ""

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["embedding"] = list(self.embedding)
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> NodeEmbedding:
        """Build from an exported dict.

        Raises:
            KeyError: If node_id or embedding is missing.
            ValueError: If the embedding is not numeric.
        """
        embedding = tuple(float(x) for x in data["embedding"])
        return cls(
            node_id=str(data["node_id"]),
            node_label=str(data.get("node_label", "")),
            embedding=embedding,
            dimension=int(data.get("dimension", len(embedding))),
            model_version=str(data.get("model_version", "1.0")),
            created_at=str(data.get("created_at", "")),
            updated_at=str(data.get("updated_at", "")),
        )


@dataclass(frozen=True)
class SimilarityResult:
    """A node ranked against a query embedding."""

    node_id: str
    node_label: str
    similarity: float
    distance: float
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class EmbeddingStats:
    """Vector store statistics.

    memory_usage_bytes is an estimate (8 bytes per vector component),
    not exact accounting of Python object overhead.
    """

    total_nodes: int
    embedded_nodes: int
    pending_nodes: int
    model_dimension: int
    memory_usage_bytes: int
    last_updated: str


class VectorStore:
    """Keyed store of node id -> NodeEmbedding with similarity search.

    One id maps to exactly one embedding; writes replace the whole
    record under a lock (last write wins). Searches scan a snapshot.

    Args:
        embedding_service: Service used to embed node and query texts;
            a default EmbeddingService when None
    """

    def __init__(self, embedding_service: EmbeddingService | None = None) -> None:
        self._embedding_service = embedding_service or EmbeddingService()
        self._embeddings: dict[str, NodeEmbedding] = {}
        self._lock = threading.RLock()

    @property
    def embedding_service(self) -> EmbeddingService:
        return self._embedding_service

    # ── writes ────────────────────────────────────────────────

    def add_node_embedding(
        self,
        node_id: str,
        node_label: str,
        text: str,
        model_version: str = "1.0",
    ) -> NodeEmbedding:
        """Embed text and store it for node_id, replacing any prior embedding.

        Raises:
            EmbeddingError: If the embedding backend fails.
        """
        text_embedding = self._embedding_service.embed(text)
        return self._put(node_id, node_label, text_embedding.embedding, model_version)

    def add_node_embeddings_batch(
        self,
        nodes: Iterable[Mapping[str, str]],
        model_version: str = "1.0",
    ) -> list[NodeEmbedding]:
        """Embed and store many nodes.

        Args:
            nodes: Mappings with node_id, node_label and text keys
            model_version: Version tag for every record

        Returns:
            Stored records in input order.
        """
        items = list(nodes)
        if not items:
            return []
        embedded = self._embedding_service.embed_batch([item["text"] for item in items])
        return [
            self._put(item["node_id"], item.get("node_label", ""), emb.embedding, model_version)
            for item, emb in zip(items, embedded)
        ]

    def remove_node_embedding(self, node_id: str) -> bool:
        """Remove a node's embedding. Returns True if it existed."""
        with self._lock:
            return self._embeddings.pop(node_id, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._embeddings.clear()

    # ── reads ─────────────────────────────────────────────────

    def search_similar(
        self,
        text: str,
        top_k: int = 5,
        threshold: float = 0.0,
    ) -> list[SimilarityResult]:
        """Rank stored nodes by cosine similarity to text.

        Args:
            text: Query text
            top_k: Maximum results
            threshold: Minimum similarity to keep

        Returns:
            Results sorted by similarity descending, at most top_k.
        """
        if top_k <= 0:
            return []
        query = self._embedding_service.embed(text).embedding

        with self._lock:
            snapshot = list(self._embeddings.values())

        results: list[SimilarityResult] = []
        for record in snapshot:
            if len(record.embedding) != len(query):
                logger.debug(
                    "Skipping %s: dimension %d != query dimension %d",
                    record.node_id,
                    len(record.embedding),
                    len(query),
                )
                continue
            similarity = cosine_similarity(query, record.embedding)
            if similarity >= threshold:
                results.append(
                    SimilarityResult(
                        node_id=record.node_id,
                        node_label=record.node_label,
                        similarity=similarity,
                        distance=euclidean_distance(query, record.embedding),
                    )
                )

        results.sort(key=lambda r: r.similarity, reverse=True)
        return results[:top_k]

    def get_node_embedding(self, node_id: str) -> NodeEmbedding | None:
        with self._lock:
            return self._embeddings.get(node_id)

    def has_embedding(self, node_id: str) -> bool:
        with self._lock:
            return node_id in self._embeddings

    def node_ids(self) -> list[str]:
        with self._lock:
            return list(self._embeddings)

    def __len__(self) -> int:
        with self._lock:
            return len(self._embeddings)

    def get_stats(self) -> EmbeddingStats:
        """Count, dimension and estimated memory footprint."""
        with self._lock:
            records = list(self._embeddings.values())
        components = sum(len(r.embedding) for r in records)
        return EmbeddingStats(
            total_nodes=len(records),
            embedded_nodes=len(records),
            pending_nodes=0,
            model_dimension=records[0].dimension if records else 0,
            memory_usage_bytes=components * BYTES_PER_COMPONENT,
            last_updated=_now(),
        )

    # ── persistence ───────────────────────────────────────────

    def export_embeddings(self) -> dict[str, dict[str, Any]]:
        """Export every record as node_id -> JSON-serializable dict."""
        with self._lock:
            return {node_id: record.to_dict() for node_id, record in self._embeddings.items()}

    def import_embeddings(self, data: Mapping[str, Mapping[str, Any]]) -> int:
        """Replace the store contents with exported records.

        Malformed records are skipped with a warning.

        Returns:
            Number of records imported.
        """
        loaded: dict[str, NodeEmbedding] = {}
        for node_id, raw in data.items():
            try:
                record = NodeEmbedding.from_dict({"node_id": node_id, **raw})
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping malformed embedding record %s: %s", node_id, e)
                continue
            loaded[record.node_id] = record

        with self._lock:
            self._embeddings = loaded
        logger.debug("Imported %d of %d embedding records", len(loaded), len(data))
        return len(loaded)

    def export_to_json(self, path: Path | str) -> Path:
        """Write all records to a JSON file. Returns the path written."""
        target = Path(path)
        payload = {
            "format_version": FORMAT_VERSION,
            "exported_at": _now(),
            "embeddings": self.export_embeddings(),
        }
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(json.dumps(payload), encoding="utf-8")
        return target

    def import_from_json(self, path: Path | str) -> int:
        """Load records written by export_to_json(). Returns the count imported."""
        payload = json.loads(Path(path).read_text(encoding="utf-8"))
        fmt_version = payload.get("format_version", "")
        if fmt_version and fmt_version != FORMAT_VERSION:
            logger.warning("Unknown format version %s, attempting import anyway", fmt_version)
        return self.import_embeddings(payload.get("embeddings", {}))

    # ── private ───────────────────────────────────────────────

    def _put(
        self,
        node_id: str,
        node_label: str,
        vector: Iterable[float],
        model_version: str,
    ) -> NodeEmbedding:
        embedding = tuple(vector)
        now = _now()
        with self._lock:
            previous = self._embeddings.get(node_id)
            record = NodeEmbedding(
                node_id=node_id,
                node_label=node_label,
                embedding=embedding,
                dimension=len(embedding),
                model_version=model_version,
                created_at=previous.created_at if previous else now,
                updated_at=now,
            )
            self._embeddings[node_id] = record
        return record


__all__ = [
    "NodeEmbedding",
    "SimilarityResult",
    "EmbeddingStats",
    "VectorStore",
]
