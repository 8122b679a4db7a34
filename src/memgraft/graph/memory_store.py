"""InMemoryGraphStore -- dict-based GraphStore.

Public API:
    InMemoryGraphStore: Session-scoped GraphStore held in plain dicts.
"""

from __future__ import annotations

import threading
import uuid
from typing import Any

from .types import Direction, GraphEdge, GraphNode


class InMemoryGraphStore:
    """Dict-based GraphStore for tests and short-lived sessions.

    Implements the same interface as KuzuGraphStore without a database.
    Thread-safe via a reentrant lock.

    Args:
        session_id: Session this store belongs to; auto-generated if None.
    """

    def __init__(self, session_id: str | None = None) -> None:
        self._session_id = session_id or f"session-{uuid.uuid4().hex[:8]}"
        self._nodes: dict[str, dict[str, Any]] = {}  # node_id -> {type, properties}
        self._edges: list[dict[str, Any]] = []  # [{edge_id, source, target, type, properties}]
        self._lock = threading.RLock()

    @property
    def session_id(self) -> str:
        return self._session_id

    def close(self) -> None:
        with self._lock:
            self._nodes.clear()
            self._edges.clear()

    # ── node operations ──────────────────────────────────────

    def add_node(
        self,
        node_type: str,
        properties: dict[str, Any],
        node_id: str | None = None,
    ) -> GraphNode:
        nid = node_id or uuid.uuid4().hex
        with self._lock:
            self._nodes[nid] = {"type": node_type, "properties": dict(properties)}
        return self._node(nid, node_type, properties)

    def get_node(self, node_id: str) -> GraphNode | None:
        with self._lock:
            entry = self._nodes.get(node_id)
            if entry is None:
                return None
            return self._node(node_id, entry["type"], entry["properties"])

    def query_nodes(
        self,
        node_type: str | None = None,
        filters: dict[str, Any] | None = None,
        limit: int = 50,
    ) -> list[GraphNode]:
        results: list[GraphNode] = []
        with self._lock:
            for nid, entry in self._nodes.items():
                if node_type is not None and entry["type"] != node_type:
                    continue
                if filters and not all(
                    str(entry["properties"].get(k)) == str(v) for k, v in filters.items()
                ):
                    continue
                results.append(self._node(nid, entry["type"], entry["properties"]))
                if len(results) >= limit:
                    break
        return results

    def update_node(self, node_id: str, properties: dict[str, Any]) -> bool:
        with self._lock:
            entry = self._nodes.get(node_id)
            if entry is None:
                return False
            entry["properties"].update(properties)
        return True

    def delete_node(self, node_id: str) -> bool:
        with self._lock:
            if node_id not in self._nodes:
                return False
            del self._nodes[node_id]
            self._edges = [
                e for e in self._edges
                if e["source"] != node_id and e["target"] != node_id
            ]
        return True

    # ── edge operations ──────────────────────────────────────

    def add_edge(
        self,
        source_id: str,
        target_id: str,
        edge_type: str,
        properties: dict[str, Any] | None = None,
    ) -> GraphEdge:
        with self._lock:
            if source_id not in self._nodes:
                raise KeyError(f"Source node not found: {source_id}")
            if target_id not in self._nodes:
                raise KeyError(f"Target node not found: {target_id}")
            record = {
                "edge_id": uuid.uuid4().hex,
                "source": source_id,
                "target": target_id,
                "type": edge_type,
                "properties": dict(properties or {}),
            }
            self._edges.append(record)
            return self._edge(record)

    def query_neighbors(
        self,
        node_id: str,
        edge_type: str | None = None,
        direction: Direction = Direction.BOTH,
        limit: int = 50,
    ) -> list[tuple[GraphEdge, GraphNode]]:
        with self._lock:
            if node_id not in self._nodes:
                return []
            results: list[tuple[GraphEdge, GraphNode]] = []
            for e in self._edges:
                if edge_type is not None and e["type"] != edge_type:
                    continue
                neighbor_id: str | None = None
                if direction in (Direction.OUTGOING, Direction.BOTH) and e["source"] == node_id:
                    neighbor_id = e["target"]
                elif direction in (Direction.INCOMING, Direction.BOTH) and e["target"] == node_id:
                    neighbor_id = e["source"]
                if neighbor_id is None:
                    continue
                neighbor = self._nodes.get(neighbor_id)
                if neighbor is None:
                    continue
                results.append(
                    (self._edge(e), self._node(neighbor_id, neighbor["type"], neighbor["properties"]))
                )
                if len(results) >= limit:
                    break
        return results

    # ── private helpers ──────────────────────────────────────

    def _node(self, node_id: str, node_type: str, properties: dict[str, Any]) -> GraphNode:
        return GraphNode(
            node_id=node_id,
            node_type=node_type,
            properties=dict(properties),
            session_id=self._session_id,
        )

    def _edge(self, record: dict[str, Any]) -> GraphEdge:
        return GraphEdge(
            edge_id=record["edge_id"],
            source_id=record["source"],
            target_id=record["target"],
            edge_type=record["type"],
            properties=dict(record["properties"]),
            session_id=self._session_id,
        )


__all__ = ["InMemoryGraphStore"]
