"""KuzuGraphStore -- Kuzu-backed implementation of the GraphStore protocol.

Uses a fixed two-table schema (MemoryNode, MemoryEdge) with parameterized
Cypher queries. Every record carries its session id, and node primary
keys are "<session_id>:<node_id>", so several sessions can share one
database while each store sees only its own records.

Public API:
    KuzuGraphStore: Concrete GraphStore implementation backed by Kuzu.
"""

from __future__ import annotations

import json
import logging
import uuid
from pathlib import Path
from typing import Any

import kuzu

from .types import NODE_COLUMNS, Direction, GraphEdge, GraphNode

logger = logging.getLogger(__name__)

_NODE_RETURN = (
    "n.node_id, n.node_type, n.label, n.normalized_label, "
    "n.description, n.frequency, n.confidence, n.attributes"
)
_EDGE_RETURN = "r.edge_id, r.edge_type, r.weight, r.attributes"


def _column_value(name: str, value: Any) -> Any:
    """Coerce a property to the Kuzu column type it is stored in."""
    if name == "frequency":
        return int(value or 0)
    if name == "confidence":
        return float(value or 0.0)
    return "" if value is None else str(value)


def _decode_attributes(raw: str | None) -> dict[str, Any]:
    if not raw:
        return {}
    try:
        decoded = json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        logger.warning("Ignoring undecodable attributes blob: %r", raw[:80])
        return {}
    return decoded if isinstance(decoded, dict) else {}


class KuzuGraphStore:
    """Kuzu graph database implementation of the GraphStore protocol.

    All Cypher queries use parameterised bindings to prevent injection.

    Args:
        db_path: Filesystem path for the Kuzu database directory.
        session_id: Session this store belongs to; auto-generated if None.
        database: An already-open kuzu.Database to share between sessions
            (db_path is ignored when given).
    """

    # ── construction / lifecycle ──────────────────────────────

    def __init__(
        self,
        db_path: Path | str | None = None,
        session_id: str | None = None,
        database: kuzu.Database | None = None,
    ) -> None:
        if database is None and db_path is None:
            raise ValueError("KuzuGraphStore needs a db_path or an open database")
        self._session_id = session_id or f"session-{uuid.uuid4().hex[:8]}"
        if database is None:
            self._db_path: Path | None = Path(db_path)  # type: ignore[arg-type]
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            database = kuzu.Database(str(self._db_path))
        else:
            self._db_path = None
        self._db = database
        self._conn = kuzu.Connection(self._db)
        self._init_schema()

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def database(self) -> kuzu.Database:
        """The underlying database, for opening further sessions on it."""
        return self._db

    def close(self) -> None:
        """Release Kuzu resources."""
        self._conn = None  # type: ignore[assignment]
        self._db = None  # type: ignore[assignment]

    def _init_schema(self) -> None:
        """Create the node and relationship tables if they don't exist."""
        try:
            self._conn.execute("""
                CREATE NODE TABLE IF NOT EXISTS MemoryNode(
                    uid STRING,
                    node_id STRING,
                    session_id STRING,
                    node_type STRING,
                    label STRING,
                    normalized_label STRING,
                    description STRING,
                    frequency INT64,
                    confidence DOUBLE,
                    attributes STRING,
                    PRIMARY KEY (uid)
                )
            """)
            self._conn.execute("""
                CREATE REL TABLE IF NOT EXISTS MemoryEdge(
                    FROM MemoryNode TO MemoryNode,
                    edge_id STRING,
                    session_id STRING,
                    edge_type STRING,
                    weight DOUBLE,
                    attributes STRING
                )
            """)
            logger.debug("Graph schema initialized for session %s", self._session_id)
        except Exception as e:
            logger.error("Failed to initialize graph schema: %s", e)
            raise

    # ── node CRUD ─────────────────────────────────────────────

    def add_node(
        self,
        node_type: str,
        properties: dict[str, Any],
        node_id: str | None = None,
    ) -> GraphNode:
        """Create a node in the graph.

        Known properties are stored in typed columns; the rest are kept
        as a JSON attributes blob.
        """
        nid = node_id or uuid.uuid4().hex
        params = self._node_params(properties)
        params.update(
            {
                "uid": self._key(nid),
                "node_id": nid,
                "session_id": self._session_id,
                "node_type": node_type,
            }
        )
        cypher = (
            "CREATE (:MemoryNode {uid: $uid, node_id: $node_id, session_id: $session_id, "
            "node_type: $node_type, label: $label, normalized_label: $normalized_label, "
            "description: $description, frequency: $frequency, confidence: $confidence, "
            "attributes: $attributes})"
        )
        self._conn.execute(cypher, params)
        return GraphNode(
            node_id=nid,
            node_type=node_type,
            properties=dict(properties),
            session_id=self._session_id,
        )

    def get_node(self, node_id: str) -> GraphNode | None:
        """Fetch a node of this session by ID."""
        result = self._conn.execute(
            f"MATCH (n:MemoryNode) WHERE n.uid = $uid RETURN {_NODE_RETURN}",
            {"uid": self._key(node_id)},
        )
        if not result.has_next():
            return None
        return self._row_to_node(result.get_next())

    def query_nodes(
        self,
        node_type: str | None = None,
        filters: dict[str, Any] | None = None,
        limit: int = 50,
    ) -> list[GraphNode]:
        """Query nodes of this session with optional type and equality filters.

        Filters on column properties run in Cypher; filters on other
        properties are applied to the decoded attributes.
        """
        where_parts = ["n.session_id = $session_id"]
        params: dict[str, Any] = {"session_id": self._session_id}
        if node_type is not None:
            where_parts.append("n.node_type = $node_type")
            params["node_type"] = node_type

        extra_filters: dict[str, Any] = {}
        for idx, (k, v) in enumerate((filters or {}).items()):
            if k in NODE_COLUMNS:
                pname = f"f{idx}"
                where_parts.append(f"n.{k} = ${pname}")
                params[pname] = _column_value(k, v)
            else:
                extra_filters[k] = v

        cypher = f"MATCH (n:MemoryNode) WHERE {' AND '.join(where_parts)} RETURN {_NODE_RETURN}"
        if not extra_filters:
            cypher += f" LIMIT {int(limit)}"
        result = self._conn.execute(cypher, params)

        nodes: list[GraphNode] = []
        while result.has_next() and len(nodes) < limit:
            node = self._row_to_node(result.get_next())
            if all(str(node.properties.get(k)) == str(v) for k, v in extra_filters.items()):
                nodes.append(node)
        return nodes

    def update_node(self, node_id: str, properties: dict[str, Any]) -> bool:
        """Merge properties into an existing node."""
        node = self.get_node(node_id)
        if node is None:
            return False
        if not properties:
            return True

        merged = {**node.properties, **properties}
        params = self._node_params(merged)
        params["uid"] = self._key(node_id)
        set_clause = ", ".join(f"n.{col} = ${col}" for col in (*NODE_COLUMNS, "attributes"))
        self._conn.execute(f"MATCH (n:MemoryNode) WHERE n.uid = $uid SET {set_clause}", params)
        return True

    def delete_node(self, node_id: str) -> bool:
        """Delete a node and its edges."""
        if self.get_node(node_id) is None:
            return False
        self._conn.execute(
            "MATCH (n:MemoryNode) WHERE n.uid = $uid DETACH DELETE n",
            {"uid": self._key(node_id)},
        )
        return True

    # ── edge operations ───────────────────────────────────────

    def add_edge(
        self,
        source_id: str,
        target_id: str,
        edge_type: str,
        properties: dict[str, Any] | None = None,
    ) -> GraphEdge:
        """Create a directed edge between two existing nodes.

        Raises:
            KeyError: If source or target node does not exist.
        """
        if self.get_node(source_id) is None:
            raise KeyError(f"Source node not found: {source_id}")
        if self.get_node(target_id) is None:
            raise KeyError(f"Target node not found: {target_id}")

        props = dict(properties or {})
        eid = uuid.uuid4().hex
        extra = {k: v for k, v in props.items() if k != "weight"}
        params: dict[str, Any] = {
            "sid": self._key(source_id),
            "tid": self._key(target_id),
            "eid": eid,
            "session_id": self._session_id,
            "edge_type": edge_type,
            "weight": float(props.get("weight", 1.0)),
            "attributes": json.dumps(extra, default=str),
        }
        cypher = (
            "MATCH (a:MemoryNode), (b:MemoryNode) "
            "WHERE a.uid = $sid AND b.uid = $tid "
            "CREATE (a)-[:MemoryEdge {edge_id: $eid, session_id: $session_id, "
            "edge_type: $edge_type, weight: $weight, attributes: $attributes}]->(b)"
        )
        self._conn.execute(cypher, params)

        return GraphEdge(
            edge_id=eid,
            source_id=source_id,
            target_id=target_id,
            edge_type=edge_type,
            properties=props,
            session_id=self._session_id,
        )

    def query_neighbors(
        self,
        node_id: str,
        edge_type: str | None = None,
        direction: Direction = Direction.BOTH,
        limit: int = 50,
    ) -> list[tuple[GraphEdge, GraphNode]]:
        """Return edges and neighbor nodes adjacent to node_id."""
        if self.get_node(node_id) is None:
            return []

        results: list[tuple[GraphEdge, GraphNode]] = []
        if direction in (Direction.OUTGOING, Direction.BOTH):
            results.extend(self._query_directed_neighbors(node_id, edge_type, "outgoing", limit))
        if direction in (Direction.INCOMING, Direction.BOTH):
            results.extend(self._query_directed_neighbors(node_id, edge_type, "incoming", limit))
        return results[:limit]

    def _query_directed_neighbors(
        self,
        node_id: str,
        edge_type: str | None,
        direction: str,
        limit: int,
    ) -> list[tuple[GraphEdge, GraphNode]]:
        """Query neighbors in one direction."""
        params: dict[str, Any] = {"uid": self._key(node_id)}
        type_clause = ""
        if edge_type is not None:
            type_clause = " AND r.edge_type = $edge_type"
            params["edge_type"] = edge_type

        if direction == "outgoing":
            pattern = "(a:MemoryNode)-[r:MemoryEdge]->(n:MemoryNode)"
        else:
            pattern = "(n:MemoryNode)-[r:MemoryEdge]->(a:MemoryNode)"
        cypher = (
            f"MATCH {pattern} WHERE a.uid = $uid{type_clause} "
            f"RETURN {_EDGE_RETURN}, {_NODE_RETURN} LIMIT {int(limit)}"
        )
        result = self._conn.execute(cypher, params)

        pairs: list[tuple[GraphEdge, GraphNode]] = []
        while result.has_next():
            row = result.get_next()
            neighbor = self._row_to_node(row[4:])
            if direction == "outgoing":
                source_id, target_id = node_id, neighbor.node_id
            else:
                source_id, target_id = neighbor.node_id, node_id
            properties = _decode_attributes(row[3])
            properties["weight"] = row[2]
            edge = GraphEdge(
                edge_id=str(row[0]),
                source_id=source_id,
                target_id=target_id,
                edge_type=str(row[1]),
                properties=properties,
                session_id=self._session_id,
            )
            pairs.append((edge, neighbor))
        return pairs

    # ── private helpers ───────────────────────────────────────

    def _key(self, node_id: str) -> str:
        return f"{self._session_id}:{node_id}"

    @staticmethod
    def _node_params(properties: dict[str, Any]) -> dict[str, Any]:
        params = {col: _column_value(col, properties.get(col)) for col in NODE_COLUMNS}
        extra = {k: v for k, v in properties.items() if k not in NODE_COLUMNS}
        params["attributes"] = json.dumps(extra, default=str)
        return params

    def _row_to_node(self, row: list[Any]) -> GraphNode:
        """Convert a row of _NODE_RETURN columns to a GraphNode."""
        node_id, node_type, label, normalized_label, description, frequency, confidence, attrs = row
        properties = _decode_attributes(attrs)
        properties.update(
            {
                "label": label or "",
                "normalized_label": normalized_label or "",
                "frequency": int(frequency or 0),
                "confidence": float(confidence or 0.0),
            }
        )
        if description:
            properties["description"] = description
        return GraphNode(
            node_id=str(node_id),
            node_type=str(node_type),
            properties=properties,
            session_id=self._session_id,
        )


__all__ = ["KuzuGraphStore"]
