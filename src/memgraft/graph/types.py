"""Graph records exchanged with graph stores.

Public API:
    Direction: Edge traversal direction enum.
    GraphNode: Immutable node with type and properties.
    GraphEdge: Immutable edge connecting two nodes.
    NODE_COLUMNS: Node properties stored as typed columns by durable stores.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Direction(Enum):
    """Direction for edge traversal queries."""

    OUTGOING = "outgoing"
    INCOMING = "incoming"
    BOTH = "both"


# Properties with a dedicated column in durable stores; everything else
# is kept in a JSON attributes blob.
NODE_COLUMNS: tuple[str, ...] = (
    "label",
    "normalized_label",
    "description",
    "frequency",
    "confidence",
)


@dataclass(frozen=True)
class GraphNode:
    """An immutable node in the graph.

    Attributes:
        node_id: Unique identifier within the session.
        node_type: Node type (e.g. "CODE_ENTITY", "DECISION").
        properties: label, normalized_label, frequency, confidence,
            description and any extra metadata.
        session_id: Session the node belongs to.
    """

    node_id: str
    node_type: str
    properties: dict[str, Any] = field(default_factory=dict)
    session_id: str = ""

    @property
    def label(self) -> str:
        return str(self.properties.get("label", ""))


@dataclass(frozen=True)
class GraphEdge:
    """An immutable edge in the graph.

    Attributes:
        edge_id: Unique identifier for the edge.
        source_id: Node ID of the source (tail) node.
        target_id: Node ID of the target (head) node.
        edge_type: Relationship type (e.g. "DEPENDS_ON").
        properties: weight, evidence, bidirectional and any extra metadata.
        session_id: Session the edge belongs to.
    """

    edge_id: str = ""
    source_id: str = ""
    target_id: str = ""
    edge_type: str = ""
    properties: dict[str, Any] = field(default_factory=dict)
    session_id: str = ""


__all__ = ["Direction", "GraphNode", "GraphEdge", "NODE_COLUMNS"]
