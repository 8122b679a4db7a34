"""Graph store layer that grafized nodes and edges are persisted into.

Public API:
    Direction: Edge traversal direction.
    GraphNode: Immutable graph node.
    GraphEdge: Immutable graph edge.
    GraphStore: Protocol all backends implement.
    KuzuGraphStore: Kuzu-backed concrete implementation.
    InMemoryGraphStore: Dict-based implementation.
"""

from __future__ import annotations

from .kuzu_store import KuzuGraphStore
from .memory_store import InMemoryGraphStore
from .protocol import GraphStore
from .types import NODE_COLUMNS, Direction, GraphEdge, GraphNode

__all__ = [
    "Direction",
    "GraphNode",
    "GraphEdge",
    "NODE_COLUMNS",
    "GraphStore",
    "KuzuGraphStore",
    "InMemoryGraphStore",
]
