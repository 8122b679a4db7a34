"""GraphStore protocol -- the collaborator contract grafized output is written to.

Public API:
    GraphStore: Runtime-checkable protocol defining the graph store contract.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from .types import Direction, GraphEdge, GraphNode


@runtime_checkable
class GraphStore(Protocol):
    """Common interface for session-scoped graph storage backends.

    A store instance reads and writes only the records of its own
    session, so several sessions can share one database.
    """

    # ── identity ──────────────────────────────────────────────

    @property
    def session_id(self) -> str:
        """Session whose records this store sees."""
        ...

    # ── node operations ───────────────────────────────────────

    def add_node(
        self,
        node_type: str,
        properties: dict[str, Any],
        node_id: str | None = None,
    ) -> GraphNode:
        """Create a node and return it.

        Args:
            node_type: Node type (e.g. "CODE_ENTITY").
            properties: Properties to store on the node.
            node_id: Optional explicit ID; auto-generated when None.

        Returns:
            The newly created GraphNode.
        """
        ...

    def get_node(self, node_id: str) -> GraphNode | None:
        """Fetch a single node by ID, or None if not found."""
        ...

    def query_nodes(
        self,
        node_type: str | None = None,
        filters: dict[str, Any] | None = None,
        limit: int = 50,
    ) -> list[GraphNode]:
        """Return nodes (optionally of *node_type*) matching equality filters."""
        ...

    def update_node(self, node_id: str, properties: dict[str, Any]) -> bool:
        """Merge *properties* into an existing node. Returns True on success."""
        ...

    def delete_node(self, node_id: str) -> bool:
        """Delete a node and its edges. Returns True if the node existed."""
        ...

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
            KeyError: If either source_id or target_id does not exist.
        """
        ...

    def query_neighbors(
        self,
        node_id: str,
        edge_type: str | None = None,
        direction: Direction = Direction.BOTH,
        limit: int = 50,
    ) -> list[tuple[GraphEdge, GraphNode]]:
        """Return edges and neighbor nodes adjacent to *node_id*."""
        ...

    # ── lifecycle ─────────────────────────────────────────────

    def close(self) -> None:
        """Release resources held by the store."""
        ...


__all__ = ["GraphStore"]
