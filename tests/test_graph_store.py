"""Tests for the graph store layer (types, protocol, in-memory and Kuzu stores).

Every behavioural test runs against both backends; Kuzu tests use real
databases under tmp_path.
"""

from __future__ import annotations

import pytest

from memgraft.graph import (
    Direction,
    GraphEdge,
    GraphNode,
    GraphStore,
    InMemoryGraphStore,
    KuzuGraphStore,
)


# ── fixtures ──────────────────────────────────────────────────


@pytest.fixture(params=["memory", "kuzu"])
def store(request, temp_storage):
    """A fresh store of each backend."""
    if request.param == "memory":
        s = InMemoryGraphStore(session_id="test-session")
    else:
        s = KuzuGraphStore(db_path=temp_storage / "graph_db", session_id="test-session")
    yield s
    s.close()


@pytest.fixture
def populated_store(store):
    """Store with a small graph.

    Graph structure:
        auth --DEPENDS_ON--> db
        fix --CORRECTS--> auth
    """
    store.add_node(
        "CODE_ENTITY",
        {"label": "AuthService", "normalized_label": "authservice", "frequency": 3, "confidence": 0.8},
        node_id="auth",
    )
    store.add_node(
        "CODE_ENTITY",
        {"label": "Database", "normalized_label": "database", "frequency": 1, "confidence": 0.5},
        node_id="db",
    )
    store.add_node(
        "CORRECTION",
        {"label": "TokenFix", "normalized_label": "tokenfix", "frequency": 1, "confidence": 0.6},
        node_id="fix",
    )
    store.add_edge("auth", "db", "DEPENDS_ON", {"weight": 0.8, "evidence": "uses"})
    store.add_edge("fix", "auth", "CORRECTS", {"weight": 0.9, "evidence": "fixes"})
    return store


# ── types ─────────────────────────────────────────────────────


class TestGraphDataTypes:
    """Verify the immutable data structures behave correctly."""

    def test_graph_node_label(self):
        node = GraphNode(node_id="n1", node_type="CONCEPT", properties={"label": "Auth"})
        assert node.label == "Auth"
        assert node.session_id == ""

    def test_graph_node_frozen(self):
        node = GraphNode(node_id="n1", node_type="CONCEPT")
        with pytest.raises(AttributeError):
            node.node_id = "n2"  # type: ignore[misc]

    def test_graph_edge_defaults(self):
        edge = GraphEdge()
        assert edge.edge_id == ""
        assert edge.properties == {}


# ── node CRUD ─────────────────────────────────────────────────


class TestNodeOperations:
    """add, get, query, update, delete."""

    def test_add_and_get(self, store):
        """A node round-trips through add and get."""
        created = store.add_node(
            "CONCEPT",
            {"label": "Event Sourcing", "normalized_label": "event sourcing", "frequency": 2,
             "confidence": 0.7, "description": "We chose event sourcing", "auto_grafized": True},
            node_id="es",
        )
        assert created.node_id == "es"
        fetched = store.get_node("es")
        assert fetched is not None
        assert fetched.node_type == "CONCEPT"
        assert fetched.label == "Event Sourcing"
        assert fetched.properties["frequency"] == 2
        assert fetched.properties["confidence"] == pytest.approx(0.7)
        assert fetched.properties["description"] == "We chose event sourcing"
        assert fetched.properties["auto_grafized"] is True
        assert fetched.session_id == "test-session"

    def test_auto_id(self, store):
        """IDs are generated when not given."""
        node = store.add_node("CONCEPT", {"label": "X"})
        assert node.node_id
        assert store.get_node(node.node_id) is not None

    def test_get_missing(self, store):
        assert store.get_node("nope") is None

    def test_query_by_type(self, populated_store):
        """query_nodes filters on node type."""
        ids = {n.node_id for n in populated_store.query_nodes("CODE_ENTITY")}
        assert ids == {"auth", "db"}

    def test_query_all(self, populated_store):
        """query_nodes without a type returns every node."""
        assert len(populated_store.query_nodes()) == 3

    def test_query_by_normalized_label(self, populated_store):
        """Equality filters select matching nodes."""
        nodes = populated_store.query_nodes(filters={"normalized_label": "tokenfix"})
        assert [n.node_id for n in nodes] == ["fix"]

    def test_query_limit(self, populated_store):
        assert len(populated_store.query_nodes(limit=2)) == 2

    def test_update_merges(self, populated_store):
        """update_node merges properties into the node."""
        assert populated_store.update_node("auth", {"frequency": 7}) is True
        node = populated_store.get_node("auth")
        assert node.properties["frequency"] == 7
        assert node.label == "AuthService"

    def test_update_missing(self, store):
        assert store.update_node("nope", {"frequency": 1}) is False

    def test_delete_removes_edges(self, populated_store):
        """Deleting a node removes it and its edges."""
        assert populated_store.delete_node("auth") is True
        assert populated_store.get_node("auth") is None
        assert populated_store.query_neighbors("db") == []
        assert populated_store.delete_node("auth") is False


# ── edges ─────────────────────────────────────────────────────


class TestEdgeOperations:
    """add_edge and query_neighbors."""

    def test_outgoing(self, populated_store):
        pairs = populated_store.query_neighbors("auth", direction=Direction.OUTGOING)
        assert [(e.edge_type, n.node_id) for e, n in pairs] == [("DEPENDS_ON", "db")]
        edge = pairs[0][0]
        assert (edge.source_id, edge.target_id) == ("auth", "db")
        assert edge.properties["weight"] == pytest.approx(0.8)
        assert edge.properties["evidence"] == "uses"

    def test_incoming(self, populated_store):
        pairs = populated_store.query_neighbors("auth", direction=Direction.INCOMING)
        assert [(e.edge_type, n.node_id) for e, n in pairs] == [("CORRECTS", "fix")]
        assert (pairs[0][0].source_id, pairs[0][0].target_id) == ("fix", "auth")

    def test_both(self, populated_store):
        neighbors = {n.node_id for _, n in populated_store.query_neighbors("auth")}
        assert neighbors == {"db", "fix"}

    def test_edge_type_filter(self, populated_store):
        pairs = populated_store.query_neighbors("auth", edge_type="CORRECTS")
        assert [n.node_id for _, n in pairs] == ["fix"]

    def test_missing_node_raises(self, populated_store):
        """add_edge raises KeyError when an endpoint is missing."""
        with pytest.raises(KeyError):
            populated_store.add_edge("auth", "ghost", "RELATES")
        with pytest.raises(KeyError):
            populated_store.add_edge("ghost", "auth", "RELATES")

    def test_neighbors_of_missing_node(self, store):
        assert store.query_neighbors("ghost") == []


# ── protocol and sessions ─────────────────────────────────────


class TestProtocolCompliance:
    """Both stores satisfy GraphStore."""

    def test_isinstance(self, store):
        assert isinstance(store, GraphStore)


class TestSessionIsolation:
    """Stores only see their own session's records."""

    def test_kuzu_sessions_share_database(self, temp_storage):
        """Two sessions on one Kuzu database do not see each other's nodes."""
        first = KuzuGraphStore(db_path=temp_storage / "shared_db", session_id="s1")
        second = KuzuGraphStore(database=first.database, session_id="s2")

        first.add_node("CONCEPT", {"label": "Alpha", "normalized_label": "alpha"}, node_id="same")
        second.add_node("CONCEPT", {"label": "Beta", "normalized_label": "beta"}, node_id="same")

        assert first.get_node("same").label == "Alpha"
        assert second.get_node("same").label == "Beta"
        assert [n.label for n in first.query_nodes()] == ["Alpha"]
        assert second.query_nodes(filters={"normalized_label": "alpha"}) == []

    def test_kuzu_requires_location(self):
        """A Kuzu store needs a path or an open database."""
        with pytest.raises(ValueError):
            KuzuGraphStore()

    def test_generated_session_ids_differ(self):
        assert InMemoryGraphStore().session_id != InMemoryGraphStore().session_id
