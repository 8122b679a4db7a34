"""Basic usage example for memgraft."""

import sys
import tempfile
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


from memgraft import (
    AutoGrafizer,
    AutoGrafizerConfig,
    EmbeddingService,
    GraphIngestor,
    HybridSearch,
    KuzuGraphStore,
    SearchQuery,
    VectorStore,
)

CONVERSATION = """
We decided to move session state into `SessionStore`. AuthService depends on
SessionStore for token lookups.

The TokenRefresh job crashed with a TimeoutError during the release. The
RetryPolicy fix corrects the TimeoutError by backing off.
"""


def main():
    print("=" * 60)
    print("memgraft - Basic Usage Example")
    print("=" * 60)

    # 1. Preview and grafize text (sentence-transformers loads on first embed)
    print("\n1. Grafizing conversation...")
    embeddings = EmbeddingService()
    grafizer = AutoGrafizer(AutoGrafizerConfig(merge_semantic_duplicates=True), embeddings)
    preview = grafizer.preview(CONVERSATION)
    print(f"   Preview: {preview.entity_count} entities, top: {', '.join(preview.top_entities)}")

    result = grafizer.grafize(CONVERSATION)
    for node in result.nodes:
        print(f"   [{node.type}] {node.label} (freq={node.frequency}, conf={node.confidence:.2f})")
    for edge in result.edges:
        print(f"   {edge.source_label} -{edge.type}-> {edge.target_label} ({edge.weight:.2f})")
    print(f"   Merged entities: {result.stats.merged_entities}")

    # 2. Persist into a Kuzu graph and index in the vector store
    print("\n2. Ingesting into graph...")
    db_path = Path(tempfile.mkdtemp()) / "memgraft_db"
    store = KuzuGraphStore(db_path=db_path, session_id="demo-session")
    vectors = VectorStore(embeddings)
    ingestor = GraphIngestor(store, vectors)
    report = ingestor.ingest(result)
    print(f"   Added {report.nodes_added} nodes and {report.edges_added} edges")

    # 3. Only new material on the next turn
    print("\n3. Delta grafization...")
    follow_up = "SessionStore now uses RedisCache for persistence."
    delta = grafizer.grafize_delta(follow_up, ingestor.existing_labels())
    print(f"   New nodes: {[n.label for n in delta.nodes]}")
    ingestor.ingest(delta)

    # 4. Hybrid search
    print("\n4. Searching...")
    search = HybridSearch(vectors)
    search.set_graph_nodes(ingestor.structural_nodes())
    for hit in search.search(SearchQuery(text="where is session state kept?", threshold=0.2)):
        print(f"   {hit.combined_score:.2f}  {hit.explanation}")

    store.close()
    embeddings.close()


if __name__ == "__main__":
    main()
