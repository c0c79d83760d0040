import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(ROOT))

from constellation.models.node import Node  # noqa: E402
from constellation.models.thought import Thought  # noqa: E402
from constellation.services.graph import (  # noqa: E402
    build_connections,
    connected_components,
    dedupe_thoughts,
    find_connectivity_clusters,
    prune_dangling,
    symmetrize,
)

HIKING = [
    Thought(id="t1", text="I love hiking mountains"),
    Thought(id="t2", text="I love hiking trails"),
    Thought(id="t3", text="Tax season is stressful"),
]


def test_hiking_thoughts_connect_and_tax_stays_alone():
    connections = build_connections(HIKING, threshold=0.2)
    assert connections == {"t1": ["t2"], "t2": ["t1"], "t3": []}


def test_connections_are_stored_symmetrically_for_asymmetric_similarity():
    def one_way(a, b):
        return 1.0 if (a.id, b.id) == ("t1", "t3") else 0.0

    connections = build_connections(HIKING, threshold=0.2, similarity_fn=one_way)
    assert connections["t1"] == ["t3"]
    assert connections["t3"] == ["t1"]


def test_empty_texts_never_connect():
    thoughts = [Thought(id="a", text=""), Thought(id="b", text="")]
    assert build_connections(thoughts) == {"a": [], "b": []}


def test_dedupe_keeps_last_record_at_first_position():
    thoughts = [Thought(id="x", text="old"), Thought(id="y", text="other"), Thought(id="x", text="new")]
    deduped = dedupe_thoughts(thoughts)
    assert [t.id for t in deduped] == ["x", "y"]
    assert deduped[0].text == "new"


def test_prune_dangling_drops_unknown_and_self_references():
    nodes = [
        Node(id="a", text="a", connections=["b", "ghost", "a"]),
        Node(id="b", text="b", connections=["a"]),
    ]
    pruned = prune_dangling(nodes)
    assert pruned[0].connections == ["b"]
    assert pruned[1].connections == ["a"]


def test_components_skip_dangling_ids():
    nodes = [
        Node(id="a", text="a", connections=["b", "ghost"]),
        Node(id="b", text="b", connections=["a"]),
        Node(id="c", text="c"),
    ]
    assert connected_components(nodes) == [["a", "b"], ["c"]]


def test_cluster_named_after_most_prevalent_member():
    nodes = [
        Node(id="a", text="a fairly long thought about gardens", prevalence=0.5, connections=["b"]),
        Node(id="b", text="the most prevalent member", prevalence=1.5, connections=["a"]),
        Node(id="c", text="", prevalence=0.0),
    ]
    clusters = find_connectivity_clusters(nodes)
    assert clusters[0].name == "the most prevalent m"
    assert clusters[0].thought_ids == ["a", "b"]
    assert clusters[1].name == "Cluster 2"


def test_symmetrize_adds_reverse_edges():
    nodes = [Node(id="a", text="a", connections=["b"]), Node(id="b", text="b")]
    result = symmetrize(nodes)
    assert result[1].connections == ["a"]
    assert connected_components(list(reversed(result))) == [["b", "a"]]
