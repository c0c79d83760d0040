"""
Connection graph construction and connectivity clustering.

Adjacency is stored symmetrically: when a pair passes the connection
threshold both endpoints record each other in the same step, so
traversal never depends on the similarity function being symmetric.
"""

import logging
from collections import deque
from typing import Callable, Dict, List, Sequence, Set

from constellation.models.clusters import ConnectivityCluster
from constellation.models.node import Node
from constellation.models.thought import Thought
from constellation.services.text import similarity

logger = logging.getLogger(__name__)

CONNECTION_THRESHOLD = 0.2
CLUSTER_NAME_LENGTH = 20

SimilarityFn = Callable[[Thought, Thought], float]


def lexical_similarity(a: Thought, b: Thought) -> float:
    return similarity(a.text, b.text)


def dedupe_thoughts(thoughts: Sequence[Thought]) -> List[Thought]:
    """Collapse repeated ids: the last record wins, the first position is kept."""
    by_id: Dict[str, Thought] = {}
    for thought in thoughts:
        if thought.id in by_id:
            logger.debug("Duplicate thought id %s, keeping the later record", thought.id)
        by_id[thought.id] = thought
    return list(by_id.values())


def build_connections(
    thoughts: Sequence[Thought],
    threshold: float = CONNECTION_THRESHOLD,
    similarity_fn: SimilarityFn = lexical_similarity,
) -> Dict[str, List[str]]:
    """
    Build the adjacency list of the connection graph.

    Args:
        thoughts: Thoughts with unique ids, in input order
        threshold: Pairs with similarity strictly above this connect
        similarity_fn: Pairwise similarity, lexical Jaccard by default

    Returns:
        Mapping of thought id to connected ids, each list in input order
    """
    adjacency: Dict[str, Set[str]] = {thought.id: set() for thought in thoughts}

    for i, first in enumerate(thoughts):
        for second in thoughts[i + 1:]:
            if similarity_fn(first, second) > threshold:
                adjacency[first.id].add(second.id)
                adjacency[second.id].add(first.id)

    order = {thought.id: index for index, thought in enumerate(thoughts)}
    return {
        thought_id: sorted(neighbours, key=order.__getitem__)
        for thought_id, neighbours in adjacency.items()
    }


def prune_dangling(nodes: Sequence[Node]) -> List[Node]:
    """Drop connections that point at ids no longer present in ``nodes``."""
    known = {node.id for node in nodes}
    pruned: List[Node] = []
    for node in nodes:
        kept = [conn for conn in node.connections if conn in known and conn != node.id]
        if len(kept) != len(node.connections):
            logger.debug("Dropped %d dangling connections from %s", len(node.connections) - len(kept), node.id)
            node = node.model_copy(update={"connections": kept})
        pruned.append(node)
    return pruned


def connected_components(nodes: Sequence[Node]) -> List[List[str]]:
    """Breadth-first components over the connection sets, in discovery order."""
    by_id = {node.id: node for node in nodes}
    visited: Set[str] = set()
    components: List[List[str]] = []

    for node in nodes:
        if node.id in visited:
            continue

        component: List[str] = []
        queue = deque([node.id])
        while queue:
            current_id = queue.popleft()
            if current_id in visited:
                continue
            current = by_id.get(current_id)
            if current is None:
                continue
            visited.add(current_id)
            component.append(current_id)
            queue.extend(conn for conn in current.connections if conn not in visited)

        components.append(component)

    return components


def find_connectivity_clusters(nodes: Sequence[Node]) -> List[ConnectivityCluster]:
    """Connected components named after their most prevalent member."""
    by_id = {node.id: node for node in nodes}
    order = {node.id: index for index, node in enumerate(nodes)}
    clusters: List[ConnectivityCluster] = []

    for component in connected_components(nodes):
        members = [by_id[node_id] for node_id in component]
        # Ties go to the member that came first in the input
        most_prevalent = min(members, key=lambda n: (-n.prevalence, order[n.id]))
        name = most_prevalent.text[:CLUSTER_NAME_LENGTH] or f"Cluster {len(clusters) + 1}"
        clusters.append(ConnectivityCluster(name=name, thought_ids=component))

    return clusters


def symmetrize(nodes: Sequence[Node]) -> List[Node]:
    """Add the reverse of every one-way connection so traversal is order-independent."""
    incoming: Dict[str, List[str]] = {node.id: [] for node in nodes}
    for node in nodes:
        for conn in node.connections:
            if conn in incoming:
                incoming[conn].append(node.id)

    result: List[Node] = []
    for node in nodes:
        missing = [source for source in incoming[node.id] if source not in node.connections]
        if missing:
            node = node.model_copy(update={"connections": [*node.connections, *dict.fromkeys(missing)]})
        result.append(node)
    return result
