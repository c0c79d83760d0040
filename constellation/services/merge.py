"""
Greedy merge of near-duplicate thoughts into composite bubbles.

Single ordered pass with a consumed set: each not-yet-consumed node
anchors a group made of every later unconsumed node whose similarity to
the anchor exceeds the merge threshold. The result depends on input
order, so callers must keep that order stable.
"""

import logging
from collections import Counter
from typing import Dict, List, Optional, Sequence, Tuple

from constellation.models.node import Node
from constellation.services.density import merged_radius
from constellation.services.graph import SimilarityFn, lexical_similarity
from constellation.services.text import tokenize

logger = logging.getLogger(__name__)

MERGE_PRESETS: List[Tuple[str, float]] = [
    ("Minimal (Fewest)", 0.40),
    ("Few", 0.30),
    ("Balanced", 0.20),
    ("Many", 0.15),
    ("Maximum (Most)", 0.10),
]
DEFAULT_MERGE_THRESHOLD = 0.20

TEXT_SEPARATOR = " • "
THEME_MIN_LENGTH = 4
MAX_THEMES = 3
FALLBACK_THEME = "these ideas"


def extract_themes(texts: Sequence[str]) -> List[str]:
    """Up to three words longer than three chars that occur in more than one text, most frequent first."""
    occurrences: Counter = Counter()
    spread: Counter = Counter()
    for text in texts:
        words = [word for word in tokenize(text) if len(word) >= THEME_MIN_LENGTH]
        occurrences.update(words)
        spread.update(set(words))

    shared = [word for word in occurrences if spread[word] > 1]
    shared.sort(key=lambda word: occurrences[word], reverse=True)
    return shared[:MAX_THEMES]


def build_synthesis(texts: Sequence[str], themes: Optional[Sequence[str]] = None) -> str:
    if not texts:
        return ""
    if len(texts) == 1:
        return texts[0]

    themes = extract_themes(texts) if themes is None else themes
    theme_text = ", ".join(themes) if themes else FALLBACK_THEME
    numbered = " ".join(f"({index}) {text}" for index, text in enumerate(texts, start=1))
    return f"This cluster explores {theme_text}, connecting {len(texts)} related thoughts: {numbered}"


class MergeEngine:
    """Collapses strongly similar nodes into merged nodes carrying a synthesis."""

    def __init__(
        self,
        threshold: float = DEFAULT_MERGE_THRESHOLD,
        similarity_fn: SimilarityFn = lexical_similarity,
    ) -> None:
        if not 0.0 < threshold < 1.0:
            raise ValueError(f"merge threshold must be in (0, 1), got {threshold}")
        self.threshold = threshold
        self.similarity_fn = similarity_fn

    def merge(self, nodes: Sequence[Node]) -> List[Node]:
        """
        Merge nodes in a single ordered pass.

        Args:
            nodes: Fresh (unmerged) nodes with connections already built

        Returns:
            Surviving nodes; connections that pointed at merged-away members
            are redirected to the node that absorbed them
        """
        consumed = set()
        survivors: List[Node] = []
        absorbed_by: Dict[str, str] = {}

        for node in nodes:
            if node.id in consumed:
                continue

            matches = [
                other for other in nodes
                if other.id != node.id
                and other.id not in consumed
                and self.similarity_fn(node, other) > self.threshold
            ]

            if not matches:
                survivors.append(node)
                consumed.add(node.id)
                continue

            group = [node, *matches]
            merged = self._merge_group(group)
            for member in group:
                consumed.add(member.id)
                absorbed_by[member.id] = merged.id
            survivors.append(merged)

        logger.debug(
            "Merged %d nodes into %d at threshold %.2f",
            len(nodes), len(survivors), self.threshold,
        )
        return self._redirect_connections(survivors, absorbed_by)

    def _merge_group(self, group: Sequence[Node]) -> Node:
        anchor = group[0]
        texts = [member.text for member in group if member.text]

        merged_ids: List[str] = []
        for member in group:
            merged_ids.extend(member.source_ids)

        member_ids = {member.id for member in group}
        connections: List[str] = []
        for member in group:
            for conn in member.connections:
                if conn not in member_ids and conn not in connections:
                    connections.append(conn)

        total_prevalence = sum(member.prevalence for member in group)
        radius = merged_radius(total_prevalence)
        themes = extract_themes(texts)

        return anchor.model_copy(update={
            "text": TEXT_SEPARATOR.join(texts),
            "synthesis": build_synthesis(texts, themes),
            "themes": themes,
            "prevalence": total_prevalence / len(group),
            "base_radius": radius,
            "radius": radius,
            "connections": connections,
            "merged_ids": merged_ids,
            "is_merged": True,
        })

    @staticmethod
    def _redirect_connections(nodes: List[Node], absorbed_by: Dict[str, str]) -> List[Node]:
        if not absorbed_by:
            return nodes

        redirected: List[Node] = []
        for node in nodes:
            connections: List[str] = []
            for conn in node.connections:
                target = absorbed_by.get(conn, conn)
                if target != node.id and target not in connections:
                    connections.append(target)
            redirected.append(node.model_copy(update={"connections": connections}))
        return redirected
