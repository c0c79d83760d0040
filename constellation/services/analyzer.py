"""
Constellation analysis pipeline.

thoughts -> word frequency + prevalence -> connection graph -> greedy merge
-> density sizing -> connectivity clusters -> insights.

Every call recomputes from the source thoughts; nothing is persisted.
"""

import logging
import random
import time
from typing import List, Optional, Sequence

from constellation.config.settings import settings
from constellation.models.analysis import ConstellationAnalysis
from constellation.models.node import Node
from constellation.models.thought import Thought
from constellation.services.density import INITIAL_DENSITY_FACTOR, apply_density_sizing, standalone_radius
from constellation.services.graph import (
    SimilarityFn,
    build_connections,
    dedupe_thoughts,
    find_connectivity_clusters,
    lexical_similarity,
    prune_dangling,
)
from constellation.services.insights import InsightGenerator, thought_text_index
from constellation.services.merge import MergeEngine
from constellation.services.text import prevalence, word_frequency

logger = logging.getLogger(__name__)


class ConstellationAnalyzer:
    """
    Runs the full analysis for one batch of thoughts.

    The similarity function is pluggable so that the embedding path can
    stand in for lexical Jaccard in both the connection graph and the merge.
    """

    def __init__(
        self,
        merge_threshold: Optional[float] = None,
        similarity_fn: SimilarityFn = lexical_similarity,
        connection_threshold: Optional[float] = None,
        canvas_width: Optional[float] = None,
        canvas_height: Optional[float] = None,
        rng: Optional[random.Random] = None,
        insight_generator: Optional[InsightGenerator] = None,
    ) -> None:
        self.merge_threshold = merge_threshold or settings.DEFAULT_MERGE_THRESHOLD
        self.connection_threshold = (
            settings.CONNECTION_THRESHOLD if connection_threshold is None else connection_threshold
        )
        self.similarity_fn = similarity_fn
        self.canvas_width = canvas_width or settings.CANVAS_WIDTH
        self.canvas_height = canvas_height or settings.CANVAS_HEIGHT
        self.rng = rng or random.Random()
        self.merge_engine = MergeEngine(self.merge_threshold, similarity_fn)
        self.insight_generator = insight_generator or InsightGenerator()

    def build_nodes(self, thoughts: Sequence[Thought]) -> List[Node]:
        """Fresh nodes with prevalence, base radius, connections and a random scatter position."""
        frequency = word_frequency(thought.text for thought in thoughts)
        connections = build_connections(thoughts, self.connection_threshold, self.similarity_fn)

        nodes: List[Node] = []
        for thought in thoughts:
            score = prevalence(thought.text, frequency)
            radius = standalone_radius(score)
            nodes.append(Node(
                **thought.model_dump(exclude={"x", "y"}),
                x=self.rng.random() * self.canvas_width,
                y=self.rng.random() * self.canvas_height,
                prevalence=score,
                base_radius=radius,
                radius=radius,
                connections=connections.get(thought.id, []),
            ))
        return nodes

    def analyze(self, thoughts: Sequence[Thought]) -> ConstellationAnalysis:
        start = time.perf_counter()
        unique = dedupe_thoughts(thoughts)
        frequency = word_frequency(thought.text for thought in unique)

        nodes = self.build_nodes(unique)
        nodes = self.merge_engine.merge(nodes)
        nodes = prune_dangling(nodes)
        nodes = apply_density_sizing(nodes, density_factor=INITIAL_DENSITY_FACTOR)

        clusters = find_connectivity_clusters(nodes)
        insights = self.insight_generator.generate(
            nodes,
            frequency,
            thought_texts=thought_text_index(unique),
            cluster_count=len(clusters),
        )

        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "Analyzed %d thoughts into %d nodes (%d clusters) in %.1fms",
            len(unique), len(nodes), len(clusters), elapsed_ms,
        )
        return ConstellationAnalysis(
            nodes=nodes,
            connectivity_clusters=clusters,
            insights=insights,
            merge_threshold=self.merge_threshold,
        )
