"""
"Connect the dots" layout engine.

Stateless per call: positions are computed from the current node and
connection snapshot only, never from previous positions. Easing toward
the returned targets is the caller's job (see ``density.tick``).

Strategy is chosen purely by connectivity cluster count:
    1    -> single concentric cluster at the canvas centre (clamped to padding)
    2    -> two anchors at 25% / 75% width
    3-4  -> quadrant anchors
    5+   -> grid of ceil(sqrt(n)) columns inside the padded canvas
"""

import logging
import math
import random
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Sequence, Set, Tuple

from constellation.config.settings import settings
from constellation.models.clusters import ConnectivityCluster
from constellation.models.layout import LayoutResult, Position
from constellation.services.graph import find_connectivity_clusters

logger = logging.getLogger(__name__)

STRONG_CONNECTION_MIN_DEGREE = 3
STRONG_CONNECTIONS_PER_NODE = 3
GRID_RING_FRACTION = 0.3


class LayoutStrategy(str, Enum):
    SINGLE = "single"
    TWO = "two"
    QUADRANT = "quadrant"
    GRID = "grid"


@dataclass(frozen=True)
class DistanceBand:
    """Distance drawn uniformly from ``[minimum, minimum + spread]``."""

    minimum: float
    spread: float

    @property
    def maximum(self) -> float:
        return self.minimum + self.spread

    def sample(self, rng: random.Random) -> float:
        return self.minimum + rng.random() * self.spread


@dataclass(frozen=True)
class StrategyBands:
    neighbour: DistanceBand
    ring: DistanceBand


_FIXED_BANDS: Dict[LayoutStrategy, StrategyBands] = {
    LayoutStrategy.SINGLE: StrategyBands(DistanceBand(100.0, 50.0), DistanceBand(180.0, 60.0)),
    LayoutStrategy.TWO: StrategyBands(DistanceBand(35.0, 35.0), DistanceBand(90.0, 60.0)),
    LayoutStrategy.QUADRANT: StrategyBands(DistanceBand(30.0, 30.0), DistanceBand(70.0, 50.0)),
}
_GRID_NEIGHBOUR_BAND = DistanceBand(25.0, 25.0)


def choose_strategy(cluster_count: int) -> LayoutStrategy:
    if cluster_count <= 1:
        return LayoutStrategy.SINGLE
    if cluster_count == 2:
        return LayoutStrategy.TWO
    if cluster_count <= 4:
        return LayoutStrategy.QUADRANT
    return LayoutStrategy.GRID


def strong_connections(nodes: Sequence) -> List[Tuple[str, str]]:
    """
    Pairs flagged for emphasis: each node with at least three connections
    nominates its first three. Pairs are unique as unordered pairs.
    """
    known = {node.id for node in nodes}
    seen: Set[frozenset] = set()
    pairs: List[Tuple[str, str]] = []

    for node in nodes:
        if len(node.connections) < STRONG_CONNECTION_MIN_DEGREE:
            continue
        for conn in node.connections[:STRONG_CONNECTIONS_PER_NODE]:
            if conn not in known or conn == node.id:
                continue
            key = frozenset((node.id, conn))
            if key in seen:
                continue
            seen.add(key)
            pairs.append((node.id, conn))

    return pairs


class LayoutEngine:
    """
    Compute target positions grouped by connectivity cluster.

    The random source is injectable: pass a seeded ``random.Random`` to get
    reproducible placements.
    """

    def __init__(
        self,
        canvas_width: Optional[float] = None,
        canvas_height: Optional[float] = None,
        padding: Optional[float] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.width = canvas_width or settings.CANVAS_WIDTH
        self.height = canvas_height or settings.CANVAS_HEIGHT
        self.padding = settings.CANVAS_PADDING if padding is None else padding
        self.rng = rng or random.Random()

    def layout(self, nodes: Sequence) -> LayoutResult:
        """
        Lay out nodes (anything with id, text, connections and prevalence).

        Returns:
            LayoutResult with positions per id, clusters with their anchor
            centres, and de-duplicated strong connections
        """
        if not nodes:
            return LayoutResult()

        clusters = find_connectivity_clusters(nodes)
        strategy = choose_strategy(len(clusters))
        anchors = self.anchors(strategy, len(clusters))

        by_id = {node.id: node for node in nodes}
        order = {node.id: index for index, node in enumerate(nodes)}
        positions: Dict[str, Position] = {}
        placed_clusters: List[ConnectivityCluster] = []

        for cluster, (center_x, center_y) in zip(clusters, anchors):
            members = [by_id[node_id] for node_id in cluster.thought_ids]
            members.sort(key=lambda n: (-n.prevalence, order[n.id]))
            self._place_cluster(members, center_x, center_y, strategy, len(clusters), positions)
            placed_clusters.append(cluster.model_copy(update={"center_x": center_x, "center_y": center_y}))

        logger.info(
            "Laid out %d nodes in %d clusters using %s strategy",
            len(nodes), len(clusters), strategy.value,
        )
        return LayoutResult(
            positions=positions,
            clusters=placed_clusters,
            strong_connections=strong_connections(nodes),
        )

    def anchors(self, strategy: LayoutStrategy, cluster_count: int) -> List[Tuple[float, float]]:
        w, h = self.width, self.height
        if strategy is LayoutStrategy.SINGLE:
            return [(w / 2, h / 2)]
        if strategy is LayoutStrategy.TWO:
            return [(w * 0.25, h / 2), (w * 0.75, h / 2)]
        if strategy is LayoutStrategy.QUADRANT:
            return [(w * 0.3, h * 0.3), (w * 0.7, h * 0.3), (w * 0.3, h * 0.7), (w * 0.7, h * 0.7)]

        cols, rows, cell_w, cell_h = self._grid(cluster_count)
        return [
            (self.padding + cell_w * (idx % cols + 0.5), self.padding + cell_h * (idx // cols + 0.5))
            for idx in range(cluster_count)
        ]

    def bands(self, strategy: LayoutStrategy, cluster_count: int = 1) -> StrategyBands:
        if strategy is not LayoutStrategy.GRID:
            return _FIXED_BANDS[strategy]
        _, _, cell_w, cell_h = self._grid(cluster_count)
        max_radius = min(cell_w, cell_h) * GRID_RING_FRACTION
        return StrategyBands(_GRID_NEIGHBOUR_BAND, DistanceBand(max_radius * 0.5, max_radius * 0.5))

    def _grid(self, cluster_count: int) -> Tuple[int, int, float, float]:
        cols = math.ceil(math.sqrt(cluster_count))
        rows = math.ceil(cluster_count / cols)
        cell_w = (self.width - self.padding * 2) / cols
        cell_h = (self.height - self.padding * 2) / rows
        return cols, rows, cell_w, cell_h

    def _place_cluster(
        self,
        members: List,
        center_x: float,
        center_y: float,
        strategy: LayoutStrategy,
        cluster_count: int,
        positions: Dict[str, Position],
    ) -> None:
        if not members:
            return

        bands = self.bands(strategy, cluster_count)
        clamp = strategy is LayoutStrategy.SINGLE

        positions[members[0].id] = Position(x=center_x, y=center_y)
        placed = {members[0].id}

        for node in members[1:]:
            neighbours = [conn for conn in node.connections if conn in placed]
            if neighbours:
                avg_x = sum(positions[conn].x for conn in neighbours) / len(neighbours)
                avg_y = sum(positions[conn].y for conn in neighbours) / len(neighbours)
                angle = self.rng.random() * math.pi * 2
                distance = bands.neighbour.sample(self.rng)
                x = avg_x + math.cos(angle) * distance
                y = avg_y + math.sin(angle) * distance
            else:
                angle = (len(placed) / len(members)) * math.pi * 2
                distance = bands.ring.sample(self.rng)
                x = center_x + math.cos(angle) * distance
                y = center_y + math.sin(angle) * distance

            if clamp:
                x, y = self._clamp(x, y)
            positions[node.id] = Position(x=x, y=y)
            placed.add(node.id)

    def _clamp(self, x: float, y: float) -> Tuple[float, float]:
        return (
            max(self.padding, min(self.width - self.padding, x)),
            max(self.padding, min(self.height - self.padding, y)),
        )
