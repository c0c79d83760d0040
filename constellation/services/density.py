"""
Density-based bubble sizing and per-tick easing.

Touch counts are always measured with ``base_radius`` so that a growing
radius cannot feed back into the next touch count. ``touch_count`` and
``radius`` are recomputed together on every call; nothing is cached
across moves.
"""

import math
from typing import List, Sequence

import numpy as np

from constellation.models.node import Node

MIN_BUBBLE_RADIUS = 97.5
MAX_BUBBLE_RADIUS = 195.0
PREVALENCE_RADIUS_SCALE = 29.25

MIN_MERGED_RADIUS = 156.0
MAX_MERGED_RADIUS = 292.5
MERGED_PREVALENCE_SCALE = 39.0

MIN_GROUP_RADIUS = 100.0
MAX_GROUP_RADIUS = 200.0
GROUP_MEMBER_SCALE = 15.0

# Factor applied when nodes are first built vs. while the view is live
INITIAL_DENSITY_FACTOR = 0.25
TICK_DENSITY_FACTOR = 0.15

EASING_SPEED = 0.1
SNAP_DISTANCE = 1.0


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def standalone_radius(prevalence: float) -> float:
    return _clamp(MIN_BUBBLE_RADIUS + prevalence * PREVALENCE_RADIUS_SCALE, MIN_BUBBLE_RADIUS, MAX_BUBBLE_RADIUS)


def merged_radius(total_prevalence: float) -> float:
    return _clamp(MIN_MERGED_RADIUS + total_prevalence * MERGED_PREVALENCE_SCALE, MIN_MERGED_RADIUS, MAX_MERGED_RADIUS)


def group_radius(member_count: int) -> float:
    return _clamp(MIN_GROUP_RADIUS + member_count * GROUP_MEMBER_SCALE, MIN_GROUP_RADIUS, MAX_GROUP_RADIUS)


def touch_counts(nodes: Sequence[Node]) -> List[int]:
    """Count, per node, the other nodes whose base circles overlap its own."""
    if not nodes:
        return []

    xs = np.array([node.x for node in nodes], dtype=float)
    ys = np.array([node.y for node in nodes], dtype=float)
    radii = np.array([node.base_radius or node.radius for node in nodes], dtype=float)

    distances = np.hypot(xs[:, None] - xs[None, :], ys[:, None] - ys[None, :])
    overlapping = distances < (radii[:, None] + radii[None, :])
    np.fill_diagonal(overlapping, False)
    return [int(count) for count in overlapping.sum(axis=1)]


def apply_density_sizing(nodes: Sequence[Node], density_factor: float = INITIAL_DENSITY_FACTOR) -> List[Node]:
    """
    Return new nodes with ``touch_count`` and ``radius`` recomputed.

    ``radius = base_radius * (1 + touch_count * density_factor)``; a node
    without a base radius adopts its current radius as the base.
    """
    counts = touch_counts(nodes)
    sized: List[Node] = []
    for node, count in zip(nodes, counts):
        base = node.base_radius or node.radius
        sized.append(node.model_copy(update={
            "base_radius": base,
            "touch_count": count,
            "radius": base * (1 + count * density_factor),
        }))
    return sized


def step_toward_target(node: Node, speed: float = EASING_SPEED) -> Node:
    """Move a node ``speed`` of the way to its layout target, snapping when within a pixel."""
    if node.target_x is None or node.target_y is None:
        return node

    dx = node.target_x - node.x
    dy = node.target_y - node.y
    if math.hypot(dx, dy) > SNAP_DISTANCE:
        return node.model_copy(update={"x": node.x + dx * speed, "y": node.y + dy * speed})
    return node.model_copy(update={"x": node.target_x, "y": node.target_y})


def tick(nodes: Sequence[Node], animate: bool = True) -> List[Node]:
    """One frame: ease toward layout targets (when organised), then re-size by density."""
    moved = [step_toward_target(node) for node in nodes] if animate else list(nodes)
    return apply_density_sizing(moved, density_factor=TICK_DENSITY_FACTOR)
