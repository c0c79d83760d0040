"""
Constellation session: single-owner state for one constellation view.

State is an immutable snapshot swapped wholesale on every change, so a
reader never observes a half-updated node list. A generation counter
increases whenever the input thoughts or merge threshold change; async
results computed for an older generation are discarded on arrival.
"""

import logging
import uuid
from dataclasses import dataclass, replace
from typing import Awaitable, Callable, FrozenSet, List, Optional, Sequence, Tuple

from constellation.config.settings import settings
from constellation.models.clusters import ConnectivityCluster
from constellation.models.insights import InsightReport
from constellation.models.layout import LayoutResult
from constellation.models.node import Node
from constellation.models.providers import NarrativeRequest, NarrativeResult
from constellation.models.thought import Thought
from constellation.services.analyzer import ConstellationAnalyzer
from constellation.services.density import group_radius, tick as density_tick
from constellation.services.errors import ConstellationInputError
from constellation.services.graph import dedupe_thoughts, find_connectivity_clusters
from constellation.services.insights import InsightGenerator, thought_text_index
from constellation.services.layout import LayoutEngine
from constellation.services.merge import TEXT_SEPARATOR
from constellation.services.narrative import NarrativeSynthesizer
from constellation.services.text import word_frequency

logger = logging.getLogger(__name__)

MANUAL_GROUP_DOCUMENT = "Manual Group"


@dataclass(frozen=True)
class ManualGroup:
    id: str
    parent_id: str
    child_ids: Tuple[str, ...]
    show_children: bool = False


@dataclass(frozen=True)
class ConstellationState:
    """Immutable snapshot of everything the view renders."""

    thoughts: Tuple[Thought, ...] = ()
    nodes: Tuple[Node, ...] = ()
    merge_threshold: float = 0.20
    generation: int = 0
    is_organized: bool = False
    clusters: Tuple[ConnectivityCluster, ...] = ()
    strong_connections: Tuple[Tuple[str, str], ...] = ()
    hidden: FrozenSet[str] = frozenset()
    groups: Tuple[ManualGroup, ...] = ()
    narrative: Optional[NarrativeResult] = None

    @property
    def visible_nodes(self) -> List[Node]:
        return [node for node in self.nodes if node.id not in self.hidden]


class ConstellationSession:
    """Event- and tick-driven owner of a ``ConstellationState``."""

    def __init__(
        self,
        analyzer_factory: Optional[Callable[[float], ConstellationAnalyzer]] = None,
        layout_engine: Optional[LayoutEngine] = None,
        insight_generator: Optional[InsightGenerator] = None,
        merge_threshold: Optional[float] = None,
    ) -> None:
        self._analyzer_factory = analyzer_factory or (lambda threshold: ConstellationAnalyzer(threshold))
        self.layout_engine = layout_engine or LayoutEngine()
        self.insight_generator = insight_generator or InsightGenerator()
        self._state = ConstellationState(merge_threshold=merge_threshold or settings.DEFAULT_MERGE_THRESHOLD)

    @property
    def state(self) -> ConstellationState:
        return self._state

    # -- input events -------------------------------------------------------

    def load(self, thoughts: Sequence[Thought]) -> ConstellationState:
        """Replace the input thoughts and rebuild nodes (graph, merge, density)."""
        unique = tuple(dedupe_thoughts(thoughts))
        return self._rebuild(unique, self._state.merge_threshold)

    def set_merge_threshold(self, threshold: float) -> ConstellationState:
        if not 0.0 < threshold < 1.0:
            raise ConstellationInputError(f"merge threshold must be in (0, 1), got {threshold}")
        return self._rebuild(self._state.thoughts, threshold)

    def _rebuild(self, thoughts: Tuple[Thought, ...], threshold: float) -> ConstellationState:
        analysis = self._analyzer_factory(threshold).analyze(thoughts)
        self._state = ConstellationState(
            thoughts=thoughts,
            nodes=tuple(analysis.nodes),
            merge_threshold=threshold,
            generation=self._state.generation + 1,
        )
        logger.debug("Session generation %d: %d nodes", self._state.generation, len(analysis.nodes))
        return self._state

    # -- per-frame ----------------------------------------------------------

    def tick(self) -> ConstellationState:
        """Ease toward layout targets (when organised) and re-apply density sizing."""
        nodes = density_tick(self._state.nodes, animate=self._state.is_organized)
        self._state = replace(self._state, nodes=tuple(nodes))
        return self._state

    # -- layout -------------------------------------------------------------

    def organize(self) -> ConstellationState:
        """Run the in-process layout engine and start easing toward its targets."""
        if not self._state.nodes:
            return self._state
        return self.apply_layout(self.layout_engine.layout(self._state.nodes))

    async def organize_with(self, layout_fn: Callable[[Sequence[Node]], Awaitable[LayoutResult]]) -> bool:
        """
        Delegate layout to an async provider (e.g. the organize endpoint).

        Returns False when the result arrived for an outdated generation and
        was ignored.
        """
        generation = self._state.generation
        result = await layout_fn(self._state.nodes)
        if generation != self._state.generation:
            logger.info("Discarding stale layout for generation %d", generation)
            return False
        self.apply_layout(result)
        return True

    def apply_layout(self, result: LayoutResult) -> ConstellationState:
        nodes = []
        for node in self._state.nodes:
            position = result.positions.get(node.id)
            nodes.append(node.model_copy(update={
                "target_x": position.x if position else node.x,
                "target_y": position.y if position else node.y,
            }))
        self._state = replace(
            self._state,
            nodes=tuple(nodes),
            is_organized=True,
            clusters=tuple(result.clusters),
            strong_connections=tuple(result.strong_connections),
        )
        return self._state

    def reset_layout(self) -> ConstellationState:
        nodes = tuple(node.model_copy(update={"target_x": None, "target_y": None}) for node in self._state.nodes)
        self._state = replace(self._state, nodes=nodes, is_organized=False, clusters=(), strong_connections=())
        return self._state

    # -- manual grouping ----------------------------------------------------

    def create_group(self, node_ids: Sequence[str]) -> Node:
        """Fold the selected nodes into a synthesized parent; children start hidden."""
        selected_ids = list(dict.fromkeys(node_ids))
        selected = [node for node in self._state.nodes if node.id in set(selected_ids)]
        if len(selected) < 2:
            raise ConstellationInputError("Select at least 2 bubbles to create a group")

        merged_ids: List[str] = []
        for node in selected:
            merged_ids.extend(thought_id for thought_id in node.source_ids if thought_id not in merged_ids)

        radius = group_radius(len(selected))
        parent = Node(
            id=f"group-parent-{uuid.uuid4().hex[:12]}",
            text=f"Group: {len(selected)} thoughts",
            color=selected[0].color,
            document_name=MANUAL_GROUP_DOCUMENT,
            x=sum(node.x for node in selected) / len(selected),
            y=sum(node.y for node in selected) / len(selected),
            prevalence=sum(node.prevalence for node in selected) / len(selected),
            base_radius=radius,
            radius=radius,
            merged_ids=merged_ids,
            synthesis=TEXT_SEPARATOR.join(node.text for node in selected),
            is_merged=True,
        )
        group = ManualGroup(
            id=f"group-{uuid.uuid4().hex[:12]}",
            parent_id=parent.id,
            child_ids=tuple(node.id for node in selected),
        )
        self._state = replace(
            self._state,
            nodes=(*self._state.nodes, parent),
            groups=(*self._state.groups, group),
            hidden=self._state.hidden | set(group.child_ids),
        )
        logger.info("Created manual group %s with %d children", group.id, len(group.child_ids))
        return parent

    def toggle_group(self, parent_id: str) -> ConstellationState:
        """Show or hide a group's children (the click behaviour of a group parent)."""
        groups = []
        hidden = set(self._state.hidden)
        found = False
        for group in self._state.groups:
            if group.parent_id == parent_id:
                found = True
                group = replace(group, show_children=not group.show_children)
                if group.show_children:
                    hidden.difference_update(group.child_ids)
                else:
                    hidden.update(group.child_ids)
            groups.append(group)
        if not found:
            raise ConstellationInputError(f"Unknown group parent: {parent_id}")
        self._state = replace(self._state, groups=tuple(groups), hidden=frozenset(hidden))
        return self._state

    def clear_hidden(self) -> ConstellationState:
        self._state = replace(self._state, hidden=frozenset())
        return self._state

    # -- insights -----------------------------------------------------------

    def insights(self) -> InsightReport:
        """
        Recompute insights from the current nodes (density changes every tick).

        A narrative stored by ``refresh_narrative`` replaces the templated
        synthesis and leads the questions.
        """
        report = self._templated_insights()
        if self._state.narrative is not None:
            report = NarrativeSynthesizer.combine(report, self._state.narrative)
        return report

    def _templated_insights(self) -> InsightReport:
        state = self._state
        nodes = list(state.nodes)
        frequency = word_frequency(thought.text for thought in state.thoughts)
        return self.insight_generator.generate(
            nodes,
            frequency,
            thought_texts=thought_text_index(state.thoughts),
            cluster_count=len(find_connectivity_clusters(nodes)),
        )

    def narrative_request(self) -> NarrativeRequest:
        return NarrativeSynthesizer.build_request(self._state.nodes, self._templated_insights())

    async def refresh_narrative(
        self, narrate: Callable[[NarrativeRequest], Awaitable[NarrativeResult]]
    ) -> Optional[NarrativeResult]:
        """
        Ask an external narrator (e.g. ``NarrativeSynthesizer.synthesize``)
        for a synthesis of the current state.

        The answer is stored only if the input did not change while waiting.
        """
        generation = self._state.generation
        result = await narrate(self.narrative_request())
        if generation != self._state.generation:
            logger.info("Discarding stale narrative for generation %d", generation)
            return None
        self._state = replace(self._state, narrative=result)
        return result
