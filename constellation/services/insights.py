"""
Insight generation for the constellation side panel.

Everything here is a deterministic function of the node set (post-merge,
post-density) and the batch word frequency: patterns, the synthesis
paragraph, suggestions and path questions. No randomness.
"""

import logging
from typing import Dict, List, Mapping, Optional, Sequence

from constellation.models.clusters import DensityCluster
from constellation.models.insights import (
    InsightReport,
    NetworkStats,
    PathQuestion,
    Pattern,
    PatternType,
)
from constellation.models.node import Node
from constellation.services.text import preview, top_words

logger = logging.getLogger(__name__)

DENSE_TOUCH_COUNT = 3
HUB_MIN_CONNECTIONS = 3
MAX_QUESTIONS = 5
LARGE_GROUP_SIZE = 5

EMPTY_SYNTHESIS = (
    "Start adding thoughts to see patterns emerge and understand the connections between your ideas."
)
DEFAULT_SUGGESTION = "✨ Your thought constellation is taking shape. Keep adding and connecting ideas!"


def _plural(count: int, singular: str = "", plural: str = "s") -> str:
    return singular if count == 1 else plural


def find_hubs(nodes: Sequence[Node]) -> List[Node]:
    hubs = [node for node in nodes if len(node.connections) >= HUB_MIN_CONNECTIONS]
    return sorted(hubs, key=lambda n: len(n.connections), reverse=True)


def find_isolated(nodes: Sequence[Node]) -> List[Node]:
    return [node for node in nodes if node.is_isolated]


def find_density_clusters(nodes: Sequence[Node]) -> List[DensityCluster]:
    """Nodes overlapping at least three others, densest first."""
    dense = [node for node in nodes if node.touch_count >= DENSE_TOUCH_COUNT]
    dense.sort(key=lambda n: n.touch_count, reverse=True)
    return [
        DensityCluster(node_id=node.id, touch_count=node.touch_count, label=preview(node.text, 40))
        for node in dense
    ]


def network_stats(nodes: Sequence[Node], cluster_count: int = 0) -> NetworkStats:
    total = sum(len(node.connections) for node in nodes) / 2
    return NetworkStats(
        total_thoughts=len(nodes),
        total_connections=total,
        avg_connections=total / len(nodes) if nodes else 0.0,
        clusters=cluster_count,
        isolated_count=len(find_isolated(nodes)),
        merged_count=sum(1 for node in nodes if node.is_merged),
    )


class InsightGenerator:
    """Turns graph, merge and density statistics into human-readable insights."""

    def detect_patterns(self, nodes: Sequence[Node], frequency: Mapping[str, int]) -> List[Pattern]:
        patterns: List[Pattern] = []
        if not nodes:
            return patterns

        dense = [node for node in nodes if node.touch_count >= DENSE_TOUCH_COUNT]
        if dense:
            count = len(dense)
            patterns.append(Pattern(
                type=PatternType.CLUSTER,
                title=f"{count} Dense Clusters",
                description=(
                    f"These {count} thought{'s are' if count > 1 else ' is'} in dense clusters (3+ overlapping). "
                    "They represent your most interconnected thinking areas."
                ),
                thought_ids=[node.id for node in dense],
            ))

        hubs = find_hubs(nodes)
        if hubs:
            hub_preview = preview(hubs[0].text, 50) or "Key thought"
            others = len(hubs) - 1
            patterns.append(Pattern(
                type=PatternType.HUB,
                title=f"{len(hubs)} Central Idea{_plural(len(hubs))}",
                description=(
                    f'"{hub_preview}" and {others} other{"s" if len(hubs) > 2 else ""} connect to many thoughts. '
                    "Focus here to understand your core concepts."
                ),
                thought_ids=[node.id for node in hubs],
            ))

        isolated = find_isolated(nodes)
        if isolated:
            patterns.append(Pattern(
                type=PatternType.ISOLATED,
                title=f"{len(isolated)} Standalone Idea{_plural(len(isolated))}",
                description=(
                    "These thoughts don't connect to others yet. Consider how they might relate "
                    "to your main themes or if they represent new directions."
                ),
                thought_ids=[node.id for node in isolated],
            ))

        words = top_words(frequency, min_count=2, limit=5)
        if words:
            listed = ", ".join(f'"{word}" ({count}×)' for word, count in words)
            patterns.append(Pattern(
                type=PatternType.THEME,
                title="Recurring Themes",
                description=f"Words appearing most: {listed}. These suggest your focus areas.",
                thought_ids=[],
            ))

        return patterns

    def synthesize(self, nodes: Sequence[Node], frequency: Mapping[str, int]) -> str:
        """Templated narrative paragraph; identical input gives identical text."""
        if not nodes:
            return EMPTY_SYNTHESIS

        count = len(nodes)
        hubs = find_hubs(nodes)
        isolated = find_isolated(nodes)
        dense = [node for node in nodes if node.touch_count >= DENSE_TOUCH_COUNT]
        merged = [node for node in nodes if node.is_merged]
        words = top_words(frequency, min_count=2, limit=5)

        parts: List[str] = []

        if count < 5:
            parts.append(f"You're exploring {count} thought{_plural(count)}. ")
        elif count < 15:
            if dense:
                parts.append(f"Your network contains {count} thoughts with {len(dense)} forming dense clusters. ")
            else:
                parts.append(f"Your network contains {count} thoughts that are beginning to organize. ")
        else:
            opening = f"You've built a constellation of {count} thoughts"
            if len(dense) > 5:
                opening += f", with {len(dense)} clustering densely - showing well-developed thinking areas. "
            elif merged:
                opening += f" including {len(merged)} merged clusters of related ideas. "
            else:
                opening += " forming an interconnected web. "
            parts.append(opening)

        themes = [word for word, _ in words[:3]]
        if len(themes) == 1:
            parts.append(f'**Key Focus: "{themes[0]}"** dominates your thinking. ')
        elif len(themes) == 2:
            parts.append(f'**Main Themes: "{themes[0]}" and "{themes[1]}"** are your focal points. ')
        elif themes:
            parts.append(
                f'**Core Themes: "{themes[0]}", "{themes[1]}", and "{themes[2]}"** form your intellectual landscape. '
            )

        if dense:
            largest = max(dense, key=lambda n: n.touch_count)
            if largest.text:
                parts.append(
                    f'Your densest cluster around "{preview(largest.text, 40)}" '
                    f"(touching {largest.touch_count} thoughts) represents your most developed thinking. "
                )
            else:
                parts.append(
                    f"You have {len(dense)} dense cluster{_plural(len(dense))} where ideas overlap heavily. "
                )

        if hubs:
            top_hub = hubs[0]
            hub_text = f'"{preview(top_hub.text, 35)}"' if top_hub.text else "One thought"
            degree = len(top_hub.connections)
            parts.append(f"**Central Connector:** {hub_text} links to {degree} other thoughts - ")
            if degree >= 5:
                parts.append("this is a foundational concept worth exploring deeper. ")
            else:
                parts.append("examine this hub to understand your conceptual structure. ")

        stats = network_stats(nodes)
        if len(isolated) > count * 0.4:
            parts.append(
                f"⚠️ {len(isolated)} thoughts remain isolated. **Action:** Try connecting these to your "
                "main themes or consider if they represent new thinking directions. "
            )
        elif stats.avg_connections > 2:
            parts.append("✨ Strong network cohesion indicates well-integrated thinking. ")
        else:
            parts.append("Connections are forming naturally. ")

        parts.append(self._next_step(hubs, isolated, dense, words))
        return "".join(parts)

    @staticmethod
    def _next_step(hubs, isolated, dense, words) -> str:
        if len(hubs) >= 2 and isolated:
            return (
                f"**Next:** Bridge your {len(isolated)} standalone ideas to your {len(hubs)} hubs "
                "to create a more unified understanding."
            )
        if dense and len(isolated) > 5:
            return (
                "**Next:** Connect isolated thoughts to existing clusters or let them form new clusters "
                "as your thinking expands."
            )
        if len(words) > 2:
            return (
                f'**Next:** Explore how "{words[0][0]}" and "{words[1][0]}" relate to deepen your '
                "thematic understanding."
            )
        return "**Next:** Continue adding thoughts to reveal deeper patterns and connections."

    def suggest(self, nodes: Sequence[Node], frequency: Mapping[str, int]) -> List[str]:
        """Independent threshold checks; several may fire at once."""
        if not nodes:
            return []

        suggestions: List[str] = []
        isolated = find_isolated(nodes)
        hubs = find_hubs(nodes)

        if len(isolated) > len(nodes) * 0.3:
            suggestions.append("🔗 Many thoughts are isolated. Try connecting related ideas to see clearer patterns.")

        if hubs and isolated:
            suggestions.append(
                f"💡 Explore how your standalone ideas relate to your {len(hubs)} central concept{_plural(len(hubs))}."
            )

        if len(nodes) < 10:
            suggestions.append("📝 Add more thoughts to reveal deeper patterns and connections.")

        if len(hubs) >= 2:
            suggestions.append(
                f"🎯 You have {len(hubs)} strong themes emerging. Consider how they might connect to each other."
            )

        frequent = top_words(frequency, min_count=3, limit=3)
        if frequent:
            word, count = frequent[0]
            suggestions.append(f'🔍 "{word}" appears {count} times. This seems to be a central focus.')

        if not suggestions:
            suggestions.append(DEFAULT_SUGGESTION)
        return suggestions

    def path_questions(
        self,
        nodes: Sequence[Node],
        thought_texts: Optional[Mapping[str, str]] = None,
    ) -> List[PathQuestion]:
        """
        Questions about merge groups, the first isolated node and the two
        largest groups, capped at five in generation order.
        """
        texts: Mapping[str, str] = thought_texts or {}
        questions: List[PathQuestion] = []
        groups = [node for node in nodes if node.merged_ids and len(node.merged_ids) > 1]

        for group in groups:
            size = len(group.merged_ids)
            theme = self._theme(group, "this cluster")
            member_texts = [texts.get(thought_id, "") for thought_id in group.merged_ids]
            member_texts = [text for text in member_texts if text][:3]

            if size >= LARGE_GROUP_SIZE:
                questions.append(PathQuestion(
                    question=f"What is the core insight connecting your {size} thoughts about {theme}?",
                    related_thoughts=list(group.merged_ids),
                ))
                questions.append(PathQuestion(
                    question=f"How would you prioritize these {theme} ideas - which should you act on first?",
                    related_thoughts=list(group.merged_ids),
                ))
            else:
                questions.append(PathQuestion(
                    question=(
                        f"You have {size} overlapping thoughts about {theme}. "
                        "What pattern or solution are they pointing toward?"
                    ),
                    related_thoughts=list(group.merged_ids),
                ))

            if len(member_texts) >= 2:
                questions.append(PathQuestion(
                    question=(
                        f'These thoughts seem related: "{member_texts[0][:40]}..." and '
                        f'"{member_texts[1][:40]}...". What\'s the bridge between them?'
                    ),
                    related_thoughts=list(group.merged_ids[:2]),
                ))

        isolated = find_isolated(nodes)
        if isolated:
            first = isolated[0]
            source_id = first.source_ids[0]
            text = texts.get(source_id) or first.text
            if text:
                questions.append(PathQuestion(
                    question=(
                        f'"{text[:50]}..." stands alone. Does this connect to any of your main themes, '
                        "or is it a new direction?"
                    ),
                    related_thoughts=first.source_ids,
                ))

        if len(groups) >= 2:
            largest = sorted(groups, key=lambda n: len(n.merged_ids), reverse=True)[:2]
            first_theme = self._theme(largest[0], "Cluster 1")
            second_theme = self._theme(largest[1], "Cluster 2")
            questions.append(PathQuestion(
                question=(
                    f"Your thinking has two major threads: {first_theme} and {second_theme}. "
                    "How do these themes relate to each other?"
                ),
                related_thoughts=[*largest[0].merged_ids, *largest[1].merged_ids],
            ))

        return questions[:MAX_QUESTIONS]

    @staticmethod
    def _theme(node: Node, fallback: str) -> str:
        return ", ".join(node.themes) if node.themes else fallback

    def generate(
        self,
        nodes: Sequence[Node],
        frequency: Mapping[str, int],
        thought_texts: Optional[Mapping[str, str]] = None,
        cluster_count: int = 0,
    ) -> InsightReport:
        report = InsightReport(
            word_frequency=dict(frequency),
            patterns=self.detect_patterns(nodes, frequency),
            density_clusters=find_density_clusters(nodes),
            synthesis=self.synthesize(nodes, frequency),
            suggestions=self.suggest(nodes, frequency),
            questions=self.path_questions(nodes, thought_texts),
            stats=network_stats(nodes, cluster_count),
        )
        logger.debug(
            "Generated %d patterns, %d suggestions, %d questions",
            len(report.patterns), len(report.suggestions), len(report.questions),
        )
        return report


def thought_text_index(thoughts: Sequence) -> Dict[str, str]:
    return {thought.id: thought.text for thought in thoughts}
