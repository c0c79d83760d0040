"""Narrative synthesis of a constellation through a policy-routed LLM."""

import json
import logging
import re
from textwrap import dedent
from typing import Optional, Protocol, Sequence, Tuple, runtime_checkable

from constellation.config.settings import is_provider_configured
from constellation.models.insights import InsightReport, PathQuestion
from constellation.models.node import Node
from constellation.models.providers import NarrativeRequest, NarrativeResult, NarrativeThought, PatternSummary
from constellation.services.errors import NarrativeGenerationError
from constellation.services.graph import prune_dangling
from constellation.services.insights import MAX_QUESTIONS, InsightGenerator
from constellation.services.llm.router import ProviderRouter, ProviderUnavailableError, call_with_fallback
from constellation.services.llm.telemetry import get_telemetry_store
from constellation.services.ollama_client import OllamaClient
from constellation.services.text import prevalence, word_frequency

logger = logging.getLogger(__name__)

NOT_CONFIGURED_ERROR = "Narrative provider not configured"
NARRATIVE_TASK = "narrative"

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


@runtime_checkable
class NarrativeGenerator(Protocol):
    """Anything that turns a prompt into raw model text."""

    async def generate(self, prompt: str) -> str:  # pragma: no cover - interface
        """Return the raw completion for ``prompt``."""


def build_narrative_prompt(request: NarrativeRequest) -> str:
    thoughts_list = "\n".join(
        f'- "{thought.text}" (connected to {len(thought.connections)} other thoughts)'
        for thought in request.thoughts
    )
    patterns_list = "\n".join(f"- {pattern.type.value}: {pattern.description}" for pattern in request.patterns)
    stats = request.stats

    # Interpolated after dedent so multi-line thought text cannot break the indentation
    template = dedent(
        """
        You are analyzing a personal knowledge network called a "thought constellation." The user has captured various thoughts and ideas, and you can see how they connect to each other.

        ## The Thoughts
        {thoughts}

        ## Detected Patterns
        {patterns}

        ## Network Statistics
        - Total thoughts: {total_thoughts}
        - Total connections: {total_connections:g}
        - Average connections per thought: {avg_connections:.1f}
        - Number of clusters: {clusters}
        - Isolated thoughts (no connections): {isolated}

        ## Your Task
        Provide a thoughtful analysis in two parts:

        ### Part 1: Synthesis (2-3 paragraphs)
        Write a narrative summary that:
        - Identifies the core themes and how they relate to each other
        - Highlights interesting patterns or unexpected connections you notice
        - Suggests what this constellation reveals about the person's thinking or interests
        - Points out any gaps or areas that might benefit from further exploration

        Use **bold** for key themes or important insights. Be conversational but insightful.

        ### Part 2: Questions (exactly 3)
        Generate 3 thought-provoking questions that could help the user:
        - Connect seemingly unrelated thoughts
        - Deepen their exploration of a cluster
        - Bridge isolated thoughts to the main network

        Format your response as JSON:
        {{
          "synthesis": "Your synthesis paragraphs here...",
          "questions": ["Question 1?", "Question 2?", "Question 3?"]
        }}
        """
    ).strip()
    return template.format(
        thoughts=thoughts_list,
        patterns=patterns_list,
        total_thoughts=stats.total_thoughts,
        total_connections=stats.total_connections,
        avg_connections=stats.avg_connections,
        clusters=stats.clusters,
        isolated=stats.isolated_count,
    )


def parse_narrative_response(text: str) -> NarrativeResult:
    """
    Pull ``{"synthesis", "questions"}`` out of a model answer.

    Models often wrap the JSON in prose or code fences, so the outermost
    brace span is parsed. Anything unparseable becomes the synthesis with no
    questions.
    """
    match = _JSON_OBJECT.search(text)
    if match:
        try:
            payload = json.loads(match.group(0))
        except json.JSONDecodeError:
            logger.debug("Narrative response contained malformed JSON, using raw text")
        else:
            if isinstance(payload, dict):
                questions = payload.get("questions") or []
                if not isinstance(questions, list):
                    questions = [questions]
                return NarrativeResult(
                    synthesis=str(payload.get("synthesis") or ""),
                    questions=[str(question) for question in questions if question],
                )
    return NarrativeResult(synthesis=text.strip(), questions=[])


class PolicyRoutedNarrativeGenerator:
    """Tries each provider of the narrative policy in order until one answers."""

    def __init__(
        self,
        router: Optional[ProviderRouter] = None,
        ollama_client: Optional[OllamaClient] = None,
        telemetry_store=None,
    ) -> None:
        self.router = router or ProviderRouter()
        self.ollama_client = ollama_client or OllamaClient()
        self.telemetry = telemetry_store or get_telemetry_store()

    async def generate(self, prompt: str) -> str:
        async def call(provider, timeout: float) -> Tuple[Optional[str], Optional[str]]:
            result = await self.ollama_client.generate_text(provider.model, prompt, max_tokens=1024, timeout=timeout)
            answer = str(result.get("response") or "").strip() if result.get("success") else ""
            if answer:
                return answer, None
            return None, result.get("error") or "empty response from provider"

        try:
            return await call_with_fallback(self.router, NARRATIVE_TASK, call, self.telemetry)
        except ProviderUnavailableError as error:
            raise NarrativeGenerationError(str(error)) from error


class NarrativeSynthesizer:
    """Optional LLM narrative layered over the templated insight report."""

    def __init__(
        self,
        generator: Optional[NarrativeGenerator] = None,
        insight_generator: Optional[InsightGenerator] = None,
        ollama_client: Optional[OllamaClient] = None,
    ) -> None:
        self._generator = generator
        self.insight_generator = insight_generator or InsightGenerator()
        self.ollama_client = ollama_client

    @property
    def generator(self) -> NarrativeGenerator:
        if self._generator is None:
            self._generator = PolicyRoutedNarrativeGenerator(ollama_client=self.ollama_client)
        return self._generator

    @staticmethod
    def build_request(nodes: Sequence[Node], report: InsightReport) -> NarrativeRequest:
        return NarrativeRequest(
            thoughts=[
                NarrativeThought(
                    id=node.id,
                    text=node.text,
                    connections=list(node.connections),
                    document_name=node.document_name,
                )
                for node in nodes
            ],
            patterns=[
                PatternSummary(type=pattern.type, description=pattern.description, count=len(pattern.thought_ids))
                for pattern in report.patterns
            ],
            stats=report.stats,
        )

    async def synthesize(self, request: NarrativeRequest) -> NarrativeResult:
        """Never raises: failures come back as ``NarrativeResult(error=...)``."""
        if self._generator is None and not is_provider_configured("narrative"):
            return NarrativeResult(error=NOT_CONFIGURED_ERROR)

        try:
            raw = await self.generator.generate(build_narrative_prompt(request))
        except NarrativeGenerationError as error:
            logger.warning("Narrative generation failed: %s", error)
            return NarrativeResult(error=str(error))

        return parse_narrative_response(raw)

    @staticmethod
    def combine(report: InsightReport, result: NarrativeResult) -> InsightReport:
        """Layer a successful narrative over the templated report; otherwise keep the report."""
        if result.error or not result.synthesis.strip():
            return report

        questions = [PathQuestion(question=question) for question in result.questions]
        questions.extend(report.questions)
        return report.model_copy(update={
            "synthesis": result.synthesis,
            "questions": questions[:MAX_QUESTIONS],
        })

    def templated(self, request: NarrativeRequest) -> NarrativeResult:
        """Local synthesis and questions computed from the request alone."""
        frequency = word_frequency(thought.text for thought in request.thoughts)
        nodes = prune_dangling([
            Node(
                id=thought.id,
                text=thought.text,
                document_name=thought.document_name or "",
                connections=list(thought.connections),
                prevalence=prevalence(thought.text, frequency),
            )
            for thought in request.thoughts
        ])
        return NarrativeResult(
            synthesis=self.insight_generator.synthesize(nodes, frequency),
            questions=[question.question for question in self.insight_generator.path_questions(nodes)],
        )

    async def narrate(self, request: NarrativeRequest) -> NarrativeResult:
        """Provider narrative when available, otherwise the templated one carrying the provider error."""
        result = await self.synthesize(request)
        if result.error is None and result.synthesis.strip():
            return result
        fallback = self.templated(request)
        return fallback.model_copy(update={"error": result.error or "empty narrative from provider"})
