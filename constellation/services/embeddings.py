"""
Embedding-based semantic clustering.

Optional alternative to lexical similarity: each thought is embedded by the
provider chosen by the ``embedding`` routing policy, pairwise cosine
similarities are collected into a matrix keyed ``"id1-id2"``, and DBSCAN
groups the thoughts. Provider problems never raise out of
``EmbeddingClusterer.embed_thoughts``; they come back as ``error`` with
empty collections so callers keep the lexical path.
"""

import logging
from collections import Counter
from typing import Dict, List, Mapping, Optional, Protocol, Sequence, Tuple, runtime_checkable

import numpy as np
from sklearn.cluster import DBSCAN

from constellation.config.settings import is_provider_configured
from constellation.models.providers import EmbeddingResult, EmbeddingThought, SemanticCluster
from constellation.services.errors import EmbeddingProviderError
from constellation.services.graph import SimilarityFn, lexical_similarity
from constellation.services.llm.router import ProviderRouter, ProviderUnavailableError, call_with_fallback
from constellation.services.llm.telemetry import get_telemetry_store
from constellation.services.ollama_client import OllamaClient

logger = logging.getLogger(__name__)

EMBEDDING_TASK = "embedding"
NOT_CONFIGURED_ERROR = "Embedding provider not configured"

# Two thoughts are neighbours when cosine similarity >= 1 - eps
DBSCAN_EPS = 0.3
# Neighbours a thought needs (itself excluded) to seed a cluster
DBSCAN_MIN_NEIGHBOURS = 2

DEFAULT_CLUSTER_LABEL = "Related Thoughts"
NOISE_CLUSTER_LABEL = "Unclustered"
LABEL_MIN_WORD_LENGTH = 4
LABEL_WORDS = 3
LABEL_STOPWORDS = frozenset({
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of",
    "is", "are", "was", "were", "be", "been", "have", "has", "do", "does",
    "this", "that", "it", "i", "you", "we", "they", "my", "your", "our",
})


@runtime_checkable
class EmbeddingProvider(Protocol):
    async def embed(self, text: str) -> List[float]:  # pragma: no cover - interface
        """Return the embedding vector for ``text``."""


class PolicyRoutedEmbeddingProvider:
    """Embeds text with the first provider of the embedding policy that answers."""

    def __init__(
        self,
        router: Optional[ProviderRouter] = None,
        ollama_client: Optional[OllamaClient] = None,
        telemetry_store=None,
    ) -> None:
        self.router = router or ProviderRouter()
        self.ollama_client = ollama_client or OllamaClient()
        self.telemetry = telemetry_store or get_telemetry_store()

    async def embed(self, text: str) -> List[float]:
        async def call(provider, timeout: float) -> Tuple[Optional[List[float]], Optional[str]]:
            result = await self.ollama_client.generate_embedding(text, provider.model, timeout=timeout)
            if result.get("success") and result.get("dimensions"):
                return [float(value) for value in result["embedding"]], None
            return None, result.get("error") or "empty embedding from provider"

        try:
            return await call_with_fallback(self.router, EMBEDDING_TASK, call, self.telemetry)
        except ProviderUnavailableError as error:
            raise EmbeddingProviderError(str(error)) from error


def cosine_similarity(vec1: Sequence[float], vec2: Sequence[float]) -> float:
    """Cosine of the angle between two vectors; 0.0 for mismatched or zero vectors."""
    a = np.asarray(vec1, dtype=float)
    b = np.asarray(vec2, dtype=float)
    if a.shape != b.shape or a.size == 0:
        return 0.0
    magnitude = np.linalg.norm(a) * np.linalg.norm(b)
    if magnitude == 0:
        return 0.0
    return float(np.dot(a, b) / magnitude)


def label_cluster(texts: Sequence[str]) -> str:
    """Title-cased top words joined with " & "."""
    counts: Counter = Counter()
    for text in texts:
        counts.update(
            word for word in text.lower().split()
            if len(word) >= LABEL_MIN_WORD_LENGTH and word not in LABEL_STOPWORDS
        )
    if not counts:
        return DEFAULT_CLUSTER_LABEL
    # Counter.most_common keeps first-seen order among equal counts
    return " & ".join(word[:1].upper() + word[1:] for word, _ in counts.most_common(LABEL_WORDS))


SimilarityPairs = Dict[Tuple[str, str], float]


def pairwise_similarities(embeddings: Mapping[str, Sequence[float]]) -> SimilarityPairs:
    """Cosine similarity per (earlier id, later id) pair, skipping empty vectors."""
    ids = [thought_id for thought_id, vector in embeddings.items() if len(vector) > 0]
    pairs: SimilarityPairs = {}
    for i, id1 in enumerate(ids):
        for id2 in ids[i + 1:]:
            pairs[(id1, id2)] = cosine_similarity(embeddings[id1], embeddings[id2])
    return pairs


def similarity_matrix(embeddings: Mapping[str, Sequence[float]]) -> Dict[str, float]:
    """Wire form of ``pairwise_similarities``: keys are ``"id1-id2"``."""
    return {f"{id1}-{id2}": value for (id1, id2), value in pairwise_similarities(embeddings).items()}


def parse_similarity_matrix(matrix: Mapping[str, float], ids: Sequence[str]) -> SimilarityPairs:
    """
    Resolve ``"id1-id2"`` keys back to id pairs.

    Ids may contain hyphens (UUIDs do), so a key is split at every hyphen
    and kept only when exactly one split names two known ids. Ambiguous and
    unknown keys are dropped; those pairs fall back to lexical similarity.
    """
    known = set(ids)
    pairs: SimilarityPairs = {}
    for key, value in matrix.items():
        splits = [
            (key[:index], key[index + 1:])
            for index, char in enumerate(key)
            if char == "-" and key[:index] in known and key[index + 1:] in known
        ]
        if len(splits) == 1:
            pairs[splits[0]] = value
        else:
            logger.debug("Ignoring similarity key %r (%d matching id pairs)", key, len(splits))
    return pairs


def dbscan_partition(
    embeddings: Mapping[str, Sequence[float]],
    eps: float = DBSCAN_EPS,
    min_neighbours: int = DBSCAN_MIN_NEIGHBOURS,
) -> Tuple[List[List[str]], List[str]]:
    """Split non-empty embeddings into DBSCAN clusters and noise, both in input order."""
    ids = [thought_id for thought_id, vector in embeddings.items() if len(vector) > 0]
    if not ids:
        return [], []

    vectors = [embeddings[thought_id] for thought_id in ids]
    distances = np.zeros((len(ids), len(ids)))
    for i in range(len(ids)):
        for j in range(i + 1, len(ids)):
            distance = max(0.0, 1.0 - cosine_similarity(vectors[i], vectors[j]))
            distances[i, j] = distances[j, i] = distance

    # sklearn counts the point itself towards min_samples
    labels = DBSCAN(eps=eps, min_samples=min_neighbours + 1, metric="precomputed").fit_predict(distances)

    clusters: Dict[int, List[str]] = {}
    noise: List[str] = []
    for thought_id, label in zip(ids, labels):
        if label < 0:
            noise.append(thought_id)
        else:
            clusters.setdefault(int(label), []).append(thought_id)
    return [clusters[label] for label in sorted(clusters)], noise


class EmbeddingClusterer:
    """Semantic clustering of thoughts through an embedding provider."""

    def __init__(
        self,
        provider: Optional[EmbeddingProvider] = None,
        eps: float = DBSCAN_EPS,
        min_neighbours: int = DBSCAN_MIN_NEIGHBOURS,
        ollama_client: Optional[OllamaClient] = None,
    ) -> None:
        self._provider = provider
        self.eps = eps
        self.min_neighbours = min_neighbours
        self.ollama_client = ollama_client

    @property
    def provider(self) -> EmbeddingProvider:
        if self._provider is None:
            self._provider = PolicyRoutedEmbeddingProvider(ollama_client=self.ollama_client)
        return self._provider

    async def embed_thoughts(self, thoughts: Sequence[EmbeddingThought]) -> EmbeddingResult:
        if self._provider is None and not is_provider_configured("embedding"):
            return EmbeddingResult(error=NOT_CONFIGURED_ERROR)
        if not thoughts:
            return EmbeddingResult()

        embeddings: Dict[str, List[float]] = {}
        try:
            for thought in thoughts:
                if not thought.text.strip():
                    embeddings[thought.id] = []
                    continue
                embeddings[thought.id] = await self.provider.embed(thought.text)
        except EmbeddingProviderError as error:
            logger.warning("Embedding provider failed after %d thoughts: %s", len(embeddings), error)
            return EmbeddingResult(error=str(error))

        texts = {thought.id: thought.text for thought in thoughts}
        return EmbeddingResult(
            embeddings=embeddings,
            similarity_matrix=similarity_matrix(embeddings),
            clusters=self.cluster(embeddings, texts),
        )

    def cluster(self, embeddings: Mapping[str, Sequence[float]], texts: Mapping[str, str]) -> List[SemanticCluster]:
        groups, noise = dbscan_partition(embeddings, self.eps, self.min_neighbours)
        clusters = [
            SemanticCluster(
                id=index,
                thought_ids=members,
                label=label_cluster([texts[thought_id] for thought_id in members if texts.get(thought_id)]),
            )
            for index, members in enumerate(groups)
        ]
        if noise:
            clusters.append(SemanticCluster(id=len(clusters), thought_ids=noise, label=NOISE_CLUSTER_LABEL))
        logger.debug("Embedding clustering: %d clusters, %d unclustered", len(groups), len(noise))
        return clusters


def as_similarity_fn(
    pairs: Mapping[Tuple[str, str], float],
    fallback: SimilarityFn = lexical_similarity,
) -> SimilarityFn:
    """
    Similarity function backed by embedding similarities keyed by id pair.

    Pairs missing from ``pairs`` (e.g. a thought with empty text) use
    ``fallback``.
    """

    def similarity_fn(a, b) -> float:
        value = pairs.get((a.id, b.id))
        if value is None:
            value = pairs.get((b.id, a.id))
        if value is None:
            return fallback(a, b)
        return value

    return similarity_fn
