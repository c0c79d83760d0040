import random
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(ROOT))

from constellation.models.providers import EmbeddingThought  # noqa: E402
from constellation.models.thought import Thought  # noqa: E402
from constellation.services import embeddings  # noqa: E402
from constellation.services.analyzer import ConstellationAnalyzer  # noqa: E402
from constellation.services.embeddings import (  # noqa: E402
    NOT_CONFIGURED_ERROR,
    EmbeddingClusterer,
    PolicyRoutedEmbeddingProvider,
    as_similarity_fn,
    cosine_similarity,
    dbscan_partition,
    label_cluster,
    parse_similarity_matrix,
    similarity_matrix,
)
from constellation.services.errors import EmbeddingProviderError  # noqa: E402
from constellation.services.llm.policies import RoutingPolicy  # noqa: E402
from constellation.services.llm.router import ProviderRouter  # noqa: E402
from constellation.services.llm.telemetry import TelemetryStore  # noqa: E402

VECTORS = {
    "morning run": [1.0, 0.0],
    "morning running shoes": [0.99, 0.1],
    "running before work": [0.98, 0.15],
    "tax paperwork": [0.0, 1.0],
}


class StubProvider:
    def __init__(self, vectors):
        self.vectors = vectors

    async def embed(self, text):
        return self.vectors[text]


class FailingProvider:
    async def embed(self, text):
        raise EmbeddingProviderError("no embedding model")


def test_cosine_similarity_edge_cases():
    assert cosine_similarity([1, 2], [1, 2]) == pytest.approx(1.0)
    assert cosine_similarity([1, 0], [0, 1]) == 0.0
    assert cosine_similarity([1, 0], [1, 0, 0]) == 0.0
    assert cosine_similarity([0, 0], [1, 1]) == 0.0


def test_label_cluster_uses_top_words():
    assert label_cluster(["Morning running routine", "running shoes for morning"]) == "Morning & Running & Routine"
    assert label_cluster(["a to", "it is"]) == "Related Thoughts"


def test_similarity_matrix_skips_empty_vectors():
    matrix = similarity_matrix({"a": [1.0, 0.0], "b": [], "c": [1.0, 0.0]})
    assert list(matrix) == ["a-c"]
    assert matrix["a-c"] == pytest.approx(1.0)


def test_dbscan_partition_separates_noise():
    clusters, noise = dbscan_partition({
        "a": [1.0, 0.0], "b": [0.99, 0.1], "c": [0.98, 0.15], "d": [0.0, 1.0],
    })
    assert clusters == [["a", "b", "c"]]
    assert noise == ["d"]


def test_pair_alone_is_not_dense_enough():
    clusters, noise = dbscan_partition({"a": [1.0, 0.0], "b": [0.99, 0.1]})
    assert clusters == []
    assert noise == ["a", "b"]


@pytest.mark.asyncio
async def test_embed_thoughts_builds_matrix_and_clusters():
    thoughts = [EmbeddingThought(id=f"t{i}", text=text) for i, text in enumerate(VECTORS)]
    thoughts.append(EmbeddingThought(id="blank", text="   "))

    result = await EmbeddingClusterer(provider=StubProvider(VECTORS)).embed_thoughts(thoughts)

    assert result.error is None
    assert result.embeddings["blank"] == []
    assert "t0-t1" in result.similarity_matrix
    assert not any("blank" in key for key in result.similarity_matrix)
    assert [(c.id, c.thought_ids) for c in result.clusters] == [(0, ["t0", "t1", "t2"]), (1, ["t3"])]
    assert result.clusters[0].label.startswith("Morning & Running")
    assert result.clusters[1].label == "Unclustered"


@pytest.mark.asyncio
async def test_provider_failure_returns_error_marker():
    thoughts = [EmbeddingThought(id="t0", text="morning run")]
    result = await EmbeddingClusterer(provider=FailingProvider()).embed_thoughts(thoughts)
    assert result.error == "no embedding model"
    assert result.embeddings == {}
    assert result.clusters == []


@pytest.mark.asyncio
async def test_unconfigured_provider(monkeypatch):
    monkeypatch.setattr(embeddings, "is_provider_configured", lambda kind: False)
    result = await EmbeddingClusterer().embed_thoughts([EmbeddingThought(id="t0", text="x")])
    assert result.error == NOT_CONFIGURED_ERROR


@pytest.mark.asyncio
async def test_empty_request_is_not_an_error():
    result = await EmbeddingClusterer(provider=StubProvider({})).embed_thoughts([])
    assert result.error is None
    assert result.clusters == []


def test_similarity_matrix_can_drive_the_analyzer():
    thoughts = [Thought(id="a", text="first"), Thought(id="b", text="second"), Thought(id="c", text="third")]
    similarity_fn = as_similarity_fn({("a", "b"): 0.9, ("a", "c"): 0.1, ("b", "c"): 0.3})

    analysis = ConstellationAnalyzer(0.5, similarity_fn=similarity_fn, rng=random.Random(0)).analyze(thoughts)

    by_id = {node.id: node for node in analysis.nodes}
    assert set(by_id) == {"a", "c"}
    assert by_id["a"].merged_ids == ["a", "b"]
    assert by_id["c"].connections == ["a"]


def test_similarity_fn_falls_back_for_missing_pairs():
    similarity_fn = as_similarity_fn({})
    same = Thought(id="x", text="plan the trip")
    assert similarity_fn(same, same.model_copy(update={"id": "y"})) == 1.0


def test_parse_matrix_handles_hyphenated_ids():
    ids = ["3f2a-91c0", "b7e1-0d44", "plain"]
    matrix = {"3f2a-91c0-b7e1-0d44": 0.8, "plain-3f2a-91c0": 0.4, "ghost-plain": 0.9}

    assert parse_similarity_matrix(matrix, ids) == {
        ("3f2a-91c0", "b7e1-0d44"): 0.8,
        ("plain", "3f2a-91c0"): 0.4,
    }


def test_parse_matrix_drops_ambiguous_keys():
    # "a-b" + "c" and "a" + "b-c" render to the same key
    pairs = parse_similarity_matrix({"a-b-c": 0.7}, ["a-b", "c", "a", "b-c"])
    assert pairs == {}


def test_wire_matrix_round_trips_through_ids():
    embeddings = {"n-1": [1.0, 0.0], "n-2": [1.0, 0.0]}
    pairs = parse_similarity_matrix(similarity_matrix(embeddings), list(embeddings))
    assert pairs == {("n-1", "n-2"): pytest.approx(1.0)}


class StubOllamaEmbeddings:
    def __init__(self):
        self.calls = []

    async def generate_embedding(self, text, model_name, timeout=None):
        self.calls.append((model_name, timeout))
        return {"success": True, "embedding": [0.5, 0.5], "dimensions": 2}


@pytest.mark.asyncio
async def test_routed_provider_uses_policy_timeout():
    client = StubOllamaEmbeddings()
    router = ProviderRouter({
        "embedding": RoutingPolicy(task_type="embedding", primary_provider="ollama.nomic-embed-text", timeout_ms=2500),
    })
    provider = PolicyRoutedEmbeddingProvider(router=router, ollama_client=client, telemetry_store=TelemetryStore())

    assert await provider.embed("text") == [0.5, 0.5]
    assert client.calls == [("nomic-embed-text", 2.5)]


@pytest.mark.asyncio
async def test_unregistered_embedding_provider_becomes_error_marker():
    router = ProviderRouter({"embedding": RoutingPolicy(task_type="embedding", primary_provider="openai.ada-002")})
    provider = PolicyRoutedEmbeddingProvider(
        router=router, ollama_client=StubOllamaEmbeddings(), telemetry_store=TelemetryStore()
    )

    result = await EmbeddingClusterer(provider=provider).embed_thoughts([EmbeddingThought(id="t0", text="x")])
    assert "openai.ada-002" in result.error
    assert result.embeddings == {}
