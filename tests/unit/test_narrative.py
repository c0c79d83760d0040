import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(ROOT))

from constellation.models.insights import InsightReport, NetworkStats, PathQuestion, PatternType  # noqa: E402
from constellation.models.providers import (  # noqa: E402
    NarrativeRequest,
    NarrativeResult,
    NarrativeThought,
    PatternSummary,
)
from constellation.services import narrative  # noqa: E402
from constellation.services.errors import NarrativeGenerationError  # noqa: E402
from constellation.services.llm.policies import RoutingPolicy  # noqa: E402
from constellation.services.llm.provider_registry import get_provider  # noqa: E402
from constellation.services.llm.router import ProviderRouter  # noqa: E402
from constellation.services.narrative import (  # noqa: E402
    NOT_CONFIGURED_ERROR,
    NarrativeSynthesizer,
    PolicyRoutedNarrativeGenerator,
    build_narrative_prompt,
    parse_narrative_response,
)


def make_request():
    return NarrativeRequest(
        thoughts=[
            NarrativeThought(id="t1", text="I love hiking mountains", connections=["t2"]),
            NarrativeThought(id="t2", text="I love hiking trails", connections=["t1"]),
        ],
        patterns=[PatternSummary(type=PatternType.THEME, description="Words appearing most: hiking", count=0)],
        stats=NetworkStats(total_thoughts=2, total_connections=1, avg_connections=0.5, clusters=1),
    )


class StubGenerator:
    def __init__(self, response):
        self.response = response
        self.prompts = []

    async def generate(self, prompt):
        self.prompts.append(prompt)
        return self.response


class FailingGenerator:
    async def generate(self, prompt):
        raise NarrativeGenerationError("provider offline")


class StubRouter:
    def __init__(self, retry_limit=0, timeout_ms=60_000):
        self._policy = RoutingPolicy(
            task_type="narrative",
            primary_provider="ollama.qwen2.5-7b",
            fallback_providers=["ollama.llama3.2-3b"],
            timeout_ms=timeout_ms,
            retry_limit=retry_limit,
        )

    def policy(self, task_type):
        assert task_type == "narrative"
        return self._policy

    def candidates(self, task_type):
        assert task_type == "narrative"
        return [get_provider("ollama.qwen2.5-7b"), get_provider("ollama.llama3.2-3b")]


class StubOllamaClient:
    def __init__(self, responses):
        self.responses = dict(responses)
        self.calls = []
        self.timeouts = []

    async def generate_text(self, model_name, prompt, **kwargs):
        self.calls.append(model_name)
        self.timeouts.append(kwargs.get("timeout"))
        return self.responses[model_name]


class RecordingTelemetry:
    def __init__(self):
        self.success_records = []
        self.failure_records = []

    def record_success(self, provider, latency_ms):
        self.success_records.append(provider)

    def record_failure(self, provider, latency_ms, error):
        self.failure_records.append((provider, error))


def test_prompt_lists_thoughts_patterns_and_stats():
    prompt = build_narrative_prompt(make_request())

    assert '- "I love hiking mountains" (connected to 1 other thoughts)' in prompt
    assert "- theme: Words appearing most: hiking" in prompt
    assert "- Total connections: 1\n" in prompt
    assert "- Average connections per thought: 0.5" in prompt
    assert '"questions": ["Question 1?", "Question 2?", "Question 3?"]' in prompt


def test_parse_structured_payload_inside_prose():
    text = 'Sure!\n```json\n{"synthesis": "**Hiking** links both.", "questions": ["Why hike?", "Where next?"]}\n```'
    result = parse_narrative_response(text)
    assert result.synthesis == "**Hiking** links both."
    assert result.questions == ["Why hike?", "Where next?"]
    assert result.error is None


def test_parse_free_text_becomes_synthesis():
    result = parse_narrative_response("  Your thoughts circle around the outdoors.  ")
    assert result.synthesis == "Your thoughts circle around the outdoors."
    assert result.questions == []


def test_parse_malformed_json_keeps_raw_text():
    result = parse_narrative_response("{synthesis: unquoted}")
    assert result.synthesis == "{synthesis: unquoted}"
    assert result.questions == []


@pytest.mark.asyncio
async def test_synthesize_with_generator():
    generator = StubGenerator('{"synthesis": "Outdoors.", "questions": ["Q1?"]}')
    result = await NarrativeSynthesizer(generator=generator).synthesize(make_request())

    assert result == NarrativeResult(synthesis="Outdoors.", questions=["Q1?"])
    assert "thought constellation" in generator.prompts[0]


@pytest.mark.asyncio
async def test_synthesize_reports_provider_failure():
    result = await NarrativeSynthesizer(generator=FailingGenerator()).synthesize(make_request())
    assert result.error == "provider offline"
    assert result.synthesis == ""
    assert result.questions == []


@pytest.mark.asyncio
async def test_synthesize_without_configured_provider(monkeypatch):
    monkeypatch.setattr(narrative, "is_provider_configured", lambda kind: False)
    result = await NarrativeSynthesizer().synthesize(make_request())
    assert result.error == NOT_CONFIGURED_ERROR


@pytest.mark.asyncio
async def test_narrate_falls_back_to_templated_text():
    result = await NarrativeSynthesizer(generator=FailingGenerator()).narrate(make_request())
    assert result.error == "provider offline"
    assert result.synthesis.startswith("You're exploring 2 thoughts.")


def test_combine_puts_provider_questions_first():
    report = InsightReport(
        synthesis="templated",
        questions=[PathQuestion(question=f"local {i}") for i in range(3)],
    )
    result = NarrativeResult(synthesis="provider", questions=["p1", "p2", "p3"])

    combined = NarrativeSynthesizer.combine(report, result)
    assert combined.synthesis == "provider"
    assert [q.question for q in combined.questions] == ["p1", "p2", "p3", "local 0", "local 1"]


def test_combine_keeps_report_on_error():
    report = InsightReport(synthesis="templated")
    assert NarrativeSynthesizer.combine(report, NarrativeResult(error="boom")) is report


@pytest.mark.asyncio
async def test_routed_generator_falls_back_to_next_provider():
    client = StubOllamaClient({
        "qwen2.5:7b": {"success": False, "error": "model not loaded"},
        "llama3.2:3b": {"success": True, "response": "  fallback answer "},
    })
    telemetry = RecordingTelemetry()
    generator = PolicyRoutedNarrativeGenerator(router=StubRouter(), ollama_client=client, telemetry_store=telemetry)

    assert await generator.generate("prompt") == "fallback answer"
    assert client.calls == ["qwen2.5:7b", "llama3.2:3b"]
    assert telemetry.failure_records == [("ollama.qwen2.5-7b", "model not loaded")]
    assert telemetry.success_records == ["ollama.llama3.2-3b"]


@pytest.mark.asyncio
async def test_routed_generator_raises_when_all_fail():
    client = StubOllamaClient({
        "qwen2.5:7b": {"success": True, "response": ""},
        "llama3.2:3b": {"success": False, "error": "timeout"},
    })
    generator = PolicyRoutedNarrativeGenerator(
        router=StubRouter(), ollama_client=client, telemetry_store=RecordingTelemetry()
    )

    with pytest.raises(NarrativeGenerationError) as excinfo:
        await generator.generate("prompt")
    assert "empty response from provider" in str(excinfo.value)
    assert "timeout" in str(excinfo.value)


@pytest.mark.asyncio
async def test_routed_generator_retries_and_applies_policy_timeout():
    client = StubOllamaClient({
        "qwen2.5:7b": {"success": False, "error": "model loading"},
        "llama3.2:3b": {"success": True, "response": "second provider"},
    })
    telemetry = RecordingTelemetry()
    generator = PolicyRoutedNarrativeGenerator(
        router=StubRouter(retry_limit=1, timeout_ms=5000), ollama_client=client, telemetry_store=telemetry
    )

    assert await generator.generate("prompt") == "second provider"
    assert client.calls == ["qwen2.5:7b", "qwen2.5:7b", "llama3.2:3b"]
    assert client.timeouts == [5.0, 5.0, 5.0]
    assert len(telemetry.failure_records) == 2


@pytest.mark.asyncio
async def test_unregistered_policy_provider_becomes_error_marker():
    router = ProviderRouter({"narrative": RoutingPolicy(task_type="narrative", primary_provider="openai.gpt-4")})
    client = StubOllamaClient({})
    generator = PolicyRoutedNarrativeGenerator(
        router=router, ollama_client=client, telemetry_store=RecordingTelemetry()
    )

    with pytest.raises(NarrativeGenerationError) as excinfo:
        await generator.generate("prompt")
    assert "openai.gpt-4" in str(excinfo.value)
    assert client.calls == []

    result = await NarrativeSynthesizer(generator=generator).narrate(make_request())
    assert "openai.gpt-4" in result.error
    assert result.synthesis.startswith("You're exploring 2 thoughts.")


@pytest.mark.asyncio
async def test_missing_policy_becomes_error_marker():
    router = ProviderRouter({
        "embedding": RoutingPolicy(task_type="embedding", primary_provider="ollama.nomic-embed-text"),
    })
    generator = PolicyRoutedNarrativeGenerator(
        router=router, ollama_client=StubOllamaClient({}), telemetry_store=RecordingTelemetry()
    )

    result = await NarrativeSynthesizer(generator=generator).synthesize(make_request())
    assert result.error.startswith("No usable narrative provider")
