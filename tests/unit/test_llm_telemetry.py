import json
import sys
from pathlib import Path

import redis

ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(ROOT))

from constellation.services.llm.telemetry import ProviderMetrics, TelemetryStore  # noqa: E402


class FakeRedis:
    def __init__(self):
        self.data = {}

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value):
        self.data[key] = value.encode("utf-8")

    def keys(self, pattern):
        prefix = pattern.rstrip("*")
        return [key.encode("utf-8") for key in self.data if key.startswith(prefix)]


class BrokenRedis:
    def get(self, key):
        raise redis.ConnectionError("down")

    def set(self, key, value):
        raise redis.ConnectionError("down")

    def keys(self, pattern):
        raise redis.ConnectionError("down")


def test_record_success_updates_metrics():
    store = TelemetryStore(redis_client=None, namespace="test:telemetry")
    metrics = store.record_success("ollama.qwen2.5-7b", latency_ms=100.0)

    assert metrics.total_calls == 1
    assert metrics.successes == 1
    assert metrics.failures == 0
    assert metrics.average_latency_ms == 100.0
    assert metrics.success_rate == 1.0


def test_record_failure_tracks_error():
    store = TelemetryStore(redis_client=None, namespace="test:telemetry")
    store.record_failure("ollama.qwen2.5-7b", latency_ms=80.0, error="timeout")
    metrics = store.get_metrics("ollama.qwen2.5-7b")

    assert metrics.failures == 1
    assert metrics.last_error == "timeout"
    assert metrics.total_calls == 1


def test_get_all_metrics_returns_cache():
    store = TelemetryStore(redis_client=None, namespace="test:telemetry")
    store.record_success("ollama.nomic-embed-text", latency_ms=90.0)
    store.record_failure("ollama.nomic-embed-text", latency_ms=120.0, error="rate limit")

    metrics = store.get_all_metrics()["ollama.nomic-embed-text"]
    assert metrics.total_calls == 2
    assert metrics.successes == 1
    assert metrics.failures == 1


def test_metrics_persist_through_redis():
    client = FakeRedis()
    TelemetryStore(redis_client=client, namespace="test:telemetry").record_success("ollama.llama3.2-3b", 40.0)

    payload = json.loads(client.data["test:telemetry:ollama.llama3.2-3b"])
    assert payload["successes"] == 1

    fresh = TelemetryStore(redis_client=client, namespace="test:telemetry")
    metrics = fresh.get_all_metrics()["ollama.llama3.2-3b"]
    assert isinstance(metrics, ProviderMetrics)
    assert metrics.total_latency_ms == 40.0


def test_redis_errors_fall_back_to_memory():
    store = TelemetryStore(redis_client=BrokenRedis(), namespace="test:telemetry")
    store.record_failure("ollama.qwen2.5-7b", latency_ms=10.0, error="boom")

    assert store.get_all_metrics()["ollama.qwen2.5-7b"].failures == 1
