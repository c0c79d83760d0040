"""Telemetry collection for the external providers."""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Dict, Optional

import redis

from constellation.config.settings import settings

logger = logging.getLogger(__name__)


@dataclass
class ProviderMetrics:
    """Aggregate metrics for a single provider."""

    provider: str
    total_calls: int = 0
    successes: int = 0
    failures: int = 0
    total_latency_ms: float = 0.0
    last_error: Optional[str] = None
    last_updated: Optional[str] = None

    @property
    def success_rate(self) -> float:
        if self.total_calls == 0:
            return 0.0
        return self.successes / self.total_calls

    @property
    def average_latency_ms(self) -> float:
        if self.total_calls == 0:
            return 0.0
        return self.total_latency_ms / self.total_calls


class TelemetryStore:
    """Persist provider telemetry in Redis with in-memory fallback."""

    def __init__(self, redis_client: Optional[redis.Redis] = None, namespace: str = "constellation:telemetry") -> None:
        self.redis_client = redis_client
        self.namespace = namespace
        self._cache: Dict[str, ProviderMetrics] = {}
        # Records arrive from worker threads (asyncio.to_thread)
        self._lock = threading.Lock()

    def _key(self, provider: str) -> str:
        return f"{self.namespace}:{provider}"

    def _load(self, provider: str) -> ProviderMetrics:
        if provider in self._cache:
            return self._cache[provider]

        metrics = ProviderMetrics(provider=provider)

        if self.redis_client is not None:
            try:
                data = self.redis_client.get(self._key(provider))
                if data:
                    metrics = ProviderMetrics(**json.loads(data))
            except (redis.RedisError, ValueError, TypeError) as exc:
                logger.warning("Failed to load telemetry for %s: %s", provider, exc)

        self._cache[provider] = metrics
        return metrics

    def _persist(self, metrics: ProviderMetrics) -> None:
        self._cache[metrics.provider] = metrics

        if self.redis_client is not None:
            try:
                self.redis_client.set(self._key(metrics.provider), json.dumps(asdict(metrics)))
            except redis.RedisError as exc:
                logger.warning("Failed to persist telemetry for %s: %s", metrics.provider, exc)

    def _record(self, provider: str, latency_ms: float, error: Optional[str]) -> ProviderMetrics:
        with self._lock:
            metrics = self._load(provider)
            metrics.total_calls += 1
            if error is None:
                metrics.successes += 1
            else:
                metrics.failures += 1
            metrics.total_latency_ms += latency_ms
            metrics.last_error = error
            metrics.last_updated = datetime.now(timezone.utc).isoformat()
            self._persist(metrics)
            return metrics

    def record_success(self, provider: str, latency_ms: float) -> ProviderMetrics:
        return self._record(provider, latency_ms, None)

    def record_failure(self, provider: str, latency_ms: float, error: str) -> ProviderMetrics:
        return self._record(provider, latency_ms, error)

    def get_metrics(self, provider: str) -> ProviderMetrics:
        return self._load(provider)

    def get_all_metrics(self) -> Dict[str, ProviderMetrics]:
        if self.redis_client is not None:
            try:
                for key in self.redis_client.keys(f"{self.namespace}:*"):
                    if isinstance(key, bytes):
                        key = key.decode("utf-8")
                    self._load(key[len(self.namespace) + 1:])
            except redis.RedisError as exc:
                logger.warning("Failed to enumerate telemetry keys: %s", exc)
        return dict(self._cache)


_default_store: Optional[TelemetryStore] = None
_default_store_lock = threading.Lock()


def get_telemetry_store() -> TelemetryStore:
    """
    Return global telemetry store singleton.

    The first call pings Redis synchronously; async callers should warm it
    up off the event loop (the app does so at startup).
    """

    global _default_store
    with _default_store_lock:
        if _default_store is None:
            _default_store = _connect_store()
        return _default_store


def _connect_store() -> TelemetryStore:
    redis_client = None
    if settings.REDIS_URL:
        try:
            redis_client = redis.Redis.from_url(settings.REDIS_URL, socket_connect_timeout=1)
            redis_client.ping()
        except redis.RedisError as exc:
            logger.info("Redis unavailable for telemetry, keeping metrics in memory: %s", exc)
            redis_client = None
    return TelemetryStore(redis_client=redis_client)


__all__ = [
    "ProviderMetrics",
    "TelemetryStore",
    "get_telemetry_store",
]
