"""Stats endpoints for provider telemetry."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, List

from fastapi import APIRouter

from constellation.config.settings import is_provider_configured
from constellation.services.llm import ProviderMetrics, get_telemetry_store, load_policies, load_provider_registry

router = APIRouter(prefix="/api/stats", tags=["stats"])


@router.get("/llm/providers")
async def get_llm_provider_metrics() -> Dict[str, Any]:
    """Expose provider telemetry for dashboards and tooling."""

    registry = load_provider_registry()
    # Redis calls are blocking
    store = await asyncio.to_thread(get_telemetry_store)
    metrics_map = await asyncio.to_thread(store.get_all_metrics)

    providers: List[Dict[str, Any]] = []
    for name, provider in registry.items():
        metrics: ProviderMetrics = metrics_map.get(name, ProviderMetrics(provider=name))
        providers.append({
            "provider": name,
            "model": provider.model,
            "kind": provider.kind,
            "max_context_tokens": provider.max_context_tokens,
            "preferred_tasks": provider.preferred_tasks,
            "total_calls": metrics.total_calls,
            "successes": metrics.successes,
            "failures": metrics.failures,
            "success_rate": metrics.success_rate,
            "average_latency_ms": metrics.average_latency_ms,
            "last_error": metrics.last_error,
            "last_updated": metrics.last_updated,
        })

    policies = {
        task_type: {
            "candidates": policy.candidates,
            "timeout_ms": policy.timeout_ms,
            "retry_limit": policy.retry_limit,
            "configured": is_provider_configured(task_type),
        }
        for task_type, policy in load_policies().items()
    }

    return {
        "providers": providers,
        "policies": policies,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
