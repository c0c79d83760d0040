"""Routing logic for the external providers."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Dict, List, Optional, Tuple, TypeVar

from .provider_registry import ModelProvider, ProviderNotFoundError, get_provider
from .policies import PolicyNotFoundError, RoutingPolicy, load_policies

logger = logging.getLogger(__name__)

T = TypeVar("T")

# (provider, timeout in seconds) -> (answer, None) or (None, error message)
ProviderCall = Callable[[ModelProvider, float], Awaitable[Tuple[Optional[T], Optional[str]]]]


class ProviderUnavailableError(RuntimeError):
    """Raised when no provider of a policy produced a usable answer."""


class ProviderRouter:
    """Determines which providers should handle a task based on policies."""

    def __init__(self, policies: Optional[Dict[str, RoutingPolicy]] = None) -> None:
        self._policies = policies or load_policies()

    def policy(self, task_type: str) -> RoutingPolicy:
        policy = self._policies.get(task_type)
        if policy is None:
            raise PolicyNotFoundError(task_type)
        return policy.copy()

    def candidates(self, task_type: str) -> List[ModelProvider]:
        """All registered providers for a task in fallback order; unknown names are skipped."""
        providers: List[ModelProvider] = []
        missing: List[str] = []
        for name in self.policy(task_type).candidates:
            try:
                providers.append(get_provider(name))
            except ProviderNotFoundError:
                missing.append(name)
        if not providers:
            raise ProviderNotFoundError(
                f"No valid providers available for task {task_type} (unregistered: {', '.join(missing)})"
            )
        return providers

    def refresh(self) -> None:
        """Reload policies from disk."""
        self._policies = load_policies()


async def call_with_fallback(router: ProviderRouter, task_type: str, call: ProviderCall, telemetry) -> T:
    """
    Run ``call`` against the task's providers in policy order.

    Each provider gets ``1 + retry_limit`` attempts with the policy timeout.
    Every attempt is recorded in ``telemetry``; blocking telemetry writes run
    in a worker thread.

    Raises:
        ProviderUnavailableError: the policy is missing, names no registered
            provider, or every attempt failed
    """
    try:
        policy = router.policy(task_type)
        providers = router.candidates(task_type)
    except (PolicyNotFoundError, ProviderNotFoundError) as exc:
        message = exc.args[0] if exc.args else task_type
        raise ProviderUnavailableError(f"No usable {task_type} provider: {message}") from exc

    timeout = policy.timeout_ms / 1000
    errors: List[str] = []
    for provider in providers:
        for attempt in range(1 + max(0, policy.retry_limit)):
            start = time.perf_counter()
            answer, error = await call(provider, timeout)
            latency_ms = (time.perf_counter() - start) * 1000

            if error is None:
                await asyncio.to_thread(telemetry.record_success, provider.name, latency_ms)
                return answer

            await asyncio.to_thread(telemetry.record_failure, provider.name, latency_ms, error)
            logger.warning("%s provider %s failed (attempt %d): %s", task_type, provider.name, attempt + 1, error)
            errors.append(f"{provider.name}: {error}")

    raise ProviderUnavailableError("; ".join(errors))
