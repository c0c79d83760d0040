"""Routing policies for the narrative and embedding providers."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import yaml

from constellation.config.settings import settings

logger = logging.getLogger(__name__)


class PolicyNotFoundError(KeyError):
    """Raised when a routing policy is missing."""


@dataclass
class RoutingPolicy:
    """Which providers serve a task, in order of preference."""

    task_type: str
    primary_provider: str
    fallback_providers: List[str] = field(default_factory=list)
    timeout_ms: int = 60_000
    retry_limit: int = 1

    def copy(self) -> "RoutingPolicy":
        return RoutingPolicy(
            task_type=self.task_type,
            primary_provider=self.primary_provider,
            fallback_providers=list(self.fallback_providers),
            timeout_ms=self.timeout_ms,
            retry_limit=self.retry_limit,
        )

    @property
    def candidates(self) -> List[str]:
        return [self.primary_provider, *self.fallback_providers]


def _default_policies() -> Dict[str, RoutingPolicy]:
    return {
        "narrative": RoutingPolicy(
            task_type="narrative",
            primary_provider="ollama.qwen2.5-7b",
            fallback_providers=["ollama.llama3.2-3b"],
            timeout_ms=60_000,
        ),
        "embedding": RoutingPolicy(
            task_type="embedding",
            primary_provider="ollama.nomic-embed-text",
            timeout_ms=15_000,
        ),
    }


def _load_policy_file(path: Path) -> Dict[str, RoutingPolicy]:
    if not path.exists():
        return {}

    with open(path, "r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}

    policies: Dict[str, RoutingPolicy] = {}
    for item in data.get("policies", []):
        policy = RoutingPolicy(
            task_type=item["task_type"],
            primary_provider=item["primary_provider"],
            fallback_providers=item.get("fallback_providers") or [],
            timeout_ms=item.get("timeout_ms", 60_000),
            retry_limit=item.get("retry_limit", 1),
        )
        policies[policy.task_type] = policy
    logger.debug("Loaded %d routing policies from %s", len(policies), path)
    return policies


def load_policies(path: Optional[Path] = None) -> Dict[str, RoutingPolicy]:
    """Built-in defaults overlaid with the entries from the policy file."""
    base = _default_policies()
    base.update(_load_policy_file(Path(path or settings.LLM_POLICY_FILE)))
    return {key: policy.copy() for key, policy in base.items()}
