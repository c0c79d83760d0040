"""Static registry of the external providers the constellation can call."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List


class ProviderNotFoundError(KeyError):
    """Raised when a requested provider is not present in the registry."""


@dataclass
class ModelProvider:
    """Capability metadata for one Ollama-served model."""

    name: str
    model: str
    kind: str  # "generate" or "embed"
    max_context_tokens: int
    preferred_tasks: List[str] = field(default_factory=list)

    def copy(self) -> "ModelProvider":
        return ModelProvider(
            name=self.name,
            model=self.model,
            kind=self.kind,
            max_context_tokens=self.max_context_tokens,
            preferred_tasks=list(self.preferred_tasks),
        )


_BASE_REGISTRY: Dict[str, ModelProvider] = {
    "ollama.qwen2.5-7b": ModelProvider(
        name="ollama.qwen2.5-7b",
        model="qwen2.5:7b",
        kind="generate",
        max_context_tokens=32_768,
        preferred_tasks=["narrative"],
    ),
    "ollama.llama3.2-3b": ModelProvider(
        name="ollama.llama3.2-3b",
        model="llama3.2:3b",
        kind="generate",
        max_context_tokens=8192,
        preferred_tasks=["narrative"],
    ),
    "ollama.nomic-embed-text": ModelProvider(
        name="ollama.nomic-embed-text",
        model="nomic-embed-text",
        kind="embed",
        max_context_tokens=8192,
        preferred_tasks=["embedding"],
    ),
}


def _clone_registry(providers: Iterable[ModelProvider]) -> Dict[str, ModelProvider]:
    return {provider.name: provider.copy() for provider in providers}


def load_provider_registry() -> Dict[str, ModelProvider]:
    """Return a fully cloned provider registry."""
    return _clone_registry(_BASE_REGISTRY.values())


def get_provider(name: str) -> ModelProvider:
    """Return a copy of the requested provider."""
    provider = _BASE_REGISTRY.get(name)
    if provider is None:
        raise ProviderNotFoundError(name)
    return provider.copy()
