"""Exceptions raised across the constellation services."""


class ConstellationInputError(ValueError):
    """Raised when a request to the engine is malformed at the boundary."""


class NarrativeGenerationError(Exception):
    """Raised when the external narrative provider fails to produce text."""


class EmbeddingProviderError(Exception):
    """Raised when the external embedding provider is unavailable or misbehaves."""
