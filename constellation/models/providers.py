"""
Provider Models - request/response shapes for the optional external paths

Both paths are fail-soft: a missing provider or a provider error is
reported through the ``error`` field next to empty payloads.
"""

from typing import Dict, List, Optional

from pydantic import Field

from .base import CamelModel
from .insights import NetworkStats, PatternType


class EmbeddingThought(CamelModel):
    id: str = Field(..., min_length=1)
    text: str = Field(default="")


class EmbeddingRequest(CamelModel):
    thoughts: List[EmbeddingThought] = Field(default_factory=list)


class SemanticCluster(CamelModel):
    id: int = Field(..., ge=0)
    thought_ids: List[str] = Field(default_factory=list)
    label: str = Field(default="Related Thoughts")


class EmbeddingResult(CamelModel):
    embeddings: Dict[str, List[float]] = Field(default_factory=dict)
    similarity_matrix: Dict[str, float] = Field(
        default_factory=dict, description='Cosine similarity keyed by "id1-id2"'
    )
    clusters: List[SemanticCluster] = Field(default_factory=list)
    error: Optional[str] = None


class NarrativeThought(CamelModel):
    id: str
    text: str = ""
    connections: List[str] = Field(default_factory=list)
    document_name: Optional[str] = None


class PatternSummary(CamelModel):
    type: PatternType
    description: str
    count: Optional[int] = None


class NarrativeRequest(CamelModel):
    thoughts: List[NarrativeThought] = Field(default_factory=list)
    patterns: List[PatternSummary] = Field(default_factory=list)
    stats: NetworkStats = Field(default_factory=NetworkStats)


class NarrativeResult(CamelModel):
    synthesis: str = ""
    questions: List[str] = Field(default_factory=list)
    error: Optional[str] = None
