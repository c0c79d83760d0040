"""Insight models: detected patterns, path questions and network statistics."""

from enum import Enum
from typing import Dict, List

from pydantic import Field

from .base import CamelModel
from .clusters import DensityCluster


class PatternType(str, Enum):
    CLUSTER = "cluster"
    HUB = "hub"
    ISOLATED = "isolated"
    THEME = "theme"


class Pattern(CamelModel):
    type: PatternType
    title: str
    description: str
    thought_ids: List[str] = Field(default_factory=list)


class PathQuestion(CamelModel):
    """Question nudging the user to connect or deepen part of the constellation."""

    question: str
    related_thoughts: List[str] = Field(default_factory=list)


class NetworkStats(CamelModel):
    total_thoughts: int = Field(default=0, ge=0)
    total_connections: float = Field(default=0.0, ge=0.0)
    avg_connections: float = Field(default=0.0, ge=0.0)
    clusters: int = Field(default=0, ge=0, description="Connectivity cluster count")
    isolated_count: int = Field(default=0, ge=0)
    merged_count: int = Field(default=0, ge=0)


class InsightReport(CamelModel):
    """Everything the side panel narrates about the current node set."""

    word_frequency: Dict[str, int] = Field(default_factory=dict)
    patterns: List[Pattern] = Field(default_factory=list)
    density_clusters: List[DensityCluster] = Field(default_factory=list)
    synthesis: str = Field(..., min_length=1)
    suggestions: List[str] = Field(default_factory=list)
    questions: List[PathQuestion] = Field(default_factory=list)
    stats: NetworkStats = Field(default_factory=NetworkStats)
