"""
Constellation Models
Data models for thoughts, analysed nodes, clusters, insights and layouts
"""

from .base import CamelModel
from .thought import DateWindow, Thought
from .node import Node
from .clusters import ConnectivityCluster, DensityCluster
from .insights import InsightReport, NetworkStats, Pattern, PatternType, PathQuestion
from .layout import LayoutNode, LayoutRequest, LayoutResult, Position
from .analysis import AnalyzeRequest, ConstellationAnalysis, MergePreset
from .providers import (
    EmbeddingRequest,
    EmbeddingResult,
    EmbeddingThought,
    NarrativeRequest,
    NarrativeResult,
    NarrativeThought,
    PatternSummary,
    SemanticCluster,
)

__all__ = [
    "CamelModel",
    # Input
    "DateWindow",
    "Thought",
    # Analysis
    "Node",
    "ConnectivityCluster",
    "DensityCluster",
    "InsightReport",
    "NetworkStats",
    "Pattern",
    "PatternType",
    "PathQuestion",
    "AnalyzeRequest",
    "ConstellationAnalysis",
    "MergePreset",
    # Layout
    "LayoutNode",
    "LayoutRequest",
    "LayoutResult",
    "Position",
    # Providers
    "EmbeddingRequest",
    "EmbeddingResult",
    "EmbeddingThought",
    "NarrativeRequest",
    "NarrativeResult",
    "NarrativeThought",
    "PatternSummary",
    "SemanticCluster",
]
