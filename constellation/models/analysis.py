"""Analysis request/response models for the constellation endpoint."""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import Field

from .base import CamelModel
from .clusters import ConnectivityCluster
from .insights import InsightReport
from .node import Node
from .thought import DateWindow, Thought


class MergePreset(CamelModel):
    label: str
    threshold: float = Field(..., gt=0.0, lt=1.0)


class AnalyzeRequest(CamelModel):
    thoughts: List[Thought] = Field(default_factory=list)
    merge_threshold: Optional[float] = Field(default=None, gt=0.0, lt=1.0)
    date_window: DateWindow = Field(default=DateWindow.ALL)
    reference_date: Optional[datetime] = None
    seed: Optional[int] = Field(default=None, description="Seed for initial scatter positions")
    similarity_matrix: Optional[Dict[str, float]] = Field(
        default=None,
        description="Embedding similarities keyed \"id1-id2\" (from /embeddings); replaces lexical similarity",
    )


class ConstellationAnalysis(CamelModel):
    """Complete output of one analysis pass."""

    nodes: List[Node] = Field(default_factory=list)
    connectivity_clusters: List[ConnectivityCluster] = Field(default_factory=list)
    insights: InsightReport
    merge_threshold: float
