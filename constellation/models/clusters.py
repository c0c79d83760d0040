"""
Cluster Models

Two separate notions that must not be mixed:
- ConnectivityCluster: a connected component of the connection graph,
  used to pick the layout strategy and anchor positions.
- DensityCluster: a node overlapping three or more others, used only
  when narrating insights.
"""

from typing import List

from pydantic import Field

from .base import CamelModel


class ConnectivityCluster(CamelModel):
    """Connected component of the connection graph."""

    name: str = Field(..., description="Label derived from the most prevalent member")
    thought_ids: List[str] = Field(default_factory=list, description="Member node ids in discovery order")
    center_x: float = Field(default=0.0, description="Anchor x assigned by the layout")
    center_y: float = Field(default=0.0, description="Anchor y assigned by the layout")


class DensityCluster(CamelModel):
    """Node whose bubble overlaps many neighbours."""

    node_id: str = Field(..., description="Id of the densely overlapped node")
    touch_count: int = Field(..., ge=0, description="Number of overlapping nodes")
    label: str = Field(default="", description="Short preview of the node text")
