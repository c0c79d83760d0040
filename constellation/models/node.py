"""
Node Model - In-memory analysis representation of a thought or merged group

Nodes live only for one constellation session; they are rebuilt from
thoughts whenever the input or the merge threshold changes.
"""

from typing import List, Optional

from pydantic import Field

from .thought import Thought


class Node(Thought):
    """Thought extended with graph, sizing and layout state."""

    connections: List[str] = Field(
        default_factory=list, description="Ids of connected nodes (stored symmetrically)"
    )
    prevalence: float = Field(default=0.0, ge=0.0, description="Frequency-weighted importance")
    base_radius: float = Field(default=0.0, ge=0.0, description="Radius before density scaling")
    radius: float = Field(default=0.0, ge=0.0, description="Radius after density scaling")
    touch_count: int = Field(default=0, ge=0, description="Number of overlapping nodes")
    is_merged: bool = Field(default=False, description="Whether this node stands for several thoughts")
    merged_ids: Optional[List[str]] = Field(
        default=None, description="Original thought ids folded into this node"
    )
    synthesis: Optional[str] = Field(default=None, description="Narrative for merged nodes")
    themes: List[str] = Field(
        default_factory=list, description="Shared words extracted while merging"
    )
    target_x: Optional[float] = Field(default=None, description="Layout target x")
    target_y: Optional[float] = Field(default=None, description="Layout target y")

    @property
    def is_isolated(self) -> bool:
        return len(self.connections) == 0

    @property
    def source_ids(self) -> List[str]:
        """Original thought ids this node represents."""
        return list(self.merged_ids) if self.merged_ids else [self.id]
