"""Layout models shared by the in-process layout engine and the organize endpoint."""

from typing import Dict, List, Optional, Tuple

from pydantic import Field

from .base import CamelModel
from .clusters import ConnectivityCluster


class Position(CamelModel):
    x: float
    y: float


class LayoutNode(CamelModel):
    """Minimal node summary needed to compute a layout."""

    id: str = Field(..., min_length=1)
    text: str = Field(default="")
    connections: List[str] = Field(default_factory=list)
    prevalence: float = Field(default=0.0, ge=0.0)


class LayoutRequest(CamelModel):
    thoughts: List[LayoutNode] = Field(default_factory=list)
    canvas_width: Optional[float] = Field(default=None, gt=0)
    canvas_height: Optional[float] = Field(default=None, gt=0)
    padding: Optional[float] = Field(default=None, ge=0)
    seed: Optional[int] = Field(default=None, description="Fix the placement jitter for reproducible output")


class LayoutResult(CamelModel):
    positions: Dict[str, Position] = Field(default_factory=dict)
    clusters: List[ConnectivityCluster] = Field(default_factory=list)
    strong_connections: List[Tuple[str, str]] = Field(default_factory=list)
