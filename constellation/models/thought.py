"""
Thought Model - A single user-authored snippet captured on a canvas

Thoughts are read from external document storage; the analysis engine
treats them as immutable input for one analysis pass.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import Field, field_validator

from .base import CamelModel


class DateWindow(str, Enum):
    """Analysis scope selectable by the constellation view."""

    TODAY = "today"
    THREE_DAYS = "3days"
    SEVEN_DAYS = "7days"
    THIRTY_DAYS = "30days"
    ALL = "all"


class Thought(CamelModel):
    """
    Thought bubble as stored by the canvas.

    Empty or missing text is tolerated: it simply never connects,
    merges, or contributes to word frequency.
    """

    id: str = Field(..., min_length=1, description="Thought identifier")
    text: str = Field(default="", description="Raw thought text")
    color: str = Field(default="", description="Bubble colour token")
    document_name: str = Field(default="", description="Name of the owning document")
    document_id: Optional[str] = Field(default=None, description="Owning document identifier")
    document_date: Optional[datetime] = Field(default=None, description="Owning document date")
    x: float = Field(default=0.0, description="Canvas x position")
    y: float = Field(default=0.0, description="Canvas y position")
    size: float = Field(default=0.0, ge=0.0, description="Bubble size on the canvas")

    @field_validator("text", mode="before")
    @classmethod
    def coerce_missing_text(cls, v):
        """Missing text degrades to an empty string rather than failing validation."""
        return "" if v is None else v

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "id": "t-1",
                    "text": "I love hiking mountains",
                    "color": "sky",
                    "documentName": "Monday, March 3, 2025",
                    "documentDate": "2025-03-03T00:00:00Z",
                    "x": 420.0,
                    "y": 310.0,
                    "size": 120.0,
                }
            ]
        }
    }
