"""
Linear Agent - Ticket Schemas

Defines the canonical Ticket aggregate and the projections it owns
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field, field_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Comment(BaseModel):
    """Individual ticket comment"""
    id: str
    body: str = ""
    created_at: datetime
    user: Optional[str] = None  # rendered as "Unknown" when absent


class RelatedTicket(BaseModel):
    """Read-only projection of another ticket (parent, child or cross-reference)"""
    id: str
    title: str
    state: str
    assignee: Optional[str] = None


class Ticket(BaseModel):
    """
    Canonical ticket record.

    Built from a remote fetch with the relational fields empty, then replaced
    wholesale by the enrichment step; or rebuilt in one shot from a saved
    Markdown document.
    """
    # Core identifiers
    id: str
    title: str
    description: str = ""
    url: str = ""

    # Classification
    priority: int = 0  # 0-4, higher is more urgent; stored as received
    estimate: Optional[float] = None
    state: str = ""
    labels: list[str] = Field(default_factory=list)

    # Timestamps
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    # Relations
    assignee: Optional[str] = None
    comments: list[Comment] = Field(default_factory=list)
    parent: Optional[RelatedTicket] = None
    children: list[RelatedTicket] = Field(default_factory=list)
    related_tickets: list[RelatedTicket] = Field(default_factory=list)

    @field_validator("labels", "comments", "children", "related_tickets", mode="before")
    @classmethod
    def _none_is_empty(cls, value):
        return [] if value is None else value

    class Config:
        json_schema_extra = {
            "example": {
                "id": "ENG-1",
                "title": "Fix bug",
                "description": "The login button does nothing on Safari.",
                "priority": 2,
                "estimate": None,
                "state": "Open",
                "labels": [],
                "url": "https://linear.app/acme/issue/ENG-1/fix-bug",
                "comments": [],
            }
        }
