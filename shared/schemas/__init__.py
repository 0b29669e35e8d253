"""Linear Agent Shared Schemas"""

from .linear import CommentRecord, IssueRecord, LabelRecord, RelatedRecord
from .ticket import Comment, RelatedTicket, Ticket

__all__ = [
    # Ticket schemas
    "Ticket",
    "Comment",
    "RelatedTicket",
    # Linear API projections
    "IssueRecord",
    "LabelRecord",
    "CommentRecord",
    "RelatedRecord",
]
